"""
F&B orders of room schedules
"""
from flask import Blueprint, request, jsonify

from karaoke.exceptions import NotFoundError
from karaoke.services.fnb_orders import FnbOrderService

bp = Blueprint('fnb_orders', __name__, url_prefix='/fnb-orders')


@bp.get('/<schedule_id>')
def get_order(schedule_id):
    order = FnbOrderService().get_order(schedule_id)
    if order is None:
        raise NotFoundError('F&B order', schedule_id)
    return jsonify(order.to_dict())


@bp.put('/<schedule_id>')
def upsert_order(schedule_id):
    # body: {"order": {"drinks": {...}, "snacks": {...}}, "mode": "add|remove|set", "user": ...}
    data = request.get_json(force=True, silent=True) or {}
    order = FnbOrderService().upsert_order(
        schedule_id,
        data.get('order') or {},
        user=data.get('user'),
        mode=data.get('mode', 'add')
    )
    return jsonify(order.to_dict())


@bp.post('/<schedule_id>/complete')
def complete_order(schedule_id):
    data = request.get_json(force=True, silent=True) or {}
    result = FnbOrderService().complete_order(schedule_id, data.get('items'), data.get('created_by') or 'system')
    return jsonify(result), 201


@bp.get('/<schedule_id>/history')
def order_history(schedule_id):
    history = FnbOrderService().get_order_history(schedule_id)
    return jsonify([record.to_dict() for record in history])


@bp.post('/inventory/check')
def check_inventory():
    data = request.get_json(force=True, silent=True) or {}
    return jsonify(FnbOrderService().check_inventory(data.get('items') or []))
