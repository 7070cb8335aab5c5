"""
Room schedules

- schedules of a day (optionally one room / status)
- booking, updating and cancelling a session
- drawing the session's gift
"""
from flask import Blueprint, request, jsonify

from karaoke.services.gifts import GiftService
from karaoke.services.schedules import ScheduleService

bp = Blueprint('schedules', __name__, url_prefix='/schedules')


@bp.get('/')
def list_schedules():
    schedules = ScheduleService().list_schedules(
        day=request.args.get('date'),
        room_id=request.args.get('room_id'),
        status=request.args.get('status')
    )
    return jsonify([schedule.to_dict() for schedule in schedules])


@bp.get('/<schedule_id>')
def get_schedule(schedule_id):
    return jsonify(ScheduleService().get_schedule(schedule_id).to_dict())


@bp.post('/')
def create_schedule():
    data = request.get_json(force=True, silent=True) or {}
    schedule = ScheduleService().create_schedule(data)
    return jsonify(schedule.to_dict()), 201


@bp.put('/<schedule_id>')
def update_schedule(schedule_id):
    data = request.get_json(force=True, silent=True) or {}
    return jsonify(ScheduleService().update_schedule(schedule_id, data).to_dict())


@bp.post('/<schedule_id>/cancel')
def cancel_schedule(schedule_id):
    data = request.get_json(force=True, silent=True) or {}
    schedule = ScheduleService().cancel_schedule(schedule_id, data.get('updated_by') or 'system')
    return jsonify(schedule.to_dict())


@bp.post('/<schedule_id>/gift/claim')
def claim_gift(schedule_id):
    return jsonify(GiftService().claim_random_gift(schedule_id))
