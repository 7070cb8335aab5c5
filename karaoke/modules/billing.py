"""
Bills

- computing the bill of a schedule (read only)
- storing, printing and looking up bills
- duplicate / stale bill cleanup
"""
from flask import Blueprint, request, jsonify

from karaoke.services.billing import BillService
from karaoke.services.revenue import RevenueService

bp = Blueprint('bills', __name__, url_prefix='/bills')

TRUE_VALUES = ('1', 'true', 'yes', 'on')


def _flag(value):
    """Tri-state query/body flag: None when absent"""
    if value is None or value == '':
        return None
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES


def _bill_options(source):
    return {
        'actual_start_time': source.get('actual_start_time'),
        'actual_end_time': source.get('actual_end_time'),
        'payment_method': source.get('payment_method'),
        'promotion_id': source.get('promotion_id'),
        'apply_free_hour_promotion': _flag(source.get('apply_free_hour_promotion'))
    }


@bp.get('/')
def list_bills():
    args = request.args
    result = BillService().get_all_bills(
        page=args.get('page', 1, type=int),
        limit=args.get('limit', 20, type=int),
        start_date=args.get('start_date'),
        end_date=args.get('end_date'),
        min_amount=args.get('min_amount', type=float),
        max_amount=args.get('max_amount', type=float),
        payment_method=args.get('payment_method'),
        invoice_code=args.get('invoice_code')
    )
    return jsonify({
        'bills': [bill.to_dict() for bill in result['bills']],
        'pagination': result['pagination']
    })


@bp.get('/<schedule_id>')
def get_bill(schedule_id):
    """
    Bill of a schedule as it stands now. Nothing is stored unless
    record_history is set, which snapshots the F&B order.
    """
    service = BillService()
    bill = service.get_bill(schedule_id, **_bill_options(request.args))
    if _flag(request.args.get('record_history')):
        service.record_order_history(bill, request.args.get('completed_by') or 'system')
    return jsonify(bill.to_dict())


@bp.post('/save')
def save_bill():
    data = request.get_json(force=True, silent=True) or {}
    return jsonify(BillService().save_bill(data).to_dict()), 201


@bp.post('/<schedule_id>/finalize')
def finalize_bill(schedule_id):
    data = request.get_json(force=True, silent=True) or {}
    return jsonify(BillService().finalize_bill(schedule_id, **_bill_options(data)).to_dict()), 201


@bp.post('/<schedule_id>/print')
def print_bill(schedule_id):
    data = request.get_json(force=True, silent=True) or {}
    return jsonify(BillService().print_bill(schedule_id, **_bill_options(data)).to_dict()), 201


@bp.get('/<schedule_id>/text')
def bill_text(schedule_id):
    """Receipt text of the bill, without printing it"""
    service = BillService()
    bill = service.get_bill(schedule_id, **_bill_options(request.args))
    return jsonify({'content': service.get_bill_text(bill)})


@bp.get('/id/<bill_id>')
def get_bill_by_id(bill_id):
    return jsonify(BillService().get_bill_by_id(bill_id).to_dict())


@bp.get('/room/<room_id>')
def bills_by_room(room_id):
    bills = BillService().get_bills_by_room_id(room_id, limit=request.args.get('limit', 50, type=int))
    return jsonify([bill.to_dict() for bill in bills])


@bp.post('/cleanup/duplicates')
def clean_duplicates():
    data = request.get_json(force=True, silent=True) or {}
    return jsonify(RevenueService().clean_duplicate_bills(data.get('date')))


@bp.post('/cleanup/unfinished')
def clean_unfinished():
    return jsonify(RevenueService().clean_up_non_finished_bills())
