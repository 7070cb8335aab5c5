"""
Price tables (one per day type) and the holiday calendar
"""
from flask import Blueprint, request, jsonify

from karaoke.exceptions import BadRequestError
from karaoke.models.price import DayType
from karaoke.services.pricing import PricingService
from karaoke.utils.timeutils import parse_datetime

bp = Blueprint('prices', __name__, url_prefix='/prices')


def _day_type(code):
    try:
        return DayType.from_code(code)
    except ValueError as exc:
        raise BadRequestError(str(exc))


@bp.get('/')
def list_prices():
    return jsonify([price.to_dict() for price in PricingService().list_prices()])


@bp.get('/<day_type>')
def get_price(day_type):
    return jsonify(PricingService().get_price_document(_day_type(day_type)).to_dict())


@bp.put('/<day_type>')
def save_price(day_type):
    data = request.get_json(force=True, silent=True) or {}
    price = PricingService().upsert_price(_day_type(day_type), data.get('time_slots'))
    return jsonify(price.to_dict())


@bp.delete('/<day_type>')
def delete_price(day_type):
    PricingService().delete_price(_day_type(day_type))
    return jsonify({'ok': True})


@bp.get('/unit-price')
def unit_price():
    """Hourly rate of a room type at ?time=<ISO>&room_type=..."""
    service = PricingService()
    try:
        instant = parse_datetime(request.args.get('time', ''))
    except (ValueError, OverflowError):
        raise BadRequestError('time must be an ISO datetime')
    room_type = request.args.get('room_type', '')
    day_type = service.determine_day_type(instant)
    return jsonify({
        'day_type': day_type.code,
        'room_type': room_type,
        'price': service.get_service_unit_price(instant, day_type, room_type)
    })


@bp.get('/holidays')
def list_holidays():
    holidays = PricingService().list_holidays(request.args.get('year', type=int))
    return jsonify([holiday.to_dict() for holiday in holidays])


@bp.post('/holidays')
def add_holiday():
    data = request.get_json(force=True, silent=True) or {}
    holiday = PricingService().add_holiday(data.get('date'), data.get('name'))
    return jsonify(holiday.to_dict()), 201


@bp.delete('/holidays/<holiday_id>')
def delete_holiday(holiday_id):
    PricingService().delete_holiday(holiday_id)
    return jsonify({'ok': True})
