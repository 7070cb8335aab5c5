"""
Revenue reports
"""
from flask import Blueprint, request, jsonify

from karaoke.services.revenue import RevenueService

bp = Blueprint('revenue', __name__, url_prefix='/revenue')


@bp.get('/day')
def daily():
    return jsonify(RevenueService().get_daily_revenue(request.args.get('date')))


@bp.get('/week')
def weekly():
    return jsonify(RevenueService().get_weekly_revenue(request.args.get('date')))


@bp.get('/month')
def monthly():
    return jsonify(RevenueService().get_monthly_revenue(request.args.get('date')))


@bp.get('/custom')
def custom_range():
    return jsonify(RevenueService().get_revenue_by_custom_range(
        request.args.get('start_date'), request.args.get('end_date')))


@bp.get('/bills')
def from_bills():
    """?date_type=day|week|month|custom&start_date=...&end_date=..."""
    return jsonify(RevenueService().get_revenue_from_bills(
        request.args.get('date_type'),
        request.args.get('start_date'),
        request.args.get('end_date')
    ))
