"""
Percentage promotions the cashier can apply to a bill
"""
from flask import Blueprint, request, jsonify

from karaoke.services.promotions import PromotionService

bp = Blueprint('promotions', __name__, url_prefix='/promotions')


@bp.get('/')
def list_promotions():
    active_only = request.args.get('active', '') in ('1', 'true', 'yes')
    promotions = PromotionService().list_promotions(active_only)
    return jsonify([promotion.to_dict() for promotion in promotions])


@bp.get('/<promotion_id>')
def get_promotion(promotion_id):
    return jsonify(PromotionService().get_promotion(promotion_id).to_dict())


@bp.post('/')
def create_promotion():
    data = request.get_json(force=True, silent=True) or {}
    return jsonify(PromotionService().save_promotion(data).to_dict()), 201


@bp.put('/<promotion_id>')
def update_promotion(promotion_id):
    service = PromotionService()
    data = request.get_json(force=True, silent=True) or {}
    promotion = service.save_promotion(data, service.get_promotion(promotion_id))
    return jsonify(promotion.to_dict())


@bp.delete('/<promotion_id>')
def delete_promotion(promotion_id):
    PromotionService().delete_promotion(promotion_id)
    return jsonify({'ok': True})
