"""
Gift stock management
"""
from flask import Blueprint, request, jsonify

from karaoke.services.gifts import GiftService

bp = Blueprint('gifts', __name__, url_prefix='/gifts')


@bp.get('/')
def list_gifts():
    return jsonify([gift.to_dict() for gift in GiftService().list_gifts()])


@bp.get('/<gift_id>')
def get_gift(gift_id):
    return jsonify(GiftService().get_gift(gift_id).to_dict())


@bp.post('/')
def create_gift():
    data = request.get_json(force=True, silent=True) or {}
    return jsonify(GiftService().create_gift(data).to_dict()), 201


@bp.put('/<gift_id>')
def update_gift(gift_id):
    data = request.get_json(force=True, silent=True) or {}
    return jsonify(GiftService().update_gift(gift_id, data).to_dict())


@bp.delete('/<gift_id>')
def delete_gift(gift_id):
    return jsonify(GiftService().delete_gift(gift_id))
