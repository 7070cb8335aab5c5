"""
F&B menu: primary entries (with embedded variants) and secondary menu items
"""
from flask import Blueprint, request, jsonify

from karaoke.exceptions import NotFoundError
from karaoke.services.menu import MenuResolver, MenuService

bp = Blueprint('menu', __name__, url_prefix='/menu')


@bp.get('/')
def list_menu():
    entries = MenuService().list_menu(request.args.get('category'))
    return jsonify([entry.to_dict() for entry in entries])


@bp.get('/<menu_id>')
def get_menu(menu_id):
    return jsonify(MenuService().get_menu(menu_id).to_dict())


@bp.post('/')
def create_menu():
    data = request.get_json(force=True, silent=True) or {}
    return jsonify(MenuService().save_menu(data).to_dict()), 201


@bp.put('/<menu_id>')
def update_menu(menu_id):
    service = MenuService()
    data = request.get_json(force=True, silent=True) or {}
    return jsonify(service.save_menu(data, service.get_menu(menu_id)).to_dict())


@bp.delete('/<menu_id>')
def delete_menu(menu_id):
    MenuService().delete_menu(menu_id)
    return jsonify({'ok': True})


@bp.get('/items')
def list_items():
    items = MenuService().list_items(request.args.get('parent_id'))
    return jsonify([item.to_dict() for item in items])


@bp.post('/items')
def create_item():
    data = request.get_json(force=True, silent=True) or {}
    return jsonify(MenuService().save_item(data).to_dict()), 201


@bp.put('/items/<item_id>')
def update_item(item_id):
    service = MenuService()
    data = request.get_json(force=True, silent=True) or {}
    return jsonify(service.save_item(data, service.get_item(item_id)).to_dict())


@bp.delete('/items/<item_id>')
def delete_item(item_id):
    MenuService().delete_item(item_id)
    return jsonify({'ok': True})


@bp.get('/lookup/<item_id>')
def lookup(item_id):
    """Resolve any menu id (entry, item or variant) to its billing name and price"""
    entry = MenuResolver().find_menu_item_by_id(item_id)
    if entry is None:
        raise NotFoundError('Menu item', item_id)
    return jsonify({
        'id': entry.id,
        'name': entry.display_name,
        'price': entry.price,
        'category': entry.category
    })
