"""
Karaoke rooms

- room list with type / availability filters
- create, edit and delete rooms
- the gift waiting in a room's current session
"""
from flask import Blueprint, request, jsonify
from sqlalchemy.exc import IntegrityError

from karaoke import db
from karaoke.exceptions import BadRequestError, ConflictError, NotFoundError, ErrorCode
from karaoke.models.room import Room, RoomType
from karaoke.services.gifts import GiftService

bp = Blueprint('rooms', __name__, url_prefix='/rooms')


def _get_room(room_id):
    room = db.session.get(Room, room_id)
    if room is None:
        raise NotFoundError('Room', room_id)
    return room


def _check_type(room_type):
    if room_type not in RoomType.codes():
        raise BadRequestError(f"room_type must be one of {', '.join(RoomType.codes())}")


@bp.get('/')
def list_rooms():
    room_type = request.args.get('type', '')
    available_only = request.args.get('available', '')

    query = Room.query
    if room_type:
        query = query.filter_by(room_type=room_type)
    if available_only:
        query = query.filter_by(is_available=True)
    rooms = query.order_by(Room.name).all()
    return jsonify([room.to_dict() for room in rooms])


@bp.get('/<int:room_id>')
def get_room(room_id):
    return jsonify(_get_room(room_id).to_dict())


@bp.post('/')
def create_room():
    data = request.get_json(force=True, silent=True) or {}
    name = (data.get('name') or '').strip()
    if not name:
        raise BadRequestError('name is required', ErrorCode.MISSING_REQUIRED_FIELD)
    room_type = data.get('room_type')
    _check_type(room_type)

    room = Room(
        name=name,
        room_type=room_type,
        capacity=int(data.get('capacity') or 4),
        description=data.get('description', '')
    )
    db.session.add(room)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f'A room named {name} already exists')
    return jsonify(room.to_dict()), 201


@bp.put('/<int:room_id>')
def update_room(room_id):
    room = _get_room(room_id)
    data = request.get_json(force=True, silent=True) or {}

    if data.get('room_type') is not None:
        _check_type(data['room_type'])
        room.room_type = data['room_type']
    if data.get('name'):
        room.name = str(data['name']).strip()
    if data.get('capacity') is not None:
        room.capacity = int(data['capacity'])
    if data.get('description') is not None:
        room.description = data['description']
    if data.get('is_available') is not None:
        room.is_available = bool(data['is_available'])

    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f'A room named {room.name} already exists')
    return jsonify(room.to_dict())


@bp.delete('/<int:room_id>')
def delete_room(room_id):
    # schedules of the room go with it
    room = _get_room(room_id)
    db.session.delete(room)
    db.session.commit()
    return jsonify({'ok': True})


@bp.get('/<int:room_id>/gift')
def room_gift(room_id):
    return jsonify(GiftService().get_gift_for_room(room_id))
