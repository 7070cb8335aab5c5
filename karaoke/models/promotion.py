"""
Percentage promotions
"""
from enum import Enum
from karaoke import db
from karaoke.models.fields import load_json, dump_json
from karaoke.utils.timeutils import utcnow, isoformat_utc


class PromotionScope(Enum):
    ALL = ('all', 'All rooms')
    ROOM = ('room', 'Selected rooms')
    ROOM_TYPE = ('room_type', 'Selected room types')

    def __init__(self, code, name):
        self.code = code
        self.display_name = name


class Promotion(db.Model):
    """
    A percentage discount on the whole bill.

    targets holds room ids (as strings) for the "room" scope and room type
    codes for the "room_type" scope. It is ignored for "all".
    """
    __tablename__ = 'promotions'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text)
    discount_percentage = db.Column(db.Float, nullable=False, default=0.0)
    applies_to = db.Column(db.String(20), nullable=False, default=PromotionScope.ALL.code)
    targets_json = db.Column(db.Text, nullable=False, default='[]')
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    @property
    def targets(self):
        return [str(target) for target in load_json(self.targets_json, [])]

    @targets.setter
    def targets(self, value):
        self.targets_json = dump_json([str(target) for target in (value or [])])

    def applies_to_room(self, room):
        """Whether this promotion covers the given room"""
        if self.applies_to == PromotionScope.ALL.code:
            return True
        if room is None:
            return False
        if self.applies_to == PromotionScope.ROOM.code:
            return str(room.id) in self.targets
        if self.applies_to == PromotionScope.ROOM_TYPE.code:
            return room.room_type in self.targets
        return False

    def snapshot(self):
        """Frozen copy embedded into a bill"""
        return {
            'id': self.id,
            'name': self.name,
            'discount_percentage': self.discount_percentage,
            'applies_to': self.applies_to,
            'targets': self.targets
        }

    def to_dict(self):
        data = self.snapshot()
        data.update({
            'description': self.description,
            'is_active': self.is_active,
            'created_at': isoformat_utc(self.created_at)
        })
        return data

    def __repr__(self):
        return f'<Promotion {self.name} -{self.discount_percentage}%>'
