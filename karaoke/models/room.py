"""
Karaoke rooms
"""
from enum import Enum
from karaoke import db


class RoomType(Enum):
    # Room sizes, also the keys of the price table
    SMALL = ('small', 'Small room')
    MEDIUM = ('medium', 'Medium room')
    LARGE = ('large', 'Large room')

    def __init__(self, code, name):
        self.code = code
        self.display_name = name

    @classmethod
    def codes(cls):
        return [room_type.code for room_type in cls]


class Room(db.Model):
    """
    A bookable karaoke room.

    The room type decides which rate of each price slot applies.
    """
    __tablename__ = 'rooms'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False, index=True)
    room_type = db.Column(db.String(20), nullable=False)
    capacity = db.Column(db.Integer, nullable=False, default=4)
    description = db.Column(db.Text)
    is_available = db.Column(db.Boolean, default=True)

    schedules = db.relationship('RoomSchedule', backref='room', lazy='dynamic',
                                cascade='all, delete-orphan')

    def __init__(self, name, room_type, capacity=4, description=''):
        self.name = name
        self.room_type = room_type
        self.capacity = capacity
        self.description = description
        self.is_available = True

    def get_type_display(self):
        for room_type in RoomType:
            if room_type.code == self.room_type:
                return room_type.display_name
        return self.room_type

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'room_type': self.room_type,
            'type_display': self.get_type_display(),
            'capacity': self.capacity,
            'description': self.description,
            'is_available': self.is_available
        }

    def __repr__(self):
        return f'<Room {self.name} ({self.room_type})>'
