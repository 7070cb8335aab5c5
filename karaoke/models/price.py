"""
Price table and holiday calendar
"""
from enum import Enum
from karaoke import db
from karaoke.models.fields import load_json, dump_json
from karaoke.utils.timeutils import utcnow


class DayType(Enum):
    WEEKDAY = ('weekday', 'Weekday')
    WEEKEND = ('weekend', 'Weekend')
    HOLIDAY = ('holiday', 'Holiday')

    def __init__(self, code, name):
        self.code = code
        self.display_name = name

    @classmethod
    def from_code(cls, code):
        for day_type in cls:
            if day_type.code == code:
                return day_type
        raise ValueError(f'Unknown day type: {code}')


class Price(db.Model):
    """
    Price document for one day type.

    time_slots keeps the configured order:
    [{"start": "HH:mm", "end": "HH:mm",
      "prices": [{"room_type": "small", "price": 100000}, ...]}, ...]
    A slot whose end is earlier than its start wraps past midnight.
    Prices are hourly rates in VND.
    """
    __tablename__ = 'prices'

    id = db.Column(db.Integer, primary_key=True)
    day_type = db.Column(db.String(20), unique=True, nullable=False, index=True)
    time_slots_json = db.Column(db.Text, nullable=False, default='[]')
    effective_date = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def __init__(self, day_type, time_slots=None):
        self.day_type = day_type
        self.time_slots = time_slots or []

    @property
    def time_slots(self):
        return load_json(self.time_slots_json, [])

    @time_slots.setter
    def time_slots(self, value):
        self.time_slots_json = dump_json(value or [])

    def to_dict(self):
        return {
            'id': self.id,
            'day_type': self.day_type,
            'time_slots': self.time_slots,
            'effective_date': self.effective_date.isoformat() if self.effective_date else None
        }

    def __repr__(self):
        return f'<Price {self.day_type}: {len(self.time_slots)} slots>'


class Holiday(db.Model):
    __tablename__ = 'holidays'

    id = db.Column(db.Integer, primary_key=True)
    # Local calendar date in the venue timezone
    date = db.Column(db.Date, unique=True, nullable=False, index=True)
    name = db.Column(db.String(100), nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'date': self.date.isoformat(),
            'name': self.name
        }

    def __repr__(self):
        return f'<Holiday {self.date}: {self.name}>'
