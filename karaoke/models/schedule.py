"""
Room schedules (one customer session in one room)
"""
from enum import Enum
from karaoke import db
from karaoke.models.fields import load_json, dump_json
from karaoke.utils.timeutils import utcnow, isoformat_utc


class RoomScheduleStatus(Enum):
    BOOKED = ('booked', 'Booked')
    IN_USE = ('in use', 'In use')
    LOCKED = ('locked', 'Locked')
    MAINTENANCE = ('maintenance', 'Maintenance')
    FINISHED = ('finished', 'Finished')
    CANCELLED = ('cancelled', 'Cancelled')

    def __init__(self, code, name):
        self.code = code
        self.display_name = name

    @classmethod
    def codes(cls):
        return [status.code for status in cls]


# A schedule in one of these states is closed for changes
CLOSED_STATUSES = (RoomScheduleStatus.FINISHED.code, RoomScheduleStatus.CANCELLED.code)


class ScheduleGiftStatus(Enum):
    ASSIGNED = ('assigned', 'Assigned')
    CLAIMED = ('claimed', 'Claimed')
    REMOVED = ('removed', 'Removed')

    def __init__(self, code, name):
        self.code = code
        self.display_name = name


class RoomSchedule(db.Model):
    __tablename__ = 'room_schedules'

    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('rooms.id'), nullable=False, index=True)

    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=True)
    status = db.Column(db.String(20), nullable=False, default=RoomScheduleStatus.BOOKED.code)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    created_by = db.Column(db.String(100), default='system')
    updated_by = db.Column(db.String(100), default='system')

    note = db.Column(db.Text)
    customer_name = db.Column(db.String(100))
    customer_phone = db.Column(db.String(20))

    gift_enabled = db.Column(db.Boolean, nullable=False, default=False)
    apply_free_hour_promo = db.Column(db.Boolean, nullable=False, default=False)

    # Embedded ScheduleGift snapshot; gift_status mirrors gift['status'] so the
    # claim can be guarded by a conditional UPDATE
    gift_json = db.Column(db.Text)
    gift_status = db.Column(db.String(20))

    @property
    def gift(self):
        return load_json(self.gift_json, None)

    @gift.setter
    def gift(self, value):
        self.gift_json = dump_json(value)
        self.gift_status = value.get('status') if value else None

    def is_closed(self):
        return self.status in CLOSED_STATUSES

    def get_status_display(self):
        for status in RoomScheduleStatus:
            if status.code == self.status:
                return status.display_name
        return self.status

    def to_dict(self):
        return {
            'id': self.id,
            'room_id': self.room_id,
            'room_name': self.room.name if self.room else None,
            'start_time': isoformat_utc(self.start_time),
            'end_time': isoformat_utc(self.end_time),
            'status': self.status,
            'status_display': self.get_status_display(),
            'created_at': isoformat_utc(self.created_at),
            'updated_at': isoformat_utc(self.updated_at),
            'created_by': self.created_by,
            'updated_by': self.updated_by,
            'note': self.note,
            'customer_name': self.customer_name,
            'customer_phone': self.customer_phone,
            'gift_enabled': self.gift_enabled,
            'apply_free_hour_promo': self.apply_free_hour_promo,
            'gift': self.gift
        }

    def __repr__(self):
        return f'<RoomSchedule {self.id}: room {self.room_id} ({self.status})>'
