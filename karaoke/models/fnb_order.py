"""
Food & beverage orders attached to a room schedule
"""
from karaoke import db
from karaoke.models.fields import load_json, dump_json
from karaoke.utils.timeutils import utcnow, isoformat_utc


def empty_order():
    return {'drinks': {}, 'snacks': {}}


def normalize_order(value):
    """Order dict with string item ids and integer quantities"""
    value = value or {}
    return {
        'drinks': {str(k): int(v) for k, v in (value.get('drinks') or {}).items()},
        'snacks': {str(k): int(v) for k, v in (value.get('snacks') or {}).items()}
    }


class FnbOrder(db.Model):
    """Live order of a schedule: item id -> quantity for drinks and snacks"""
    __tablename__ = 'fnb_orders'

    id = db.Column(db.Integer, primary_key=True)
    schedule_id = db.Column(db.Integer, db.ForeignKey('room_schedules.id'),
                            unique=True, nullable=False, index=True)
    order_json = db.Column(db.Text, nullable=False, default='{"drinks": {}, "snacks": {}}')
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    created_by = db.Column(db.String(100), default='system')
    updated_by = db.Column(db.String(100), default='system')

    @property
    def order(self):
        return normalize_order(load_json(self.order_json, empty_order()))

    @order.setter
    def order(self, value):
        self.order_json = dump_json(normalize_order(value))

    def is_empty(self):
        order = self.order
        return not order['drinks'] and not order['snacks']

    def to_dict(self):
        return {
            'id': self.id,
            'schedule_id': self.schedule_id,
            'order': self.order,
            'created_at': isoformat_utc(self.created_at),
            'updated_at': isoformat_utc(self.updated_at),
            'created_by': self.created_by,
            'updated_by': self.updated_by
        }


class FnbOrderHistory(db.Model):
    """Immutable snapshot of an order at completion time"""
    __tablename__ = 'fnb_order_history'

    id = db.Column(db.Integer, primary_key=True)
    schedule_id = db.Column(db.Integer, db.ForeignKey('room_schedules.id'),
                            nullable=False, index=True)
    order_json = db.Column(db.Text, nullable=False)
    completed_at = db.Column(db.DateTime, default=utcnow, index=True)
    completed_by = db.Column(db.String(100), default='system')
    bill_id = db.Column(db.Integer, db.ForeignKey('bills.id'), nullable=True)

    def __init__(self, schedule_id, order, completed_by='system', bill_id=None, completed_at=None):
        self.schedule_id = schedule_id
        self.order_json = dump_json(normalize_order(order))
        self.completed_by = completed_by
        self.bill_id = bill_id
        self.completed_at = completed_at or utcnow()

    @property
    def order(self):
        return normalize_order(load_json(self.order_json, empty_order()))

    def to_dict(self):
        return {
            'id': self.id,
            'schedule_id': self.schedule_id,
            'order': self.order,
            'completed_at': isoformat_utc(self.completed_at),
            'completed_by': self.completed_by,
            'bill_id': self.bill_id
        }
