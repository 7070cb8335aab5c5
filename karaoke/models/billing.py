# Bills
from enum import Enum
from karaoke import db
from karaoke.models.fields import load_json, dump_json
from karaoke.utils.timeutils import utcnow, isoformat_utc, epoch_millis


class PaymentMethod(Enum):
    CASH = ('cash', 'Tien mat')
    BANK_TRANSFER = ('bank_transfer', 'Chuyen khoan')
    MOMO = ('momo', 'MoMo')
    ZALO_PAY = ('zalo_pay', 'Zalo Pay')
    VNPAY = ('vnpay', 'VNPay')
    VISA = ('visa', 'Visa')
    MASTERCARD = ('mastercard', 'Mastercard')

    def __init__(self, code, name):
        self.code = code
        self.display_name = name

    @classmethod
    def codes(cls):
        return [method.code for method in cls]

    @classmethod
    def display(cls, code):
        for method in cls:
            if method.code == code:
                return method.display_name
        return code


class Bill(db.Model):
    """
    A computed bill for one schedule.

    Instances built by the billing engine stay transient until saved or
    printed. items holds the line items:
    [{"description", "quantity", "price", "total_price",
      "discount_percentage", "discount_name"}]
    """
    __tablename__ = 'bills'

    id = db.Column(db.Integer, primary_key=True)

    schedule_id = db.Column(db.Integer, db.ForeignKey('room_schedules.id'), nullable=False, index=True)
    room_id = db.Column(db.Integer, db.ForeignKey('rooms.id'), nullable=False, index=True)

    items_json = db.Column(db.Text, nullable=False, default='[]')

    subtotal = db.Column(db.Float, nullable=False, default=0.0)
    discount_amount = db.Column(db.Float, nullable=False, default=0.0)
    gift_discount_amount = db.Column(db.Float, nullable=False, default=0.0)
    total_amount = db.Column(db.Float, nullable=False, default=0.0)

    start_time = db.Column(db.DateTime, nullable=False, index=True)
    end_time = db.Column(db.DateTime, nullable=False, index=True)
    actual_start_time = db.Column(db.DateTime)
    actual_end_time = db.Column(db.DateTime)

    payment_method = db.Column(db.String(20))
    note = db.Column(db.Text)

    # Display label only, two bills printed in the same minute share it
    invoice_code = db.Column(db.String(20), index=True)
    unique_key = db.Column(db.Text)

    active_promotion_json = db.Column(db.Text)
    free_hour_promotion_json = db.Column(db.Text)
    gift_json = db.Column(db.Text)
    fnb_order_json = db.Column(db.Text)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    schedule = db.relationship('RoomSchedule', backref=db.backref('bills', lazy='dynamic',
                                                                  cascade='all, delete-orphan'))
    room = db.relationship('Room')

    @property
    def items(self):
        return load_json(self.items_json, [])

    @items.setter
    def items(self, value):
        self.items_json = dump_json(value or [])

    @property
    def active_promotion(self):
        return load_json(self.active_promotion_json, None)

    @active_promotion.setter
    def active_promotion(self, value):
        self.active_promotion_json = dump_json(value)

    @property
    def free_hour_promotion(self):
        return load_json(self.free_hour_promotion_json, None)

    @free_hour_promotion.setter
    def free_hour_promotion(self, value):
        self.free_hour_promotion_json = dump_json(value)

    @property
    def gift(self):
        return load_json(self.gift_json, None)

    @gift.setter
    def gift(self, value):
        self.gift_json = dump_json(value)

    @property
    def fnb_order(self):
        return load_json(self.fnb_order_json, None)

    @fnb_order.setter
    def fnb_order(self, value):
        self.fnb_order_json = dump_json(value)

    def compute_unique_key(self):
        """
        Content key used to spot duplicate bills: schedule, room, window,
        total and the sorted line items.
        """
        lines = sorted(
            f"{item.get('description')}:{item.get('quantity')}:{item.get('price')}"
            for item in self.items
        )
        return '-'.join([
            str(self.schedule_id),
            str(self.room_id),
            str(epoch_millis(self.start_time)),
            str(epoch_millis(self.end_time)),
            str(int(self.total_amount or 0)),
            '|'.join(lines)
        ])

    def get_payment_method_display(self):
        if not self.payment_method:
            return None
        return PaymentMethod.display(self.payment_method)

    def to_dict(self):
        return {
            'id': self.id,
            'schedule_id': self.schedule_id,
            'room_id': self.room_id,
            'items': self.items,
            'subtotal': self.subtotal,
            'discount_amount': self.discount_amount,
            'gift_discount_amount': self.gift_discount_amount,
            'total_amount': self.total_amount,
            'start_time': isoformat_utc(self.start_time),
            'end_time': isoformat_utc(self.end_time),
            'actual_start_time': isoformat_utc(self.actual_start_time),
            'actual_end_time': isoformat_utc(self.actual_end_time),
            'payment_method': self.payment_method,
            'payment_method_display': self.get_payment_method_display(),
            'note': self.note,
            'invoice_code': self.invoice_code,
            'active_promotion': self.active_promotion,
            'free_hour_promotion': self.free_hour_promotion,
            'gift': self.gift,
            'fnb_order': self.fnb_order,
            'created_at': isoformat_utc(self.created_at)
        }

    def __repr__(self):
        return f'<Bill {self.id}: schedule {self.schedule_id} - {self.total_amount} VND>'
