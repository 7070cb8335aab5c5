"""
Gifts handed out to schedules by random draw
"""
from enum import Enum
from karaoke import db
from karaoke.models.fields import load_json, dump_json
from karaoke.utils.timeutils import utcnow, isoformat_utc


class GiftType(Enum):
    SNACKS_DRINKS = ('snacks_drinks', 'Free snacks & drinks')
    DISCOUNT_PERCENTAGE = ('discount_percentage', 'Percentage discount')
    # legacy alias of discount_percentage
    DISCOUNT = ('discount', 'Percentage discount')
    DISCOUNT_AMOUNT = ('discount_amount', 'Fixed discount')

    def __init__(self, code, name):
        self.code = code
        self.display_name = name

    @classmethod
    def codes(cls):
        return [gift_type.code for gift_type in cls]


PERCENT_GIFT_TYPES = (GiftType.DISCOUNT_PERCENTAGE.code, GiftType.DISCOUNT.code)


class BundleSource(Enum):
    FNB_MENU = ('fnb_menu', 'Primary menu')
    FNB_MENU_ITEM = ('fnb_menu_item', 'Menu item')

    def __init__(self, code, name):
        self.code = code
        self.display_name = name


class Gift(db.Model):
    """
    A stock of identical gifts.

    items is only used by snacks_drinks gifts:
    [{"item_id", "source", "name", "quantity", "category", "price_snapshot"}]
    """
    __tablename__ = 'gifts'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    type = db.Column(db.String(30), nullable=False)
    image = db.Column(db.String(255))
    price = db.Column(db.Float)
    discount_percentage = db.Column(db.Float)
    discount_amount = db.Column(db.Float)
    items_json = db.Column(db.Text, nullable=False, default='[]')
    total_quantity = db.Column(db.Integer, nullable=False, default=0)
    remaining_quantity = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    @property
    def items(self):
        return load_json(self.items_json, [])

    @items.setter
    def items(self, value):
        self.items_json = dump_json(value or [])

    def schedule_snapshot(self, assigned_at, status='assigned'):
        """Frozen terms copied into the schedule that receives this gift"""
        return {
            'gift_id': self.id,
            'name': self.name,
            'type': self.type,
            'image': self.image,
            'status': status,
            'assigned_at': isoformat_utc(assigned_at),
            'claimed_at': isoformat_utc(assigned_at) if status == 'claimed' else None,
            'discount_percentage': self.discount_percentage,
            'discount_amount': self.discount_amount,
            'items': self.items
        }

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'image': self.image,
            'price': self.price,
            'discount_percentage': self.discount_percentage,
            'discount_amount': self.discount_amount,
            'items': self.items,
            'total_quantity': self.total_quantity,
            'remaining_quantity': self.remaining_quantity,
            'is_active': self.is_active,
            'created_at': isoformat_utc(self.created_at),
            'updated_at': isoformat_utc(self.updated_at)
        }

    def __repr__(self):
        return f'<Gift {self.name}: {self.remaining_quantity}/{self.total_quantity}>'
