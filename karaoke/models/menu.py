"""
Food & beverage menu

Menu ids are random hex strings rather than integers: an order refers to
items of both tables and to embedded variants by id alone, so ids have to be
unique across all of them.
"""
from enum import Enum
from uuid import uuid4
from karaoke import db
from karaoke.models.fields import load_json, dump_json
from karaoke.utils.timeutils import utcnow


def new_menu_id():
    return uuid4().hex


class FnbCategory(Enum):
    DRINK = ('drink', 'Drink')
    SNACK = ('snack', 'Snack')

    def __init__(self, code, name):
        self.code = code
        self.display_name = name


class FnbMenu(db.Model):
    """
    Primary menu entry.

    price is kept exactly as staff typed it ("10.000", "25", "15,000"); it is
    normalised when a bill is computed. variants is a list of
    {"id", "name", "price"} dicts sold under this entry.
    """
    __tablename__ = 'fnb_menu'

    id = db.Column(db.String(32), primary_key=True, default=new_menu_id)
    name = db.Column(db.String(100), nullable=False)
    price = db.Column(db.String(30), nullable=False, default='0')
    category = db.Column(db.String(20), nullable=False, default=FnbCategory.SNACK.code)
    inventory_quantity = db.Column(db.Integer, nullable=False, default=0)
    variants_json = db.Column(db.Text, nullable=False, default='[]')
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    @property
    def variants(self):
        return load_json(self.variants_json, [])

    @variants.setter
    def variants(self, value):
        value = [dict(variant) for variant in (value or [])]
        for variant in value:
            variant.setdefault('id', new_menu_id())
        self.variants_json = dump_json(value)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'price': self.price,
            'category': self.category,
            'inventory_quantity': self.inventory_quantity,
            'variants': self.variants
        }

    def __repr__(self):
        return f'<FnbMenu {self.name}>'


class FnbMenuItem(db.Model):
    """Secondary menu item, optionally attached to a primary entry"""
    __tablename__ = 'fnb_menu_items'

    id = db.Column(db.String(32), primary_key=True, default=new_menu_id)
    parent_id = db.Column(db.String(32), db.ForeignKey('fnb_menu.id'), nullable=True)
    name = db.Column(db.String(100), nullable=False)
    price = db.Column(db.Float, nullable=False, default=0.0)
    category = db.Column(db.String(20), nullable=True)
    inventory_quantity = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    parent = db.relationship('FnbMenu', backref=db.backref('items', lazy='dynamic'))

    def to_dict(self):
        return {
            'id': self.id,
            'parent_id': self.parent_id,
            'name': self.name,
            'price': self.price,
            'category': self.category,
            'inventory_quantity': self.inventory_quantity
        }

    def __repr__(self):
        return f'<FnbMenuItem {self.name}>'
