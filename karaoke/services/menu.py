"""
Menu lookups for billing and menu maintenance.

An order only stores item ids. An id may name a primary menu entry, a
secondary menu item or a variant embedded in a primary entry; lookups go
through MenuResolver, which returns a MenuEntry whichever table it came
from.
"""
import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from karaoke import db
from karaoke.exceptions import BadRequestError, NotFoundError
from karaoke.models.menu import FnbMenu, FnbMenuItem, FnbCategory

logger = logging.getLogger(__name__)


def parse_price(raw: Any) -> float:
    """
    Normalise a menu price to VND.

    Numbers below 1000 are shorthand for thousands (25 -> 25000). Strings
    lose their grouping separators first ("10.000" -> 10000). Anything
    unparseable is 0.
    """
    if raw is None or isinstance(raw, bool):
        logger.error('Invalid menu price: %r', raw)
        return 0.0
    if isinstance(raw, (int, float)):
        value = float(raw)
    else:
        text = str(raw).replace('.', '').replace(',', '').strip()
        try:
            value = float(text)
        except ValueError:
            logger.error('Invalid menu price: %r', raw)
            return 0.0
    if math.isnan(value) or math.isinf(value):
        logger.error('Invalid menu price: %r', raw)
        return 0.0
    if value < 1000:
        value *= 1000
    return value


@dataclass(frozen=True)
class PrimaryMenuItem:
    id: str
    name: str
    raw_price: Any
    category: Optional[str]
    kind: str = 'primary'

    @property
    def display_name(self) -> str:
        return self.name

    @property
    def price(self) -> float:
        return parse_price(self.raw_price)


@dataclass(frozen=True)
class VariantMenuItem:
    id: str
    name: str
    raw_price: Any
    category: Optional[str]
    parent_id: Optional[str] = None
    parent_name: Optional[str] = None
    kind: str = 'variant'

    @property
    def display_name(self) -> str:
        if self.parent_name:
            return f'{self.parent_name} - {self.name}'
        return self.name

    @property
    def price(self) -> float:
        return parse_price(self.raw_price)


MenuEntry = Union[PrimaryMenuItem, VariantMenuItem]


class MenuResolver:
    """
    Resolves order item ids. Primary menu rows are loaded once per resolver,
    so build one per bill computation.
    """

    def __init__(self):
        self._primary = None

    @property
    def primary_menu(self) -> List[FnbMenu]:
        if self._primary is None:
            self._primary = FnbMenu.query.all()
        return self._primary

    def find_menu_item_by_id(self, item_id) -> Optional[MenuEntry]:
        item_id = str(item_id)

        for entry in self.primary_menu:
            if entry.id == item_id:
                return PrimaryMenuItem(entry.id, entry.name, entry.price, entry.category)

        item = db.session.get(FnbMenuItem, item_id)
        if item is not None:
            parent = item.parent
            return VariantMenuItem(
                item.id, item.name, item.price,
                item.category or (parent.category if parent else None),
                parent_id=item.parent_id,
                parent_name=parent.name if parent else None
            )

        for entry in self.primary_menu:
            for variant in entry.variants:
                if str(variant.get('id')) == item_id:
                    return VariantMenuItem(
                        item_id, variant.get('name', ''), variant.get('price'),
                        entry.category, parent_id=entry.id, parent_name=entry.name
                    )
        return None


class MenuService:

    def list_menu(self, category=None):
        query = FnbMenu.query
        if category:
            query = query.filter_by(category=category)
        return query.order_by(FnbMenu.name).all()

    def get_menu(self, menu_id) -> FnbMenu:
        entry = db.session.get(FnbMenu, str(menu_id))
        if entry is None:
            raise NotFoundError('Menu', menu_id)
        return entry

    def save_menu(self, data: Dict, entry: Optional[FnbMenu] = None) -> FnbMenu:
        if entry is None:
            if not data.get('name'):
                raise BadRequestError('Menu name is required')
            entry = FnbMenu()
        if 'name' in data:
            entry.name = data['name']
        if 'price' in data:
            entry.price = str(data['price'])
        if 'category' in data:
            self._check_category(data['category'])
            entry.category = data['category']
        if 'inventory_quantity' in data:
            entry.inventory_quantity = self._quantity(data['inventory_quantity'])
        if 'variants' in data:
            entry.variants = data['variants']
        db.session.add(entry)
        db.session.commit()
        return entry

    def delete_menu(self, menu_id):
        entry = self.get_menu(menu_id)
        for item in entry.items:
            item.parent_id = None
        db.session.delete(entry)
        db.session.commit()

    def list_items(self, parent_id=None):
        query = FnbMenuItem.query
        if parent_id:
            query = query.filter_by(parent_id=str(parent_id))
        return query.order_by(FnbMenuItem.name).all()

    def get_item(self, item_id) -> FnbMenuItem:
        item = db.session.get(FnbMenuItem, str(item_id))
        if item is None:
            raise NotFoundError('Menu item', item_id)
        return item

    def save_item(self, data: Dict, item: Optional[FnbMenuItem] = None) -> FnbMenuItem:
        if item is None:
            if not data.get('name'):
                raise BadRequestError('Menu item name is required')
            item = FnbMenuItem()
        if 'parent_id' in data:
            if data['parent_id']:
                self.get_menu(data['parent_id'])
            item.parent_id = data['parent_id'] or None
        if 'name' in data:
            item.name = data['name']
        if 'price' in data:
            try:
                item.price = float(data['price'])
            except (TypeError, ValueError):
                raise BadRequestError('price must be a number')
        if 'category' in data:
            if data['category']:
                self._check_category(data['category'])
            item.category = data['category'] or None
        if 'inventory_quantity' in data:
            item.inventory_quantity = self._quantity(data['inventory_quantity'])
        db.session.add(item)
        db.session.commit()
        return item

    def delete_item(self, item_id):
        item = self.get_item(item_id)
        db.session.delete(item)
        db.session.commit()

    @staticmethod
    def _check_category(category):
        if category not in [c.code for c in FnbCategory]:
            raise BadRequestError(f'Unknown menu category: {category}')

    @staticmethod
    def _quantity(value) -> int:
        try:
            quantity = int(value)
        except (TypeError, ValueError):
            raise BadRequestError('inventory_quantity must be an integer')
        if quantity < 0:
            raise BadRequestError('inventory_quantity cannot be negative')
        return quantity
