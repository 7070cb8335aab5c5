"""
F&B orders of room schedules.
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from karaoke import db
from karaoke.exceptions import BaseAppException, BadRequestError, NotFoundError, parse_id
from karaoke.models.fnb_order import FnbOrder, FnbOrderHistory, empty_order, normalize_order
from karaoke.models.menu import FnbCategory, FnbMenu, FnbMenuItem
from karaoke.models.schedule import RoomSchedule
from karaoke.services.billing import BillService
from karaoke.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

UPSERT_MODES = ('add', 'remove', 'set')


def merge_quantities(current: Dict[str, int], changes: Dict[str, int], mode: str) -> Dict[str, int]:
    """Apply add/remove changes to item quantities; entries reaching zero disappear"""
    merged = dict(current)
    sign = 1 if mode == 'add' else -1
    for item_id, quantity in changes.items():
        new_quantity = merged.get(item_id, 0) + sign * quantity
        if new_quantity > 0:
            merged[item_id] = new_quantity
        else:
            merged.pop(item_id, None)
    return merged


class FnbOrderService:

    def _check_schedule(self, schedule_id) -> int:
        schedule_pk = parse_id(schedule_id, 'schedule_id')
        if db.session.get(RoomSchedule, schedule_pk) is None:
            raise NotFoundError('Schedule', schedule_id)
        return schedule_pk

    def get_order(self, schedule_id) -> Optional[FnbOrder]:
        return FnbOrder.query.filter_by(schedule_id=parse_id(schedule_id, 'schedule_id')).first()

    def create_empty_order(self, schedule_id: int, created_by='system') -> FnbOrder:
        """Order created together with a schedule; the caller commits"""
        order = FnbOrder(schedule_id=schedule_id, created_by=created_by, updated_by=created_by)
        order.order = empty_order()
        db.session.add(order)
        return order

    def upsert_order(self, schedule_id, changes: Dict, user: str = None, mode: str = 'add') -> FnbOrder:
        """
        Change the order of a schedule, creating it when missing.

        mode "add" adds the given quantities, "remove" subtracts them and
        "set" replaces the whole order.
        """
        if mode not in UPSERT_MODES:
            raise BadRequestError(f"mode must be one of {', '.join(UPSERT_MODES)}")
        schedule_pk = self._check_schedule(schedule_id)
        try:
            changes = normalize_order(changes)
        except (TypeError, ValueError, AttributeError):
            raise BadRequestError('Order quantities must be integers')

        order = FnbOrder.query.filter_by(schedule_id=schedule_pk).first()
        if order is None:
            order = FnbOrder(schedule_id=schedule_pk, created_by=user or 'system')
            current = empty_order()
            db.session.add(order)
        else:
            current = order.order

        if mode == 'set':
            merged = {
                'drinks': {k: v for k, v in changes['drinks'].items() if v > 0},
                'snacks': {k: v for k, v in changes['snacks'].items() if v > 0}
            }
        else:
            merged = {
                'drinks': merge_quantities(current['drinks'], changes['drinks'], mode),
                'snacks': merge_quantities(current['snacks'], changes['snacks'], mode)
            }

        order.order = merged
        order.updated_by = user or 'system'
        order.updated_at = utcnow()
        db.session.commit()
        return order

    def save_order_history(self, schedule_id, order: Dict, completed_by='system',
                           bill_id=None) -> FnbOrderHistory:
        record = FnbOrderHistory(parse_id(schedule_id, 'schedule_id'), order, completed_by, bill_id=bill_id)
        db.session.add(record)
        db.session.commit()
        return record

    def get_order_history(self, schedule_id) -> List[FnbOrderHistory]:
        return FnbOrderHistory.query.filter_by(schedule_id=parse_id(schedule_id, 'schedule_id')) \
            .order_by(FnbOrderHistory.completed_at, FnbOrderHistory.id).all()

    def _find_stock_item(self, item_id):
        item_id = str(item_id)
        entry = db.session.get(FnbMenu, item_id)
        if entry is not None:
            return entry
        return db.session.get(FnbMenuItem, item_id)

    @staticmethod
    def _category(item) -> str:
        category = item.category
        if not category and isinstance(item, FnbMenuItem) and item.parent is not None:
            category = item.parent.category
        if category == FnbCategory.DRINK.code:
            return 'drinks'
        return 'snacks'

    def check_inventory(self, items: List[Dict]) -> Dict:
        """Availability of each requested {item_id, quantity}"""
        available, unavailable = [], []
        for requested in items:
            item_id = str(requested.get('item_id'))
            quantity = int(requested.get('quantity') or 0)
            item = self._find_stock_item(item_id)
            row = {
                'item_id': item_id,
                'item_name': item.name if item else 'Item not found',
                'requested_quantity': quantity,
                'available_quantity': item.inventory_quantity if item else 0
            }
            if item is None or item.inventory_quantity < quantity:
                unavailable.append(row)
            else:
                available.append(row)
        return {'available': not unavailable, 'unavailable_items': unavailable, 'available_items': available}

    def complete_order(self, schedule_id, items: List[Dict], created_by='system') -> Dict:
        """
        Take an order at the counter: deduct stock, add the items to the
        schedule's order and snapshot them into the history.

        Stock is checked for every item before anything is deducted.
        """
        schedule_pk = self._check_schedule(schedule_id)
        if not isinstance(items, list) or not items:
            raise BadRequestError('items must be a non-empty list')

        stock = []
        for requested in items:
            try:
                quantity = int(requested.get('quantity'))
            except (TypeError, ValueError, AttributeError):
                raise BadRequestError('Each item needs an integer quantity')
            if quantity <= 0:
                raise BadRequestError('Quantities must be positive')
            item = self._find_stock_item(requested.get('item_id'))
            if item is None:
                raise NotFoundError('Menu item', requested.get('item_id'))
            if item.inventory_quantity < quantity:
                raise BadRequestError(
                    f'Not enough {item.name} in stock ({item.inventory_quantity} left, {quantity} requested)',
                    details={'item_id': item.id, 'available_quantity': item.inventory_quantity}
                )
            stock.append((item, quantity))

        order = empty_order()
        for item, quantity in stock:
            item.inventory_quantity -= quantity
            section = order[self._category(item)]
            section[item.id] = section.get(item.id, 0) + quantity

        try:
            updated = self.upsert_order(schedule_pk, order, created_by, mode='add')
            history = self.save_order_history(schedule_pk, order, created_by or 'system')
        except SQLAlchemyError:
            db.session.rollback()
            raise

        try:
            bill = BillService().get_bill(schedule_pk).to_dict()
        except BaseAppException as exc:
            logger.error('Could not compute bill after order for schedule %s: %s', schedule_pk, exc)
            bill = None

        return {
            'order': updated.to_dict(),
            'history': history.to_dict(),
            'updated_items': [item.to_dict() for item, _ in stock],
            'bill': bill
        }
