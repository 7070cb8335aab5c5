"""
Gift stock and the random gift draw.

Drawing a gift touches two rows that other requests may be changing at the
same time (the gift stock and the schedule), so both are changed with
conditional UPDATE statements and the row count decides who won.
"""
import logging
import random
from typing import Dict, List

from sqlalchemy import or_, update

from karaoke import db
from karaoke.exceptions import BadRequestError, ConflictError, NotFoundError, ErrorCode, parse_id
from karaoke.models.fields import dump_json
from karaoke.models.gift import BundleSource, Gift, GiftType, PERCENT_GIFT_TYPES
from karaoke.models.menu import FnbMenu, FnbMenuItem
from karaoke.models.room import Room
from karaoke.models.schedule import RoomSchedule, RoomScheduleStatus, ScheduleGiftStatus
from karaoke.utils.timeutils import utcnow

logger = logging.getLogger(__name__)

ACTIVE_SCHEDULE_STATUSES = (RoomScheduleStatus.BOOKED.code, RoomScheduleStatus.IN_USE.code)


def pick_weighted(gifts: List[Gift], rng=random) -> Gift:
    """Pick one gift, weighted by how many are left"""
    total = sum(gift.remaining_quantity or 0 for gift in gifts)
    if total <= 0:
        raise NotFoundError('Gift', None, message='No gifts available', error_code=ErrorCode.GIFT_OUT_OF_STOCK)
    r = rng.random() * total
    for gift in gifts:
        r -= gift.remaining_quantity or 0
        if r <= 0:
            return gift
    return gifts[-1]


class GiftService:

    def list_gifts(self) -> List[Gift]:
        return Gift.query.order_by(Gift.id).all()

    def get_gift(self, gift_id) -> Gift:
        gift = db.session.get(Gift, parse_id(gift_id, 'gift_id'))
        if gift is None:
            raise NotFoundError('Gift', gift_id)
        return gift

    # ==================== STOCK ====================

    @staticmethod
    def _inventory_row(item: Dict):
        model = FnbMenuItem if item.get('source') == BundleSource.FNB_MENU_ITEM.code else FnbMenu
        row = db.session.get(model, str(item.get('item_id')))
        if row is None:
            raise NotFoundError('Menu item', item.get('item_id'))
        return row

    def _adjust_inventory(self, items: List[Dict], bundle_delta: int):
        """
        Move menu stock by bundle_delta bundles (negative reserves, positive
        returns). Every item is checked before any is changed.
        """
        changes = []
        for item in items:
            row = self._inventory_row(item)
            change = int(item.get('quantity') or 0) * bundle_delta
            if row.inventory_quantity + change < 0:
                raise BadRequestError(f"Not enough {item.get('name') or row.name} in stock",
                                      details={'item_id': row.id, 'available_quantity': row.inventory_quantity})
            changes.append((row, change))
        for row, change in changes:
            row.inventory_quantity += change

    def _validate_items(self, items) -> List[Dict]:
        if not isinstance(items, list) or not items:
            raise BadRequestError('A snacks_drinks gift needs items')
        cleaned = []
        for item in items:
            if not isinstance(item, dict) or not item.get('item_id'):
                raise BadRequestError('Each gift item needs an item_id')
            source = item.get('source') or BundleSource.FNB_MENU.code
            if source not in (s.code for s in BundleSource):
                raise BadRequestError(f'Unknown item source: {source}')
            try:
                quantity = int(item.get('quantity'))
            except (TypeError, ValueError):
                raise BadRequestError('Each gift item needs an integer quantity')
            if quantity <= 0:
                raise BadRequestError('Gift item quantities must be positive')
            cleaned.append(dict(item, item_id=str(item['item_id']), source=source, quantity=quantity))
        return cleaned

    # ==================== CRUD ====================

    def create_gift(self, data: Dict) -> Gift:
        """Create a gift stock; bundle gifts reserve their menu stock right away"""
        name = (data.get('name') or '').strip()
        if not name:
            raise BadRequestError('name is required', ErrorCode.MISSING_REQUIRED_FIELD)
        gift_type = data.get('type')
        if gift_type not in GiftType.codes():
            raise BadRequestError(f'Unknown gift type: {gift_type}')
        try:
            total_quantity = int(data.get('total_quantity'))
        except (TypeError, ValueError):
            raise BadRequestError('total_quantity must be an integer')
        if total_quantity <= 0:
            raise BadRequestError('total_quantity must be greater than 0')

        if gift_type in PERCENT_GIFT_TYPES and not data.get('discount_percentage'):
            raise BadRequestError('discount_percentage is required for a percentage gift')
        if gift_type == GiftType.DISCOUNT_AMOUNT.code and not data.get('discount_amount'):
            raise BadRequestError('discount_amount is required for a fixed discount gift')

        items = []
        if gift_type == GiftType.SNACKS_DRINKS.code:
            items = self._validate_items(data.get('items'))
            self._adjust_inventory(items, -total_quantity)

        gift = Gift(
            name=name,
            type=gift_type,
            image=data.get('image'),
            price=data.get('price'),
            discount_percentage=data.get('discount_percentage'),
            discount_amount=data.get('discount_amount'),
            total_quantity=total_quantity,
            remaining_quantity=total_quantity,
            is_active=bool(data.get('is_active', True))
        )
        gift.items = items
        db.session.add(gift)
        db.session.commit()
        logger.info('Gift %s created with %d pieces', gift.name, total_quantity)
        return gift

    def update_gift(self, gift_id, data: Dict) -> Gift:
        gift = self.get_gift(gift_id)
        if data.get('type') and data['type'] != gift.type:
            raise BadRequestError('The type of a gift cannot be changed')

        total_quantity = None
        if data.get('total_quantity') is not None:
            try:
                total_quantity = int(data['total_quantity'])
            except (TypeError, ValueError):
                raise BadRequestError('total_quantity must be an integer')
            if total_quantity < 0:
                raise BadRequestError('total_quantity cannot be negative')
        new_items = None
        if data.get('items') is not None:
            new_items = self._validate_items(data['items'])

        is_bundle = gift.type == GiftType.SNACKS_DRINKS.code
        try:
            if total_quantity is not None:
                diff = total_quantity - gift.total_quantity
                if diff and is_bundle and gift.items:
                    # more bundles take more stock, fewer give it back
                    self._adjust_inventory(gift.items, -diff)
                gift.total_quantity = total_quantity
                gift.remaining_quantity = max(gift.remaining_quantity + diff, 0)
            if new_items is not None:
                if is_bundle and gift.remaining_quantity:
                    # bundles not handed out yet switch to the new items
                    self._adjust_inventory(gift.items, gift.remaining_quantity)
                    self._adjust_inventory(new_items, -gift.remaining_quantity)
                gift.items = new_items
        except (BadRequestError, NotFoundError):
            db.session.rollback()
            raise

        for field in ('name', 'image', 'price', 'discount_percentage', 'discount_amount'):
            if data.get(field) is not None:
                setattr(gift, field, data[field])
        if data.get('is_active') is not None:
            gift.is_active = bool(data['is_active'])

        db.session.commit()
        return gift

    def delete_gift(self, gift_id) -> Dict:
        """Delete a gift; the stock of bundles never handed out goes back to the menu"""
        gift = db.session.get(Gift, parse_id(gift_id, 'gift_id'))
        if gift is None:
            return {'deleted_count': 0}
        if gift.type == GiftType.SNACKS_DRINKS.code and gift.items and gift.remaining_quantity:
            self._adjust_inventory(gift.items, gift.remaining_quantity)
        db.session.delete(gift)
        db.session.commit()
        return {'deleted_count': 1}

    # ==================== CLAIM ====================

    def claim_random_gift(self, schedule_id, rng=random) -> Dict:
        """
        Draw a gift for a schedule.

        Claiming twice returns the gift already claimed. A schedule can only
        draw while its gift_enabled flag is set; the flag is cleared by the
        claim.
        """
        schedule = db.session.get(RoomSchedule, parse_id(schedule_id, 'schedule_id'))
        if schedule is None:
            raise NotFoundError('Schedule', schedule_id)

        current = schedule.gift
        if current and current.get('status') == ScheduleGiftStatus.CLAIMED.code:
            if not current.get('image') and current.get('gift_id'):
                source = db.session.get(Gift, current['gift_id'])
                if source is not None and source.image:
                    current['image'] = source.image
            return current

        if not schedule.gift_enabled:
            raise BadRequestError('This schedule cannot receive a gift or already received one')

        available = Gift.query.filter(Gift.is_active.is_(True), Gift.remaining_quantity > 0) \
            .order_by(Gift.id).all()
        if not available:
            raise NotFoundError('Gift', None, message='No gifts available',
                                error_code=ErrorCode.GIFT_OUT_OF_STOCK)
        picked = pick_weighted(available, rng)

        now = utcnow()
        taken = db.session.execute(
            update(Gift)
            .where(Gift.id == picked.id, Gift.remaining_quantity > 0)
            .values(remaining_quantity=Gift.remaining_quantity - 1, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if taken.rowcount != 1:
            db.session.rollback()
            raise ConflictError('The gift ran out, please try again', ErrorCode.GIFT_OUT_OF_STOCK)

        snapshot = picked.schedule_snapshot(now, status=ScheduleGiftStatus.CLAIMED.code)
        granted = db.session.execute(
            update(RoomSchedule)
            .where(
                RoomSchedule.id == schedule.id,
                RoomSchedule.gift_enabled.is_(True),
                or_(RoomSchedule.gift_status.is_(None),
                    RoomSchedule.gift_status != ScheduleGiftStatus.CLAIMED.code)
            )
            .values(
                gift_json=dump_json(snapshot),
                gift_status=ScheduleGiftStatus.CLAIMED.code,
                gift_enabled=False,
                updated_at=now
            )
            .execution_options(synchronize_session=False)
        )
        if granted.rowcount != 1:
            # someone else claimed first, give the piece back
            db.session.execute(
                update(Gift)
                .where(Gift.id == picked.id)
                .values(remaining_quantity=Gift.remaining_quantity + 1, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            db.session.commit()
            raise ConflictError('This schedule already received a gift')

        db.session.commit()
        db.session.expire_all()
        logger.info('Schedule %s claimed gift %s', schedule.id, picked.name)
        return snapshot

    def get_gift_for_room(self, room_id) -> Dict:
        """Gift of the room's current booked or in-use schedule"""
        room = db.session.get(Room, parse_id(room_id, 'room_id'))
        if room is None:
            raise NotFoundError('Room', room_id)
        schedule = RoomSchedule.query.filter(
            RoomSchedule.room_id == room.id,
            RoomSchedule.status.in_(ACTIVE_SCHEDULE_STATUSES)
        ).order_by(RoomSchedule.start_time.desc()).first()
        if schedule is None:
            raise NotFoundError('Schedule', None, message=f'No active schedule for room {room.name}')
        return {
            'schedule_id': schedule.id,
            'gift': schedule.gift,
            'gift_enabled': bool(schedule.gift_enabled)
        }
