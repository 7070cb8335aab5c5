"""
Bill computation and persistence.

get_bill() only reads: it returns a transient Bill that is not attached to
the session. Saving and printing store the bill (one row per schedule) and
then snapshot the F&B order into the order history.
"""
import logging
import math
from datetime import timedelta
from typing import Dict, List, Optional, Tuple

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from karaoke import db
from karaoke.exceptions import (BaseAppException, BadRequestError, NotFoundError,
                                ErrorCode, parse_id)
from karaoke.models.billing import Bill, PaymentMethod
from karaoke.models.fnb_order import FnbOrder, FnbOrderHistory, normalize_order
from karaoke.models.room import Room
from karaoke.models.schedule import RoomSchedule
from karaoke.services.menu import MenuResolver
from karaoke.services.pricing import PricingService, partition_session, round2
from karaoke.services.promotions import (FreeHourBudget, PromotionService, claimed_gift,
                                         gift_bundle_lines, gift_discount,
                                         is_eligible_for_free_hour)
from karaoke.services.receipt import render_bill_text
from karaoke.utils.timeutils import (end_of_local_day, is_hhmm, isoformat_utc, local_datetime,
                                     now_local, parse_datetime, parse_hhmm, parse_local_date,
                                     start_of_local_day, to_local, to_utc_naive,
                                     truncate_to_minute, utcnow)

logger = logging.getLogger(__name__)

SERVICE_FEE_DESCRIPTION = 'Phi dich vu thu am\n({})'


def generate_invoice_code(moment=None):
    """#DDMMHHmm in venue time"""
    moment = to_local(moment) if moment is not None else now_local()
    return '#' + moment.strftime('%d%m%H%M')


def round_down_total(amount, unit=1000):
    """Floor to the rounding unit, never below zero"""
    # absorb float noise such as 189999.99999999997
    amount = round(amount, 6)
    return max(math.floor(amount / unit) * unit, 0)


class BillService:

    def __init__(self):
        self.pricing = PricingService()
        self.promotions = PromotionService()

    # ==================== COMPUTATION ====================

    def get_bill(self, schedule_id, actual_end_time=None, payment_method=None,
                 promotion_id=None, actual_start_time=None,
                 apply_free_hour_promotion=None) -> Bill:
        """
        Compute the bill of a schedule.

        Args:
            schedule_id: schedule id
            actual_end_time: "HH:mm" or ISO datetime overriding the schedule end
            payment_method: payment method code
            promotion_id: promotion picked by the cashier
            actual_start_time: "HH:mm" or ISO datetime overriding the schedule start
            apply_free_hour_promotion: request the free hour; None falls back
                to the schedule's own flag

        Returns:
            An unsaved Bill
        """
        schedule = self._get_schedule(schedule_id)
        room = db.session.get(Room, schedule.room_id)
        if room is None:
            raise NotFoundError('Room', schedule.room_id)
        if payment_method and payment_method not in PaymentMethod.codes():
            raise BadRequestError(f'Unknown payment method: {payment_method}')
        promotion = self.promotions.resolve(promotion_id)

        start, end = self.resolve_window(schedule, actual_start_time, actual_end_time)

        day_type = self.pricing.determine_day_type(schedule.start_time)
        price = self.pricing.get_price_document(day_type)

        order, completed_at, completed_by = self._resolve_order(schedule.id)
        fnb_lines, fnb_total = self._fnb_lines(order, MenuResolver())

        session_minutes = math.ceil((end - start).total_seconds() / 60)
        requested = schedule.apply_free_hour_promo if apply_free_hour_promotion is None \
            else apply_free_hour_promotion
        budget = FreeHourBudget.for_session(
            is_eligible_for_free_hour(requested, fnb_total, session_minutes))

        items = []
        for part in partition_session(start, end, price.time_slots):
            rate = part.window.rate_for(room.room_type)
            if rate is None:
                raise NotFoundError('Price', room.room_type,
                                    message=f'No price for room type {room.room_type} '
                                            f"in slot {part.slot['start']}-{part.slot['end']}",
                                    error_code=ErrorCode.PRICE_NOT_CONFIGURED)
            budget, _, _ = budget.consume(part.start, part.end, rate)
            hours = part.seconds / 3600
            items.append({
                'description': SERVICE_FEE_DESCRIPTION.format(part.label()),
                'quantity': round2(hours),
                'price': rate,
                'total_price': hours * rate
            })

        items.extend(fnb_lines)
        gift = claimed_gift(schedule.gift)
        items.extend(gift_bundle_lines(gift))

        applies = promotion is not None and promotion.applies_to_room(room)
        if applies:
            for item in items:
                item['discount_percentage'] = promotion.discount_percentage
                item['discount_name'] = promotion.name

        subtotal = sum(item['total_price'] for item in items)
        gift_amount = gift_discount(gift, subtotal)
        promotion_amount = subtotal * promotion.discount_percentage / 100 if applies else 0.0
        total = round_down_total(
            subtotal - promotion_amount - budget.credited_amount - gift_amount,
            current_app.config['BILL_ROUNDING_UNIT']
        )

        bill = Bill(
            schedule_id=schedule.id,
            room_id=room.id,
            subtotal=subtotal,
            discount_amount=promotion_amount,
            gift_discount_amount=gift_amount,
            total_amount=total,
            start_time=to_utc_naive(start),
            end_time=to_utc_naive(end),
            actual_start_time=to_utc_naive(start) if actual_start_time else None,
            actual_end_time=to_utc_naive(end) if actual_end_time else None,
            payment_method=payment_method or None,
            note=schedule.note,
            invoice_code=generate_invoice_code()
        )
        bill.items = items
        bill.active_promotion = promotion.snapshot() if applies else None
        bill.free_hour_promotion = budget.summary()
        bill.gift = gift
        if order is not None:
            bill.fnb_order = dict(order, completed_at=isoformat_utc(completed_at),
                                  completed_by=completed_by)
        return bill

    def resolve_window(self, schedule, actual_start_time=None, actual_end_time=None):
        """Effective local [start, end] of a schedule, truncated to the minute"""
        scheduled_start = to_local(schedule.start_time)

        if actual_start_time:
            if is_hhmm(actual_start_time):
                start = local_datetime(scheduled_start.date(),
                                       self._hhmm(actual_start_time, 'actual_start_time'))
            else:
                start = self._instant(actual_start_time, 'actual_start_time')
        else:
            start = scheduled_start
        start = truncate_to_minute(start)

        if actual_end_time:
            if is_hhmm(actual_end_time):
                wall = self._hhmm(actual_end_time, 'actual_end_time')
                end = local_datetime(start.date(), wall)
                if end < start:
                    end = local_datetime(start.date() + timedelta(days=1), wall)
            else:
                end = self._instant(actual_end_time, 'actual_end_time')
        elif schedule.end_time is not None:
            end = to_local(schedule.end_time)
        else:
            end = start + timedelta(hours=1)
        end = truncate_to_minute(end)

        if end < start:
            raise BadRequestError('End time is before start time', ErrorCode.INVALID_DATE_RANGE,
                                  {'start_time': start.isoformat(), 'end_time': end.isoformat()})
        return start, end

    @staticmethod
    def _hhmm(value, field):
        try:
            return parse_hhmm(value)
        except ValueError:
            raise BadRequestError(f'Invalid {field}: {value}', details={field: value})

    @staticmethod
    def _instant(value, field):
        try:
            return parse_datetime(value)
        except (ValueError, OverflowError):
            raise BadRequestError(f'Invalid {field}: {value}', details={field: value})

    def _get_schedule(self, schedule_id) -> RoomSchedule:
        schedule = db.session.get(RoomSchedule, parse_id(schedule_id, 'schedule_id'))
        if schedule is None:
            raise NotFoundError('Schedule', schedule_id)
        return schedule

    def _resolve_order(self, schedule_id):
        """Live order of the schedule, else its latest history snapshot"""
        live = FnbOrder.query.filter_by(schedule_id=schedule_id).first()
        if live is not None:
            return live.order, None, None
        latest = FnbOrderHistory.query.filter_by(schedule_id=schedule_id) \
            .order_by(FnbOrderHistory.completed_at.desc(), FnbOrderHistory.id.desc()).first()
        if latest is not None:
            return latest.order, latest.completed_at, latest.completed_by
        return None, None, None

    def _fnb_lines(self, order, resolver) -> Tuple[List[Dict], float]:
        if not order:
            return [], 0.0
        lines = []
        total = 0.0
        for section in ('drinks', 'snacks'):
            for item_id, quantity in order.get(section, {}).items():
                if quantity <= 0:
                    continue
                entry = resolver.find_menu_item_by_id(item_id)
                if entry is None:
                    logger.warning('Menu item %s in order not found, skipped', item_id)
                    continue
                price = entry.price
                if price == 0:
                    logger.error('Invalid price for menu item %s: %r', entry.display_name, entry.raw_price)
                    continue
                line_total = quantity * price
                total += line_total
                lines.append({
                    'description': entry.display_name,
                    'quantity': quantity,
                    'price': price,
                    'total_price': line_total
                })
        return lines, total

    # ==================== PERSISTENCE ====================

    def record_order_history(self, bill: Bill, completed_by='system') -> Optional[FnbOrderHistory]:
        """
        Snapshot the bill's F&B order into the history unless an identical
        snapshot exists. Failures are logged, never raised.
        """
        snapshot = bill.fnb_order
        if not snapshot:
            return None
        order = normalize_order(snapshot)
        if not order['drinks'] and not order['snacks']:
            return None
        try:
            existing = FnbOrderHistory.query.filter_by(schedule_id=bill.schedule_id).all()
            if any(record.order == order for record in existing):
                return None
            record = FnbOrderHistory(bill.schedule_id, order, completed_by, bill_id=bill.id)
            db.session.add(record)
            db.session.commit()
            return record
        except SQLAlchemyError:
            db.session.rollback()
            logger.exception('Failed to record order history for schedule %s', bill.schedule_id)
            return None

    def _store(self, bill: Bill) -> Bill:
        """Insert or replace the stored bill of the schedule"""
        bill.created_at = utcnow()
        bill.unique_key = bill.compute_unique_key()
        stored = Bill.query.filter_by(schedule_id=bill.schedule_id) \
            .order_by(Bill.created_at.desc()).first()
        if stored is None:
            db.session.add(bill)
            stored = bill
        else:
            for column in Bill.__table__.columns:
                if column.name in ('id', 'payment_method', 'updated_at'):
                    continue
                setattr(stored, column.name, getattr(bill, column.name))
            stored.payment_method = bill.payment_method or stored.payment_method
        db.session.commit()
        logger.info('Bill %s saved for schedule %s: %s VND',
                    stored.id, stored.schedule_id, stored.total_amount)
        self.record_order_history(stored)
        return stored

    def finalize_bill(self, schedule_id, **options) -> Bill:
        """Compute and store the bill of a schedule"""
        return self._store(self.get_bill(schedule_id, **options))

    def save_bill(self, data: Dict) -> Bill:
        """Store a bill sent by a client (usually one it got from get_bill)"""
        if not isinstance(data, dict):
            raise BadRequestError('Bill payload must be an object')
        for field in ('schedule_id', 'room_id', 'items', 'total_amount'):
            if data.get(field) is None:
                raise BadRequestError(f'{field} is required', ErrorCode.MISSING_REQUIRED_FIELD,
                                      {'field': field})
        schedule = self._get_schedule(data['schedule_id'])
        room_id = parse_id(data['room_id'], 'room_id')
        if db.session.get(Room, room_id) is None:
            raise NotFoundError('Room', room_id)
        if not isinstance(data['items'], list):
            raise BadRequestError('items must be a list')
        try:
            total = float(data['total_amount'])
        except (TypeError, ValueError):
            raise BadRequestError('total_amount must be a number')
        if total < 0:
            raise BadRequestError('total_amount cannot be negative')
        payment_method = data.get('payment_method')
        if payment_method and payment_method not in PaymentMethod.codes():
            raise BadRequestError(f'Unknown payment method: {payment_method}')

        items = data['items']
        bill = Bill(
            schedule_id=schedule.id,
            room_id=room_id,
            subtotal=float(data.get('subtotal') or sum(self._line_total(item) for item in items)),
            discount_amount=float(data.get('discount_amount') or 0),
            gift_discount_amount=float(data.get('gift_discount_amount') or 0),
            total_amount=total,
            start_time=self._stored_time(data.get('start_time'), 'start_time') or schedule.start_time,
            end_time=self._stored_time(data.get('end_time'), 'end_time')
            or schedule.end_time or schedule.start_time + timedelta(hours=1),
            actual_start_time=self._stored_time(data.get('actual_start_time'), 'actual_start_time'),
            actual_end_time=self._stored_time(data.get('actual_end_time'), 'actual_end_time'),
            payment_method=payment_method or None,
            note=data.get('note', schedule.note),
            invoice_code=data.get('invoice_code') or generate_invoice_code()
        )
        bill.items = items
        bill.active_promotion = data.get('active_promotion')
        bill.gift = data.get('gift')
        bill.fnb_order = data.get('fnb_order')
        bill.free_hour_promotion = data.get('free_hour_promotion')
        if bill.free_hour_promotion is None:
            bill.free_hour_promotion = self._recompute_free_hour(schedule, data)
        return self._store(bill)

    def _recompute_free_hour(self, schedule, data):
        """Best effort: the free-hour credit of the same window, recomputed"""
        try:
            recomputed = self.get_bill(
                schedule.id,
                actual_end_time=data.get('actual_end_time') or data.get('end_time'),
                actual_start_time=data.get('actual_start_time') or data.get('start_time')
            )
            return recomputed.free_hour_promotion
        except (BaseAppException, SQLAlchemyError) as exc:
            logger.error('Could not back-fill free hour promotion for schedule %s: %s', schedule.id, exc)
            return None

    @staticmethod
    def _line_total(item):
        if item.get('total_price') is not None:
            return float(item['total_price'])
        return float(item.get('quantity') or 0) * float(item.get('price') or 0)

    def _stored_time(self, value, field):
        if not value:
            return None
        return to_utc_naive(self._instant(value, field))

    # ==================== PRINTING ====================

    def get_bill_text(self, bill: Bill) -> str:
        room = db.session.get(Room, bill.room_id)
        config = current_app.config
        return render_bill_text(
            bill,
            room_name=room.name if room else None,
            venue_name=config.get('VENUE_NAME', 'Jozo Music Box'),
            venue_address=config.get('VENUE_ADDRESS')
        )

    def print_bill(self, schedule_id, **options) -> Bill:
        """
        Compute the bill, print it and store it.

        The print time becomes the bill's creation time and invoice code; the
        exact window printed is kept as the actual start/end. Nothing is
        stored when printing fails.
        """
        bill = self.get_bill(schedule_id, **options)
        now = utcnow()
        bill.created_at = now
        bill.invoice_code = generate_invoice_code(now)
        bill.actual_start_time = bill.actual_start_time or bill.start_time
        bill.actual_end_time = bill.actual_end_time or bill.end_time

        queue = current_app.extensions['print_queue']
        queue.submit(self.get_bill_text(bill))
        logger.info('Bill %s printed for schedule %s', bill.invoice_code, bill.schedule_id)

        return self._store(bill)

    # ==================== LOOKUPS ====================

    def get_bill_by_id(self, bill_id) -> Bill:
        bill = db.session.get(Bill, parse_id(bill_id, 'bill_id'))
        if bill is None:
            raise NotFoundError('Bill', bill_id)
        return bill

    def get_bills_by_room_id(self, room_id, limit=50) -> List[Bill]:
        room_pk = parse_id(room_id, 'room_id')
        if db.session.get(Room, room_pk) is None:
            raise NotFoundError('Room', room_id)
        return Bill.query.filter_by(room_id=room_pk) \
            .order_by(Bill.end_time.desc()).limit(limit).all()

    def get_all_bills(self, page=1, limit=20, start_date=None, end_date=None, min_amount=None,
                      max_amount=None, payment_method=None, invoice_code=None) -> Dict:
        """Paginated bill list, newest end time first"""
        page = max(int(page or 1), 1)
        limit = min(max(int(limit or 20), 1), 100)
        query = Bill.query

        try:
            start_day = parse_local_date(start_date) if start_date else None
            end_day = parse_local_date(end_date) if end_date else None
        except ValueError:
            raise BadRequestError('Invalid date filter', ErrorCode.INVALID_DATE_RANGE)
        if start_day and end_day and end_day < start_day:
            raise BadRequestError('end_date is before start_date', ErrorCode.INVALID_DATE_RANGE)
        if start_day:
            query = query.filter(Bill.end_time >= to_utc_naive(start_of_local_day(start_day)))
        if end_day:
            query = query.filter(Bill.end_time <= to_utc_naive(end_of_local_day(end_day)))
        if min_amount is not None:
            query = query.filter(Bill.total_amount >= float(min_amount))
        if max_amount is not None:
            query = query.filter(Bill.total_amount <= float(max_amount))
        if payment_method:
            query = query.filter(Bill.payment_method == payment_method)
        if invoice_code:
            query = query.filter(Bill.invoice_code.contains(invoice_code))

        total = query.count()
        bills = query.order_by(Bill.end_time.desc()) \
            .offset((page - 1) * limit).limit(limit).all()
        return {
            'bills': bills,
            'pagination': {
                'page': page,
                'limit': limit,
                'total': total,
                'total_pages': math.ceil(total / limit) if total else 0
            }
        }
