"""
Day-type classification, price table lookup and time-slot partitioning.

All slot arithmetic happens on aware datetimes in the venue timezone. A
session is cut into sub-intervals, each lying inside exactly one slot
window materialised on a concrete calendar date. Time that no configured
slot covers (typically after midnight, before the first morning slot) is
billed at the slot most recently in effect, split at local midnight.
"""
import logging
import math
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional

from karaoke import db
from karaoke.exceptions import BadRequestError, NotFoundError, ErrorCode, parse_id
from karaoke.models.price import Price, Holiday, DayType
from karaoke.utils.timeutils import is_hhmm, local_datetime, parse_local_date, to_local, truncate_to_minute

logger = logging.getLogger(__name__)


def round2(value: float) -> float:
    """Round half up to two decimals"""
    return math.floor(value * 100 + 0.5) / 100


def calculate_hours(start: datetime, end: datetime) -> float:
    """
    Hours between two instants at minute precision, rounded to 2 decimals.

    An inverted range returns 0.5 instead of a negative number.
    """
    start = truncate_to_minute(to_local(start))
    end = truncate_to_minute(to_local(end))
    if end < start:
        logger.warning('End time %s is before start time %s', end.isoformat(), start.isoformat())
        return 0.5
    return round2((end - start).total_seconds() / 3600)


def slot_rate(slot: Dict, room_type: str) -> Optional[float]:
    for entry in slot.get('prices') or []:
        if entry.get('room_type') == room_type:
            return float(entry.get('price') or 0)
    return None


@dataclass(frozen=True)
class SlotWindow:
    """A configured slot materialised on one local calendar date"""
    start: datetime
    end: datetime
    slot: Dict
    day: date

    def rate_for(self, room_type: str) -> Optional[float]:
        return slot_rate(self.slot, room_type)


@dataclass(frozen=True)
class SubInterval:
    start: datetime
    end: datetime
    window: SlotWindow

    @property
    def seconds(self) -> float:
        return (self.end - self.start).total_seconds()

    @property
    def slot(self) -> Dict:
        return self.window.slot

    def label(self) -> str:
        return f"{self.start.strftime('%H:%M')}-{self.end.strftime('%H:%M')}"


def sort_slots(time_slots: List[Dict]) -> List[Dict]:
    return sorted(time_slots, key=lambda slot: slot['start'])


def materialize_slots(time_slots: List[Dict], days: List[date]) -> List[SlotWindow]:
    """Concrete windows of every slot on every given day; wrapping slots end on the next day"""
    windows = []
    for day in days:
        for slot in sort_slots(time_slots):
            start = local_datetime(day, slot['start'])
            end = local_datetime(day, slot['end'])
            if slot['start'] > slot['end']:
                end = local_datetime(day + timedelta(days=1), slot['end'])
            windows.append(SlotWindow(start=start, end=end, slot=slot, day=day))
    return windows


def _window_in_effect(windows: List[SlotWindow], instant: datetime) -> Optional[SlotWindow]:
    started = [window for window in windows if window.start <= instant]
    if not started:
        return None
    return max(started, key=lambda window: window.start)


def _fill_gap(parts: List[SubInterval], gap_start: datetime, gap_end: datetime,
              windows: List[SlotWindow]) -> None:
    piece_start = gap_start
    while piece_start < gap_end:
        next_midnight = local_datetime(piece_start.date() + timedelta(days=1), '00:00')
        piece_end = min(gap_end, next_midnight)
        window = _window_in_effect(windows, piece_start)
        if window is None:
            logger.warning('No price slot in effect at %s, segment left unbilled', piece_start.isoformat())
        else:
            last = parts[-1] if parts else None
            if (last is not None and last.window == window and last.end == piece_start
                    and last.start.date() == piece_start.date()):
                parts[-1] = SubInterval(last.start, piece_end, window)
            else:
                parts.append(SubInterval(piece_start, piece_end, window))
        piece_start = piece_end


def partition_session(start: datetime, end: datetime, time_slots: List[Dict]) -> List[SubInterval]:
    """
    Split [start, end) into chronologically ordered sub-intervals.

    Slots are materialised on every local date the session touches plus the
    day before, so a wrapping slot that began yesterday still counts.
    Overlapping slot configurations never bill the same minute twice.
    """
    start = to_local(start)
    end = to_local(end)
    if not time_slots or end <= start:
        return []

    first_day = start.date() - timedelta(days=1)
    days = [first_day + timedelta(days=offset)
            for offset in range((end.date() - first_day).days + 1)]
    windows = materialize_slots(time_slots, days)

    overlaps = []
    for window in windows:
        overlap_start = max(start, window.start)
        overlap_end = min(end, window.end)
        if overlap_start < overlap_end:
            overlaps.append(SubInterval(overlap_start, overlap_end, window))
    overlaps.sort(key=lambda part: (part.start, part.window.start))

    parts: List[SubInterval] = []
    cursor = start
    for overlap in overlaps:
        if overlap.end <= cursor:
            continue
        if overlap.start > cursor:
            _fill_gap(parts, cursor, overlap.start, windows)
        parts.append(SubInterval(max(overlap.start, cursor), overlap.end, overlap.window))
        cursor = overlap.end
    if cursor < end:
        _fill_gap(parts, cursor, end, windows)
    return parts


class PricingService:
    """Price table and calendar lookups"""

    def determine_day_type(self, instant: datetime) -> DayType:
        """Holiday if the local date is in the holiday calendar, else weekend/weekday"""
        local_day = to_local(instant).date()
        if Holiday.query.filter_by(date=local_day).first() is not None:
            return DayType.HOLIDAY
        if local_day.weekday() >= 5:
            return DayType.WEEKEND
        return DayType.WEEKDAY

    def get_price_document(self, day_type: DayType) -> Price:
        price = Price.query.filter_by(day_type=day_type.code).first()
        if price is None or not price.time_slots:
            raise NotFoundError('Price', day_type.code,
                                message=f'No price configuration for {day_type.code}',
                                error_code=ErrorCode.PRICE_NOT_CONFIGURED)
        return price

    def get_service_unit_price(self, instant: datetime, day_type: DayType, room_type: str) -> float:
        """
        Hourly rate for a room type at a given instant.

        Slot bounds are inclusive. When no slot contains the time the first
        configured slot is used.
        """
        price = self.get_price_document(day_type)
        hhmm = to_local(instant).strftime('%H:%M')

        chosen = None
        for slot in price.time_slots:
            if slot['start'] > slot['end']:
                matches = hhmm >= slot['start'] or hhmm <= slot['end']
            else:
                matches = slot['start'] <= hhmm <= slot['end']
            if matches:
                chosen = slot
                break
        if chosen is None:
            logger.debug('No slot contains %s on %s, using the first slot', hhmm, day_type.code)
            chosen = price.time_slots[0]

        rate = slot_rate(chosen, room_type)
        if rate is None:
            raise NotFoundError('Price', room_type,
                                message=f'No price for room type {room_type}',
                                error_code=ErrorCode.PRICE_NOT_CONFIGURED)
        return rate

    def list_prices(self):
        return Price.query.order_by(Price.day_type).all()

    @staticmethod
    def validate_time_slots(time_slots) -> List[Dict]:
        """Slots need HH:mm bounds and a numeric rate per room type"""
        if not isinstance(time_slots, list) or not time_slots:
            raise BadRequestError('time_slots must be a non-empty list')
        cleaned = []
        for slot in time_slots:
            if not isinstance(slot, dict) or not is_hhmm(slot.get('start')) or not is_hhmm(slot.get('end')):
                raise BadRequestError('Each slot needs start and end as HH:mm', details={'slot': slot})
            prices = slot.get('prices')
            if not isinstance(prices, list) or not prices:
                raise BadRequestError('Each slot needs prices', details={'slot': slot})
            rates = []
            for entry in prices:
                try:
                    rates.append({'room_type': entry['room_type'], 'price': float(entry['price'])})
                except (KeyError, TypeError, ValueError):
                    raise BadRequestError('Each price needs a room_type and a numeric price',
                                          details={'slot': slot})
            cleaned.append({'start': slot['start'], 'end': slot['end'], 'prices': rates})
        return cleaned

    def upsert_price(self, day_type: DayType, time_slots: List[Dict]) -> Price:
        time_slots = self.validate_time_slots(time_slots)
        price = Price.query.filter_by(day_type=day_type.code).first()
        if price is None:
            price = Price(day_type.code, time_slots)
            db.session.add(price)
        else:
            price.time_slots = time_slots
        db.session.commit()
        logger.info('Price table for %s saved with %d slots', day_type.code, len(time_slots))
        return price

    def delete_price(self, day_type: DayType):
        price = Price.query.filter_by(day_type=day_type.code).first()
        if price is None:
            raise NotFoundError('Price', day_type.code)
        db.session.delete(price)
        db.session.commit()

    # ==================== HOLIDAYS ====================

    def list_holidays(self, year=None) -> List[Holiday]:
        query = Holiday.query
        if year:
            query = query.filter(Holiday.date >= date(int(year), 1, 1),
                                 Holiday.date <= date(int(year), 12, 31))
        return query.order_by(Holiday.date).all()

    def add_holiday(self, day, name) -> Holiday:
        try:
            day = parse_local_date(day)
        except (ValueError, OverflowError, TypeError):
            raise BadRequestError(f'Invalid holiday date: {day}', ErrorCode.INVALID_DATE_RANGE)
        if not name:
            raise BadRequestError('Holiday name is required', ErrorCode.MISSING_REQUIRED_FIELD)
        holiday = Holiday.query.filter_by(date=day).first()
        if holiday is None:
            holiday = Holiday(date=day, name=name)
            db.session.add(holiday)
        else:
            holiday.name = name
        db.session.commit()
        return holiday

    def delete_holiday(self, holiday_id):
        holiday = db.session.get(Holiday, parse_id(holiday_id, 'holiday_id'))
        if holiday is None:
            raise NotFoundError('Holiday', holiday_id)
        db.session.delete(holiday)
        db.session.commit()
