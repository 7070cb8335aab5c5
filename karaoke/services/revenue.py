"""
Revenue reports built from stored bills.

A bill counts towards the period in which its session started, so a session
running from 23:30 to 01:00 belongs to the first day. When several bills
exist for one schedule only one is counted.
"""
import logging
from collections import OrderedDict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional

from dateutil.relativedelta import relativedelta
from flask import current_app

from karaoke import db
from karaoke.exceptions import BadRequestError, ErrorCode
from karaoke.models.billing import Bill
from karaoke.models.schedule import RoomSchedule, RoomScheduleStatus
from karaoke.utils.timeutils import (end_of_local_day, parse_local_date, start_of_local_day,
                                     to_utc_naive)

logger = logging.getLogger(__name__)

DATE_TYPES = ('day', 'week', 'month', 'custom')


def _prefer(candidate: Bill, current: Bill) -> bool:
    """Whether candidate should replace current for the same schedule"""
    if candidate.payment_method and not current.payment_method:
        return True
    if bool(candidate.payment_method) != bool(current.payment_method):
        return False
    if candidate.created_at and current.created_at:
        return candidate.created_at > current.created_at
    return False


def deduplicate_bills(bills: Iterable[Bill]) -> List[Bill]:
    """One bill per schedule: a paid bill beats an unpaid one, then the newest wins"""
    chosen = OrderedDict()
    for bill in bills:
        current = chosen.get(bill.schedule_id)
        if current is None or _prefer(bill, current):
            chosen[bill.schedule_id] = bill
    return list(chosen.values())


class RevenueService:

    def _unit(self):
        return current_app.config['BILL_ROUNDING_UNIT']

    def _parse_day(self, value, field='date') -> date:
        if not value:
            raise BadRequestError(f'{field} is required', ErrorCode.MISSING_REQUIRED_FIELD)
        try:
            return parse_local_date(value)
        except (ValueError, OverflowError):
            raise BadRequestError(f'Invalid {field}: {value}', ErrorCode.INVALID_DATE_RANGE)

    def _report(self, first_day: date, last_day: date, time_range: Optional[str] = None) -> Dict:
        start = start_of_local_day(first_day)
        end = end_of_local_day(last_day)
        bills = Bill.query.filter(
            Bill.start_time >= to_utc_naive(start),
            Bill.start_time <= to_utc_naive(end)
        ).order_by(Bill.start_time.desc()).all()

        unit = self._unit()
        rows = []
        total = 0
        for bill in deduplicate_bills(bills):
            amount = int(bill.total_amount // unit * unit)
            total += amount
            row = bill.to_dict()
            row['total_amount'] = amount
            rows.append(row)
        logger.debug('Revenue %s - %s: %d bills, %d VND', first_day, last_day, len(rows), total)

        report = {
            'total_revenue': total,
            'bills': rows,
            'start_date': start.isoformat(),
            'end_date': end.isoformat()
        }
        if time_range is not None:
            report['time_range'] = time_range
        return report

    def get_daily_revenue(self, day) -> Dict:
        day = self._parse_day(day)
        return self._report(day, day)

    def get_weekly_revenue(self, day) -> Dict:
        """Week containing the day, Monday to Sunday"""
        day = self._parse_day(day)
        monday = day - timedelta(days=day.weekday())
        return self._report(monday, monday + timedelta(days=6))

    def get_monthly_revenue(self, day) -> Dict:
        day = self._parse_day(day)
        first = day.replace(day=1)
        last = first + relativedelta(months=1) - timedelta(days=1)
        return self._report(first, last)

    def get_revenue_by_custom_range(self, start_date, end_date) -> Dict:
        first = self._parse_day(start_date, 'start_date')
        last = self._parse_day(end_date, 'end_date')
        if first > last:
            raise BadRequestError('start_date must not be after end_date', ErrorCode.INVALID_DATE_RANGE)
        return self._report(first, last)

    def get_revenue_from_bills(self, date_type, start_date, end_date=None) -> Dict:
        """Any of the four reports, labelled with a human readable time range"""
        if date_type not in DATE_TYPES:
            raise BadRequestError(f"date_type must be one of {', '.join(DATE_TYPES)}")
        day = self._parse_day(start_date, 'start_date')

        if date_type == 'day':
            return self._report(day, day, f"day {day.strftime('%d/%m/%Y')}")
        if date_type == 'week':
            monday = day - timedelta(days=day.weekday())
            sunday = monday + timedelta(days=6)
            week, year = monday.isocalendar()[1], monday.isocalendar()[0]
            label = f"week {week} of {year} ({monday.strftime('%d/%m')} - {sunday.strftime('%d/%m/%Y')})"
            return self._report(monday, sunday, label)
        if date_type == 'month':
            first = day.replace(day=1)
            last = first + relativedelta(months=1) - timedelta(days=1)
            return self._report(first, last, f"month {first.strftime('%m/%Y')}")

        if not end_date:
            raise BadRequestError('end_date is required for a custom range', ErrorCode.MISSING_REQUIRED_FIELD)
        last = self._parse_day(end_date, 'end_date')
        if day > last:
            raise BadRequestError('start_date must not be after end_date', ErrorCode.INVALID_DATE_RANGE)
        label = f"from {day.strftime('%d/%m/%Y')} to {last.strftime('%d/%m/%Y')}"
        return self._report(day, last, label)

    # ==================== CLEANUP ====================

    def clean_duplicate_bills(self, day=None) -> Dict:
        """Delete bills with identical content, keeping the newest of each group"""
        query = Bill.query
        if day:
            day = self._parse_day(day)
            query = query.filter(
                Bill.created_at >= to_utc_naive(start_of_local_day(day)),
                Bill.created_at <= to_utc_naive(end_of_local_day(day))
            )
        bills = query.all()
        before = len(bills)

        groups = {}
        for bill in bills:
            groups.setdefault(bill.unique_key or bill.compute_unique_key(), []).append(bill)

        removed = 0
        for group in groups.values():
            if len(group) < 2:
                continue
            group.sort(key=lambda bill: (bill.created_at, bill.id), reverse=True)
            for duplicate in group[1:]:
                db.session.delete(duplicate)
                removed += 1
        db.session.commit()
        if removed:
            logger.info('Removed %d duplicate bills', removed)
        return {'removed_count': removed, 'before_count': before, 'after_count': before - removed}

    def clean_up_non_finished_bills(self) -> Dict:
        """Delete bills whose schedule never reached the finished state"""
        before = Bill.query.count()
        finished = db.select(RoomSchedule.id).where(
            RoomSchedule.status == RoomScheduleStatus.FINISHED.code)
        stale = Bill.query.filter(~Bill.schedule_id.in_(finished)).all()
        for bill in stale:
            db.session.delete(bill)
        db.session.commit()
        if stale:
            logger.info('Removed %d bills of unfinished schedules', len(stale))
        return {'removed_count': len(stale), 'before_count': before, 'after_count': before - len(stale)}
