"""
Room schedules: booking a room, changing and cancelling sessions.
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy import or_

from karaoke import db
from karaoke.exceptions import BadRequestError, ConflictError, NotFoundError, ErrorCode, parse_id
from karaoke.models.room import Room
from karaoke.models.schedule import CLOSED_STATUSES, RoomSchedule, RoomScheduleStatus
from karaoke.services.fnb_orders import FnbOrderService
from karaoke.utils.timeutils import (end_of_local_day, parse_datetime, parse_local_date,
                                     start_of_local_day, to_utc_naive, truncate_to_minute, utcnow)

logger = logging.getLogger(__name__)

# Far end used for open sessions when looking for overlaps
OPEN_END = datetime(9999, 12, 31)


class ScheduleService:

    def __init__(self):
        self.orders = FnbOrderService()

    def get_schedule(self, schedule_id) -> RoomSchedule:
        schedule = db.session.get(RoomSchedule, parse_id(schedule_id, 'schedule_id'))
        if schedule is None:
            raise NotFoundError('Schedule', schedule_id)
        return schedule

    def list_schedules(self, day=None, room_id=None, status=None) -> List[RoomSchedule]:
        """Schedules starting on a venue-local day, optionally for one room or status"""
        query = RoomSchedule.query
        if day:
            try:
                day = parse_local_date(day)
            except (ValueError, OverflowError):
                raise BadRequestError(f'Invalid date: {day}', ErrorCode.INVALID_DATE_RANGE)
            query = query.filter(
                RoomSchedule.start_time >= to_utc_naive(start_of_local_day(day)),
                RoomSchedule.start_time <= to_utc_naive(end_of_local_day(day))
            )
        if room_id:
            query = query.filter(RoomSchedule.room_id == parse_id(room_id, 'room_id'))
        if status:
            query = query.filter(RoomSchedule.status == status)
        return query.order_by(RoomSchedule.start_time).all()

    # ==================== VALIDATION ====================

    @staticmethod
    def _time(value, field) -> Optional[datetime]:
        if not value:
            return None
        try:
            return parse_datetime(value)
        except (ValueError, OverflowError):
            raise BadRequestError(f'Invalid {field}: {value}', details={field: value})

    @staticmethod
    def _check_status(status):
        if status not in RoomScheduleStatus.codes():
            raise BadRequestError(f'Unknown schedule status: {status}', details={'status': status})

    def validate_times(self, status, start, end):
        """
        An end is never before the start. A booking also needs an end, at most
        MAX_BOOKING_HOURS after the start.
        """
        if end is not None and truncate_to_minute(end) < truncate_to_minute(start):
            raise BadRequestError('end_time must not be before start_time', ErrorCode.INVALID_DATE_RANGE)
        if status != RoomScheduleStatus.BOOKED.code:
            return
        if end is None:
            raise BadRequestError('end_time is required for a booking', ErrorCode.MISSING_REQUIRED_FIELD)
        max_hours = current_app.config['MAX_BOOKING_HOURS']
        if end - start > timedelta(hours=max_hours):
            raise BadRequestError(f'A booking lasts at most {max_hours} hours', ErrorCode.INVALID_DATE_RANGE)

    def _check_overlap(self, room_id, start, end, exclude_id=None):
        start_utc = to_utc_naive(start)
        end_utc = to_utc_naive(end) if end is not None else OPEN_END
        query = RoomSchedule.query.filter(
            RoomSchedule.room_id == room_id,
            RoomSchedule.status.notin_(CLOSED_STATUSES),
            RoomSchedule.start_time < end_utc,
            or_(RoomSchedule.end_time.is_(None), RoomSchedule.end_time > start_utc)
        )
        if exclude_id is not None:
            query = query.filter(RoomSchedule.id != exclude_id)
        overlap = query.first()
        if overlap is not None:
            raise ConflictError('The room already has a schedule in this time range',
                                details={'schedule_id': overlap.id})

    # ==================== CHANGES ====================

    def create_schedule(self, data: Dict) -> RoomSchedule:
        """Book a room; the schedule starts with an empty F&B order"""
        if data.get('room_id') is None:
            raise BadRequestError('room_id is required', ErrorCode.MISSING_REQUIRED_FIELD)
        room = db.session.get(Room, parse_id(data['room_id'], 'room_id'))
        if room is None:
            raise NotFoundError('Room', data['room_id'])

        status = data.get('status') or RoomScheduleStatus.BOOKED.code
        self._check_status(status)
        start = self._time(data.get('start_time'), 'start_time')
        if start is None:
            raise BadRequestError('start_time is required', ErrorCode.MISSING_REQUIRED_FIELD)
        end = self._time(data.get('end_time'), 'end_time')
        self.validate_times(status, start, end)
        self._check_overlap(room.id, start, end)

        created_by = data.get('created_by') or 'system'
        schedule = RoomSchedule(
            room_id=room.id,
            start_time=to_utc_naive(start),
            end_time=to_utc_naive(end) if end is not None else None,
            status=status,
            created_by=created_by,
            updated_by=created_by,
            note=data.get('note'),
            customer_name=data.get('customer_name'),
            customer_phone=data.get('customer_phone'),
            gift_enabled=bool(data.get('gift_enabled', False)),
            apply_free_hour_promo=bool(data.get('apply_free_hour_promo', False))
        )
        db.session.add(schedule)
        db.session.flush()
        self.orders.create_empty_order(schedule.id, created_by)
        db.session.commit()
        logger.info('Schedule %s created for room %s (%s)', schedule.id, room.name, status)
        return schedule

    def update_schedule(self, schedule_id, data: Dict) -> RoomSchedule:
        schedule = self.get_schedule(schedule_id)
        if schedule.is_closed():
            raise BadRequestError(f'A {schedule.status} schedule cannot be changed')

        status = schedule.status
        if data.get('status'):
            self._check_status(data['status'])
            status = data['status']
        start = schedule.start_time
        if data.get('start_time'):
            start = to_utc_naive(self._time(data['start_time'], 'start_time'))
        end = schedule.end_time
        if 'end_time' in data:
            end = self._time(data['end_time'], 'end_time')
            end = to_utc_naive(end) if end is not None else None
        if end is not None and truncate_to_minute(end) < truncate_to_minute(start):
            raise BadRequestError('end_time must not be before start_time', ErrorCode.INVALID_DATE_RANGE)

        schedule.status = status
        schedule.start_time = start
        schedule.end_time = end

        for field in ('note', 'customer_name', 'customer_phone'):
            if data.get(field) is not None:
                setattr(schedule, field, data[field])
        for flag in ('gift_enabled', 'apply_free_hour_promo'):
            if data.get(flag) is not None:
                setattr(schedule, flag, bool(data[flag]))

        schedule.updated_by = data.get('updated_by') or 'system'
        schedule.updated_at = utcnow()
        db.session.commit()
        return schedule

    def cancel_schedule(self, schedule_id, updated_by='system') -> RoomSchedule:
        """Only a booking that has not started can be cancelled"""
        schedule = self.get_schedule(schedule_id)
        if schedule.status != RoomScheduleStatus.BOOKED.code:
            raise BadRequestError('Only booked schedules can be cancelled')
        schedule.status = RoomScheduleStatus.CANCELLED.code
        schedule.updated_by = updated_by
        schedule.updated_at = utcnow()
        db.session.commit()
        logger.info('Schedule %s cancelled', schedule.id)
        return schedule
