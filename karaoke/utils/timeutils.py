"""
Date and time helpers for the venue timezone.

Datetimes are stored in the database as naive UTC. Everything shown to staff
or matched against the price table is local venue time.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Union

import pytz
from dateutil import parser
from flask import current_app, has_app_context

DEFAULT_TIMEZONE = 'Asia/Ho_Chi_Minh'


def venue_tz():
    """Timezone of the venue (from config when an app is active)"""
    name = DEFAULT_TIMEZONE
    if has_app_context():
        name = current_app.config.get('TIMEZONE', DEFAULT_TIMEZONE)
    return pytz.timezone(name)


def utcnow() -> datetime:
    """Current time as naive UTC, the storage convention"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def now_local() -> datetime:
    return datetime.now(pytz.utc).astimezone(venue_tz())


def to_local(value: datetime) -> datetime:
    """Convert a stored (naive UTC) or aware datetime to venue time"""
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    return value.astimezone(venue_tz())


def to_utc_naive(value: datetime) -> datetime:
    """Convert an aware datetime to the naive UTC storage form"""
    if value.tzinfo is None:
        return value
    return value.astimezone(pytz.utc).replace(tzinfo=None)


def local_datetime(day: date, at: Union[time, str]) -> datetime:
    """Aware venue datetime for a calendar day and a "HH:mm" wall time"""
    if isinstance(at, str):
        at = parse_hhmm(at)
    return venue_tz().localize(datetime.combine(day, at))


def local_midnight(value: datetime) -> datetime:
    local = to_local(value)
    return local_datetime(local.date(), time(0, 0))


def parse_hhmm(value: str) -> time:
    hours, minutes = value.strip().split(':')
    return time(int(hours), int(minutes))


def is_hhmm(value: Optional[str]) -> bool:
    if not isinstance(value, str) or len(value) != 5 or value[2] != ':':
        return False
    return value[:2].isdigit() and value[3:].isdigit()


def parse_datetime(value: Union[str, datetime]) -> datetime:
    """
    Parse an ISO datetime coming from a client.

    Strings without an offset are venue local time. Raises ValueError on
    garbage input.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = parser.isoparse(str(value).strip())
    if parsed.tzinfo is None:
        return venue_tz().localize(parsed)
    return parsed.astimezone(venue_tz())


def parse_local_date(value: Union[str, date, datetime]) -> date:
    """Calendar day (venue time) of a client supplied date or datetime"""
    if isinstance(value, datetime):
        return to_local(value).date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if len(text) == 10:
        return datetime.strptime(text, '%Y-%m-%d').date()
    return parse_datetime(text).date()


def truncate_to_minute(value: datetime) -> datetime:
    return value.replace(second=0, microsecond=0)


def start_of_local_day(day: date) -> datetime:
    return local_datetime(day, time(0, 0))


def end_of_local_day(day: date) -> datetime:
    return start_of_local_day(day + timedelta(days=1)) - timedelta(microseconds=1)


def format_local(value: Optional[datetime], fmt: str = '%d/%m/%Y %H:%M') -> Optional[str]:
    if value is None:
        return None
    return to_local(value).strftime(fmt)


def isoformat_utc(value: Optional[datetime]) -> Optional[str]:
    """Serialise a stored naive UTC datetime with an explicit offset"""
    if value is None:
        return None
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    return value.isoformat()


def epoch_millis(value: Optional[datetime]) -> int:
    if value is None:
        return 0
    if value.tzinfo is None:
        value = pytz.utc.localize(value)
    return int(value.timestamp() * 1000)
