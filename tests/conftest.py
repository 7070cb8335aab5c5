from datetime import datetime

import pytest

from karaoke import create_app, db
from karaoke.models import FnbMenu, FnbOrder, Price, Room, RoomSchedule
from karaoke.services.printing import PrintQueue
from karaoke.utils.timeutils import to_utc_naive, venue_tz


def local(year, month, day, hour=0, minute=0):
    """Aware venue-local datetime"""
    return venue_tz().localize(datetime(year, month, day, hour, minute))


def slot(start, end, small=80000, medium=100000, large=150000):
    return {
        'start': start,
        'end': end,
        'prices': [
            {'room_type': 'small', 'price': small},
            {'room_type': 'medium', 'price': medium},
            {'room_type': 'large', 'price': large},
        ]
    }


WEEKDAY_SLOTS = [
    slot('10:00', '17:59', medium=100000),
    slot('18:00', '23:59', medium=150000),
]


class FakeTransport:
    """Print transport that remembers what it was asked to print"""

    def __init__(self, fail_with=None):
        self.sent = []
        self.fail_with = fail_with

    def send(self, content):
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(content)
        return {'status': 'ok'}


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def printer(app):
    transport = FakeTransport()
    app.extensions['print_queue'] = PrintQueue(transport, cooldown_seconds=0)
    return transport


@pytest.fixture
def make_room(app):
    def _make(name='Room 1', room_type='medium'):
        room = Room(name=name, room_type=room_type)
        db.session.add(room)
        db.session.commit()
        return room
    return _make


@pytest.fixture
def make_price(app):
    def _make(day_type='weekday', time_slots=None):
        price = Price(day_type, time_slots if time_slots is not None else WEEKDAY_SLOTS)
        db.session.add(price)
        db.session.commit()
        return price
    return _make


@pytest.fixture
def make_schedule(app):
    def _make(room, start, end=None, status='in use', order=None, **fields):
        schedule = RoomSchedule(
            room_id=room.id,
            start_time=to_utc_naive(start),
            end_time=to_utc_naive(end) if end is not None else None,
            status=status,
            **fields
        )
        db.session.add(schedule)
        db.session.flush()
        fnb_order = FnbOrder(schedule_id=schedule.id)
        fnb_order.order = order or {'drinks': {}, 'snacks': {}}
        db.session.add(fnb_order)
        db.session.commit()
        return schedule
    return _make


@pytest.fixture
def make_menu(app):
    def _make(name='Mineral water', price='20.000', category='drink', inventory_quantity=100, variants=None):
        entry = FnbMenu(name=name, price=price, category=category, inventory_quantity=inventory_quantity)
        entry.variants = variants or []
        db.session.add(entry)
        db.session.commit()
        return entry
    return _make
