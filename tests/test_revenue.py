from datetime import timedelta

import pytest

from conftest import local
from karaoke import db
from karaoke.exceptions import BadRequestError
from karaoke.models import Bill
from karaoke.services.revenue import RevenueService, deduplicate_bills
from karaoke.utils.timeutils import to_utc_naive


@pytest.fixture
def add_bill(app, make_room, make_schedule):
    room = make_room()
    schedules = {}

    def _add(day, total, payment_method='cash', created_offset=0, hour=20, schedule_key=None, status='finished'):
        key = schedule_key or (day, hour)
        if key not in schedules:
            start = local(2025, 3, day, hour)
            schedules[key] = make_schedule(room, start, start + timedelta(hours=2), status=status)
        schedule = schedules[key]
        bill = Bill(
            schedule_id=schedule.id,
            room_id=room.id,
            total_amount=total,
            start_time=schedule.start_time,
            end_time=schedule.end_time,
            payment_method=payment_method,
            created_at=to_utc_naive(local(2025, 3, day, 23)) + timedelta(minutes=created_offset)
        )
        bill.items = [{'description': 'Phi dich vu thu am\n(20:00-22:00)', 'quantity': 2, 'price': total / 2}]
        bill.unique_key = bill.compute_unique_key()
        db.session.add(bill)
        db.session.commit()
        return bill
    return _add


def test_deduplicate_prefers_paid_then_newest(app, add_bill):
    unpaid_newer = add_bill(4, 300000, payment_method=None, created_offset=10, schedule_key='a')
    paid = add_bill(4, 200000, created_offset=0, schedule_key='a')
    paid_newer = add_bill(4, 250000, created_offset=5, schedule_key='a')
    chosen = deduplicate_bills([unpaid_newer, paid, paid_newer])
    assert chosen == [paid_newer]


def test_daily_revenue_floors_each_bill(app, add_bill):
    add_bill(4, 120500)
    add_bill(4, 99999, hour=10)
    add_bill(5, 50000)
    report = RevenueService().get_daily_revenue('2025-03-04')
    assert report['total_revenue'] == 120000 + 99000
    assert sorted(row['total_amount'] for row in report['bills']) == [99000, 120000]
    # stored bills keep their exact amount
    assert Bill.query.filter_by(total_amount=120500).count() == 1


def test_overnight_bill_belongs_to_start_day(app, add_bill):
    add_bill(4, 200000, hour=23)
    assert RevenueService().get_daily_revenue('2025-03-04')['total_revenue'] == 200000
    assert RevenueService().get_daily_revenue('2025-03-05')['total_revenue'] == 0


def test_week_runs_monday_to_sunday(app, add_bill):
    add_bill(2, 100000)   # Sunday
    add_bill(3, 200000)   # Monday
    add_bill(9, 300000)   # Sunday
    add_bill(10, 400000)  # next Monday
    report = RevenueService().get_weekly_revenue('2025-03-05')
    assert report['total_revenue'] == 500000


def test_month_and_custom_range(app, add_bill):
    add_bill(1, 100000)
    add_bill(31, 200000)
    service = RevenueService()
    assert service.get_monthly_revenue('2025-03-15')['total_revenue'] == 300000
    assert service.get_revenue_by_custom_range('2025-03-02', '2025-03-31')['total_revenue'] == 200000
    with pytest.raises(BadRequestError):
        service.get_revenue_by_custom_range('2025-03-31', '2025-03-01')


def test_report_from_bills_has_labels(app, add_bill):
    add_bill(4, 100000)
    service = RevenueService()
    assert service.get_revenue_from_bills('day', '2025-03-04')['time_range'] == 'day 04/03/2025'
    week = service.get_revenue_from_bills('week', '2025-03-04')
    assert week['time_range'] == 'week 10 of 2025 (03/03 - 09/03/2025)'
    assert service.get_revenue_from_bills('month', '2025-03-04')['time_range'] == 'month 03/2025'
    with pytest.raises(BadRequestError):
        service.get_revenue_from_bills('custom', '2025-03-04')
    with pytest.raises(BadRequestError):
        service.get_revenue_from_bills('year', '2025-03-04')


def test_clean_duplicate_bills_keeps_newest(app, add_bill):
    add_bill(4, 100000, created_offset=0, schedule_key='a')
    newest = add_bill(4, 100000, created_offset=5, schedule_key='a')
    add_bill(4, 150000, created_offset=1, schedule_key='b', hour=10)
    result = RevenueService().clean_duplicate_bills()
    assert result == {'removed_count': 1, 'before_count': 3, 'after_count': 2}
    assert db.session.get(Bill, newest.id) is not None


def test_clean_up_non_finished_bills(app, add_bill):
    add_bill(4, 100000)
    add_bill(5, 100000, status='in use')
    result = RevenueService().clean_up_non_finished_bills()
    assert result['removed_count'] == 1
    assert Bill.query.count() == 1
