import pytest

from conftest import WEEKDAY_SLOTS, local, slot
from karaoke import db
from karaoke.exceptions import BadRequestError, ErrorCode, NotFoundError
from karaoke.models import DayType, Holiday
from karaoke.services.pricing import PricingService, calculate_hours, partition_session, round2


def labels(parts):
    return [part.label() for part in parts]


class TestDayType:

    def test_weekday_and_weekend(self, app):
        service = PricingService()
        assert service.determine_day_type(local(2025, 3, 4, 12)) is DayType.WEEKDAY
        assert service.determine_day_type(local(2025, 3, 8, 12)) is DayType.WEEKEND
        assert service.determine_day_type(local(2025, 3, 9, 23, 30)) is DayType.WEEKEND

    def test_holiday_beats_weekday(self, app):
        db.session.add(Holiday(date=local(2025, 4, 30).date(), name='Reunification Day'))
        db.session.commit()
        assert PricingService().determine_day_type(local(2025, 4, 30, 20)) is DayType.HOLIDAY

    def test_uses_venue_date_not_utc_date(self, app):
        # 2025-03-07 18:30 UTC is Saturday 01:30 in the venue
        from datetime import datetime
        assert PricingService().determine_day_type(datetime(2025, 3, 7, 18, 30)) is DayType.WEEKEND


class TestUnitPrice:

    def test_rate_of_containing_slot(self, app, make_price):
        make_price()
        service = PricingService()
        assert service.get_service_unit_price(local(2025, 3, 4, 11), DayType.WEEKDAY, 'medium') == 100000
        assert service.get_service_unit_price(local(2025, 3, 4, 20), DayType.WEEKDAY, 'medium') == 150000

    def test_wrapping_slot_matches_after_midnight(self, app, make_price):
        make_price(time_slots=[slot('10:00', '17:59'), slot('18:00', '02:00', medium=170000)])
        rate = PricingService().get_service_unit_price(local(2025, 3, 5, 1), DayType.WEEKDAY, 'medium')
        assert rate == 170000

    def test_falls_back_to_first_slot(self, app, make_price):
        make_price()
        rate = PricingService().get_service_unit_price(local(2025, 3, 4, 3), DayType.WEEKDAY, 'medium')
        assert rate == 100000

    def test_missing_document_or_room_type(self, app, make_price):
        service = PricingService()
        with pytest.raises(NotFoundError) as exc:
            service.get_service_unit_price(local(2025, 3, 4, 11), DayType.WEEKDAY, 'medium')
        assert exc.value.error_code == ErrorCode.PRICE_NOT_CONFIGURED

        make_price()
        with pytest.raises(NotFoundError):
            service.get_service_unit_price(local(2025, 3, 4, 11), DayType.WEEKDAY, 'vip')


class TestPriceMaintenance:

    def test_upsert_replaces_slots(self, app):
        service = PricingService()
        service.upsert_price(DayType.WEEKEND, WEEKDAY_SLOTS)
        price = service.upsert_price(DayType.WEEKEND, [slot('09:00', '23:00')])
        assert len(service.list_prices()) == 1
        assert price.time_slots[0]['start'] == '09:00'

    def test_rejects_malformed_slots(self, app):
        with pytest.raises(BadRequestError):
            PricingService().upsert_price(DayType.WEEKDAY, [{'start': '9h', 'end': '10:00', 'prices': []}])
        with pytest.raises(BadRequestError):
            PricingService().upsert_price(DayType.WEEKDAY, [])

    def test_holiday_upsert_by_date(self, app):
        service = PricingService()
        service.add_holiday('2025-09-02', 'National Day')
        service.add_holiday('2025-09-02', 'Quoc Khanh')
        holidays = service.list_holidays(2025)
        assert [h.name for h in holidays] == ['Quoc Khanh']


class TestHours:

    def test_minute_precision(self):
        assert calculate_hours(local(2025, 3, 4, 10, 0), local(2025, 3, 4, 11, 20)) == 1.33

    def test_inverted_range(self):
        assert calculate_hours(local(2025, 3, 4, 12), local(2025, 3, 4, 11)) == 0.5

    def test_round_half_up(self):
        assert round2(0.125) == 0.13


class TestPartition:

    def test_single_slot(self):
        parts = partition_session(local(2025, 3, 4, 10), local(2025, 3, 4, 12), WEEKDAY_SLOTS)
        assert labels(parts) == ['10:00-12:00']
        assert parts[0].slot['start'] == '10:00'

    def test_crosses_slot_boundary(self):
        parts = partition_session(local(2025, 3, 4, 17), local(2025, 3, 4, 19), WEEKDAY_SLOTS)
        assert labels(parts) == ['17:00-18:00', '18:00-19:00']
        assert [part.slot['start'] for part in parts] == ['10:00', '18:00']

    def test_overnight_carries_last_slot_over(self):
        parts = partition_session(local(2025, 3, 4, 23), local(2025, 3, 5, 1), WEEKDAY_SLOTS)
        assert labels(parts) == ['23:00-00:00', '00:00-01:00']
        assert all(part.slot['start'] == '18:00' for part in parts)
        assert sum(part.seconds for part in parts) == 2 * 3600

    def test_wrapping_slot_started_the_day_before(self):
        slots = [slot('10:00', '17:59'), slot('18:00', '02:00', medium=170000)]
        parts = partition_session(local(2025, 3, 5, 0, 30), local(2025, 3, 5, 1, 30), slots)
        assert labels(parts) == ['00:30-01:30']
        assert parts[0].window.rate_for('medium') == 170000

    def test_overlapping_slots_never_double_bill(self):
        slots = [slot('10:00', '15:00'), slot('14:00', '18:00', medium=120000)]
        parts = partition_session(local(2025, 3, 4, 13), local(2025, 3, 4, 17), slots)
        assert sum(part.seconds for part in parts) == 4 * 3600
        assert labels(parts) == ['13:00-15:00', '15:00-17:00']

    def test_empty_session(self):
        assert partition_session(local(2025, 3, 4, 10), local(2025, 3, 4, 10), WEEKDAY_SLOTS) == []
