import pytest

from conftest import local, slot
from karaoke import db
from karaoke.exceptions import BadRequestError, ErrorCode, NotFoundError
from karaoke.models import Bill, FnbOrderHistory, Promotion
from karaoke.services.billing import BillService, generate_invoice_code, round_down_total
from karaoke.utils.timeutils import to_local


def claimed(gift_type, **terms):
    gift = {'gift_id': 1, 'name': 'Lucky', 'type': gift_type, 'status': 'claimed',
            'assigned_at': None, 'claimed_at': None, 'items': []}
    gift.update(terms)
    return gift


@pytest.fixture
def setup(app, make_room, make_price):
    make_price()
    return make_room(room_type='medium')


class TestRounding:

    def test_floors_to_thousands(self):
        assert round_down_total(190999) == 190000
        assert round_down_total(189999.99999999997) == 190000

    def test_never_negative(self):
        assert round_down_total(-5000) == 0

    def test_invoice_code(self):
        assert generate_invoice_code(local(2025, 3, 4, 21, 5)) == '#04032105'


class TestGetBill:

    def test_plain_session(self, setup, make_schedule):
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12))
        bill = BillService().get_bill(schedule.id)

        assert len(bill.items) == 1
        item = bill.items[0]
        assert item['quantity'] == 2
        assert item['price'] == 100000
        assert item['total_price'] == 200000
        assert item['description'] == 'Phi dich vu thu am\n(10:00-12:00)'
        assert bill.total_amount == 200000
        assert bill.free_hour_promotion is None
        assert bill.active_promotion is None

    def test_same_inputs_same_bill(self, setup, make_schedule, make_menu):
        water = make_menu(price='20.000')
        schedule = make_schedule(setup, local(2025, 3, 4, 17), local(2025, 3, 4, 20),
                                 order={'drinks': {water.id: 2}, 'snacks': {}})
        service = BillService()
        first = service.get_bill(schedule.id, apply_free_hour_promotion=True)
        second = service.get_bill(schedule.id, apply_free_hour_promotion=True)
        assert first.items == second.items
        assert first.total_amount == second.total_amount

    @pytest.mark.parametrize('hour, minute, expected', [
        (10, 30, 50000),
        (11, 0, 100000),
        (11, 45, 175000),
    ])
    def test_fee_grows_with_duration(self, setup, make_schedule, hour, minute, expected):
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, hour, minute))
        assert BillService().get_bill(schedule.id).total_amount == expected

    def test_free_hour_with_fnb(self, setup, make_schedule, make_menu):
        water = make_menu(price='20.000')
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12),
                                 order={'drinks': {water.id: 2}, 'snacks': {}})
        bill = BillService().get_bill(schedule.id, apply_free_hour_promotion=True)

        assert bill.subtotal == 240000
        assert bill.free_hour_promotion == {'free_minutes_applied': 60, 'free_amount': 100000}
        assert bill.total_amount == 140000
        assert bill.items[1] == {'description': 'Mineral water', 'quantity': 2, 'price': 20000,
                                 'total_price': 40000}

    def test_free_hour_falls_back_to_schedule_flag(self, setup, make_schedule, make_menu):
        water = make_menu(price='20.000')
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12),
                                 order={'drinks': {water.id: 2}, 'snacks': {}},
                                 apply_free_hour_promo=True)
        service = BillService()
        assert service.get_bill(schedule.id).free_hour_promotion['free_minutes_applied'] == 60
        assert service.get_bill(schedule.id, apply_free_hour_promotion=False).free_hour_promotion is None

    def test_free_hour_needs_enough_fnb(self, setup, make_schedule, make_menu):
        water = make_menu(price='10.000')
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12),
                                 order={'drinks': {water.id: 3}, 'snacks': {}})
        bill = BillService().get_bill(schedule.id, apply_free_hour_promotion=True)
        assert bill.free_hour_promotion is None
        assert bill.total_amount == 230000

    def test_overnight_session(self, setup, make_schedule):
        schedule = make_schedule(setup, local(2025, 3, 4, 23), local(2025, 3, 5, 1))
        bill = BillService().get_bill(schedule.id)

        assert [item['description'] for item in bill.items] == [
            'Phi dich vu thu am\n(23:00-00:00)',
            'Phi dich vu thu am\n(00:00-01:00)',
        ]
        assert all(item['price'] == 150000 for item in bill.items)
        assert bill.total_amount == 300000

    def test_hhmm_end_rolls_over_midnight(self, setup, make_schedule):
        schedule = make_schedule(setup, local(2025, 3, 4, 23))
        bill = BillService().get_bill(schedule.id, actual_end_time='01:00')
        assert to_local(bill.end_time) == local(2025, 3, 5, 1)
        assert bill.actual_end_time == bill.end_time
        assert bill.total_amount == 300000

    def test_actual_times_override_schedule(self, setup, make_schedule):
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12))
        bill = BillService().get_bill(schedule.id, actual_start_time='10:30',
                                      actual_end_time='2025-03-04T11:30:45')
        assert bill.items[0]['quantity'] == 1
        assert bill.total_amount == 100000

    def test_open_session_defaults_to_one_hour(self, setup, make_schedule):
        schedule = make_schedule(setup, local(2025, 3, 4, 10))
        assert BillService().get_bill(schedule.id).total_amount == 100000

    def test_room_type_promotion(self, setup, make_schedule):
        promotion = Promotion(name='Medium rooms', discount_percentage=10, applies_to='room_type')
        promotion.targets = ['medium']
        db.session.add(promotion)
        db.session.commit()
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12))

        bill = BillService().get_bill(schedule.id, promotion_id=promotion.id)
        assert bill.discount_amount == 20000
        assert bill.total_amount == 180000
        assert bill.active_promotion['name'] == 'Medium rooms'
        assert bill.items[0]['discount_percentage'] == 10

    def test_promotion_for_other_rooms_is_not_applied(self, setup, make_schedule):
        promotion = Promotion(name='Large rooms', discount_percentage=10, applies_to='room_type')
        promotion.targets = ['large']
        db.session.add(promotion)
        db.session.commit()
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12))

        bill = BillService().get_bill(schedule.id, promotion_id=promotion.id)
        assert bill.active_promotion is None
        assert bill.total_amount == 200000

    def test_gift_and_promotion_are_additive(self, setup, make_schedule):
        promotion = Promotion(name='All', discount_percentage=10, applies_to='all')
        db.session.add(promotion)
        db.session.commit()
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12))
        schedule.gift = claimed('discount_percentage', discount_percentage=10)
        db.session.commit()

        bill = BillService().get_bill(schedule.id, promotion_id=promotion.id)
        assert bill.discount_amount == 20000
        assert bill.gift_discount_amount == 20000
        assert bill.total_amount == 160000

    def test_large_fixed_gift_clamps_to_zero(self, setup, make_schedule):
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12))
        schedule.gift = claimed('discount_amount', discount_amount=500000)
        db.session.commit()
        assert BillService().get_bill(schedule.id).total_amount == 0

    def test_unclaimed_gift_is_ignored(self, setup, make_schedule):
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12))
        schedule.gift = dict(claimed('discount_amount', discount_amount=50000), status='assigned')
        db.session.commit()
        bill = BillService().get_bill(schedule.id)
        assert bill.gift is None
        assert bill.total_amount == 200000

    def test_bundle_gift_adds_free_lines(self, setup, make_schedule):
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12))
        schedule.gift = claimed('snacks_drinks', items=[{'name': 'Beer', 'quantity': 2}])
        db.session.commit()
        bill = BillService().get_bill(schedule.id)
        assert bill.items[-1]['description'] == 'Gift - Beer'
        assert bill.total_amount == 200000

    def test_unpriced_menu_item_is_skipped(self, setup, make_schedule, make_menu):
        broken = make_menu(name='Mystery', price='n/a')
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12),
                                 order={'drinks': {broken.id: 1, 'gone': 2}, 'snacks': {}})
        bill = BillService().get_bill(schedule.id)
        assert len(bill.items) == 1

    def test_uses_order_history_when_no_live_order(self, setup, make_schedule, make_menu):
        water = make_menu(price='20.000')
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12))
        db.session.delete(schedule_order(schedule))
        db.session.add(FnbOrderHistory(schedule.id, {'drinks': {water.id: 1}, 'snacks': {}}, 'cashier'))
        db.session.commit()

        bill = BillService().get_bill(schedule.id)
        assert bill.total_amount == 220000
        assert bill.fnb_order['completed_by'] == 'cashier'

    def test_get_bill_writes_nothing(self, setup, make_schedule, make_menu):
        water = make_menu()
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12),
                                 order={'drinks': {water.id: 1}, 'snacks': {}})
        BillService().get_bill(schedule.id)
        assert Bill.query.count() == 0
        assert FnbOrderHistory.query.count() == 0


class TestGetBillErrors:

    def test_malformed_schedule_id(self, app):
        with pytest.raises(BadRequestError) as exc:
            BillService().get_bill('abc')
        assert exc.value.error_code == ErrorCode.INVALID_ID

    def test_unknown_schedule(self, app):
        with pytest.raises(NotFoundError):
            BillService().get_bill(42)

    def test_missing_price_document(self, app, make_room, make_schedule):
        schedule = make_schedule(make_room(), local(2025, 3, 8, 10), local(2025, 3, 8, 12))
        with pytest.raises(NotFoundError) as exc:
            BillService().get_bill(schedule.id)
        assert exc.value.error_code == ErrorCode.PRICE_NOT_CONFIGURED

    def test_missing_rate_for_room_type(self, app, make_room, make_price, make_schedule):
        make_price(time_slots=[{'start': '10:00', 'end': '23:59',
                                'prices': [{'room_type': 'small', 'price': 80000}]}])
        schedule = make_schedule(make_room(room_type='large'), local(2025, 3, 4, 10), local(2025, 3, 4, 12))
        with pytest.raises(NotFoundError) as exc:
            BillService().get_bill(schedule.id)
        assert exc.value.error_code == ErrorCode.PRICE_NOT_CONFIGURED

    def test_end_before_start(self, setup, make_schedule):
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12))
        with pytest.raises(BadRequestError) as exc:
            BillService().get_bill(schedule.id, actual_end_time='2025-03-04T09:00:00')
        assert exc.value.error_code == ErrorCode.INVALID_DATE_RANGE

    def test_unknown_payment_method(self, setup, make_schedule):
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12))
        with pytest.raises(BadRequestError):
            BillService().get_bill(schedule.id, payment_method='bitcoin')


def schedule_order(schedule):
    from karaoke.models import FnbOrder
    return FnbOrder.query.filter_by(schedule_id=schedule.id).one()


class TestPersistence:

    def test_finalize_is_an_upsert(self, setup, make_schedule, make_menu):
        water = make_menu()
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12),
                                 order={'drinks': {water.id: 1}, 'snacks': {}})
        service = BillService()
        first = service.finalize_bill(schedule.id, payment_method='cash')
        second = service.finalize_bill(schedule.id)

        assert Bill.query.count() == 1
        assert first.id == second.id
        # an empty payment method keeps the stored one
        assert second.payment_method == 'cash'
        assert second.unique_key.startswith(f'{schedule.id}-{setup.id}-')
        # the identical order is only snapshotted once
        assert FnbOrderHistory.query.count() == 1

    def test_save_bill_backfills_free_hour(self, setup, make_schedule, make_menu):
        water = make_menu(price='20.000')
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12),
                                 order={'drinks': {water.id: 2}, 'snacks': {}})
        service = BillService()
        payload = service.get_bill(schedule.id).to_dict()
        payload['free_hour_promotion'] = None

        stored = service.save_bill(payload)
        assert stored.id is not None
        assert stored.total_amount == 240000
        # the schedule did not request the free hour, so nothing is back-filled
        assert stored.free_hour_promotion is None

    def test_save_bill_backfill_uses_saved_window(self, setup, make_schedule, make_menu):
        water = make_menu(price='20.000')
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12),
                                 order={'drinks': {water.id: 2}, 'snacks': {}},
                                 apply_free_hour_promo=True)
        stored = BillService().save_bill({
            'schedule_id': schedule.id, 'room_id': setup.id, 'items': [], 'total_amount': 0,
            'start_time': '2025-03-04T18:00', 'end_time': '2025-03-04T20:00'
        })
        # the free hour falls in the 18:00 slot of the saved window
        assert stored.free_hour_promotion == {'free_minutes_applied': 60, 'free_amount': 150000}

    def test_save_bill_validates(self, setup, make_schedule):
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12))
        service = BillService()
        with pytest.raises(BadRequestError):
            service.save_bill({'schedule_id': schedule.id, 'room_id': setup.id, 'items': []})
        with pytest.raises(BadRequestError):
            service.save_bill({'schedule_id': schedule.id, 'room_id': setup.id, 'items': [],
                               'total_amount': -1})

    def test_print_stores_only_after_printing(self, setup, make_schedule, printer):
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12))
        bill = BillService().print_bill(schedule.id, payment_method='momo')

        assert Bill.query.count() == 1
        assert bill.actual_start_time == bill.start_time
        assert bill.invoice_code.startswith('#')
        assert len(printer.sent) == 1
        assert 'TONG CONG: 200.000 VND' in printer.sent[0]
        assert 'Phuong thuc thanh toan: MoMo' in printer.sent[0]

    def test_failed_print_stores_nothing(self, app, setup, make_schedule):
        from conftest import FakeTransport
        from karaoke.exceptions import InternalError
        from karaoke.services.printing import PrintQueue

        app.extensions['print_queue'] = PrintQueue(FakeTransport(fail_with=InternalError('offline')), 0)
        schedule = make_schedule(setup, local(2025, 3, 4, 10), local(2025, 3, 4, 12))
        with pytest.raises(InternalError):
            BillService().print_bill(schedule.id)
        assert Bill.query.count() == 0


class TestLookups:

    def test_room_bills_and_pagination(self, setup, make_schedule):
        service = BillService()
        for day in (4, 5, 6):
            schedule = make_schedule(setup, local(2025, 3, day, 10), local(2025, 3, day, 12))
            service.finalize_bill(schedule.id, payment_method='cash')

        by_room = service.get_bills_by_room_id(setup.id)
        assert [to_local(bill.end_time).day for bill in by_room] == [6, 5, 4]

        page = service.get_all_bills(page=2, limit=2)
        assert page['pagination'] == {'page': 2, 'limit': 2, 'total': 3, 'total_pages': 2}
        assert len(page['bills']) == 1

        filtered = service.get_all_bills(start_date='2025-03-05', end_date='2025-03-05')
        assert filtered['pagination']['total'] == 1
