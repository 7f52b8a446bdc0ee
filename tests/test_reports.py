from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from common.exceptions import ValidationError
from modules.order.models import Order, PaymentMethod
from modules.report.models import Shift, ShiftReport
from modules.order.service import order_service
from modules.report.service import current_shift, report_service, window_for
from modules.settlement.service import settlement_service


def _settled_order(db, total, method, settled_at, finished=True):
    order = Order(
        staff_name="Ana", destination_kind="mesa", number="1", destination="Mesa 1",
        items=[{"name": "Plato", "price": str(total), "quantity": 1, "options": [], "note": None}],
        total=Decimal(total), finished=finished, payment_method=method if finished else None,
        settled_at=settled_at if finished else None,
    )
    db.add(order)
    db.commit()
    return order


@pytest.mark.parametrize("now, shift, business_date, grace", [
    (datetime(2026, 10, 19, 10, 0), Shift.AM, date(2026, 10, 19), False),
    (datetime(2026, 10, 19, 13, 59), Shift.AM, date(2026, 10, 19), True),
    (datetime(2026, 10, 19, 14, 0), Shift.AM, date(2026, 10, 19), False),
    (datetime(2026, 10, 19, 14, 1), Shift.PM, date(2026, 10, 19), False),
    (datetime(2026, 10, 19, 21, 59), Shift.PM, date(2026, 10, 19), True),
    (datetime(2026, 10, 19, 22, 0), Shift.PM, date(2026, 10, 19), False),
    (datetime(2026, 10, 19, 22, 1), Shift.AM, date(2026, 10, 20), False),
    (datetime(2026, 10, 19, 0, 30), Shift.AM, date(2026, 10, 19), False),
])
def test_current_shift(now, shift, business_date, grace):
    window = current_shift(now)
    assert window.shift == shift
    assert window.business_date == business_date
    assert window.is_auto_publish_minute is grace
    assert window.contains(now)


def test_aware_datetimes_are_converted_to_business_time():
    # 20:30 UTC is 14:30 in Guatemala (UTC-6)
    window = current_shift(datetime(2026, 10, 19, 20, 30, tzinfo=timezone.utc))
    assert window.shift == Shift.PM


def test_window_bounds():
    am = window_for(date(2026, 10, 19), "AM")
    assert am.start == datetime(2026, 10, 18, 22, 1)
    assert am.end_inclusive == datetime(2026, 10, 19, 14, 0)
    pm = window_for(date(2026, 10, 19), Shift.PM)
    assert pm.start == am.end
    with pytest.raises(ValidationError):
        window_for(date(2026, 10, 19), "NOCHE")


def test_aggregate_groups_by_method_within_window(db):
    _settled_order(db, "80.00", "efectivo", datetime(2026, 10, 19, 9, 0))
    _settled_order(db, "20.00", "efectivo", datetime(2026, 10, 18, 23, 0))
    _settled_order(db, "45.50", "tarjeta", datetime(2026, 10, 19, 14, 0))
    _settled_order(db, "100.00", "recargado", datetime(2026, 10, 19, 12, 0))
    _settled_order(db, "999.00", "efectivo", datetime(2026, 10, 19, 14, 1))  # PM
    _settled_order(db, "50.00", None, None, finished=False)

    totals = report_service.aggregate(db, window_for(date(2026, 10, 19), Shift.AM))

    assert totals.order_count == 4
    assert totals.by_method[PaymentMethod.CASH] == Decimal("100.00")
    assert totals.by_method[PaymentMethod.CARD] == Decimal("45.50")
    assert totals.by_method[PaymentMethod.ROOM_CHARGE] == Decimal("100.00")
    assert totals.grand_total == Decimal("245.50")


def test_publish_twice_keeps_latest_totals(db):
    window = window_for(date(2026, 10, 19), Shift.AM)
    _settled_order(db, "80.00", "efectivo", datetime(2026, 10, 19, 9, 0))
    first = report_service.publish(db, window, "Ana")
    assert first.total_cash == Decimal("80.00")

    _settled_order(db, "20.00", "transferencia", datetime(2026, 10, 19, 10, 0))
    report_service.publish(db, window, "Rosa")

    db.expire_all()
    report = db.query(ShiftReport).one()
    assert report.total_cash == Decimal("80.00")
    assert report.total_transfer == Decimal("20.00")
    assert report.order_count == 2
    assert report.submitted_by == "Rosa"
    assert len(report.orders) == 2
    assert "Q100.00" in report.report_html


def test_auto_publish_only_at_grace_minute_with_orders(db):
    assert report_service.auto_publish(db, datetime(2026, 10, 19, 13, 59)) is None

    _settled_order(db, "80.00", "efectivo", datetime(2026, 10, 19, 9, 0))
    assert report_service.auto_publish(db, datetime(2026, 10, 19, 13, 58)) is None
    assert db.query(ShiftReport).count() == 0

    report = report_service.auto_publish(db, datetime(2026, 10, 19, 13, 59))
    assert report is not None
    assert report.submitted_by == "Sistema"
    assert (report.business_date, report.shift) == (date(2026, 10, 19), "AM")


def test_settlement_timestamp_lands_in_current_shift(db, burger):
    order_service.submit(db, "mesa", 5, [burger], "Ana")
    order = settlement_service.settle(db, "mesa", 5, "efectivo", "Ana")
    window = current_shift(order.settled_at)
    totals = report_service.aggregate(db, window)
    assert totals.order_count == 1
    assert totals.grand_total == Decimal("70.00")
