from decimal import Decimal

import pytest
from sqlalchemy.orm.exc import StaleDataError

from common.exceptions import ConcurrencyError, ValidationError
from config.database import SessionLocal
from modules.occupancy.models import OccupiedTable
from modules.order.composer import OrderComposer
from modules.order.models import Order
from modules.order.service import DispatchOutcome, OrderService, order_service
from modules.settlement.service import settlement_service


def _counts(db):
    db.expire_all()
    return db.query(Order).count(), db.query(OccupiedTable).count()


def test_first_submit_creates_order_and_occupancy(db, burger):
    result = order_service.submit(db, "mesa", 5, [burger], "Ana")

    assert result.outcome == DispatchOutcome.CREATED
    assert result.destination == "Mesa 5"
    assert result.order.total == Decimal("70.00")
    occupancy = db.query(OccupiedTable).one()
    assert (occupancy.kind, occupancy.number, occupancy.order_id) == ("mesa", "5", result.order.id)
    assert occupancy.total == Decimal("70.00")


def test_second_submit_without_confirmation_writes_nothing(db, burger, soda):
    order_service.submit(db, "mesa", 5, [burger], "Ana")
    result = order_service.submit(db, "mesa", 5, [soda], "Ana")

    assert result.outcome == DispatchOutcome.CONFIRMATION_REQUIRED
    assert not db.in_transaction()
    assert result.order is not None
    assert result.order.total == Decimal("70.00")
    db.expire_all()
    assert db.query(Order).one().total == Decimal("70.00")


def test_confirmed_merge_appends_items_and_adds_totals(db, burger, soda):
    order_service.submit(db, "mesa", 5, [burger], "Ana")
    result = order_service.submit(db, "mesa", 5, [soda], "Ana", confirm_merge=True)

    assert result.outcome == DispatchOutcome.MERGED
    order = result.order
    assert [i["name"] for i in order.items] == ["Burger", "Soda"]
    assert order.total == Decimal("80.00")
    assert order.total == sum(item.subtotal for item in order.line_items)

    assert _counts(db) == (1, 1)
    assert db.query(OccupiedTable).one().total == Decimal("80.00")


def test_merge_does_not_dedupe_across_submissions(db, soda):
    order_service.submit(db, "habitacion", 12, [soda], "Ana")
    result = order_service.submit(db, "habitacion", 12, [soda], "Ana", confirm_merge=True)
    assert len(result.order.items) == 2
    assert result.order.destination == "Habitación 12"


def test_merge_sends_order_back_to_kitchen(db, burger, soda):
    created = order_service.submit(db, "mesa", 5, [burger], "Ana").order
    order_service.mark_kitchen_done(db, created.id)
    merged = order_service.submit(db, "mesa", 5, [soda], "Ana", confirm_merge=True).order
    assert merged.kitchen_done is False


def test_kitchen_done_leaves_settled_orders_alone(db, burger):
    created = order_service.submit(db, "mesa", 5, [burger], "Ana").order
    settlement_service.settle(db, "mesa", 5, "efectivo", "Ana")

    order = order_service.mark_kitchen_done(db, created.id)

    db.expire_all()
    assert order.finished is True
    assert order.kitchen_done is False


@pytest.mark.parametrize("kwargs", [
    {"items": []},
    {"number": 0},
    {"number": "abc"},
    {"kind": "barra"},
    {"total": "99.00"},
])
def test_validation_happens_before_any_write(db, burger, kwargs):
    params = {"kind": "mesa", "number": 5, "items": [burger], "staff_name": "Ana"}
    params.update(kwargs)
    with pytest.raises(ValidationError):
        order_service.submit(db, **params)
    assert _counts(db) == (0, 0)


def test_matching_client_total_is_accepted(db, burger):
    result = order_service.submit(db, "mesa", 5, [burger], "Ana", total="70")
    assert result.outcome == DispatchOutcome.CREATED


def test_submit_draft_clears_only_on_success(db, burger, soda):
    composer = OrderComposer([burger])
    order_service.submit_draft(db, composer, "mesa", 5, "Ana")
    assert composer.is_empty

    composer.add_item(soda)
    result = order_service.submit_draft(db, composer, "mesa", 5, "Ana")
    assert result.outcome == DispatchOutcome.CONFIRMATION_REQUIRED
    assert len(composer) == 1

    with pytest.raises(ValidationError):
        order_service.submit_draft(db, composer, "mesa", 5, "Ana", total="1.00", confirm_merge=True)
    assert len(composer) == 1

    order_service.submit_draft(db, composer, "mesa", 5, "Ana", confirm_merge=True)
    assert composer.is_empty


def test_concurrent_merge_is_reapplied(db, monkeypatch, burger, soda):
    order_service.submit(db, "mesa", 5, [burger], "Ana")

    original = OrderService._merge
    calls = {"n": 0}

    def racing_merge(self, session, occupancy, items, total):
        calls["n"] += 1
        if calls["n"] == 1:
            # Another waiter merges into the same table in between
            other = SessionLocal()
            try:
                order_service.submit(other, "mesa", 5, [soda], "Beto", confirm_merge=True)
            finally:
                other.close()
        return original(self, session, occupancy, items, total)

    monkeypatch.setattr(OrderService, "_merge", racing_merge)
    result = order_service.submit(db, "mesa", 5, [soda], "Ana", confirm_merge=True)

    assert result.outcome == DispatchOutcome.MERGED
    assert calls["n"] == 3
    db.expire_all()
    order = db.query(Order).one()
    assert len(order.items) == 3
    assert order.total == Decimal("90.00")
    assert db.query(OccupiedTable).one().total == Decimal("90.00")


def test_merge_gives_up_after_retry_limit(db, monkeypatch, burger, soda):
    order_service.submit(db, "mesa", 5, [burger], "Ana")

    def always_stale(self, session, occupancy, items, total):
        raise StaleDataError("simulated conflict")

    monkeypatch.setattr(OrderService, "_merge", always_stale)
    with pytest.raises(ConcurrencyError):
        order_service.submit(db, "mesa", 5, [soda], "Ana", confirm_merge=True)

    db.expire_all()
    assert db.query(Order).one().total == Decimal("70.00")


def test_first_insert_race_requires_confirmation(db, monkeypatch, burger, soda):
    original = OrderService._create
    calls = {"n": 0}

    def racing_create(self, session, *args):
        calls["n"] += 1
        if calls["n"] == 1:
            other = SessionLocal()
            try:
                order_service.submit(other, "mesa", 5, [burger], "Beto")
            finally:
                other.close()
        return original(self, session, *args)

    monkeypatch.setattr(OrderService, "_create", racing_create)
    result = order_service.submit(db, "mesa", 5, [soda], "Ana")

    assert result.outcome == DispatchOutcome.CONFIRMATION_REQUIRED
    assert _counts(db) == (1, 1)
    assert db.query(Order).one().staff_name == "Beto"


def test_first_insert_race_with_confirmation_merges(db, monkeypatch, burger, soda):
    original = OrderService._create
    calls = {"n": 0}

    def racing_create(self, session, *args):
        calls["n"] += 1
        if calls["n"] == 1:
            other = SessionLocal()
            try:
                order_service.submit(other, "mesa", 5, [burger], "Beto")
            finally:
                other.close()
        return original(self, session, *args)

    monkeypatch.setattr(OrderService, "_create", racing_create)
    result = order_service.submit(db, "mesa", 5, [soda], "Ana", confirm_merge=True)

    assert result.outcome == DispatchOutcome.MERGED
    assert result.order.total == Decimal("80.00")
    assert _counts(db) == (1, 1)
