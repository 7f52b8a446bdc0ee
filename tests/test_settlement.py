from decimal import Decimal

import pytest

from common.exceptions import NotFoundError, ValidationError
from modules.occupancy.models import OccupiedTable
from modules.order.models import Order
from modules.order.service import order_service
from modules.settlement.models import EmployeeRecharge, EventRecharge, Invoice, RoomRecharge
from modules.settlement.service import settlement_service


@pytest.fixture()
def open_table(db, burger, soda):
    """Table 5 with 2x Burger + 1x Soda (total 80)."""
    order_service.submit(db, "mesa", 5, [burger], "Ana")
    order_service.submit(db, "mesa", 5, [soda], "Ana", confirm_merge=True)
    return db.query(Order).one()


def test_settle_cash_closes_order_and_frees_table(db, open_table):
    order = settlement_service.settle(db, "mesa", 5, "efectivo", "Ana")

    db.expire_all()
    assert db.query(OccupiedTable).count() == 0
    assert order.finished is True
    assert order.payment_method == "efectivo"
    assert order.total == Decimal("80.00")
    assert order.settled_at is not None
    assert order.settled_date == order.settled_at.date()
    assert db.query(RoomRecharge).count() == 0


def test_settle_only_removes_that_destination(db, open_table, soda):
    order_service.submit(db, "mesa", 6, [soda], "Ana")
    settlement_service.settle(db, "mesa", 5, "tarjeta", "Ana")

    db.expire_all()
    remaining = db.query(OccupiedTable).all()
    assert [(o.kind, o.number) for o in remaining] == [("mesa", "6")]


def test_settle_room_charge_creates_room_recharge(db, open_table):
    order = settlement_service.settle(db, "mesa", 5, "recargado", "Ana", room="101")

    assert order.number == "101"
    recharge = db.query(RoomRecharge).one()
    assert recharge.room == "101"
    assert recharge.order_id == order.id
    assert recharge.total == Decimal("80.00")
    assert recharge.staff_name == "Ana"
    assert recharge.items == [
        {"name": "Burger", "quantity": 2, "price": "35.00"},
        {"name": "Soda", "quantity": 1, "price": "10.00"},
    ]


def test_settle_employee_and_event_records(db, burger):
    order_service.submit(db, "mesa", 1, [burger], "Ana")
    order_service.submit(db, "mesa", 2, [burger], "Ana")

    settlement_service.settle(db, "mesa", 1, "empleados", "Ana", employee="Carlos")
    settlement_service.settle(db, "mesa", 2, "eventos", "Ana", event="Boda Pérez")

    assert db.query(EmployeeRecharge).one().employee == "Carlos"
    assert db.query(EventRecharge).one().event == "Boda Pérez"


def test_invoice_request_defaults_to_final_consumer(db, open_table):
    settlement_service.settle(db, "mesa", 5, "efectivo", "Ana", invoice=True, nit="  ")

    invoice = db.query(Invoice).one()
    assert invoice.nit == "CF"
    assert invoice.description == "consumo"
    assert invoice.invoiced is False
    assert invoice.total == Decimal("80.00")


@pytest.mark.parametrize("kwargs", [
    {"payment_method": "bitcoin"},
    {"payment_method": "recargado"},
    {"payment_method": "recargado", "room": "cero"},
    {"payment_method": "empleados", "employee": " "},
    {"payment_method": "eventos"},
])
def test_invalid_settlement_is_rejected_before_any_write(db, open_table, kwargs):
    with pytest.raises(ValidationError):
        settlement_service.settle(db, "mesa", 5, staff_name="Ana", **kwargs)

    db.expire_all()
    assert db.query(OccupiedTable).count() == 1
    assert db.query(Order).one().finished is False


def test_settle_unknown_destination(db):
    with pytest.raises(NotFoundError):
        settlement_service.settle(db, "mesa", 9, "efectivo", "Ana")


def test_deferred_records_carry_the_settling_staff(db, open_table):
    settlement_service.settle(db, "mesa", 5, "recargado", "Rosa", room="101", invoice=True)

    assert open_table.staff_name == "Ana"
    assert db.query(RoomRecharge).one().staff_name == "Rosa"
    assert db.query(Invoice).one().staff_name == "Rosa"
