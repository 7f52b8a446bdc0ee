"""
Order Module - Models
======================
Table/room orders. Items are stored as a JSON snapshot of canonical line
items (see items.py), copied at submission time and never referencing the
catalog afterwards.
"""

import enum
from typing import List, Optional

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, DateTime, Date, Time, JSON, text,
)

from common.exceptions import ValidationError
from common.helpers import now_utc, safe_int
from config.database import Base
from modules.order.items import LineItem


class DestinationKind(str, enum.Enum):
    TABLE = "mesa"
    ROOM = "habitacion"


class PaymentMethod(str, enum.Enum):
    CASH = "efectivo"
    CARD = "tarjeta"
    TRANSFER = "transferencia"
    ROOM_CHARGE = "recargado"
    EMPLOYEE = "empleados"
    EVENT = "eventos"


# Deferred methods are billed later at reception and need a sub-identifier
DEFERRED_METHODS = frozenset({PaymentMethod.ROOM_CHARGE, PaymentMethod.EMPLOYEE, PaymentMethod.EVENT})
IMMEDIATE_METHODS = frozenset({PaymentMethod.CASH, PaymentMethod.CARD, PaymentMethod.TRANSFER})


def parse_destination_kind(value) -> DestinationKind:
    try:
        return DestinationKind(getattr(value, "value", value))
    except ValueError:
        raise ValidationError(f"Tipo de destino inválido: {value}")


def parse_destination_number(value) -> str:
    """Destination numbers are positive integers, stored as their canonical string."""
    number = safe_int(value)
    if number is None or number < 1:
        raise ValidationError(f"Número de destino inválido: {value}")
    return str(number)


def parse_payment_method(value) -> PaymentMethod:
    try:
        return PaymentMethod(getattr(value, "value", value))
    except ValueError:
        raise ValidationError(f"Forma de pago inválida: {value}")


def destination_key(kind, number) -> str:
    """Read-model key, e.g. 'mesa:5'."""
    return f"{getattr(kind, 'value', kind)}:{number}"


def destination_label(kind, number) -> str:
    kind = getattr(kind, "value", kind)
    prefix = "Habitación" if kind == DestinationKind.ROOM.value else "Mesa"
    return f"{prefix} {number}"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    staff_name = Column(String, nullable=False)
    destination_kind = Column(String, nullable=False)
    number = Column(String, nullable=False, index=True)
    destination = Column(String, nullable=False)
    items = Column(JSON, nullable=False, default=list)
    total = Column(Numeric(10, 2), nullable=False)

    finished = Column(Boolean, default=False, server_default=text("false"), nullable=False, index=True)
    kitchen_done = Column(Boolean, default=False, server_default=text("false"), nullable=False)

    # Settlement (business-local wall time)
    payment_method = Column(String, nullable=True)
    settled_at = Column(DateTime, nullable=True, index=True)
    settled_date = Column(Date, nullable=True)
    settled_time = Column(Time, nullable=True)

    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    @property
    def line_items(self) -> List[LineItem]:
        return [LineItem.from_dict(raw) for raw in (self.items or [])]

    def simplified_items(self) -> List[dict]:
        return [item.simplified() for item in self.line_items]

    @property
    def payment_label(self) -> Optional[str]:
        labels = {
            PaymentMethod.CASH.value: "Efectivo",
            PaymentMethod.CARD.value: "Tarjeta",
            PaymentMethod.TRANSFER.value: "Transferencia",
            PaymentMethod.ROOM_CHARGE.value: "Recargado a habitación",
            PaymentMethod.EMPLOYEE.value: "Empleados",
            PaymentMethod.EVENT.value: "Eventos",
        }
        return labels.get(self.payment_method, self.payment_method)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "staff_name": self.staff_name,
            "destination_kind": self.destination_kind,
            "number": self.number,
            "destination": self.destination,
            "items": list(self.items or []),
            "total": str(self.total),
            "finished": self.finished,
            "kitchen_done": self.kitchen_done,
            "payment_method": self.payment_method,
            "settled_at": self.settled_at.isoformat() if self.settled_at else None,
            "version": self.version,
        }

    def __repr__(self):
        return f"<Order #{self.id} {self.destination} total={self.total}>"
