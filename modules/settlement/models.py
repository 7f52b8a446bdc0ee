"""
Settlement Module - Deferred Billing Models
============================================
Records created when an order is settled with a deferred method
(room charge, employee, event) or when an invoice is requested.
Reception collects them later.

Items are a simplified snapshot: name, quantity and price only.
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, Date, DateTime, JSON, ForeignKey, text,
)
from sqlalchemy.orm import declared_attr

from common.helpers import now_utc
from config.database import Base


class DeferredBillingMixin:
    id = Column(Integer, primary_key=True, index=True)
    items = Column(JSON, nullable=False, default=list)
    total = Column(Numeric(10, 2), nullable=False)
    staff_name = Column(String, nullable=False)
    created_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    @declared_attr
    def order_id(cls):
        return Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)

    def base_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "items": list(self.items or []),
            "total": str(self.total),
            "staff_name": self.staff_name,
            "created_date": self.created_date.isoformat() if self.created_date else None,
        }


class RoomRecharge(DeferredBillingMixin, Base):
    __tablename__ = "room_recharges"

    room = Column(String, nullable=False, index=True)

    def to_dict(self) -> dict:
        return {**self.base_dict(), "room": self.room}


class EmployeeRecharge(DeferredBillingMixin, Base):
    __tablename__ = "employee_recharges"

    employee = Column(String, nullable=False)

    def to_dict(self) -> dict:
        return {**self.base_dict(), "employee": self.employee}


class EventRecharge(DeferredBillingMixin, Base):
    __tablename__ = "event_recharges"

    event = Column(String, nullable=False)

    def to_dict(self) -> dict:
        return {**self.base_dict(), "event": self.event}


class Invoice(DeferredBillingMixin, Base):
    __tablename__ = "invoices"

    nit = Column(String, nullable=False, default="CF")
    description = Column(String, nullable=False, default="consumo")
    invoiced = Column(Boolean, default=False, server_default=text("false"), nullable=False, index=True)
    invoiced_at = Column(DateTime(timezone=True), nullable=True)

    def to_dict(self) -> dict:
        return {
            **self.base_dict(),
            "nit": self.nit,
            "description": self.description,
            "invoiced": self.invoiced,
        }
