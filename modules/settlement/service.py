"""
Settlement Module - Service Layer
===================================
Close an open order: release the destination, record the payment method
and business-local timestamp, and create the deferred-billing record
(room / employee / event) and invoice request when needed.

Everything happens in one transaction. The order total is never changed.
"""

import logging
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from common.exceptions import ConcurrencyError, NotFoundError, PersistenceError, ValidationError
from common.helpers import now_business
from config.settings import DEFAULT_NIT
from modules.occupancy.models import OccupiedTable
from modules.order.models import (
    Order, PaymentMethod, destination_label,
    parse_destination_kind, parse_destination_number, parse_payment_method,
)
from modules.settlement.models import EmployeeRecharge, EventRecharge, Invoice, RoomRecharge

logger = logging.getLogger("comanda.settlement")

DEFAULT_INVOICE_DESCRIPTION = "consumo"


def _required_text(value: Optional[str], message: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError(message)
    return value


class SettlementService:

    def settle(
        self,
        db: Session,
        kind,
        number,
        payment_method,
        staff_name: str,
        room=None,
        employee: Optional[str] = None,
        event: Optional[str] = None,
        invoice: bool = False,
        nit: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Order:
        """
        Settle the open order at a destination.
        Deferred methods need their sub-identifier (room, employee or event);
        everything is validated before the first write.
        """
        # 1. Validate
        kind = parse_destination_kind(kind)
        number = parse_destination_number(number)
        method = parse_payment_method(payment_method)
        if method == PaymentMethod.ROOM_CHARGE:
            if room is None or str(room).strip() == "":
                raise ValidationError("Indique la habitación a la que se carga el consumo.")
            room = parse_destination_number(room)
        elif method == PaymentMethod.EMPLOYEE:
            employee = _required_text(employee, "Indique el nombre del empleado.")
        elif method == PaymentMethod.EVENT:
            event = _required_text(event, "Indique el nombre del evento.")

        label = destination_label(kind, number)

        # 2. Resolve
        occupancy = (
            db.query(OccupiedTable)
            .filter(OccupiedTable.kind == kind.value, OccupiedTable.number == number)
            .first()
        )
        if not occupancy:
            raise NotFoundError(f"{label} no tiene un pedido abierto.")

        order = db.query(Order).filter(Order.id == occupancy.order_id).first()
        if not order:
            raise NotFoundError(f"Pedido #{occupancy.order_id} no encontrado.")

        # 3. Write
        order_id = order.id
        now = now_business()
        try:
            db.delete(occupancy)

            order.finished = True
            order.payment_method = method.value
            order.settled_at = now
            order.settled_date = now.date()
            order.settled_time = now.time().replace(microsecond=0)
            if method == PaymentMethod.ROOM_CHARGE:
                order.number = room

            record_fields = dict(
                order_id=order.id,
                items=order.simplified_items(),
                total=order.total,
                staff_name=staff_name,
                created_date=now.date(),
            )
            if method == PaymentMethod.ROOM_CHARGE:
                db.add(RoomRecharge(room=room, **record_fields))
            elif method == PaymentMethod.EMPLOYEE:
                db.add(EmployeeRecharge(employee=employee, **record_fields))
            elif method == PaymentMethod.EVENT:
                db.add(EventRecharge(event=event, **record_fields))

            if invoice:
                db.add(Invoice(
                    nit=(nit or "").strip() or DEFAULT_NIT,
                    description=(description or "").strip() or DEFAULT_INVOICE_DESCRIPTION,
                    **record_fields,
                ))

            db.commit()

        except StaleDataError:
            db.rollback()
            logger.warning(f"{label} changed while settling order #{order_id}")
            raise ConcurrencyError("El pedido cambió mientras se cobraba. Intente de nuevo.")
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Settlement of {label} failed: {e}")
            raise PersistenceError("No se pudo cerrar la cuenta. Intente de nuevo.")

        logger.info(
            f"Order #{order.id} at {label} settled by {staff_name} "
            f"({method.value}, total {order.total}{', invoice requested' if invoice else ''})"
        )
        return order


settlement_service = SettlementService()
