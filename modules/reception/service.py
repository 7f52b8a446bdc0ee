"""
Reception Module - Service Layer
==================================
Collection desk for deferred billing:
  * room charges are collected with an immediate method; the order is
    re-stamped (method, room number, settled time, waiter/receptionist)
    and the recharge removed
  * employee and event recharges are removed once collected
  * invoice requests are flagged as invoiced
"""

import logging
from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from common.exceptions import ConcurrencyError, NotFoundError, PersistenceError, ValidationError
from common.helpers import now_business, now_utc
from modules.order.models import IMMEDIATE_METHODS, Order, parse_payment_method
from modules.report.service import report_service
from modules.settlement.models import EmployeeRecharge, EventRecharge, Invoice, RoomRecharge

logger = logging.getLogger("comanda.reception")


class ReceptionService:

    # ==========================================
    # Pending lists
    # ==========================================

    def list_pending(self, db: Session) -> Dict[str, List]:
        return {
            "room_recharges": db.query(RoomRecharge).order_by(RoomRecharge.id.asc()).all(),
            "employee_recharges": db.query(EmployeeRecharge).order_by(EmployeeRecharge.id.asc()).all(),
            "event_recharges": db.query(EventRecharge).order_by(EventRecharge.id.asc()).all(),
            "invoices": (
                db.query(Invoice)
                .filter(Invoice.invoiced == False)  # noqa: E712
                .order_by(Invoice.id.asc())
                .all()
            ),
        }

    # ==========================================
    # Collection
    # ==========================================

    def collect_room_recharge(self, db: Session, recharge_id: int, payment_method, staff_name: str) -> Order:
        method = parse_payment_method(payment_method)
        if method not in IMMEDIATE_METHODS:
            raise ValidationError("Un cargo a habitación solo se cobra en efectivo, tarjeta o transferencia.")

        recharge = self._get(db, RoomRecharge, recharge_id)
        order = db.query(Order).filter(Order.id == recharge.order_id).first()
        if not order:
            raise NotFoundError(f"Pedido #{recharge.order_id} no encontrado.")

        now = now_business()
        order.payment_method = method.value
        order.number = recharge.room
        order.settled_at = now
        order.settled_date = now.date()
        order.settled_time = now.time().replace(microsecond=0)
        order.staff_name = f"{recharge.staff_name}/{staff_name}"
        db.delete(recharge)

        self._commit(db, f"room recharge #{recharge_id}")
        logger.info(f"Room recharge #{recharge_id} (order #{order.id}) collected by {staff_name} via {method.value}")
        return order

    def collect_employee_recharge(self, db: Session, recharge_id: int, staff_name: str) -> None:
        self._collect_and_remove(db, EmployeeRecharge, recharge_id, staff_name)

    def collect_event_recharge(self, db: Session, recharge_id: int, staff_name: str) -> None:
        self._collect_and_remove(db, EventRecharge, recharge_id, staff_name)

    def mark_invoiced(self, db: Session, invoice_id: int) -> Invoice:
        invoice = self._get(db, Invoice, invoice_id)
        if invoice.invoiced:
            return invoice
        invoice.invoiced = True
        invoice.invoiced_at = now_utc()
        self._commit(db, f"invoice #{invoice_id}")
        logger.info(f"Invoice #{invoice_id} (NIT {invoice.nit}) marked as invoiced")
        return invoice

    # ==========================================
    # Reports
    # ==========================================

    def list_reports(self, db: Session, report_id: Optional[int] = None):
        if report_id is not None:
            return [report_service.get_report(db, report_id)]
        return report_service.list_reports(db)

    # ==========================================
    # Helpers
    # ==========================================

    def _collect_and_remove(self, db: Session, model, record_id: int, staff_name: str) -> None:
        record = self._get(db, model, record_id)
        db.delete(record)
        self._commit(db, f"{model.__tablename__} #{record_id}")
        logger.info(f"{model.__tablename__} #{record_id} collected by {staff_name}")

    def _get(self, db: Session, model, record_id: int):
        record = db.query(model).filter(model.id == record_id).first()
        if not record:
            raise NotFoundError(f"Registro #{record_id} no encontrado.")
        return record

    def _commit(self, db: Session, what: str) -> None:
        try:
            db.commit()
        except StaleDataError:
            db.rollback()
            logger.warning(f"Concurrent change while updating {what}")
            raise ConcurrencyError()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Updating {what} failed: {e}")
            raise PersistenceError("No se pudo guardar el cobro.")


reception_service = ReceptionService()
