"""
Report Module - Service Layer
===============================
Shift windows, per-method aggregation of finished orders and the
(business_date, shift) report snapshot upsert.

Shifts (business-local time):
    AM: 22:01 of the previous day -> 14:00
    PM: 14:01 -> 22:00
Windows are half-open at minute resolution ([22:01, 14:01) and
[14:01, 22:01)) so every settled order falls in exactly one shift.
The business date of a shift is the date on which it ends.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from common.exceptions import NotFoundError, PersistenceError, ValidationError
from common.helpers import money, now_business, now_utc, to_business
from common.templating import render_template
from config.settings import (
    REPORT_AUTO_PUBLISH_MINUTES, REPORT_SYSTEM_STAFF_NAME, SHIFT_AM_END, SHIFT_PM_END,
)
from modules.order.models import Order, PaymentMethod
from modules.report.models import Shift, ShiftReport

logger = logging.getLogger("comanda.report")

# PaymentMethod -> ShiftReport column
TOTAL_COLUMNS = {
    PaymentMethod.CASH: "total_cash",
    PaymentMethod.CARD: "total_card",
    PaymentMethod.TRANSFER: "total_transfer",
    PaymentMethod.ROOM_CHARGE: "total_room_charge",
    PaymentMethod.EVENT: "total_events",
    PaymentMethod.EMPLOYEE: "total_employees",
}

_ONE_MINUTE = timedelta(minutes=1)


@dataclass(frozen=True)
class ShiftWindow:
    shift: Shift
    business_date: date
    start: datetime  # inclusive
    end: datetime    # exclusive
    is_auto_publish_minute: bool = False

    @property
    def label(self) -> str:
        return f"{self.business_date.isoformat()} {self.shift.value}"

    @property
    def end_inclusive(self) -> datetime:
        """Last minute of the shift as shown to people (14:00 / 22:00)."""
        return self.end - _ONE_MINUTE

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment < self.end

    def to_dict(self) -> dict:
        return {
            "shift": self.shift.value,
            "business_date": self.business_date.isoformat(),
            "start": self.start.isoformat(),
            "end": self.end_inclusive.isoformat(),
        }


@dataclass
class ShiftTotals:
    by_method: Dict[PaymentMethod, Decimal] = field(
        default_factory=lambda: {method: Decimal("0.00") for method in TOTAL_COLUMNS}
    )
    order_count: int = 0
    orders: List[dict] = field(default_factory=list)

    @property
    def grand_total(self) -> Decimal:
        return money(sum(self.by_method.values(), Decimal("0")))

    def to_dict(self) -> dict:
        return {
            "totals": {method.value: str(amount) for method, amount in self.by_method.items()},
            "grand_total": str(self.grand_total),
            "order_count": self.order_count,
            "orders": self.orders,
        }


def _boundary(day: date, hour_minute) -> datetime:
    """First minute after a shift end on the given day."""
    return datetime.combine(day, time(*hour_minute)) + _ONE_MINUTE


def window_for(business_date: date, shift) -> ShiftWindow:
    try:
        shift = Shift(getattr(shift, "value", shift))
    except ValueError:
        raise ValidationError(f"Turno inválido: {shift}")

    am_end = _boundary(business_date, SHIFT_AM_END)
    if shift == Shift.AM:
        start = _boundary(business_date - timedelta(days=1), SHIFT_PM_END)
        return ShiftWindow(Shift.AM, business_date, start, am_end)
    return ShiftWindow(Shift.PM, business_date, am_end, _boundary(business_date, SHIFT_PM_END))


def current_shift(now: Optional[datetime] = None) -> ShiftWindow:
    """Shift window containing `now` (business-local; aware datetimes are converted)."""
    now = to_business(now) if now is not None else now_business()
    today = now.date()

    if now >= _boundary(today, SHIFT_PM_END):
        window = window_for(today + timedelta(days=1), Shift.AM)
    elif now >= _boundary(today, SHIFT_AM_END):
        window = window_for(today, Shift.PM)
    else:
        window = window_for(today, Shift.AM)

    is_grace = (now.hour, now.minute) in REPORT_AUTO_PUBLISH_MINUTES
    return ShiftWindow(window.shift, window.business_date, window.start, window.end, is_grace)


class ReportService:

    # ==========================================
    # Aggregation
    # ==========================================

    def aggregate(self, db: Session, window: ShiftWindow) -> ShiftTotals:
        orders = (
            db.query(Order)
            .filter(
                Order.finished == True,  # noqa: E712
                Order.settled_at >= window.start,
                Order.settled_at < window.end,
            )
            .order_by(Order.settled_at.asc(), Order.id.asc())
            .all()
        )

        totals = ShiftTotals()
        for order in orders:
            try:
                method = PaymentMethod(order.payment_method)
            except ValueError:
                logger.warning(f"Order #{order.id} has unknown payment method {order.payment_method!r}")
                continue
            totals.by_method[method] = money(totals.by_method[method] + Decimal(order.total))
            totals.order_count += 1
            totals.orders.append({
                "id": order.id,
                "destination": order.destination,
                "number": order.number,
                "staff_name": order.staff_name,
                "payment_method": order.payment_method,
                "total": str(order.total),
                "settled_at": order.settled_at.isoformat(),
                "items": order.simplified_items(),
            })
        return totals

    # ==========================================
    # Publish
    # ==========================================

    def publish(self, db: Session, window: ShiftWindow, staff_name: str) -> ShiftReport:
        """Aggregate the shift and upsert its snapshot. Publishing again overwrites it."""
        totals = self.aggregate(db, window)
        html = render_template(
            "reports/shift_report.html",
            window=window, totals=totals, submitted_by=staff_name,
        )

        values = {column: totals.by_method[method] for method, column in TOTAL_COLUMNS.items()}
        values.update(
            order_count=totals.order_count,
            orders=totals.orders,
            report_html=html,
            submitted_by=staff_name,
            updated_at=now_utc(),
        )

        try:
            report = self._upsert(db, window, values)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Publishing report {window.label} failed: {e}")
            raise PersistenceError("No se pudo enviar el reporte.")

        logger.info(
            f"Report {window.label} published by {staff_name}: "
            f"{totals.order_count} orders, total {totals.grand_total}"
        )
        return report

    def _upsert(self, db: Session, window: ShiftWindow, values: dict) -> ShiftReport:
        report = self._find(db, window)
        if report is None:
            report = ShiftReport(business_date=window.business_date, shift=window.shift.value, **values)
            db.add(report)
            try:
                db.commit()
                return report
            except IntegrityError:
                # Published concurrently; overwrite theirs
                db.rollback()
                report = self._find(db, window)

        for key, value in values.items():
            setattr(report, key, value)
        db.commit()
        return report

    def _find(self, db: Session, window: ShiftWindow) -> Optional[ShiftReport]:
        return (
            db.query(ShiftReport)
            .filter(ShiftReport.business_date == window.business_date, ShiftReport.shift == window.shift.value)
            .first()
        )

    def auto_publish(self, db: Session, now: Optional[datetime] = None) -> Optional[ShiftReport]:
        """Publish only during a grace minute and only when the shift has finished orders."""
        window = current_shift(now)
        if not window.is_auto_publish_minute:
            return None
        if self.aggregate(db, window).order_count == 0:
            logger.info(f"Auto-publish skipped for {window.label}: no finished orders")
            return None
        return self.publish(db, window, REPORT_SYSTEM_STAFF_NAME)

    # ==========================================
    # Queries
    # ==========================================

    def list_reports(self, db: Session, limit: int = 50) -> List[ShiftReport]:
        return (
            db.query(ShiftReport)
            .order_by(ShiftReport.business_date.desc(), ShiftReport.shift.desc())
            .limit(limit)
            .all()
        )

    def get_report(self, db: Session, report_id: int) -> ShiftReport:
        report = db.query(ShiftReport).filter(ShiftReport.id == report_id).first()
        if not report:
            raise NotFoundError(f"Reporte #{report_id} no encontrado.")
        return report


report_service = ReportService()
