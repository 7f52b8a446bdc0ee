"""
Report Module - Models
=======================
Published shift report snapshots, one per (business_date, shift).
"""

import enum

from sqlalchemy import (
    Column, Integer, String, Numeric, Date, DateTime, Text, JSON, UniqueConstraint, text,
)

from common.helpers import now_utc
from config.database import Base


class Shift(str, enum.Enum):
    AM = "AM"
    PM = "PM"


class ShiftReport(Base):
    __tablename__ = "shift_reports"
    __table_args__ = (
        UniqueConstraint("business_date", "shift", name="uq_shift_reports_date_shift"),
    )

    id = Column(Integer, primary_key=True, index=True)
    business_date = Column(Date, nullable=False, index=True)
    shift = Column(String(2), nullable=False)

    # Totals per payment method
    total_cash = Column(Numeric(12, 2), nullable=False, server_default=text("0"), default=0)
    total_card = Column(Numeric(12, 2), nullable=False, server_default=text("0"), default=0)
    total_transfer = Column(Numeric(12, 2), nullable=False, server_default=text("0"), default=0)
    total_room_charge = Column(Numeric(12, 2), nullable=False, server_default=text("0"), default=0)
    total_events = Column(Numeric(12, 2), nullable=False, server_default=text("0"), default=0)
    total_employees = Column(Numeric(12, 2), nullable=False, server_default=text("0"), default=0)

    order_count = Column(Integer, nullable=False, default=0)
    orders = Column(JSON, nullable=False, default=list)
    report_html = Column(Text, nullable=True)
    submitted_by = Column(String, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)

    @property
    def grand_total(self):
        return sum(
            (self.total_cash or 0, self.total_card or 0, self.total_transfer or 0,
             self.total_room_charge or 0, self.total_events or 0, self.total_employees or 0)
        )

    def to_dict(self, include_html: bool = False) -> dict:
        data = {
            "id": self.id,
            "business_date": self.business_date.isoformat(),
            "shift": self.shift,
            "total_cash": str(self.total_cash),
            "total_card": str(self.total_card),
            "total_transfer": str(self.total_transfer),
            "total_room_charge": str(self.total_room_charge),
            "total_events": str(self.total_events),
            "total_employees": str(self.total_employees),
            "order_count": self.order_count,
            "orders": list(self.orders or []),
            "submitted_by": self.submitted_by,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
        if include_html:
            data["report_html"] = self.report_html
        return data
