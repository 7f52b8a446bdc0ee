"""
Occupancy Module - Models
==========================
One row per destination that has an unfinished order. The row carries a
snapshot of the order's items and total so screens can read occupancy
without joining orders.
"""

from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, JSON, ForeignKey, UniqueConstraint,
)

from common.helpers import now_utc
from config.database import Base
from modules.order.items import LineItem
from modules.order.models import destination_key, destination_label


class OccupiedTable(Base):
    __tablename__ = "occupied_tables"
    __table_args__ = (
        UniqueConstraint("kind", "number", name="uq_occupied_tables_kind_number"),
    )

    id = Column(Integer, primary_key=True, index=True)
    kind = Column(String, nullable=False)
    number = Column(String, nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    items = Column(JSON, nullable=False, default=list)
    total = Column(Numeric(10, 2), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=now_utc, onupdate=now_utc, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version}

    @property
    def key(self) -> str:
        return destination_key(self.kind, self.number)

    @property
    def label(self) -> str:
        return destination_label(self.kind, self.number)

    @property
    def line_items(self):
        return [LineItem.from_dict(raw) for raw in (self.items or [])]

    def __repr__(self):
        return f"<OccupiedTable {self.key} order=#{self.order_id}>"
