"""
Kitchen Module - Queue Projector
=================================
FIFO view of the orders the kitchen still has to prepare
(finished=false and kitchen_done=false), ordered by order id.

Only the first KITCHEN_MAX_ON_SCREEN tickets are shown; the rest are
reported as a pending count. The projection is fed by orders change
events and is idempotent under replayed events.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

from config.database import SessionLocal
from config.settings import KITCHEN_MAX_ON_SCREEN
from modules.order.models import Order
from modules.realtime.feed import DELETE, INSERT, UPDATE, ChangeEvent, change_feed

logger = logging.getLogger("comanda.kitchen")


@dataclass(frozen=True)
class KitchenTicket:
    order_id: int
    destination: str
    staff_name: str
    items: Tuple[Dict[str, Any], ...]
    total: Decimal
    created_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "KitchenTicket":
        return cls(
            order_id=row["id"],
            destination=row.get("destination") or "",
            staff_name=row.get("staff_name") or "",
            items=tuple(dict(item) for item in (row.get("items") or [])),
            total=Decimal(str(row.get("total") or 0)),
            created_at=row.get("created_at"),
        )

    @classmethod
    def from_order(cls, order: Order) -> "KitchenTicket":
        return cls(
            order_id=order.id,
            destination=order.destination,
            staff_name=order.staff_name,
            items=tuple(dict(item) for item in (order.items or [])),
            total=Decimal(order.total),
            created_at=order.created_at,
        )

    def to_dict(self) -> dict:
        return {
            "order_id": self.order_id,
            "destination": self.destination,
            "staff_name": self.staff_name,
            "items": [dict(item) for item in self.items],
            "total": str(self.total),
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


def _in_kitchen(row: Dict[str, Any]) -> bool:
    return not row.get("finished") and not row.get("kitchen_done")


class KitchenQueueProjector:

    def __init__(self, capacity: int = KITCHEN_MAX_ON_SCREEN, on_alert: Callable[[KitchenTicket], None] = None,
                 session_factory=None, feed=None):
        self.capacity = capacity
        self.on_alert = on_alert
        self._session_factory = session_factory or SessionLocal
        self._feed = feed or change_feed
        self._tickets: Dict[int, KitchenTicket] = {}
        self._subscription = None
        self._lock = threading.RLock()

    # ==========================================
    # Lifecycle
    # ==========================================

    def start(self) -> None:
        if self._subscription is not None:
            return
        self._subscription = self._feed.subscribe(Order.__tablename__, self.apply)
        db = self._session_factory()
        try:
            from modules.order.service import order_service
            self.load(KitchenTicket.from_order(order) for order in order_service.get_open_orders(db))
        finally:
            db.close()
        logger.info(f"Kitchen projector started ({len(self._tickets)} open)")

    def stop(self) -> None:
        if self._subscription is not None:
            self._feed.unsubscribe(self._subscription)
            self._subscription = None

    @property
    def running(self) -> bool:
        return self._subscription is not None

    def load(self, tickets: Iterable[KitchenTicket]) -> None:
        with self._lock:
            self._tickets = {ticket.order_id: ticket for ticket in tickets}

    # ==========================================
    # Projection
    # ==========================================

    @property
    def queue(self) -> Tuple[KitchenTicket, ...]:
        with self._lock:
            return tuple(self._tickets[oid] for oid in sorted(self._tickets))

    @property
    def on_screen(self) -> Tuple[KitchenTicket, ...]:
        return self.queue[: self.capacity]

    @property
    def pending_count(self) -> int:
        with self._lock:
            return max(0, len(self._tickets) - self.capacity)

    def apply(self, change: ChangeEvent) -> None:
        row = change.row
        order_id = row.get("id")
        if order_id is None:
            return

        alert = None
        with self._lock:
            if change.event_type == DELETE:
                self._tickets.pop(order_id, None)
            elif change.event_type == INSERT:
                if order_id not in self._tickets and _in_kitchen(row):
                    alert = self._tickets[order_id] = KitchenTicket.from_row(row)
            elif change.event_type == UPDATE:
                if _in_kitchen(row):
                    alert = self._tickets[order_id] = KitchenTicket.from_row(row)
                else:
                    self._tickets.pop(order_id, None)

        if alert is not None and self.on_alert is not None:
            try:
                self.on_alert(alert)
            except Exception:
                logger.exception(f"Kitchen alert failed for order #{order_id}")

    def mark_done(self, order_id: int, persist: Callable[[int], Any]) -> bool:
        """
        Remove the ticket right away, then persist.
        If persisting fails the ticket is put back and the error re-raised.
        Returns whether the ticket was on the queue.
        """
        with self._lock:
            removed = self._tickets.pop(order_id, None)

        try:
            persist(order_id)
        except Exception:
            if removed is not None:
                with self._lock:
                    self._tickets.setdefault(order_id, removed)
                logger.warning(f"Restored order #{order_id} to the kitchen queue after a failed update")
            raise
        return removed is not None

    def to_dict(self) -> dict:
        return {
            "on_screen": [ticket.to_dict() for ticket in self.on_screen],
            "pending_count": self.pending_count,
        }


kitchen_projector = KitchenQueueProjector()
