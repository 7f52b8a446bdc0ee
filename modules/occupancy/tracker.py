"""
Occupancy Module - Tracker
===========================
Process-wide read model of occupied destinations:

    {"mesa:5": OccupancySnapshot(kind="mesa", number="5", order_id=12, ...)}

Every occupied_tables change event triggers a full refetch. Screens
register listeners and receive the new read-only mapping after each
refresh; nothing outside the tracker mutates it.
"""

import logging
import threading
from dataclasses import dataclass
from decimal import Decimal
from types import MappingProxyType
from typing import Callable, List, Mapping, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from common.exceptions import PersistenceError
from config.database import SessionLocal
from modules.occupancy.models import OccupiedTable
from modules.order.items import LineItem
from modules.order.models import destination_key, destination_label
from modules.realtime.feed import ChangeEvent, change_feed

logger = logging.getLogger("comanda.occupancy")

Listener = Callable[[Mapping[str, "OccupancySnapshot"]], None]


@dataclass(frozen=True)
class OccupancySnapshot:
    kind: str
    number: str
    order_id: int
    items: Tuple[LineItem, ...]
    total: Decimal

    @property
    def key(self) -> str:
        return destination_key(self.kind, self.number)

    @property
    def label(self) -> str:
        return destination_label(self.kind, self.number)

    def to_dict(self) -> dict:
        return {
            "key": self.key,
            "kind": self.kind,
            "number": self.number,
            "destination": self.label,
            "order_id": self.order_id,
            "items": [item.to_dict() for item in self.items],
            "total": str(self.total),
        }

    @classmethod
    def from_row(cls, row: OccupiedTable) -> "OccupancySnapshot":
        return cls(
            kind=row.kind,
            number=row.number,
            order_id=row.order_id,
            items=tuple(row.line_items),
            total=Decimal(row.total),
        )


class OccupancyTracker:

    def __init__(self, session_factory=None, feed=None):
        self._session_factory = session_factory or SessionLocal
        self._feed = feed or change_feed
        self._state: Mapping[str, OccupancySnapshot] = MappingProxyType({})
        self._listeners: List[Listener] = []
        self._subscription = None
        self._lock = threading.RLock()

    # ==========================================
    # Lifecycle
    # ==========================================

    def start(self) -> None:
        if self._subscription is not None:
            return
        self._subscription = self._feed.subscribe(OccupiedTable.__tablename__, self._on_change)
        self.refresh()
        logger.info(f"Occupancy tracker started ({len(self._state)} occupied)")

    def stop(self) -> None:
        if self._subscription is not None:
            self._feed.unsubscribe(self._subscription)
            self._subscription = None

    @property
    def running(self) -> bool:
        return self._subscription is not None

    # ==========================================
    # Read model
    # ==========================================

    @property
    def snapshot(self) -> Mapping[str, OccupancySnapshot]:
        return self._state

    def get(self, kind, number) -> Optional[OccupancySnapshot]:
        return self._state.get(destination_key(kind, number))

    def is_occupied(self, kind, number) -> bool:
        return destination_key(kind, number) in self._state

    def refresh(self) -> Mapping[str, OccupancySnapshot]:
        """Refetch every occupancy row and replace the read model."""
        db = self._session_factory()
        try:
            rows = db.query(OccupiedTable).order_by(OccupiedTable.id.asc()).all()
            fresh = {}
            for row in rows:
                snap = OccupancySnapshot.from_row(row)
                fresh[snap.key] = snap
        except SQLAlchemyError as e:
            logger.error(f"Occupancy refresh failed, keeping previous state: {e}")
            raise PersistenceError("No se pudo leer la ocupación de mesas.")
        finally:
            db.close()

        with self._lock:
            self._state = MappingProxyType(fresh)
            listeners = list(self._listeners)
            state = self._state

        for listener in listeners:
            try:
                listener(state)
            except Exception:
                logger.exception("Occupancy listener failed")
        return state

    # ==========================================
    # Listeners
    # ==========================================

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a callable that removes it."""
        with self._lock:
            self._listeners.append(listener)
        return lambda: self.remove_listener(listener)

    def remove_listener(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _on_change(self, change: ChangeEvent) -> None:
        logger.debug(f"occupied_tables {change.event_type}; refreshing")
        self.refresh()


occupancy_tracker = OccupancyTracker()
