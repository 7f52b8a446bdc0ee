"""
Realtime Module - Change Feed
==============================
Per-table publish/subscribe of committed row changes.

SQLAlchemy session hooks collect INSERT / UPDATE / DELETE rows on every
flush and publish them, in flush order, once the transaction commits.
A rollback discards whatever was collected. Events of one table are
delivered in commit order; there is no ordering across tables.

Usage:
    sub = change_feed.subscribe("orders", on_order_change)
    sub = change_feed.subscribe("users", on_user, event=UPDATE, row_filter=lambda row: row["id"] == 7)
    change_feed.unsubscribe(sub)
"""

import enum
import itertools
import logging
import threading
from dataclasses import dataclass, field
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

logger = logging.getLogger("comanda.realtime")

INSERT = "INSERT"
UPDATE = "UPDATE"
DELETE = "DELETE"
ANY_EVENT = "*"

_PENDING_KEY = "_comanda_pending_changes"


def jsonable(value):
    """Convert row values (Decimal, datetime, enums, nested JSON) into JSON-safe types."""
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    if isinstance(value, dict):
        return {k: jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [jsonable(v) for v in value]
    return value


@dataclass(frozen=True)
class ChangeEvent:
    table: str
    event_type: str
    new: Dict[str, Any] = field(default_factory=dict)
    old: Dict[str, Any] = field(default_factory=dict)

    @property
    def row(self) -> Dict[str, Any]:
        """The row this event is about: new values, or old ones for DELETE."""
        return self.new if self.event_type != DELETE else self.old

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table": self.table,
            "event_type": self.event_type,
            "new": jsonable(self.new),
            "old": jsonable(self.old),
        }


@dataclass(eq=False)
class Subscription:
    id: int
    table: str
    callback: Callable[[ChangeEvent], None]
    event: str = ANY_EVENT
    row_filter: Optional[Callable[[Dict[str, Any]], bool]] = None

    def matches(self, change: ChangeEvent) -> bool:
        if change.table != self.table:
            return False
        if self.event != ANY_EVENT and change.event_type != self.event:
            return False
        if self.row_filter is not None and not self.row_filter(change.row):
            return False
        return True


class ChangeFeed:
    """Stateless fan-out: remembers subscribers, never events."""

    def __init__(self):
        self._subscriptions: Dict[str, List[Subscription]] = {}
        self._ids = itertools.count(1)
        # Serializes delivery so each table's events keep commit order
        self._lock = threading.RLock()

    def subscribe(
        self,
        table: str,
        callback: Callable[[ChangeEvent], None],
        event: str = ANY_EVENT,
        row_filter: Optional[Callable[[Dict[str, Any]], bool]] = None,
    ) -> Subscription:
        sub = Subscription(
            id=next(self._ids), table=table, callback=callback,
            event=event, row_filter=row_filter,
        )
        with self._lock:
            self._subscriptions.setdefault(table, []).append(sub)
        logger.debug(f"Subscription #{sub.id} on {table} ({event})")
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscriptions.get(sub.table, [])
            if sub in subs:
                subs.remove(sub)

    def subscriber_count(self, table: str) -> int:
        with self._lock:
            return len(self._subscriptions.get(table, []))

    def publish(self, changes: List[ChangeEvent]) -> None:
        with self._lock:
            for change in changes:
                for sub in list(self._subscriptions.get(change.table, [])):
                    try:
                        if sub.matches(change):
                            sub.callback(change)
                    except Exception:
                        logger.exception(
                            f"Subscriber #{sub.id} failed on {change.table} {change.event_type}"
                        )


change_feed = ChangeFeed()


# ==========================================
# SQLAlchemy session hooks
# ==========================================

def _current_row(obj) -> Dict[str, Any]:
    state = inspect(obj)
    return {attr.key: state.dict.get(attr.key) for attr in state.mapper.column_attrs}


def _previous_row(obj) -> Dict[str, Any]:
    state = inspect(obj)
    row = {}
    for attr in state.mapper.column_attrs:
        hist = state.attrs[attr.key].history
        if hist.deleted:
            row[attr.key] = hist.deleted[0]
        else:
            row[attr.key] = state.dict.get(attr.key)
    return row


def _table_name(obj) -> Optional[str]:
    table = getattr(obj, "__table__", None)
    return table.name if table is not None else None


@event.listens_for(Session, "after_flush")
def _collect_changes(session: Session, flush_context):
    pending = session.info.setdefault(_PENDING_KEY, [])

    for obj in session.deleted:
        table = _table_name(obj)
        if table:
            pending.append(ChangeEvent(table, DELETE, old=_current_row(obj)))

    for obj in session.dirty:
        table = _table_name(obj)
        if table and session.is_modified(obj, include_collections=False):
            pending.append(ChangeEvent(table, UPDATE, new=_current_row(obj), old=_previous_row(obj)))

    for obj in session.new:
        table = _table_name(obj)
        if table:
            pending.append(ChangeEvent(table, INSERT, new=_current_row(obj)))


@event.listens_for(Session, "after_commit")
def _publish_changes(session: Session):
    pending = session.info.pop(_PENDING_KEY, None)
    if pending:
        change_feed.publish(pending)


@event.listens_for(Session, "after_soft_rollback")
def _discard_changes(session: Session, previous_transaction):
    session.info.pop(_PENDING_KEY, None)
