"""
Realtime Module - WebSocket Route
==================================
WS /ws/changes?tables=orders,occupied_tables&staff_id=7

Forwards committed change events of the requested tables to a browser
screen. The connection also watches the staff member's own users row:
when it is deactivated the screen receives {"type": "forced_logout"} and
the socket is closed.

Messages:
  {"type": "subscribed", "tables": [...]}
  {"type": "change", "table": ..., "event_type": ..., "new": {...}, "old": {...}}
  {"type": "forced_logout"}
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from common.exceptions import AuthorizationError
from config.database import SessionLocal
from modules.realtime.feed import UPDATE, ChangeEvent, change_feed
from modules.user.service import user_service

logger = logging.getLogger("comanda.realtime")

router = APIRouter(tags=["realtime"])

WATCHABLE_TABLES = frozenset({
    "orders", "occupied_tables", "room_recharges", "employee_recharges",
    "event_recharges", "invoices", "shift_reports",
})

POLICY_VIOLATION = 1008
FORCED_LOGOUT_CODE = 4001


def _resolve_staff_id(staff_id: Optional[str]) -> int:
    db = SessionLocal()
    try:
        return user_service.get_active_staff(db, staff_id).id
    finally:
        db.close()


@router.websocket("/ws/changes")
async def changes_ws(websocket: WebSocket, tables: str = "", staff_id: Optional[str] = None):
    await websocket.accept()

    requested = sorted({t.strip() for t in tables.split(",") if t.strip()})
    unknown = [t for t in requested if t not in WATCHABLE_TABLES]
    try:
        user_id = _resolve_staff_id(staff_id)
    except AuthorizationError as e:
        await websocket.close(code=POLICY_VIOLATION, reason=e.message)
        return
    if unknown:
        await websocket.close(code=POLICY_VIOLATION, reason=f"Unknown tables: {', '.join(unknown)}")
        return

    loop = asyncio.get_running_loop()
    outbox: asyncio.Queue = asyncio.Queue()

    def forward(change: ChangeEvent):
        loop.call_soon_threadsafe(outbox.put_nowait, {"type": "change", **change.to_dict()})

    def watch_self(change: ChangeEvent):
        if change.new.get("is_active") is False:
            loop.call_soon_threadsafe(outbox.put_nowait, {"type": "forced_logout"})

    subscriptions = [change_feed.subscribe(table, forward) for table in requested]
    subscriptions.append(change_feed.subscribe(
        "users", watch_self, event=UPDATE, row_filter=lambda row: row.get("id") == user_id,
    ))

    async def send_loop():
        while True:
            message = await outbox.get()
            await websocket.send_json(message)
            if message["type"] == "forced_logout":
                logger.info(f"Forced logout of user #{user_id}")
                await websocket.close(code=FORCED_LOGOUT_CODE)
                return

    async def receive_loop():
        # Screens don't send anything; this only notices the disconnect
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return

    try:
        await websocket.send_json({"type": "subscribed", "tables": requested})
        logger.debug(f"User #{user_id} watching {requested}")

        tasks = {asyncio.ensure_future(send_loop()), asyncio.ensure_future(receive_loop())}
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            if task.exception() and not isinstance(task.exception(), WebSocketDisconnect):
                raise task.exception()
    except WebSocketDisconnect:
        pass
    finally:
        for sub in subscriptions:
            change_feed.unsubscribe(sub)
        logger.debug(f"User #{user_id} change stream closed")
