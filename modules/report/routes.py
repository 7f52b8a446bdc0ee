"""
Report Module - Routes
=======================
Endpoints:
  GET  /api/reports/shift         - live totals of a shift (current one by default)
  POST /api/reports/shift/publish - publish (upsert) the shift snapshot
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from common.exceptions import ComandaError, raise_http
from config.database import get_db
from modules.auth.deps import require_role
from modules.report.service import ShiftWindow, current_shift, report_service, window_for
from modules.user.models import StaffRole, User

router = APIRouter(prefix="/api/reports", tags=["reports"])

_report_staff = require_role(StaffRole.WAITER.value, StaffRole.RECEPTION.value)


class PublishRequest(BaseModel):
    business_date: Optional[date] = None
    shift: Optional[str] = None


def _resolve_window(business_date: Optional[date], shift: Optional[str]) -> ShiftWindow:
    if business_date is None and shift is None:
        return current_shift()
    window = current_shift()
    return window_for(business_date or window.business_date, shift or window.shift)


@router.get("/shift")
async def shift_totals(
    business_date: Optional[date] = None,
    shift: Optional[str] = None,
    staff: User = Depends(_report_staff),
    db: Session = Depends(get_db),
):
    try:
        window = _resolve_window(business_date, shift)
    except ComandaError as e:
        raise_http(e)
    totals = report_service.aggregate(db, window)
    return {"success": True, "window": window.to_dict(), **totals.to_dict()}


@router.post("/shift/publish")
async def publish_shift(
    body: PublishRequest,
    staff: User = Depends(_report_staff),
    db: Session = Depends(get_db),
):
    try:
        window = _resolve_window(body.business_date, body.shift)
        report = report_service.publish(db, window, staff.display_name)
    except ComandaError as e:
        raise_http(e)
    return {"success": True, "report": report.to_dict()}
