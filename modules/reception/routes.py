"""
Reception Module - Routes
==========================
Endpoints:
  GET  /api/reception/pending                         - pending deferred billing
  POST /api/reception/room-recharges/{id}/collect     - collect a room charge
  POST /api/reception/employee-recharges/{id}/collect - collect an employee charge
  POST /api/reception/event-recharges/{id}/collect    - collect an event charge
  POST /api/reception/invoices/{id}/invoiced          - flag an invoice request as done
  GET  /api/reception/reports                         - published shift reports
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from common.exceptions import ComandaError, raise_http
from config.database import get_db
from modules.auth.deps import require_role
from modules.reception.service import reception_service
from modules.user.models import StaffRole, User

router = APIRouter(prefix="/api/reception", tags=["reception"])

_reception_only = require_role(StaffRole.RECEPTION.value)


class CollectRequest(BaseModel):
    payment_method: str


@router.get("/pending")
async def pending(
    staff: User = Depends(_reception_only),
    db: Session = Depends(get_db),
):
    data = reception_service.list_pending(db)
    return {
        "success": True,
        **{key: [record.to_dict() for record in records] for key, records in data.items()},
    }


@router.post("/room-recharges/{recharge_id}/collect")
async def collect_room(
    recharge_id: int,
    body: CollectRequest,
    staff: User = Depends(_reception_only),
    db: Session = Depends(get_db),
):
    try:
        order = reception_service.collect_room_recharge(db, recharge_id, body.payment_method, staff.display_name)
    except ComandaError as e:
        raise_http(e)
    return {"success": True, "order": order.to_dict()}


@router.post("/employee-recharges/{recharge_id}/collect")
async def collect_employee(
    recharge_id: int,
    staff: User = Depends(_reception_only),
    db: Session = Depends(get_db),
):
    try:
        reception_service.collect_employee_recharge(db, recharge_id, staff.display_name)
    except ComandaError as e:
        raise_http(e)
    return {"success": True}


@router.post("/event-recharges/{recharge_id}/collect")
async def collect_event(
    recharge_id: int,
    staff: User = Depends(_reception_only),
    db: Session = Depends(get_db),
):
    try:
        reception_service.collect_event_recharge(db, recharge_id, staff.display_name)
    except ComandaError as e:
        raise_http(e)
    return {"success": True}


@router.post("/invoices/{invoice_id}/invoiced")
async def invoice_done(
    invoice_id: int,
    staff: User = Depends(_reception_only),
    db: Session = Depends(get_db),
):
    try:
        invoice = reception_service.mark_invoiced(db, invoice_id)
    except ComandaError as e:
        raise_http(e)
    return {"success": True, "invoice": invoice.to_dict()}


@router.get("/reports")
async def sent_reports(
    report_id: Optional[int] = None,
    staff: User = Depends(_reception_only),
    db: Session = Depends(get_db),
):
    try:
        reports = reception_service.list_reports(db, report_id)
    except ComandaError as e:
        raise_http(e)
    return {
        "success": True,
        "reports": [report.to_dict(include_html=report_id is not None) for report in reports],
    }
