"""
Settlement Module - Routes
===========================
Endpoints:
  POST /api/occupancy/{kind}/{number}/settle - close the open order at a destination
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from common.exceptions import ComandaError, raise_http
from config.database import get_db
from modules.auth.deps import require_role
from modules.settlement.service import settlement_service
from modules.user.models import StaffRole, User

router = APIRouter(prefix="/api/occupancy", tags=["settlement"])


class SettleRequest(BaseModel):
    payment_method: str
    room: Optional[str] = None
    employee: Optional[str] = None
    event: Optional[str] = None
    invoice: bool = False
    nit: Optional[str] = None
    description: Optional[str] = None


@router.post("/{kind}/{number}/settle")
async def settle_destination(
    kind: str,
    number: str,
    body: SettleRequest,
    staff: User = Depends(require_role(StaffRole.WAITER.value, StaffRole.RECEPTION.value)),
    db: Session = Depends(get_db),
):
    try:
        order = settlement_service.settle(
            db, kind, number, body.payment_method,
            staff_name=staff.display_name,
            room=body.room,
            employee=body.employee,
            event=body.event,
            invoice=body.invoice,
            nit=body.nit,
            description=body.description,
        )
    except ComandaError as e:
        raise_http(e)
    return {"success": True, "order": order.to_dict()}
