"""
Order Module - Routes
======================
JSON API for the waiter panel.

Endpoints:
  POST /api/orders/dispatch - 201 created / 200 merged / 409 confirmation required
  GET  /api/orders/{id}     - Order detail
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from common.exceptions import ComandaError, raise_http
from config.database import get_db
from modules.auth.deps import get_current_staff, require_role
from modules.order.service import DispatchOutcome, order_service
from modules.user.models import StaffRole, User

router = APIRouter(prefix="/api/orders", tags=["orders"])


# ==========================================
# Schemas
# ==========================================

class LineItemIn(BaseModel):
    dish_id: Optional[int] = None
    name: str = Field(..., min_length=1)
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(1, ge=1)
    options: Optional[Union[List[Dict[str, Any]], Dict[str, Any]]] = None
    note: Optional[str] = None


class DispatchRequest(BaseModel):
    kind: str = "mesa"
    number: Union[int, str]
    items: List[LineItemIn]
    total: Optional[Decimal] = None
    confirm_merge: bool = False


_STATUS_BY_OUTCOME = {
    DispatchOutcome.CREATED: 201,
    DispatchOutcome.MERGED: 200,
    DispatchOutcome.CONFIRMATION_REQUIRED: 409,
}


# ==========================================
# POST /api/orders/dispatch
# ==========================================

@router.post("/dispatch")
async def dispatch_order(
    body: DispatchRequest,
    staff: User = Depends(require_role(StaffRole.WAITER.value, StaffRole.RECEPTION.value)),
    db: Session = Depends(get_db),
):
    """Send a draft to a table or room. A 409 means the waiter must confirm the merge."""
    try:
        result = order_service.submit(
            db,
            kind=body.kind,
            number=body.number,
            items=[item.model_dump() for item in body.items],
            staff_name=staff.display_name,
            total=body.total,
            confirm_merge=body.confirm_merge,
        )
    except ComandaError as e:
        raise_http(e)

    content = {
        "success": result.succeeded,
        "outcome": result.outcome.value,
        "destination": result.destination,
        "order": result.order.to_dict() if result.order is not None else None,
    }
    if result.outcome == DispatchOutcome.CONFIRMATION_REQUIRED:
        content["message"] = f"{result.destination} ya tiene un pedido abierto. ¿Agregar los platillos?"
    return JSONResponse(status_code=_STATUS_BY_OUTCOME[result.outcome], content=content)


# ==========================================
# GET /api/orders/{id}
# ==========================================

@router.get("/{order_id}")
async def order_detail(
    order_id: int,
    staff: User = Depends(get_current_staff),
    db: Session = Depends(get_db),
):
    try:
        order = order_service.get_order(db, order_id)
    except ComandaError as e:
        raise_http(e)
    return {"success": True, "order": order.to_dict()}
