"""
Kitchen Module - Routes
========================
Endpoints:
  GET  /api/kitchen/queue            - tickets on screen + pending count
  POST /api/kitchen/orders/{id}/done - mark an order as prepared
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from common.exceptions import ComandaError, raise_http
from config.database import get_db
from modules.auth.deps import require_role
from modules.kitchen.projector import KitchenTicket, kitchen_projector
from modules.order.service import order_service
from modules.user.models import StaffRole, User

router = APIRouter(prefix="/api/kitchen", tags=["kitchen"])


@router.get("/queue")
async def kitchen_queue(
    staff: User = Depends(require_role(StaffRole.KITCHEN.value)),
    db: Session = Depends(get_db),
):
    if not kitchen_projector.running:
        kitchen_projector.load(KitchenTicket.from_order(o) for o in order_service.get_open_orders(db))
    return {"success": True, **kitchen_projector.to_dict()}


@router.post("/orders/{order_id}/done")
async def kitchen_done(
    order_id: int,
    staff: User = Depends(require_role(StaffRole.KITCHEN.value)),
    db: Session = Depends(get_db),
):
    try:
        kitchen_projector.mark_done(order_id, lambda oid: order_service.mark_kitchen_done(db, oid))
    except ComandaError as e:
        raise_http(e)
    return {"success": True, **kitchen_projector.to_dict()}
