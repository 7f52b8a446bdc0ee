"""
User Module - Routes
=====================
Admin-only activation / deactivation of staff members.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from common.exceptions import ComandaError, raise_http
from config.database import get_db
from modules.auth.deps import require_role
from modules.user.models import StaffRole, User
from modules.user.service import user_service

router = APIRouter(prefix="/api/users", tags=["users"])


@router.post("/{user_id}/deactivate")
async def deactivate_user(
    user_id: int,
    staff: User = Depends(require_role(StaffRole.ADMIN.value)),
    db: Session = Depends(get_db),
):
    try:
        user = user_service.set_active(db, user_id, False)
    except ComandaError as e:
        raise_http(e)
    return {"success": True, "user": user.to_dict()}


@router.post("/{user_id}/activate")
async def activate_user(
    user_id: int,
    staff: User = Depends(require_role(StaffRole.ADMIN.value)),
    db: Session = Depends(get_db),
):
    try:
        user = user_service.set_active(db, user_id, True)
    except ComandaError as e:
        raise_http(e)
    return {"success": True, "user": user.to_dict()}
