"""
Auth Module - Dependencies
===========================
FastAPI dependencies resolving the already-identified staff member.
Login itself happens outside this service; every request carries the
staff id in the X-Staff-Id header.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from config.database import get_db
from config.settings import STAFF_HEADER
from modules.user.models import User
from modules.user.service import user_service


def get_current_staff(
    staff_id: Optional[str] = Header(None, alias=STAFF_HEADER),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the header to an active user. Raises AuthorizationError (401) otherwise."""
    return user_service.get_active_staff(db, staff_id)


def require_role(*roles: str):
    """
    Factory: returns a dependency that only lets the given roles through.
    Admins always pass.

    Usage:
      staff=Depends(require_role("cocina"))
      staff=Depends(require_role("recepcion", "mesero"))
    """

    def dependency(staff: User = Depends(get_current_staff)):
        if staff.is_admin or staff.role in roles:
            return staff
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"El rol «{staff.role_label}» no tiene acceso a esta sección.",
        )

    return dependency
