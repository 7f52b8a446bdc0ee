"""
User Module - Service Layer
=============================
Staff lookup and activation. Deactivating a user is observed by their
open screens through the users change feed (forced logout).
"""

import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from common.exceptions import AuthorizationError, NotFoundError, PersistenceError
from common.helpers import safe_int
from modules.user.models import User

logger = logging.getLogger("comanda.user")


class UserService:

    def get_active_staff(self, db: Session, staff_id) -> User:
        user_id = safe_int(staff_id)
        if user_id is None:
            raise AuthorizationError("Identifique al usuario.")
        user = db.query(User).filter(User.id == user_id).first()
        if not user or not user.is_active:
            raise AuthorizationError("Usuario inexistente o desactivado.")
        return user

    def set_active(self, db: Session, user_id: int, active: bool) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise NotFoundError(f"Usuario #{user_id} no encontrado.")
        if user.is_active == active:
            return user

        user.is_active = active
        try:
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Could not update user #{user_id}: {e}")
            raise PersistenceError("No se pudo actualizar el usuario.")

        logger.info(f"User #{user_id} {'activated' if active else 'deactivated'}")
        return user


user_service = UserService()
