"""
User Module - Staff Model
==========================
Staff members (waiters, kitchen, reception, admins).
Authentication happens outside this service; requests carry an already
identified staff id which is resolved against this table.
"""

import enum

from sqlalchemy import Column, Integer, String, Boolean, DateTime

from common.helpers import now_utc
from config.database import Base


class StaffRole(str, enum.Enum):
    WAITER = "mesero"
    KITCHEN = "cocina"
    RECEPTION = "recepcion"
    ADMIN = "admin"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    display_name = Column(String, nullable=False)
    email = Column(String, unique=True, nullable=True, index=True)
    role = Column(String, default=StaffRole.WAITER.value, nullable=False)
    is_active = Column(Boolean, default=True, server_default="true", nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=now_utc, nullable=False)

    @property
    def role_label(self) -> str:
        labels = {
            StaffRole.WAITER.value: "Mesero",
            StaffRole.KITCHEN.value: "Cocina",
            StaffRole.RECEPTION.value: "Recepción",
            StaffRole.ADMIN.value: "Administrador",
        }
        return labels.get(self.role, self.role)

    @property
    def is_admin(self) -> bool:
        return self.role == StaffRole.ADMIN.value

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "email": self.email,
            "role": self.role,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<User #{self.id} {self.display_name} ({self.role})>"
