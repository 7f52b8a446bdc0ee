"""
Comanda - Database Initialization
==================================
Creates all tables if they don't exist and optionally seeds one staff
member per role. Safe to run multiple times.

Usage:
    python scripts/init_db.py
    python scripts/init_db.py --seed   # Also create default staff users
    python scripts/init_db.py --drop   # Drop and recreate all tables
"""

import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from config.database import Base, SessionLocal, engine

# Import ALL models so Base.metadata knows about them
from modules.user.models import StaffRole, User  # noqa
from modules.order.models import Order  # noqa
from modules.occupancy.models import OccupiedTable  # noqa
from modules.settlement.models import RoomRecharge, EmployeeRecharge, EventRecharge, Invoice  # noqa
from modules.report.models import ShiftReport  # noqa

DEFAULT_STAFF = (
    ("Mesero", StaffRole.WAITER),
    ("Cocina", StaffRole.KITCHEN),
    ("Recepción", StaffRole.RECEPTION),
    ("Administrador", StaffRole.ADMIN),
)


def seed_staff(db) -> int:
    """Create one user per role unless that role already has someone. Returns how many were created."""
    created = 0
    for name, role in DEFAULT_STAFF:
        if db.query(User).filter(User.role == role.value).first():
            continue
        db.add(User(display_name=name, role=role.value))
        created += 1
    db.commit()
    return created


def init_db(drop_first=False, seed=False):
    if drop_first:
        print("Dropping all tables...")
        Base.metadata.drop_all(bind=engine)
        print("Done.")

    print("Creating all tables...")
    Base.metadata.create_all(bind=engine)

    # List created tables
    from sqlalchemy import inspect
    inspector = inspect(engine)
    tables = inspector.get_table_names()
    print(f"\nTables in database ({len(tables)}):")
    for t in sorted(tables):
        print(f"  - {t}")

    if seed:
        db = SessionLocal()
        try:
            print(f"\nSeeded {seed_staff(db)} staff user(s).")
        finally:
            db.close()

    print("\nDatabase initialized successfully!")


if __name__ == "__main__":
    init_db(drop_first="--drop" in sys.argv, seed="--seed" in sys.argv)
