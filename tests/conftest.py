import os
from typing import Dict

import pytest
from fastapi.testclient import TestClient

# Must be set before config.settings is imported anywhere
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["REPORT_AUTO_PUBLISH"] = "false"

from config.database import Base, SessionLocal, engine  # noqa: E402
import main  # noqa: E402  (registers every model and the change-feed hooks)
from modules.user.models import StaffRole, User  # noqa: E402


@pytest.fixture(autouse=True)
def _schema():
    """Fresh tables for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def client():
    """TestClient with the lifespan running (tracker + kitchen projector started)."""
    with TestClient(main.app) as test_client:
        yield test_client


def _make_user(db, name: str, role: StaffRole) -> User:
    user = User(display_name=name, role=role.value)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def waiter(db) -> User:
    return _make_user(db, "Ana", StaffRole.WAITER)


@pytest.fixture()
def cook(db) -> User:
    return _make_user(db, "Luis", StaffRole.KITCHEN)


@pytest.fixture()
def receptionist(db) -> User:
    return _make_user(db, "Rosa", StaffRole.RECEPTION)


@pytest.fixture()
def admin(db) -> User:
    return _make_user(db, "Jefe", StaffRole.ADMIN)


@pytest.fixture()
def staff_headers():
    def _headers(user: User) -> Dict[str, str]:
        return {"X-Staff-Id": str(user.id)}
    return _headers


@pytest.fixture()
def burger() -> Dict:
    return {"dish_id": 1, "name": "Burger", "price": "35.00", "quantity": 2, "note": "no onion"}


@pytest.fixture()
def soda() -> Dict:
    return {"dish_id": 2, "name": "Soda", "price": "10.00", "quantity": 1}
