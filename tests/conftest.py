"""
Pytest configuración y fixtures compartidas
===========================================

Base SQLite en memoria (StaticPool), la API con get_db sobrescrito y
usuarios por rol con la cookie de sesión "auth".
"""

import os

# Antes de importar config: base en memoria, sin logs a disco ni SMTP
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["SMTP_HOST"] = ""
os.environ["STRIPE_SECRET_KEY"] = ""
os.environ["SUPERADMIN_EMAIL"] = ""

from datetime import date, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import backup_manager
from api.deps import get_db
from api.main import app
from config import AUTH_COOKIE_NAME
from database import Base, Booking, Room, User, engine, seed_system_roles
from security import create_access_token, get_password_hash

PASSWORD = "Secret#123"
API = "/api/v1"


@pytest.fixture(scope="function")
def db_session():
    """Tablas nuevas por test sobre la base en memoria."""
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False)
    session = TestingSession()
    seed_system_roles(session)
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session, tmp_path, monkeypatch):
    """TestClient con la sesión del test inyectada y backups en tmp_path."""
    def override_get_db():
        yield db_session

    monkeypatch.setattr(backup_manager, "BACKUP_DIR", tmp_path / "backups")
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# ============== Usuarios ==============

def make_user(db, email: str, role: str = "user", username: str = None, **fields) -> User:
    user = User(
        email=email,
        username=username or email.split("@")[0].replace(".", "_"),
        password_hash=get_password_hash(PASSWORD),
        first_name=fields.pop("first_name", "Test"),
        last_name=fields.pop("last_name", role.capitalize()),
        role=role,
        **fields,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def login_as(client: TestClient, user: User) -> None:
    """Sustituye la cookie de sesión del cliente por la del usuario."""
    client.cookies.clear()
    client.cookies.set(AUTH_COOKIE_NAME, create_access_token(user.id, user.email, user.role))


@pytest.fixture
def guest(db_session):
    return make_user(db_session, "guest@example.com", "user")


@pytest.fixture
def other_guest(db_session):
    return make_user(db_session, "other@example.com", "user")


@pytest.fixture
def admin(db_session):
    return make_user(db_session, "admin@example.com", "admin")


@pytest.fixture
def superadmin(db_session):
    return make_user(db_session, "root@example.com", "superadmin")


@pytest.fixture
def as_guest(client, guest):
    login_as(client, guest)
    return client


@pytest.fixture
def as_admin(client, admin):
    login_as(client, admin)
    return client


@pytest.fixture
def as_superadmin(client, superadmin):
    login_as(client, superadmin)
    return client


# ============== Entidades ==============

def make_room(db, number: str = "101", price: float = 1000.0, capacity: int = 2,
              room_type: str = "Standard", **fields) -> Room:
    room = Room(room_number=number, room_type=room_type, price=price, capacity=capacity,
                amenities=["WiFi"], images=[], **fields)
    db.add(room)
    db.commit()
    db.refresh(room)
    return room


def make_booking(db, user: User, room: Room, check_in: date, nights: int = 2, **fields) -> Booking:
    booking = Booking(
        user_id=user.id,
        room_id=room.id,
        check_in_date=check_in,
        check_out_date=check_in + timedelta(days=nights),
        number_of_guests=fields.pop("number_of_guests", 1),
        total_amount=fields.pop("total_amount", room.price * nights),
        guest_name=fields.pop("guest_name", "Ana Guest"),
        contact_number="09171234567",
        **fields,
    )
    db.add(booking)
    db.commit()
    db.refresh(booking)
    return booking


@pytest.fixture
def room(db_session):
    return make_room(db_session)


@pytest.fixture
def tomorrow():
    return date.today() + timedelta(days=1)


@pytest.fixture
def noon_on():
    def _at(day: date, hour: int = 12, minute: int = 0) -> datetime:
        return datetime.combine(day, datetime.min.time()).replace(hour=hour, minute=minute)
    return _at
