from datetime import datetime

from sqlalchemy import (
    create_engine, Column, Integer, String, Date, Float, ForeignKey, DateTime,
    Boolean, Text, JSON, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, sessionmaker, scoped_session, relationship
from sqlalchemy.pool import StaticPool

from config import DATABASE_URL, SUPERADMIN_EMAIL, SUPERADMIN_PASSWORD
from constants import MODULE_PERMISSIONS, SYSTEM_ROLES
from logging_config import get_logger

logger = get_logger(__name__)

# Base de datos
_engine_kwargs = {"echo": False}
if DATABASE_URL.startswith("sqlite"):
    _engine_kwargs["connect_args"] = {"check_same_thread": False}
    if DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        # Una sola conexión compartida para que la base en memoria sobreviva
        _engine_kwargs["poolclass"] = StaticPool

engine = create_engine(DATABASE_URL, **_engine_kwargs)
Base = declarative_base()
SessionLocal = scoped_session(sessionmaker(bind=engine, autoflush=False))



def normalize_permissions(raw) -> dict:
    """Todos los permisos de módulo son True salvo que vengan explícitamente en False."""
    raw = raw or {}
    return {name: raw.get(name) is not False for name in MODULE_PERMISSIONS}


# ==========================================
# MODELOS (Tablas)
# ==========================================

class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String, unique=True, nullable=True)  # se elige después del registro
    email = Column(String, unique=True, nullable=False, index=True)
    password_hash = Column(String, nullable=False)
    first_name = Column(String, default="")
    last_name = Column(String, default="")
    phone_number = Column(String, default="")
    address = Column(String, default="")
    role = Column(String, default="user", nullable=False)
    admin_permissions = Column(JSON, nullable=True)
    email_notifications = Column(Boolean, default=True)
    is_blocked = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    bookings = relationship("Booking", back_populates="user", foreign_keys="Booking.user_id")

    @property
    def full_name(self) -> str:
        return f"{self.first_name or ''} {self.last_name or ''}".strip()

    @property
    def display_name(self) -> str:
        return self.username or self.full_name or self.email


class Role(Base):
    __tablename__ = "roles"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, unique=True, nullable=False)  # siempre en minúsculas
    display_name = Column(String, default="")
    description = Column(String, default="")
    permissions = Column(JSON, default=dict)
    is_system = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)


class VerificationCode(Base):
    """Códigos de 6 dígitos para registro (signup) y recuperación de contraseña (reset)."""
    __tablename__ = "verification_codes"
    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=False, index=True)
    purpose = Column(String, nullable=False)
    code = Column(String, nullable=False)
    payload = Column(JSON, nullable=True)  # datos del registro pendiente
    verified = Column(Boolean, default=False)
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.now)


class Room(Base):
    __tablename__ = "rooms"
    id = Column(Integer, primary_key=True, autoincrement=True)
    room_number = Column(String, unique=True, nullable=False)
    room_type = Column(String, nullable=False)
    price = Column(Float, nullable=False)
    capacity = Column(Integer, nullable=False)
    amenities = Column(JSON, default=list)
    is_available = Column(Boolean, default=True)
    description = Column(Text, default="")
    images = Column(JSON, default=list)
    housekeeping_status = Column(String, default="clean")
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    bookings = relationship("Booking", back_populates="room")


class Booking(Base):
    __tablename__ = "bookings"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)

    check_in_date = Column(Date, nullable=False)
    check_out_date = Column(Date, nullable=False)
    number_of_guests = Column(Integer, nullable=False, default=1)
    total_amount = Column(Float, nullable=False, default=0.0)
    status = Column(String, default="pending", index=True)

    guest_name = Column(String, default="")
    contact_number = Column(String, default="")
    special_requests = Column(Text, default="")

    payment_status = Column(String, default="pending")
    payment_method = Column(String, nullable=True)
    payment_date = Column(DateTime, nullable=True)
    transaction_id = Column(String, nullable=True)
    stripe_session_id = Column(String, nullable=True)

    admin_notes = Column(Text, nullable=True)
    cancellation_requested = Column(Boolean, default=False)
    cancellation_reason = Column(Text, nullable=True)

    actual_check_in_time = Column(DateTime, nullable=True)
    actual_check_out_time = Column(DateTime, nullable=True)
    checked_in_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    checked_out_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    late_check_in_fee = Column(Float, default=0.0)
    late_check_out_fee = Column(Float, default=0.0)
    additional_charges = Column(Float, default=0.0)
    checkout_notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.now, index=True)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    user = relationship("User", back_populates="bookings", foreign_keys=[user_id])
    room = relationship("Room", back_populates="bookings")

    @property
    def nights(self) -> int:
        return max((self.check_out_date - self.check_in_date).days, 0)


class Feedback(Base):
    __tablename__ = "feedback"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, default="")
    created_at = Column(DateTime, default=datetime.now)

    user = relationship("User")

    @property
    def user_name(self) -> str:
        return self.user.display_name if self.user else ""


class RoomReview(Base):
    __tablename__ = "room_reviews"
    __table_args__ = (UniqueConstraint("user_id", "room_id", name="uq_review_user_room"),)
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    room_id = Column(Integer, ForeignKey("rooms.id"), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, default="")
    created_at = Column(DateTime, default=datetime.now)
    updated_at = Column(DateTime, default=datetime.now, onupdate=datetime.now)

    user = relationship("User")

    @property
    def user_name(self) -> str:
        return self.user.display_name if self.user else ""


class Notification(Base):
    __tablename__ = "notifications"
    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    type = Column(String, default="info")
    message = Column(String(500), nullable=False)
    href = Column(String(300), nullable=True)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime, default=datetime.now)


class ActivityLog(Base):
    __tablename__ = "activity_logs"
    id = Column(Integer, primary_key=True, autoincrement=True)
    actor_id = Column(Integer, nullable=True)
    actor_email = Column(String, nullable=True, index=True)
    actor_role = Column(String, nullable=True)
    action = Column(String, nullable=False, index=True)
    resource = Column(String, nullable=False)
    resource_id = Column(String, nullable=True)
    details = Column(JSON, nullable=True)
    ip = Column(String, nullable=True)
    user_agent = Column(String, nullable=True)
    status = Column(String, default="success")
    created_at = Column(DateTime, default=datetime.now, index=True)


# Orden de tablas para backup/restore (padres antes que hijos)
BACKUP_TABLES = {
    "users": User,
    "roles": Role,
    "rooms": Room,
    "bookings": Booking,
    "notifications": Notification,
    "feedback": Feedback,
    "roomReviews": RoomReview,
    "activityLogs": ActivityLog,
}

# ==========================================
# INICIALIZACIÓN
# ==========================================

def seed_system_roles(session) -> None:
    """Crea user/admin/superadmin si faltan."""
    existing = {name for (name,) in session.query(Role.name).all()}
    for name in SYSTEM_ROLES:
        if name not in existing:
            session.add(Role(
                name=name,
                display_name=name.capitalize(),
                description=f"Built-in {name} role",
                permissions=normalize_permissions({}),
                is_system=True,
            ))
    session.commit()


def seed_superadmin(session) -> None:
    """Crea la cuenta superadmin inicial desde el entorno, si no hay ninguna."""
    if not SUPERADMIN_EMAIL or not SUPERADMIN_PASSWORD:
        return
    if session.query(User).filter(User.role == "superadmin").count() > 0:
        return
    from security import get_password_hash

    session.add(User(
        email=SUPERADMIN_EMAIL.lower(),
        username="superadmin",
        password_hash=get_password_hash(SUPERADMIN_PASSWORD),
        first_name="Super",
        last_name="Admin",
        role="superadmin",
    ))
    session.commit()
    logger.info(f"Superadmin inicial creado: {SUPERADMIN_EMAIL}")


def init_db():
    Base.metadata.create_all(engine)
    session = SessionLocal()
    try:
        seed_system_roles(session)
        seed_superadmin(session)
    finally:
        session.close()
        SessionLocal.remove()


if __name__ == "__main__":
    init_db()
