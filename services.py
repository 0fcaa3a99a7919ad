from functools import wraps
from typing import Dict, List, Optional, Tuple
from datetime import date, datetime, time, timedelta
import math

from sqlalchemy import func, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from constants import SYSTEM_ROLES, BOOKING_STATUSES, ACTIVE_BOOKING_STATUSES, HOUSEKEEPING_STATUSES
from database import (
    SessionLocal, User, Role, VerificationCode, Room, Booking, Feedback, RoomReview, ActivityLog,
    normalize_permissions,
)
from errors import ServiceError, ValidationFailed, Forbidden, NotFoundError
from notifications import NotificationService
from permissions import is_admin_role
from security import (
    get_password_hash, verify_password, password_errors, generate_verification_code, code_expiry,
    PASSWORD_REQUIREMENTS, USERNAME_PATTERN,
)
import mailer

# Importar logging centralizado
from logging_config import get_logger

# Importar schemas con validaciones estrictas
from schemas import (
    UserDTO, ProfileUpdate, SignupRequest,
    RoleCreate, RoleUpdate, RoleDTO,
    RoomCreate, RoomUpdate, RoomDTO, HousekeepingOverview,
    AvailabilityBookingDTO, RoomDayStatusDTO, RoomRangeAvailabilityDTO, CalendarDayDTO,
    BookingCreate, BookingDTO, CheckOutSummary, CheckOutResult, CalendarEventDTO,
    FeedbackCreate, FeedbackDTO, RoomReviewCreate, RoomReviewDTO, RoomReviewSummary,
    ActivityLogDTO, ActivityLogPage, Pagination,
)

# Logger para este módulo
logger = get_logger(__name__)

# Reglas de negocio
EXTRA_PERSON_RATE = 300          # por persona extra y noche
EARLY_CHECKIN_DAYS = 1
STANDARD_CHECKIN_TIME = time(15, 0)
STANDARD_CHECKOUT_TIME = time(11, 0)
LATE_CHECKIN_RATE, LATE_CHECKIN_CAP = 10, 50
LATE_CHECKOUT_RATE, LATE_CHECKOUT_CAP = 20, 100

SAMPLE_ROOMS = [
    {"room_number": "101", "room_type": "Standard", "price": 100, "capacity": 2,
     "amenities": ["WiFi", "TV", "Air Conditioning"],
     "description": "Comfortable standard room with essential amenities"},
    {"room_number": "201", "room_type": "Deluxe", "price": 150, "capacity": 3,
     "amenities": ["WiFi", "TV", "Air Conditioning", "Mini Bar", "Balcony"],
     "description": "Spacious deluxe room with a private balcony"},
    {"room_number": "301", "room_type": "Suite", "price": 250, "capacity": 4,
     "amenities": ["WiFi", "TV", "Air Conditioning", "Mini Bar", "Balcony", "Jacuzzi"],
     "description": "Luxury suite with separate living area and jacuzzi"},
    {"room_number": "401", "room_type": "Presidential", "price": 500, "capacity": 6,
     "amenities": ["WiFi", "TV", "Air Conditioning", "Mini Bar", "Balcony", "Jacuzzi", "Butler Service"],
     "description": "Top floor presidential suite with butler service"},
]

# ==========================================
# SERVICES
# ==========================================

# HYBRID MONOLITH: Smart decorator that works with both the API (db injected) and scripts/CLI (no db)
def with_db(func):
    """
    Smart decorator que maneja el ciclo de vida de la sesión de forma segura.

    - Si `db` es pasado como primer argumento o en kwargs: usa esa sesión (FastAPI mode)
    - Si `db` no está presente: crea una sesión propia (scripts, backup CLI, tests)
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        if args and isinstance(args[0], Session):
            return func(*args, **kwargs)
        if kwargs.get("db") is not None:
            return func(*args, **kwargs)
        kwargs.pop("db", None)

        db = SessionLocal()
        try:
            return func(db, *args, **kwargs)
        except ServiceError:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Error in {func.__name__}: {e}")
            raise
        finally:
            # CRITICAL: Clean the session from the thread's registry
            SessionLocal.remove()

    return wrapper


def _get_or_404(db: Session, model, obj_id: int, message: str):
    obj = db.get(model, obj_id)
    if obj is None:
        raise NotFoundError(message)
    return obj


def _overlaps(query, check_in: date, check_out: date):
    """Filtro de solape [check_in, check_out) con reservas activas."""
    return query.filter(
        Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        Booking.check_in_date < check_out,
        Booking.check_out_date > check_in,
    )


def _validate_username(db: Session, username: Optional[str], exclude_user_id: Optional[int] = None) -> str:
    username = (username or "").strip()
    if not username:
        raise ValidationFailed("Username is required")
    if len(username) < 3:
        raise ValidationFailed("Username must be at least 3 characters long")
    if not USERNAME_PATTERN.match(username):
        raise ValidationFailed("Username can only contain letters, numbers, and underscores")
    query = db.query(User).filter(User.username == username)
    if exclude_user_id is not None:
        query = query.filter(User.id != exclude_user_id)
    if query.first():
        raise ValidationFailed("Username already taken")
    return username


# ==========================================
# AUTENTICACIÓN
# ==========================================

class AuthService:
    """Registro con código por email, login y recuperación de contraseña."""

    @staticmethod
    def _pending_code(db: Session, email: str, purpose: str) -> VerificationCode:
        record = db.query(VerificationCode).filter(
            VerificationCode.email == email,
            VerificationCode.purpose == purpose,
        ).order_by(VerificationCode.id.desc()).first()
        if not record:
            raise ValidationFailed("No pending verification found for this email")
        return record

    @staticmethod
    def _check_code(record: VerificationCode, code: str) -> None:
        if record.expires_at < datetime.now():
            raise ValidationFailed("Verification code has expired")
        if record.code != (code or "").strip():
            raise ValidationFailed("Invalid verification code")

    @staticmethod
    @with_db
    def signup(db: Session, data: SignupRequest) -> str:
        """Guarda el registro pendiente y envía el código. No crea el usuario todavía."""
        if password_errors(data.password):
            raise ValidationFailed(PASSWORD_REQUIREMENTS)
        if db.query(User).filter(User.email == data.email).first():
            raise ValidationFailed("Email already registered")
        _validate_username(db, data.username)

        db.query(VerificationCode).filter(
            VerificationCode.email == data.email,
            VerificationCode.purpose == "signup",
        ).delete(synchronize_session=False)

        code = generate_verification_code()
        db.add(VerificationCode(
            email=data.email,
            purpose="signup",
            code=code,
            expires_at=code_expiry(),
            payload={
                "username": data.username,
                "passwordHash": get_password_hash(data.password),
                "firstName": data.first_name.strip(),
                "lastName": data.last_name.strip(),
                "phoneNumber": data.phone_number,
                "address": data.address,
            },
        ))
        db.commit()
        mailer.send_verification_code(data.email, code)
        logger.info(f"Registro pendiente para {data.email}")
        return code

    @staticmethod
    @with_db
    def verify_email(db: Session, email: str, code: str) -> UserDTO:
        """Valida el código de registro y crea la cuenta."""
        record = AuthService._pending_code(db, email, "signup")
        AuthService._check_code(record, code)
        if db.query(User).filter(User.email == email).first():
            raise ValidationFailed("Email already registered")

        payload = record.payload or {}
        user = User(
            email=email,
            username=payload.get("username"),
            password_hash=payload["passwordHash"],
            first_name=payload.get("firstName", ""),
            last_name=payload.get("lastName", ""),
            phone_number=payload.get("phoneNumber", ""),
            address=payload.get("address", ""),
            role="user",
        )
        db.add(user)
        db.delete(record)
        db.commit()
        db.refresh(user)
        logger.info(f"Cuenta creada: {email} (id={user.id})")
        return UserDTO.model_validate(user)

    @staticmethod
    @with_db
    def resend_code(db: Session, email: str) -> str:
        """Reenvía el código pendiente (registro o recuperación) con nueva expiración."""
        record = db.query(VerificationCode).filter(
            VerificationCode.email == email,
            VerificationCode.verified.is_(False),
        ).order_by(VerificationCode.id.desc()).first()
        if not record:
            raise NotFoundError("No pending verification found for this email")

        record.code = generate_verification_code()
        record.expires_at = code_expiry()
        db.commit()
        if record.purpose == "reset":
            mailer.send_password_reset_code(email, record.code)
        else:
            mailer.send_verification_code(email, record.code)
        return record.code

    @staticmethod
    @with_db
    def login(db: Session, email: str, password: str) -> UserDTO:
        user = db.query(User).filter(User.email == email).first()
        if not user or not verify_password(password, user.password_hash):
            logger.warning(f"Login fallido para {email}")
            raise ValidationFailed("Invalid email or password")
        if user.is_blocked:
            raise Forbidden("Your account has been blocked. Please contact support.")
        logger.info(f"Login: {email} ({user.role})")
        return UserDTO.model_validate(user)

    @staticmethod
    @with_db
    def forgot_password(db: Session, email: str) -> str:
        if not db.query(User).filter(User.email == email).first():
            raise NotFoundError("User not found")

        db.query(VerificationCode).filter(
            VerificationCode.email == email,
            VerificationCode.purpose == "reset",
        ).delete(synchronize_session=False)
        code = generate_verification_code()
        db.add(VerificationCode(email=email, purpose="reset", code=code, expires_at=code_expiry()))
        db.commit()
        mailer.send_password_reset_code(email, code)
        return code

    @staticmethod
    @with_db
    def verify_reset_code(db: Session, email: str, code: str) -> None:
        record = AuthService._pending_code(db, email, "reset")
        AuthService._check_code(record, code)
        record.verified = True
        db.commit()

    @staticmethod
    @with_db
    def reset_password(db: Session, email: str, code: str, new_password: str) -> None:
        record = AuthService._pending_code(db, email, "reset")
        AuthService._check_code(record, code)
        if password_errors(new_password):
            raise ValidationFailed(PASSWORD_REQUIREMENTS)

        user = db.query(User).filter(User.email == email).first()
        if not user:
            raise NotFoundError("User not found")
        user.password_hash = get_password_hash(new_password)
        db.delete(record)
        db.commit()
        logger.info(f"Contraseña restablecida: {email}")

    @staticmethod
    @with_db
    def set_username(db: Session, user_id: int, username: str) -> UserDTO:
        user = _get_or_404(db, User, user_id, "User not found")
        user.username = _validate_username(db, username, exclude_user_id=user_id)
        db.commit()
        db.refresh(user)
        return UserDTO.model_validate(user)


# ==========================================
# USUARIOS Y ROLES
# ==========================================

class UserService:

    @staticmethod
    @with_db
    def get_user(db: Session, user_id: int) -> UserDTO:
        return UserDTO.model_validate(_get_or_404(db, User, user_id, "User not found"))

    @staticmethod
    @with_db
    def list_users(db: Session) -> List[UserDTO]:
        users = db.query(User).order_by(User.created_at.desc()).all()
        return [UserDTO.model_validate(u) for u in users]

    @staticmethod
    @with_db
    def update_profile(db: Session, user_id: int, data: ProfileUpdate) -> UserDTO:
        user = _get_or_404(db, User, user_id, "User not found")

        if data.username is not None:
            user.username = _validate_username(db, data.username, exclude_user_id=user_id)
        if data.email is not None:
            email = data.email.strip().lower()
            if "@" not in email:
                raise ValidationFailed("A valid email address is required")
            taken = db.query(User).filter(User.email == email, User.id != user_id).first()
            if taken:
                raise ValidationFailed("Email already in use")
            user.email = email

        for field in ("first_name", "last_name", "phone_number", "address", "email_notifications"):
            value = getattr(data, field)
            if value is not None:
                setattr(user, field, value)

        db.commit()
        db.refresh(user)
        return UserDTO.model_validate(user)

    @staticmethod
    @with_db
    def change_password(db: Session, user_id: int, current_password: str, new_password: str) -> None:
        user = _get_or_404(db, User, user_id, "User not found")
        if not current_password or not new_password:
            raise ValidationFailed("Current password and new password are required")
        if password_errors(new_password):
            raise ValidationFailed(PASSWORD_REQUIREMENTS)
        if not verify_password(current_password, user.password_hash):
            raise ValidationFailed("Current password is incorrect")
        user.password_hash = get_password_hash(new_password)
        db.commit()

    @staticmethod
    @with_db
    def assign_role(db: Session, actor_id: int, user_id: int, role: str) -> UserDTO:
        """Solo superadmin. Roles válidos: user, admin o un rol personalizado existente."""
        role = (role or "").strip().lower()
        is_custom = role not in SYSTEM_ROLES and db.query(Role).filter(Role.name == role).first() is not None
        if role not in ("user", "admin") and not is_custom:
            raise ValidationFailed("Valid role is required (user or admin)")

        user = _get_or_404(db, User, user_id, "User not found")
        if user.id == actor_id:
            raise ValidationFailed("You cannot change your own role")
        if user.role == "superadmin":
            raise Forbidden("Cannot change the role of a superadmin")

        user.role = role
        if role == "user":
            user.admin_permissions = None
        elif user.admin_permissions is None:
            user.admin_permissions = normalize_permissions({})
        db.commit()
        db.refresh(user)
        logger.info(f"Rol de {user.email} -> {role}")
        return UserDTO.model_validate(user)

    @staticmethod
    @with_db
    def update_admin_permissions(db: Session, user_id: int, permissions: Optional[Dict]) -> UserDTO:
        if permissions is None:
            raise ValidationFailed("adminPermissions object is required")
        user = _get_or_404(db, User, user_id, "User not found")
        if user.role in ("user", "superadmin"):
            raise ValidationFailed("Permissions can only be set for admin users")
        user.admin_permissions = normalize_permissions(permissions)
        db.commit()
        db.refresh(user)
        return UserDTO.model_validate(user)

    @staticmethod
    @with_db
    def set_blocked(db: Session, actor_id: int, user_id: int, blocked: bool) -> UserDTO:
        user = _get_or_404(db, User, user_id, "User not found")
        if blocked:
            if user.id == actor_id:
                raise ValidationFailed("You cannot block your own account")
            if user.role == "superadmin":
                raise Forbidden("Superadmin accounts cannot be blocked")
        user.is_blocked = blocked
        db.commit()
        db.refresh(user)
        logger.info(f"Usuario {user.email} {'bloqueado' if blocked else 'desbloqueado'}")
        return UserDTO.model_validate(user)


class RoleService:

    @staticmethod
    @with_db
    def list_roles(db: Session) -> List[RoleDTO]:
        """Roles del sistema primero, luego por nombre."""
        roles = db.query(Role).order_by(Role.is_system.desc(), Role.name.asc()).all()
        return [RoleService._to_dto(r) for r in roles]

    @staticmethod
    def _to_dto(role: Role) -> RoleDTO:
        dto = RoleDTO.model_validate(role)
        dto.permissions = normalize_permissions(role.permissions)
        return dto

    @staticmethod
    @with_db
    def get_permissions(db: Session, name: str) -> Optional[Dict[str, bool]]:
        role = db.query(Role).filter(Role.name == name).first()
        return normalize_permissions(role.permissions) if role else None

    @staticmethod
    @with_db
    def create_role(db: Session, data: RoleCreate) -> RoleDTO:
        name = (data.name or "").strip().lower()
        if not name:
            raise ValidationFailed("Role name is required")
        if name in SYSTEM_ROLES:
            raise ValidationFailed("Cannot create a system role with the same name")
        if db.query(Role).filter(Role.name == name).first():
            raise ValidationFailed("A role with this name already exists")

        role = Role(
            name=name,
            display_name=(data.display_name or name).strip(),
            description=data.description.strip(),
            permissions=normalize_permissions(data.permissions),
            is_system=False,
        )
        db.add(role)
        db.commit()
        db.refresh(role)
        return RoleService._to_dto(role)

    @staticmethod
    @with_db
    def update_role(db: Session, role_id: int, data: RoleUpdate) -> RoleDTO:
        role = _get_or_404(db, Role, role_id, "Role not found")
        if role.is_system:
            raise ValidationFailed("System roles cannot be modified")

        if data.name is not None:
            name = data.name.strip().lower()
            if not name:
                raise ValidationFailed("Role name is required")
            if name in SYSTEM_ROLES:
                raise ValidationFailed("Cannot rename to a system role name")
            if name != role.name:
                if db.query(Role).filter(Role.name == name).first():
                    raise ValidationFailed("A role with this name already exists")
                # Los usuarios siguen al rol renombrado
                db.query(User).filter(User.role == role.name).update(
                    {User.role: name}, synchronize_session=False
                )
                role.name = name
        if data.display_name is not None:
            role.display_name = data.display_name.strip()
        if data.description is not None:
            role.description = data.description.strip()
        if data.permissions is not None:
            role.permissions = normalize_permissions(data.permissions)

        db.commit()
        db.refresh(role)
        return RoleService._to_dto(role)

    @staticmethod
    @with_db
    def delete_role(db: Session, role_id: int) -> str:
        role = _get_or_404(db, Role, role_id, "Role not found")
        if role.is_system:
            raise ValidationFailed("System roles cannot be deleted")
        name = role.name
        moved = db.query(User).filter(User.role == name).update(
            {User.role: "user", User.admin_permissions: None}, synchronize_session=False
        )
        db.delete(role)
        db.commit()
        logger.info(f"Rol '{name}' eliminado ({moved} usuarios pasan a 'user')")
        return name


# ==========================================
# HABITACIONES
# ==========================================

class RoomService:

    @staticmethod
    @with_db
    def list_rooms(db: Session, only_available: bool = False) -> List[RoomDTO]:
        query = db.query(Room)
        if only_available:
            query = query.filter(Room.is_available.is_(True))
        return [RoomDTO.model_validate(r) for r in query.order_by(Room.room_number).all()]

    @staticmethod
    @with_db
    def get_room(db: Session, room_id: int) -> RoomDTO:
        return RoomDTO.model_validate(_get_or_404(db, Room, room_id, "Room not found"))

    @staticmethod
    @with_db
    def create_room(db: Session, data: RoomCreate) -> RoomDTO:
        if db.query(Room).filter(Room.room_number == data.room_number).first():
            raise ValidationFailed("Room number already exists")
        room = Room(**data.model_dump(), housekeeping_status="clean")
        db.add(room)
        db.commit()
        db.refresh(room)
        logger.info(f"Habitación creada: {room.room_number} ({room.room_type})")
        return RoomDTO.model_validate(room)

    @staticmethod
    @with_db
    def update_room(db: Session, room_id: int, data: RoomUpdate) -> RoomDTO:
        room = _get_or_404(db, Room, room_id, "Room not found")
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        number = changes.get("room_number")
        if number and number != room.room_number:
            if db.query(Room).filter(Room.room_number == number).first():
                raise ValidationFailed("Room number already exists")
        for field, value in changes.items():
            setattr(room, field, value)
        db.commit()
        db.refresh(room)
        return RoomDTO.model_validate(room)

    @staticmethod
    @with_db
    def delete_room(db: Session, room_id: int) -> str:
        room = _get_or_404(db, Room, room_id, "Room not found")
        active = db.query(Booking).filter(
            Booking.room_id == room_id,
            Booking.status.in_(ACTIVE_BOOKING_STATUSES),
        ).count()
        if active:
            raise ValidationFailed("Cannot delete room with active bookings. Please cancel bookings first.")
        number = room.room_number
        db.query(RoomReview).filter(RoomReview.room_id == room_id).delete(synchronize_session=False)
        db.delete(room)
        db.commit()
        logger.info(f"Habitación eliminada: {number}")
        return number

    @staticmethod
    @with_db
    def seed_sample_rooms(db: Session) -> List[RoomDTO]:
        """Crea las habitaciones de ejemplo 101/201/301/401 que aún no existan."""
        existing = {n for (n,) in db.query(Room.room_number).all()}
        created = []
        for sample in SAMPLE_ROOMS:
            if sample["room_number"] in existing:
                continue
            room = Room(**sample, is_available=True, housekeeping_status="clean", images=[])
            db.add(room)
            created.append(room)
        db.commit()
        for room in created:
            db.refresh(room)
        logger.info(f"Habitaciones de ejemplo creadas: {len(created)}")
        return [RoomDTO.model_validate(r) for r in created]

    @staticmethod
    def _day_status(room: Room, bookings: List[Booking], day: date) -> RoomDayStatusDTO:
        booking = next(
            (b for b in bookings if b.room_id == room.id and b.check_in_date <= day < b.check_out_date),
            None,
        )
        return RoomDayStatusDTO(
            room_id=room.id,
            room_number=room.room_number,
            room_type=room.room_type,
            is_available=bool(room.is_available) and booking is None,
            booking=AvailabilityBookingDTO.model_validate(booking) if booking else None,
        )

    @staticmethod
    @with_db
    def availability_on(db: Session, day: date) -> List[RoomDayStatusDTO]:
        rooms = db.query(Room).order_by(Room.room_number).all()
        bookings = _overlaps(db.query(Booking), day, day + timedelta(days=1)).all()
        return [RoomService._day_status(room, bookings, day) for room in rooms]

    @staticmethod
    @with_db
    def availability_between(db: Session, start: date, end: date) -> List[RoomRangeAvailabilityDTO]:
        if end <= start:
            raise ValidationFailed("End date must be after start date")
        rooms = db.query(Room).order_by(Room.room_number).all()
        bookings = _overlaps(db.query(Booking), start, end).all()

        result = []
        for room in rooms:
            room_bookings = [b for b in bookings if b.room_id == room.id]
            result.append(RoomRangeAvailabilityDTO(
                room=RoomDTO.model_validate(room),
                is_available=bool(room.is_available) and not room_bookings,
                bookings=[AvailabilityBookingDTO.model_validate(b) for b in room_bookings],
            ))
        return result

    @staticmethod
    @with_db
    def month_calendar(db: Session, year: int, month: int) -> List[CalendarDayDTO]:
        """Disponibilidad por día y habitación para un mes completo."""
        from calendar import monthrange

        if not 1 <= month <= 12:
            raise ValidationFailed("Month must be between 1 and 12")
        first_day = date(year, month, 1)
        last_day = date(year, month, monthrange(year, month)[1])

        rooms = db.query(Room).order_by(Room.room_number).all()
        bookings = _overlaps(db.query(Booking), first_day, last_day + timedelta(days=1)).all()

        days = []
        current = first_day
        while current <= last_day:
            days.append(CalendarDayDTO(
                date=current.isoformat(),
                day=current.day,
                rooms=[RoomService._day_status(room, bookings, current) for room in rooms],
            ))
            current += timedelta(days=1)
        return days

    @staticmethod
    @with_db
    def housekeeping_overview(db: Session) -> HousekeepingOverview:
        rooms = db.query(Room).order_by(Room.room_number).all()
        summary = {status: 0 for status in HOUSEKEEPING_STATUSES}
        for room in rooms:
            key = room.housekeeping_status or "clean"
            summary[key] = summary.get(key, 0) + 1
        return HousekeepingOverview(rooms=[RoomDTO.model_validate(r) for r in rooms], summary=summary)

    @staticmethod
    @with_db
    def update_housekeeping(db: Session, room_id: int, status: str) -> RoomDTO:
        if status not in HOUSEKEEPING_STATUSES:
            raise ValidationFailed("Invalid housekeeping status")
        room = _get_or_404(db, Room, room_id, "Room not found")
        room.housekeeping_status = status
        db.commit()
        db.refresh(room)
        logger.info(f"Housekeeping habitación {room.room_number}: {status}")
        return RoomDTO.model_validate(room)


# ==========================================
# RESERVAS
# ==========================================

def calculate_booking_pricing(price: float, capacity: int, check_in: date, check_out: date,
                              guests: int) -> Dict[str, float]:
    """Noches, importe base y recargo por personas sobre la capacidad."""
    nights = math.ceil((check_out - check_in).total_seconds() / 86400)
    base = price * nights
    extra_persons = max(0, guests - capacity)
    extra_charge = extra_persons * EXTRA_PERSON_RATE * nights
    return {
        "nights": nights,
        "base_amount": base,
        "extra_persons": extra_persons,
        "extra_person_charge": extra_charge,
        "total_amount": base + extra_charge,
    }


def late_check_in_fee(check_in_date: date, now: datetime) -> float:
    """10 por hora (o fracción) después de las 15:00, máximo 50."""
    standard = datetime.combine(check_in_date, STANDARD_CHECKIN_TIME)
    if now <= standard:
        return 0.0
    hours_late = math.ceil((now - standard).total_seconds() / 3600)
    return float(min(hours_late * LATE_CHECKIN_RATE, LATE_CHECKIN_CAP))


def late_check_out_fee(check_out_date: date, now: datetime) -> Tuple[float, bool]:
    """
    Recargo por salida tardía: 20 por hora después de las 11:00, máximo 100.

    Returns:
        (fee, is_early_check_out). Una salida anticipada nunca paga recargo.
    """
    days_difference = math.floor((now - datetime.combine(check_out_date, time.min)).total_seconds() / 86400)
    is_early = days_difference < 0
    standard = datetime.combine(check_out_date, STANDARD_CHECKOUT_TIME)
    if is_early or now <= standard:
        return 0.0, is_early
    hours_late = math.ceil((now - standard).total_seconds() / 3600)
    return float(min(hours_late * LATE_CHECKOUT_RATE, LATE_CHECKOUT_CAP)), is_early


class BookingService:
    """Ciclo de vida de reservas: pending -> confirmed -> checked-in -> checked-out."""

    @staticmethod
    def _dto(booking: Booking, now: Optional[datetime] = None) -> BookingDTO:
        dto = BookingDTO.model_validate(booking)
        if now is not None and booking.status == "pending" and booking.created_at:
            dto.pending_duration_seconds = max(0, int((now - booking.created_at).total_seconds()))
        return dto

    @staticmethod
    def _load(db: Session, booking_id: int) -> Booking:
        return _get_or_404(db, Booking, booking_id, "Booking not found")

    @staticmethod
    @with_db
    def create_booking(db: Session, user_id: int, data: BookingCreate) -> BookingDTO:
        room = db.get(Room, data.room_id)
        if not room:
            raise NotFoundError("Room not found")
        if not room.is_available:
            raise ValidationFailed("Room is not available")
        if _overlaps(db.query(Booking).filter(Booking.room_id == room.id),
                     data.check_in_date, data.check_out_date).first():
            raise ValidationFailed("Room is not available for the selected dates")

        pricing = calculate_booking_pricing(
            room.price, room.capacity, data.check_in_date, data.check_out_date, data.number_of_guests
        )
        booking = Booking(
            user_id=user_id,
            room_id=room.id,
            check_in_date=data.check_in_date,
            check_out_date=data.check_out_date,
            number_of_guests=data.number_of_guests,
            total_amount=pricing["total_amount"],
            guest_name=data.guest_name,
            contact_number=data.contact_number,
            special_requests=data.special_requests,
            status="pending",
            payment_status="pending",
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        logger.info(
            f"Reserva {booking.id} creada: habitación {room.room_number}, "
            f"{pricing['nights']} noches, total {pricing['total_amount']}"
        )

        NotificationService.create_for_user(
            db, user_id, "Booking request submitted. Awaiting confirmation.", "success", "/user/bookings"
        )
        user = db.get(User, user_id)
        nights = pricing["nights"]
        NotificationService.notify_admins(
            db,
            f"{user.display_name if user else 'A user'} created a new booking request for "
            f"Room {room.room_number} ({nights} night{'s' if nights > 1 else ''}).",
            "info",
            "/admin/bookings",
        )
        return BookingService._dto(booking)

    @staticmethod
    @with_db
    def list_user_bookings(db: Session, user_id: int) -> List[BookingDTO]:
        bookings = db.query(Booking).filter(Booking.user_id == user_id)\
            .order_by(Booking.created_at.desc()).all()
        return [BookingService._dto(b) for b in bookings]

    @staticmethod
    @with_db
    def list_all(db: Session, now: Optional[datetime] = None) -> List[BookingDTO]:
        """Vista admin: incluye pendingDurationSeconds en las reservas pendientes."""
        now = now or datetime.now()
        bookings = db.query(Booking).order_by(Booking.created_at.desc()).all()
        return [BookingService._dto(b, now) for b in bookings]

    @staticmethod
    @with_db
    def get_booking(db: Session, booking_id: int, user_id: int, role: str) -> BookingDTO:
        booking = BookingService._load(db, booking_id)
        if booking.user_id != user_id and not is_admin_role(role):
            raise Forbidden("Access denied")
        return BookingService._dto(booking)

    @staticmethod
    @with_db
    def update_status(db: Session, booking_id: int, status: str, admin_notes: Optional[str] = None) -> BookingDTO:
        if status not in BOOKING_STATUSES:
            raise ValidationFailed("Valid status is required")
        booking = BookingService._load(db, booking_id)
        booking.status = status
        if admin_notes:
            booking.admin_notes = admin_notes
        db.commit()
        db.refresh(booking)
        logger.info(f"Reserva {booking_id} -> {status}")

        room_number = booking.room.room_number if booking.room else ""
        if status == "confirmed":
            NotificationService.create_for_user(
                db, booking.user_id, f"Your booking for Room {room_number} is confirmed.",
                "success", "/user/bookings", email=True,
            )
        elif status == "cancelled":
            suffix = f": {admin_notes}" if admin_notes else ""
            NotificationService.create_for_user(
                db, booking.user_id, f"Your booking was cancelled{suffix}.",
                "warning", "/user/bookings", email=True,
            )
        elif status == "pending":
            NotificationService.create_for_user(
                db, booking.user_id, "Your booking status was updated to pending.", "info", "/user/bookings",
            )
        return BookingService._dto(booking)

    @staticmethod
    @with_db
    def mark_paid(db: Session, booking_id: int, method: str, transaction_id: Optional[str] = None,
                  session_id: Optional[str] = None) -> BookingDTO:
        """Usado por el flujo de Stripe: idempotente si la reserva ya está pagada."""
        booking = BookingService._load(db, booking_id)
        if booking.payment_status == "paid":
            return BookingService._dto(booking)

        booking.payment_status = "paid"
        booking.payment_method = method
        booking.payment_date = datetime.now()
        if transaction_id:
            booking.transaction_id = transaction_id
        if session_id:
            booking.stripe_session_id = session_id
        db.commit()
        db.refresh(booking)
        logger.info(f"Reserva {booking_id} pagada vía {method}")
        BookingService._notify_paid(db, booking)
        return BookingService._dto(booking)

    @staticmethod
    def _notify_paid(db: Session, booking: Booking) -> None:
        user = booking.user
        room_info = f"Room {booking.room.room_number}" if booking.room else "a room"
        NotificationService.notify_admins(
            db,
            f"{user.display_name if user else 'A user'} completed payment for {room_info} "
            f"(₱{booking.total_amount:.0f}).",
            "success",
            "/admin/bookings",
            email=True,
        )
        if user and user.email_notifications:
            mailer.send_email(
                user.email,
                "Payment received for your booking",
                f"We received your payment for {room_info} (₱{booking.total_amount:.0f}).",
            )

    @staticmethod
    @with_db
    def update_payment(db: Session, booking_id: int, user_id: int, role: str, payment_status: str,
                       payment_method: Optional[str] = None, transaction_id: Optional[str] = None) -> BookingDTO:
        if payment_status not in ("pending", "paid", "refunded"):
            raise ValidationFailed("Invalid payment status. Must be 'pending', 'paid', or 'refunded'")
        booking = BookingService._load(db, booking_id)

        is_admin = is_admin_role(role)
        if not is_admin:
            if booking.user_id != user_id:
                raise Forbidden("You don't have permission to update this booking's payment status")
            if payment_status != "paid":
                raise Forbidden("You can only mark bookings as paid")
        if booking.payment_status == "paid" and payment_status == "pending":
            raise ValidationFailed(
                "Cannot mark a paid booking as pending. The user has already paid. "
                "You can only mark it as refunded if needed."
            )

        booking.payment_status = payment_status
        if payment_status == "paid":
            booking.payment_date = datetime.now()
            if payment_method:
                booking.payment_method = payment_method
            elif not booking.payment_method:
                booking.payment_method = "other"
            if transaction_id:
                booking.transaction_id = transaction_id
        db.commit()
        db.refresh(booking)
        logger.info(f"Pago de reserva {booking_id} -> {payment_status}")

        if payment_status == "paid":
            if is_admin:
                room_number = booking.room.room_number if booking.room else ""
                NotificationService.create_for_user(
                    db, booking.user_id,
                    f"Payment received for booking Room {room_number}. Your booking is confirmed!",
                    "success", "/user/bookings",
                )
            BookingService._notify_paid(db, booking)
        return BookingService._dto(booking)

    @staticmethod
    @with_db
    def check_in(db: Session, booking_id: int, staff_id: int, notes: Optional[str] = None,
                 additional_charges: float = 0.0, now: Optional[datetime] = None) -> BookingDTO:
        now = now or datetime.now()
        booking = BookingService._load(db, booking_id)

        if booking.status == "checked-in":
            raise ValidationFailed("Guest is already checked in")
        if booking.status != "confirmed":
            raise ValidationFailed("Invalid booking status for check-in")
        if booking.payment_status != "paid":
            raise ValidationFailed("Payment required before check-in")

        scheduled = datetime.combine(booking.check_in_date, time.min)
        days_difference = math.floor((now - scheduled).total_seconds() / 86400)
        if days_difference < -EARLY_CHECKIN_DAYS:
            raise ValidationFailed("Check-in too early")

        room = booking.room
        if room is None:
            raise NotFoundError("Room not found")
        if not room.is_available:
            raise ValidationFailed("Room is not available")
        if room.housekeeping_status != "clean":
            raise ValidationFailed("Room not ready for check-in")
        conflict = _overlaps(
            db.query(Booking).filter(Booking.room_id == room.id, Booking.id != booking.id),
            booking.check_in_date, booking.check_out_date,
        ).first()
        if conflict:
            raise ValidationFailed("Room conflict detected")

        booking.status = "checked-in"
        booking.actual_check_in_time = now
        booking.checked_in_by = staff_id
        booking.late_check_in_fee = late_check_in_fee(booking.check_in_date, now)
        if notes:
            booking.admin_notes = notes
        if additional_charges and additional_charges > 0:
            booking.additional_charges = (booking.additional_charges or 0) + additional_charges

        room.is_available = False
        room.housekeeping_status = "dirty"
        db.commit()
        db.refresh(booking)
        logger.info(f"Check-in reserva {booking_id}, habitación {room.room_number}, recargo {booking.late_check_in_fee}")

        NotificationService.create_for_user(
            db, booking.user_id, f"You have been checked in! Welcome to Room {room.room_number}.",
            "success", "/user/bookings",
        )
        return BookingService._dto(booking)

    @staticmethod
    @with_db
    def check_out(db: Session, booking_id: int, staff_id: int, notes: Optional[str] = None,
                  additional_charges: float = 0.0, room_condition: str = "good",
                  now: Optional[datetime] = None) -> CheckOutResult:
        now = now or datetime.now()
        booking = BookingService._load(db, booking_id)

        if booking.status == "checked-out":
            raise ValidationFailed("Guest is already checked out")
        if booking.status != "checked-in":
            raise ValidationFailed("Invalid booking status for check-out")
        if not booking.actual_check_in_time:
            raise ValidationFailed("Invalid check-in state")
        room = booking.room
        if room is None:
            raise NotFoundError("Room not found")

        late_fee, is_early = late_check_out_fee(booking.check_out_date, now)
        actual_nights = math.ceil((now - booking.actual_check_in_time).total_seconds() / 86400)
        scheduled_nights = booking.nights
        extended = (actual_nights - scheduled_nights) * room.price if actual_nights > scheduled_nights else 0.0

        base = booking.total_amount
        late_in = booking.late_check_in_fee or 0.0
        final_additional = (booking.additional_charges or 0.0) + (additional_charges or 0.0)
        total = base + late_in + late_fee + extended + final_additional
        amount_paid = base if booking.payment_status == "paid" else 0.0
        balance_due = total - amount_paid

        booking.status = "checked-out"
        booking.actual_check_out_time = now
        booking.checked_out_by = staff_id
        booking.late_check_out_fee = late_fee
        booking.additional_charges = final_additional
        if notes:
            booking.checkout_notes = notes
            booking.admin_notes = notes if not booking.admin_notes else f"{booking.admin_notes}\n[Check-out] {notes}"

        room.is_available = True
        room.housekeeping_status = "dirty"
        db.commit()
        db.refresh(booking)
        logger.info(
            f"Check-out reserva {booking_id} ({room_condition}): total {total}, saldo {balance_due}"
        )

        if balance_due > 0:
            NotificationService.create_for_user(
                db, booking.user_id,
                f"You have been checked out! Room: {room.room_number}. Balance due: ₱{balance_due:.2f}",
                "warning", "/user/bookings",
            )
        else:
            NotificationService.create_for_user(
                db, booking.user_id, "Thank you for staying with us!", "success", "/user/bookings",
            )

        return CheckOutResult(
            booking=BookingService._dto(booking),
            summary=CheckOutSummary(
                base_amount=base,
                late_check_in_fee=late_in,
                late_check_out_fee=late_fee,
                extended_stay_charge=extended,
                additional_charges=final_additional,
                total_charges=total,
                amount_paid=amount_paid,
                balance_due=balance_due,
                actual_nights=actual_nights,
                scheduled_nights=scheduled_nights,
                is_early_check_out=is_early,
            ),
        )

    @staticmethod
    @with_db
    def request_cancellation(db: Session, booking_id: int, user_id: int, reason: str = "") -> BookingDTO:
        booking = BookingService._load(db, booking_id)
        if booking.user_id != user_id:
            raise Forbidden("Not authorized to cancel this booking")
        if booking.status not in ("pending", "confirmed"):
            raise ValidationFailed("Only pending or confirmed bookings can be cancelled")

        booking.cancellation_requested = True
        if reason:
            booking.cancellation_reason = reason
        db.commit()
        db.refresh(booking)

        user = booking.user
        room_info = f"Room {booking.room.room_number}" if booking.room else "a room"
        NotificationService.notify_admins(
            db, f"{user.display_name if user else 'A user'} requested a cancellation for {room_info}.",
            "warning", "/admin/bookings", email=True,
        )
        return BookingService._dto(booking)

    @staticmethod
    @with_db
    def approve_cancellation(db: Session, booking_id: int) -> BookingDTO:
        booking = BookingService._load(db, booking_id)
        if not booking.cancellation_requested:
            raise ValidationFailed("No cancellation request to approve")
        booking.status = "cancelled"
        booking.cancellation_requested = False
        db.commit()
        db.refresh(booking)
        NotificationService.create_for_user(
            db, booking.user_id, "Your booking cancellation was approved.", "success", "/user/bookings", email=True,
        )
        return BookingService._dto(booking)

    @staticmethod
    @with_db
    def decline_cancellation(db: Session, booking_id: int, admin_notes: str = "") -> BookingDTO:
        booking = BookingService._load(db, booking_id)
        if not booking.cancellation_requested:
            raise ValidationFailed("No cancellation request to decline")
        booking.cancellation_requested = False
        if admin_notes:
            booking.admin_notes = admin_notes
        db.commit()
        db.refresh(booking)
        NotificationService.create_for_user(
            db, booking.user_id, "Your cancellation request was declined.", "warning", "/user/bookings", email=True,
        )
        return BookingService._dto(booking)


# ==========================================
# CALENDARIO (vista admin)
# ==========================================

class CalendarService:

    @staticmethod
    def _month_bookings(db: Session, year: int, month: int):
        from calendar import monthrange

        if not 1 <= month <= 12:
            raise ValidationFailed("Month must be between 1 and 12")
        first_day = date(year, month, 1)
        last_day = date(year, month, monthrange(year, month)[1])
        bookings = _overlaps(db.query(Booking), first_day, last_day + timedelta(days=1)).all()
        return first_day, last_day, bookings

    @staticmethod
    @with_db
    def get_monthly_events(db: Session, year: int, month: int) -> List[CalendarEventDTO]:
        """
        Obtiene eventos de calendario para un mes específico.
        Compatible con FullCalendar y otras librerías JS.

        Args:
            year: Año (ej: 2024)
            month: Mes (1-12)

        Returns:
            Lista de CalendarEventDTO con formato estándar
        """
        _, _, bookings = CalendarService._month_bookings(db, year, month)

        events = []
        for booking in bookings:
            # Verde: ya hizo check-in. Azul: confirmada pero no llegó
            color = "#4CAF50" if booking.status == "checked-in" else "#2196F3"
            room = booking.room
            events.append(CalendarEventDTO(
                title=booking.guest_name or "Sin nombre",
                start=booking.check_in_date.isoformat(),
                end=booking.check_out_date.isoformat(),
                resource_id=room.room_number if room else "",
                color=color,
                extended_props={
                    "bookingId": booking.id,
                    "status": booking.status,
                    "roomType": room.room_type if room else "",
                    "phone": booking.contact_number,
                },
            ))

        logger.info(f"get_monthly_events: {len(events)} eventos para {year}-{month:02d}")
        return events

    @staticmethod
    @with_db
    def get_occupancy_map(db: Session, year: int, month: int) -> Dict[str, Dict]:
        """
        Obtiene mapa de ocupación para calendario nativo.

        Returns:
            Dict con formato:
            {
                "2024-12-20": {"count": 3, "status": "medium", "ids": [1, 2, 3], "guests": [...]},
                ...
            }
        """
        first_day, last_day, bookings = CalendarService._month_bookings(db, year, month)

        # Inicializar mapa vacío para todos los días del mes
        occupancy_map = {}
        current = first_day
        while current <= last_day:
            occupancy_map[current.isoformat()] = {"count": 0, "status": "free", "ids": [], "guests": []}
            current += timedelta(days=1)

        for booking in bookings:
            day = max(booking.check_in_date, first_day)
            end = min(booking.check_out_date, last_day + timedelta(days=1))
            while day < end:
                data = occupancy_map[day.isoformat()]
                data["count"] += 1
                data["ids"].append(booking.id)
                data["guests"].append(booking.guest_name)
                day += timedelta(days=1)

        # Calcular status basado en count
        for data in occupancy_map.values():
            count = data["count"]
            if count == 0:
                data["status"] = "free"
            elif count <= 5:
                data["status"] = "medium"
            else:
                data["status"] = "high"

        busy_days = sum(1 for d in occupancy_map.values() if d["count"] > 0)
        logger.info(f"get_occupancy_map: {year}-{month:02d} con {busy_days} días ocupados")
        return occupancy_map


# ==========================================
# FEEDBACK Y RESEÑAS
# ==========================================

class FeedbackService:

    @staticmethod
    @with_db
    def create(db: Session, user_id: int, data: FeedbackCreate) -> FeedbackDTO:
        feedback = Feedback(user_id=user_id, rating=data.rating, comment=data.comment.strip())
        db.add(feedback)
        db.commit()
        db.refresh(feedback)
        return FeedbackDTO.model_validate(feedback)

    @staticmethod
    @with_db
    def list_for_user(db: Session, user_id: int) -> List[FeedbackDTO]:
        items = db.query(Feedback).filter(Feedback.user_id == user_id)\
            .order_by(Feedback.created_at.desc()).all()
        return [FeedbackDTO.model_validate(f) for f in items]

    @staticmethod
    @with_db
    def list_all(db: Session) -> List[FeedbackDTO]:
        items = db.query(Feedback).order_by(Feedback.created_at.desc()).all()
        return [FeedbackDTO.model_validate(f) for f in items]


class ReviewService:

    @staticmethod
    @with_db
    def list_for_room(db: Session, room_id: int) -> RoomReviewSummary:
        _get_or_404(db, Room, room_id, "Room not found")
        reviews = db.query(RoomReview).filter(RoomReview.room_id == room_id)\
            .order_by(RoomReview.created_at.desc()).all()
        count = len(reviews)
        average = round(sum(r.rating for r in reviews) / count, 1) if count else 0.0
        return RoomReviewSummary(
            items=[RoomReviewDTO.model_validate(r) for r in reviews],
            average_rating=average,
            count=count,
        )

    @staticmethod
    @with_db
    def upsert(db: Session, room_id: int, user_id: int, data: RoomReviewCreate) -> RoomReviewDTO:
        """Una reseña por (usuario, habitación); exige una estancia finalizada en esa habitación."""
        _get_or_404(db, Room, room_id, "Room not found")
        stay = db.query(Booking).filter(
            Booking.room_id == room_id,
            Booking.user_id == user_id,
            Booking.status == "checked-out",
        ).order_by(Booking.actual_check_out_time.desc()).first()
        if not stay:
            raise Forbidden("You can only review rooms you have stayed in")

        review = db.query(RoomReview).filter(
            RoomReview.room_id == room_id, RoomReview.user_id == user_id
        ).first()
        if review is None:
            review = RoomReview(room_id=room_id, user_id=user_id)
            db.add(review)
        review.booking_id = stay.id
        review.rating = data.rating
        review.comment = data.comment.strip()
        db.commit()
        db.refresh(review)
        return RoomReviewDTO.model_validate(review)


# ==========================================
# REGISTRO DE ACTIVIDAD
# ==========================================

class ActivityLogService:

    @staticmethod
    def log(db: Session, action: str, resource: str, actor: Optional[User] = None,
            resource_id=None, details: Optional[Dict] = None, status: str = "success",
            ip: Optional[str] = None, user_agent: Optional[str] = None,
            actor_email: Optional[str] = None) -> None:
        """Registra una acción. Un fallo de auditoría nunca interrumpe la operación auditada."""
        try:
            db.add(ActivityLog(
                actor_id=actor.id if actor else None,
                actor_email=actor.email if actor else actor_email,
                actor_role=actor.role if actor else None,
                action=action,
                resource=resource,
                resource_id=str(resource_id) if resource_id is not None else None,
                details=details,
                ip=ip,
                user_agent=user_agent,
                status=status,
            ))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"No se pudo registrar actividad {action}/{resource}: {e}")

    @staticmethod
    @with_db
    def list_logs(db: Session, page: int = 1, limit: int = 20, q: Optional[str] = None,
                  date_from: Optional[date] = None, date_to: Optional[date] = None) -> ActivityLogPage:
        page = max(1, page)
        limit = max(1, min(limit, 100))
        query = db.query(ActivityLog)
        if q:
            pattern = f"%{q}%"
            query = query.filter(or_(
                ActivityLog.actor_email.ilike(pattern),
                ActivityLog.action.ilike(pattern),
                ActivityLog.resource.ilike(pattern),
            ))
        if date_from:
            query = query.filter(ActivityLog.created_at >= datetime.combine(date_from, time.min))
        if date_to:
            query = query.filter(ActivityLog.created_at < datetime.combine(date_to + timedelta(days=1), time.min))

        total = query.with_entities(func.count(ActivityLog.id)).scalar() or 0
        items = query.order_by(ActivityLog.created_at.desc(), ActivityLog.id.desc())\
            .offset((page - 1) * limit).limit(limit).all()
        return ActivityLogPage(
            data=[ActivityLogDTO.model_validate(i) for i in items],
            pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit) if total else 0),
        )
