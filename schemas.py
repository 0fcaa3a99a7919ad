"""
RedBoat Hotel - Esquemas de Validación (Pydantic)
=================================================

Data Transfer Objects compartidos por la API y el dashboard.

Convenciones:
- Atributos en snake_case en Python, camelCase en el JSON (alias automático)
- Las entradas aceptan ambos formatos (populate_by_name)
- Los DTO de salida se construyen desde los modelos ORM (from_attributes)
"""

from datetime import date, datetime
from typing import Dict, Generic, List, Literal, Optional, TypeVar
import re

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from constants import ROOM_TYPES

T = TypeVar("T")

BookingStatus = Literal["pending", "confirmed", "checked-in", "checked-out", "cancelled"]
PaymentStatus = Literal["pending", "paid", "refunded"]
HousekeepingStatus = Literal["clean", "dirty", "in-progress"]

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class DataResponse(ApiModel, Generic[T]):
    """Envoltorio {"data": ..., "message": ...} usado por todas las respuestas."""
    data: T
    message: Optional[str] = None


class MessageResponse(ApiModel):
    message: str


# ==========================================
# VALIDADORES COMPARTIDOS
# ==========================================

def validate_phone_format(phone: Optional[str]) -> str:
    """Normaliza teléfonos: solo dígitos y '+'."""
    if not phone:
        return ""
    return re.sub(r"[^\d+]", "", phone)


def validate_email_format(email: str) -> str:
    cleaned = (email or "").strip().lower()
    if not EMAIL_PATTERN.match(cleaned):
        raise ValueError("A valid email is required")
    return cleaned


# ==========================================
# SCHEMAS DE AUTENTICACIÓN
# ==========================================

class EmailBody(ApiModel):
    """Base para los cuerpos que llevan un email: lo valida y lo pasa a minúsculas."""
    email: str

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return validate_email_format(v)


class SignupRequest(EmailBody):
    username: str = Field(..., min_length=3, description="Nombre de usuario público")
    password: str
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone_number: str = ""
    address: str = ""

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        return validate_phone_format(v)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        cleaned = v.strip()
        if not re.match(r"^[a-zA-Z0-9_]+$", cleaned):
            raise ValueError("Username can only contain letters, numbers, and underscores")
        return cleaned


class VerifyCodeRequest(EmailBody):
    """Sirve para verify-email y verify-reset-code."""
    code: str = Field(..., min_length=6, max_length=6)


class EmailRequest(EmailBody):
    pass


class LoginRequest(ApiModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.strip().lower()


class ResetPasswordRequest(EmailBody):
    code: str
    new_password: str


class SetUsernameRequest(ApiModel):
    username: str

    @field_validator("username")
    @classmethod
    def strip_username(cls, v: str) -> str:
        return v.strip()


# ==========================================
# SCHEMAS DE USUARIO Y ROLES
# ==========================================

class AdminPermissions(ApiModel):
    manage_bookings: bool = True
    manage_rooms: bool = True
    manage_housekeeping: bool = True
    manage_users: bool = True
    view_reports: bool = True


class UserDTO(ApiModel):
    """Usuario tal como lo ve el frontend (sin hash de contraseña)."""
    id: int
    username: Optional[str] = None
    email: str
    role: str
    first_name: str = ""
    last_name: str = ""
    phone_number: str = ""
    address: str = ""
    admin_permissions: Optional[Dict[str, bool]] = None
    email_notifications: bool = True
    is_blocked: bool = False
    created_at: Optional[datetime] = None

    @computed_field
    @property
    def name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ProfileUpdate(ApiModel):
    username: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    email_notifications: Optional[bool] = None

    @field_validator("phone_number")
    @classmethod
    def validate_phone(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else validate_phone_format(v)


class PasswordChange(ApiModel):
    current_password: str
    new_password: str


class RoleAssignment(ApiModel):
    role: str

    @field_validator("role")
    @classmethod
    def normalize_role(cls, v: str) -> str:
        return v.strip().lower()


class RoleCreate(ApiModel):
    name: str = ""
    display_name: str = ""
    description: str = ""
    permissions: Optional[Dict[str, Optional[bool]]] = None


class RoleUpdate(ApiModel):
    name: Optional[str] = None
    display_name: Optional[str] = None
    description: Optional[str] = None
    permissions: Optional[Dict[str, Optional[bool]]] = None


class RoleDTO(ApiModel):
    id: int
    name: str
    display_name: str = ""
    description: str = ""
    permissions: Dict[str, bool]
    is_system: bool
    created_at: Optional[datetime] = None


# ==========================================
# SCHEMAS DE HABITACIÓN
# ==========================================

class RoomBase(ApiModel):
    @field_validator("room_type", check_fields=False)
    @classmethod
    def validate_room_type(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in ROOM_TYPES:
            raise ValueError(f"Room type must be one of: {', '.join(ROOM_TYPES)}")
        return v

    @field_validator("room_number", check_fields=False)
    @classmethod
    def validate_room_number(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        cleaned = str(v).strip()
        if not cleaned:
            raise ValueError("Room number is required")
        return cleaned


class RoomCreate(RoomBase):
    room_number: str
    room_type: str
    price: float = Field(..., gt=0, description="Precio por noche")
    capacity: int = Field(..., gt=0)
    amenities: List[str] = Field(default_factory=list)
    description: str = ""
    images: List[str] = Field(default_factory=list)
    is_available: bool = True


class RoomUpdate(RoomBase):
    room_number: Optional[str] = None
    room_type: Optional[str] = None
    price: Optional[float] = Field(default=None, gt=0)
    capacity: Optional[int] = Field(default=None, gt=0)
    amenities: Optional[List[str]] = None
    description: Optional[str] = None
    images: Optional[List[str]] = None
    is_available: Optional[bool] = None


class RoomDTO(ApiModel):
    id: int
    room_number: str
    room_type: str
    price: float
    capacity: int
    amenities: List[str] = Field(default_factory=list)
    is_available: bool
    description: str = ""
    images: List[str] = Field(default_factory=list)
    housekeeping_status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class HousekeepingUpdate(ApiModel):
    housekeeping_status: HousekeepingStatus


class HousekeepingOverview(ApiModel):
    rooms: List[RoomDTO]
    summary: Dict[str, int]


class AvailabilityBookingDTO(ApiModel):
    id: int
    guest_name: str = ""
    status: str
    check_in_date: date
    check_out_date: date


class RoomDayStatusDTO(ApiModel):
    """Estado de una habitación en un día concreto."""
    room_id: int
    room_number: str
    room_type: str
    is_available: bool
    booking: Optional[AvailabilityBookingDTO] = None


class RoomRangeAvailabilityDTO(ApiModel):
    room: RoomDTO
    is_available: bool
    bookings: List[AvailabilityBookingDTO] = Field(default_factory=list)


class CalendarDayDTO(ApiModel):
    date: str
    day: int
    rooms: List[RoomDayStatusDTO]


# ==========================================
# SCHEMAS DE RESERVA
# ==========================================

class BookingCreate(ApiModel):
    """
    Reserva solicitada por un huésped.

    Validaciones:
    - check_in_date: no puede ser anterior a hoy
    - check_out_date: posterior a check_in_date
    - number_of_guests: al menos 1
    - guest_name / contact_number: obligatorios
    """
    room_id: int
    check_in_date: date
    check_out_date: date
    number_of_guests: int = Field(..., ge=1)
    guest_name: str = Field(..., min_length=1)
    contact_number: str = Field(..., min_length=1)
    special_requests: str = ""

    @field_validator("guest_name")
    @classmethod
    def validate_guest_name(cls, v: str) -> str:
        cleaned = v.strip()
        if not cleaned:
            raise ValueError("Guest name is required")
        return cleaned

    @field_validator("contact_number")
    @classmethod
    def validate_phone(cls, v: str) -> str:
        cleaned = validate_phone_format(v)
        if not cleaned:
            raise ValueError("Contact number is required")
        return cleaned

    @model_validator(mode="after")
    def validate_date_coherence(self):
        if self.check_in_date < date.today():
            raise ValueError("Check-in date cannot be in the past")
        if self.check_out_date <= self.check_in_date:
            raise ValueError("Check-out date must be after check-in date")
        return self


class BookingRoomDTO(ApiModel):
    id: int
    room_number: str
    room_type: str
    price: float
    capacity: int


class BookingUserDTO(ApiModel):
    id: int
    username: Optional[str] = None
    email: str
    first_name: str = ""
    last_name: str = ""


class BookingDTO(ApiModel):
    id: int
    user_id: int
    room_id: int
    room: Optional[BookingRoomDTO] = None
    user: Optional[BookingUserDTO] = None
    check_in_date: date
    check_out_date: date
    number_of_guests: int
    total_amount: float
    status: str
    guest_name: str = ""
    contact_number: str = ""
    special_requests: Optional[str] = ""
    payment_status: str
    payment_method: Optional[str] = None
    payment_date: Optional[datetime] = None
    transaction_id: Optional[str] = None
    admin_notes: Optional[str] = None
    cancellation_requested: bool = False
    cancellation_reason: Optional[str] = None
    actual_check_in_time: Optional[datetime] = None
    actual_check_out_time: Optional[datetime] = None
    late_check_in_fee: float = 0.0
    late_check_out_fee: float = 0.0
    additional_charges: float = 0.0
    checkout_notes: Optional[str] = None
    pending_duration_seconds: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class BookingStatusUpdate(ApiModel):
    status: BookingStatus
    admin_notes: Optional[str] = None


class PaymentStatusUpdate(ApiModel):
    payment_status: PaymentStatus
    payment_method: Optional[str] = None
    transaction_id: Optional[str] = None


class CheckInRequest(ApiModel):
    checkin_notes: Optional[str] = None
    additional_charges: float = Field(default=0.0, ge=0)


class CheckOutRequest(ApiModel):
    checkout_notes: Optional[str] = None
    additional_charges: float = Field(default=0.0, ge=0)
    room_condition: Literal["good", "needs-cleaning", "damaged"] = "good"


class CancellationRequest(ApiModel):
    reason: str = ""


class DeclineCancellationRequest(ApiModel):
    admin_notes: str = ""


class CheckOutSummary(ApiModel):
    base_amount: float
    late_check_in_fee: float
    late_check_out_fee: float
    extended_stay_charge: float
    additional_charges: float
    total_charges: float
    amount_paid: float
    balance_due: float
    actual_nights: int
    scheduled_nights: int
    is_early_check_out: bool


class CheckOutResult(ApiModel):
    booking: BookingDTO
    summary: CheckOutSummary


class CalendarEventDTO(ApiModel):
    """Evento de calendario (compatible con FullCalendar)."""
    title: str
    start: str
    end: str
    resource_id: str
    color: str
    extended_props: Dict = Field(default_factory=dict)


# ==========================================
# PAGOS, FEEDBACK Y RESEÑAS
# ==========================================

class CheckoutSessionRequest(ApiModel):
    booking_id: Optional[int] = None


class CheckoutSessionDTO(ApiModel):
    id: str
    url: Optional[str] = None


class FeedbackCreate(ApiModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""


class FeedbackDTO(ApiModel):
    id: int
    user_id: int
    user_name: str = ""
    rating: int
    comment: str = ""
    created_at: Optional[datetime] = None


class RoomReviewCreate(ApiModel):
    rating: int = Field(..., ge=1, le=5)
    comment: str = ""


class RoomReviewDTO(ApiModel):
    id: int
    user_id: int
    room_id: int
    booking_id: Optional[int] = None
    user_name: str = ""
    rating: int
    comment: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class RoomReviewSummary(ApiModel):
    items: List[RoomReviewDTO]
    average_rating: float
    count: int


# ==========================================
# NOTIFICACIONES Y ACTIVIDAD
# ==========================================

class NotificationCreate(ApiModel):
    """Sin restricciones aquí: el servicio valida y recorta con sus propios mensajes."""
    type: Optional[str] = None
    message: Optional[str] = None
    href: Optional[str] = None


class NotificationDTO(ApiModel):
    id: int
    user_id: int
    type: str
    message: str
    href: Optional[str] = None
    is_read: bool
    created_at: Optional[datetime] = None


class NotificationPage(ApiModel):
    data: List[NotificationDTO]
    has_more: bool


class ActivityLogDTO(ApiModel):
    id: int
    actor_id: Optional[int] = None
    actor_email: Optional[str] = None
    actor_role: Optional[str] = None
    action: str
    resource: str
    resource_id: Optional[str] = None
    details: Optional[Dict] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    status: str
    created_at: Optional[datetime] = None


class Pagination(ApiModel):
    page: int
    limit: int
    total: int
    pages: int


class ActivityLogPage(ApiModel):
    data: List[ActivityLogDTO]
    pagination: Pagination
