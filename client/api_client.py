"""
RedBoat Hotel - Cliente HTTP de la API
======================================

Único punto de contacto del dashboard con la API REST. Usa un
httpx.Client con la cookie de sesión "auth" y convierte cualquier
respuesta no exitosa en ApiError(message, status).

Uso:
    api = ApiClient()
    api.login("ana@example.com", "Secret#123")
    rooms = api.list_rooms()
"""

import json
import weakref
from datetime import date
from typing import Any, Callable, Dict, Iterator, List, Optional

import httpx

from config import API_BASE_URL
from logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_TIMEOUT = 15.0


class ApiError(Exception):
    """Error de la API con el mensaje del cuerpo JSON y el código HTTP (0 = sin respuesta)."""

    def __init__(self, message: str, status: int = 0):
        super().__init__(message)
        self.message = message
        self.status = status

    def __str__(self):
        return f"{self.message} ({self.status})" if self.status else self.message


def _clean(params: Dict[str, Any]) -> Dict[str, Any]:
    """Quita los None y pasa las fechas a ISO."""
    return {
        key: value.isoformat() if isinstance(value, date) else value
        for key, value in params.items()
        if value is not None
    }


class ApiClient:

    def __init__(self, base_url: str = API_BASE_URL, transport: Optional[httpx.BaseTransport] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.Client(base_url=self.base_url, transport=transport, timeout=timeout)
        # Una sesión abandonada del dashboard libera su pool al recolectarse
        self._closer = weakref.finalize(self, self._client.close)

    # ==========================================
    # INFRAESTRUCTURA
    # ==========================================

    def close(self) -> None:
        self._closer()

    @property
    def closed(self) -> bool:
        return self._client.is_closed

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    @property
    def session_cookie(self) -> Optional[str]:
        return self._client.cookies.get("auth")

    def set_session_cookie(self, token: Optional[str]) -> None:
        """Restaura la sesión guardada por el dashboard entre recargas."""
        self._client.cookies.clear()
        if token:
            self._client.cookies.set("auth", token)

    def request(self, method: str, path: str, **kwargs) -> Any:
        """Ejecuta la petición y devuelve el JSON (o None). Lanza ApiError si falla."""
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} sin respuesta: {e}")
            raise ApiError("Network error") from e

        if response.is_error:
            message = "Request failed"
            try:
                body = response.json()
                if isinstance(body, dict) and body.get("message"):
                    message = body["message"]
            except ValueError:
                pass
            logger.debug(f"{method} {path} -> {response.status_code}: {message}")
            raise ApiError(message, response.status_code)

        if not response.content:
            return None
        if "application/json" not in response.headers.get("content-type", ""):
            return response.content
        return response.json()

    def _data(self, method: str, path: str, **kwargs) -> Any:
        body = self.request(method, path, **kwargs)
        return body.get("data") if isinstance(body, dict) else body

    def get(self, path: str, **params) -> Any:
        return self._data("GET", path, params=_clean(params))

    def post(self, path: str, payload: Optional[Dict] = None) -> Any:
        return self._data("POST", path, json=payload or {})

    def put(self, path: str, payload: Optional[Dict] = None) -> Any:
        return self._data("PUT", path, json=payload or {})

    def delete(self, path: str) -> Any:
        return self.request("DELETE", path)

    # ==========================================
    # AUTH Y SESIÓN
    # ==========================================

    def signup(self, payload: Dict) -> Dict:
        return self.request("POST", "/auth/signup", json=payload)

    def verify_email(self, email: str, code: str) -> Dict:
        return self.post("/auth/verify-email", {"email": email, "code": code})

    def resend_code(self, email: str) -> Dict:
        return self.request("POST", "/auth/resend-code", json={"email": email})

    def login(self, email: str, password: str) -> Dict:
        return self.post("/auth/login", {"email": email, "password": password})

    def logout(self) -> None:
        try:
            self.request("POST", "/auth/logout")
        finally:
            self._client.cookies.clear()

    def forgot_password(self, email: str) -> Dict:
        return self.request("POST", "/auth/forgot-password", json={"email": email})

    def verify_reset_code(self, email: str, code: str) -> Dict:
        return self.request("POST", "/auth/verify-reset-code", json={"email": email, "code": code})

    def reset_password(self, email: str, code: str, new_password: str) -> Dict:
        return self.request("POST", "/auth/reset-password",
                            json={"email": email, "code": code, "newPassword": new_password})

    def set_username(self, username: str) -> Dict:
        return self.post("/auth/set-username", {"username": username})

    def me(self) -> Dict:
        return self.get("/me")

    # ==========================================
    # PERFIL, USUARIOS Y ROLES
    # ==========================================

    def get_profile(self) -> Dict:
        return self.get("/profile")

    def update_profile(self, payload: Dict) -> Dict:
        return self.put("/profile", payload)

    def change_password(self, current_password: str, new_password: str) -> Dict:
        return self.request("PUT", "/profile/password",
                            json={"currentPassword": current_password, "newPassword": new_password})

    def list_users(self) -> List[Dict]:
        return self.get("/users")

    def assign_role(self, user_id: int, role: str) -> Dict:
        return self.put(f"/users/{user_id}/role", {"role": role})

    def update_admin_permissions(self, user_id: int, permissions: Dict[str, bool]) -> Dict:
        return self.put(f"/users/{user_id}/admin-permissions", {"adminPermissions": permissions})

    def block_user(self, user_id: int) -> Dict:
        return self.put(f"/users/{user_id}/block")

    def unblock_user(self, user_id: int) -> Dict:
        return self.put(f"/users/{user_id}/unblock")

    def list_roles(self) -> List[Dict]:
        return self.get("/roles")

    def create_role(self, payload: Dict) -> Dict:
        return self.post("/roles", payload)

    def update_role(self, role_id: int, payload: Dict) -> Dict:
        return self.put(f"/roles/{role_id}", payload)

    def delete_role(self, role_id: int) -> Dict:
        return self.delete(f"/roles/{role_id}")

    # ==========================================
    # HABITACIONES Y CALENDARIO
    # ==========================================

    def list_rooms(self) -> List[Dict]:
        return self.get("/rooms")

    def list_all_rooms(self) -> List[Dict]:
        return self.get("/rooms/admin")

    def get_room(self, room_id: int) -> Dict:
        return self.get(f"/rooms/{room_id}")

    def create_room(self, payload: Dict) -> Dict:
        return self.post("/rooms", payload)

    def update_room(self, room_id: int, payload: Dict) -> Dict:
        return self.put(f"/rooms/{room_id}", payload)

    def delete_room(self, room_id: int) -> Dict:
        return self.delete(f"/rooms/{room_id}")

    def seed_sample_rooms(self) -> List[Dict]:
        return self.post("/rooms/sample")

    def availability(self, day: Optional[date] = None, start_date: Optional[date] = None,
                     end_date: Optional[date] = None) -> List[Dict]:
        return self.get("/rooms/availability", date=day, startDate=start_date, endDate=end_date)

    def room_calendar(self, year: int, month: int) -> List[Dict]:
        return self.get("/rooms/calendar", year=year, month=month)

    def housekeeping(self) -> Dict:
        return self.get("/rooms/housekeeping")

    def update_housekeeping(self, room_id: int, status: str) -> Dict:
        return self.put(f"/rooms/housekeeping/{room_id}", {"housekeepingStatus": status})

    def room_reviews(self, room_id: int) -> Dict:
        return self.get(f"/rooms/{room_id}/reviews")

    def review_room(self, room_id: int, rating: int, comment: str = "") -> Dict:
        return self.post(f"/rooms/{room_id}/reviews", {"rating": rating, "comment": comment})

    def calendar_occupancy(self, year: int, month: int) -> Dict:
        return self.get("/calendar/occupancy", year=year, month=month)

    def calendar_events(self, year: int, month: int) -> List[Dict]:
        return self.get("/calendar/events", year=year, month=month)

    # ==========================================
    # RESERVAS Y PAGOS
    # ==========================================

    def create_booking(self, payload: Dict) -> Dict:
        return self.post("/bookings", payload)

    def my_bookings(self) -> List[Dict]:
        return self.get("/bookings/user-bookings")

    def list_bookings(self) -> List[Dict]:
        return self.get("/bookings")

    def get_booking(self, booking_id: int) -> Dict:
        return self.get(f"/bookings/{booking_id}")

    def update_booking_status(self, booking_id: int, status: str, admin_notes: Optional[str] = None) -> Dict:
        return self.put(f"/bookings/{booking_id}/status", _clean({"status": status, "adminNotes": admin_notes}))

    def update_payment(self, booking_id: int, payment_status: str, payment_method: Optional[str] = None,
                       transaction_id: Optional[str] = None) -> Dict:
        return self.put(f"/bookings/{booking_id}/payment", _clean({
            "paymentStatus": payment_status,
            "paymentMethod": payment_method,
            "transactionId": transaction_id,
        }))

    def check_in(self, booking_id: int, notes: Optional[str] = None, additional_charges: float = 0.0) -> Dict:
        return self.put(f"/bookings/{booking_id}/checkin",
                        _clean({"checkinNotes": notes, "additionalCharges": additional_charges}))

    def check_out(self, booking_id: int, notes: Optional[str] = None, additional_charges: float = 0.0,
                  room_condition: str = "good") -> Dict:
        return self.put(f"/bookings/{booking_id}/checkout", _clean({
            "checkoutNotes": notes,
            "additionalCharges": additional_charges,
            "roomCondition": room_condition,
        }))

    def request_cancellation(self, booking_id: int, reason: str = "") -> Dict:
        return self.post(f"/bookings/{booking_id}/request-cancel", {"reason": reason})

    def approve_cancellation(self, booking_id: int) -> Dict:
        return self.post(f"/bookings/{booking_id}/approve-cancel")

    def decline_cancellation(self, booking_id: int, admin_notes: str = "") -> Dict:
        return self.post(f"/bookings/{booking_id}/decline-cancel", {"adminNotes": admin_notes})

    def create_checkout_session(self, booking_id: int) -> Dict:
        return self.post("/payments/checkout-session", {"bookingId": booking_id})

    def confirm_checkout_session(self, session_id: str) -> Dict:
        return self.get("/payments/confirm", session_id=session_id)

    # ==========================================
    # FEEDBACK, REPORTES, ACTIVIDAD Y BACKUPS
    # ==========================================

    def send_feedback(self, rating: int, comment: str = "") -> Dict:
        return self.post("/feedback", {"rating": rating, "comment": comment})

    def my_feedback(self) -> List[Dict]:
        return self.get("/feedback/my")

    def list_feedback(self) -> List[Dict]:
        return self.get("/feedback")

    def report(self, name: str, start_date: Optional[date] = None, end_date: Optional[date] = None) -> Dict:
        """name: occupancy, revenue, bookings o dashboard."""
        return self.get(f"/reports/{name}", startDate=start_date, endDate=end_date)

    def activity_logs(self, page: int = 1, limit: int = 20, q: Optional[str] = None,
                      date_from: Optional[date] = None, date_to: Optional[date] = None) -> Dict:
        return self.request("GET", "/activity/logs", params=_clean({
            "page": page, "limit": limit, "q": q, "dateFrom": date_from, "dateTo": date_to,
        }))

    def create_backup(self) -> Dict:
        return self.request("POST", "/backup/create")

    def list_backups(self) -> List[Dict]:
        return self.request("GET", "/backup/list")["backups"]

    def download_backup(self, filename: str) -> bytes:
        return self.request("GET", f"/backup/download/{filename}")

    def restore_backup(self, filename: str) -> Dict:
        return self.request("POST", f"/backup/restore/{filename}")

    def upload_backup(self, filename: str, content: bytes) -> Dict:
        return self.request("POST", "/backup/upload", files={"file": (filename, content, "application/zip")})

    def delete_backup(self, filename: str) -> Dict:
        return self.delete(f"/backup/{filename}")

    # ==========================================
    # NOTIFICACIONES
    # ==========================================

    def list_notifications(self, last_id: Optional[int] = None, limit: Optional[int] = None) -> Dict:
        """Devuelve {"data": [...], "hasMore": bool}."""
        return self.request("GET", "/notifications", params=_clean({"lastId": last_id, "limit": limit}))

    def create_notification(self, message: str, type: str = "info", href: Optional[str] = None) -> Dict:
        return self.post("/notifications", _clean({"message": message, "type": type, "href": href}))

    def mark_all_notifications_read(self) -> Dict:
        return self.request("POST", "/notifications/mark-all-read")

    def mark_notification_read(self, notification_id: int) -> Dict:
        return self.request("POST", f"/notifications/{notification_id}/read")

    def delete_notification(self, notification_id: int) -> Dict:
        return self.delete(f"/notifications/{notification_id}")

    def stream_events(self, on_connect: Optional[Callable[[], None]] = None,
                      should_stop: Optional[Callable[[], bool]] = None) -> Iterator[Dict]:
        """
        Lee el stream SSE de notificaciones y devuelve cada payload 'data:' ya parseado.
        Las líneas ':' (keepalive) se ignoran. Termina cuando el servidor cierra
        o cuando should_stop() es verdadero (se consulta en cada línea, keepalives incluidos).
        on_connect se llama una vez aceptada la conexión.
        """
        try:
            with self._client.stream("GET", "/notifications/stream", timeout=None) as response:
                if response.is_error:
                    raise ApiError("Stream unavailable", response.status_code)
                if on_connect is not None:
                    on_connect()
                for line in response.iter_lines():
                    if should_stop is not None and should_stop():
                        return
                    if not line.startswith("data:"):
                        continue
                    raw = line[len("data:"):].strip()
                    try:
                        yield json.loads(raw)
                    except ValueError:
                        logger.warning(f"Evento SSE no parseable: {raw[:80]}")
        except httpx.HTTPError as e:
            raise ApiError("Stream disconnected") from e
