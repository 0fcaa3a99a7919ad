"""
RedBoat Hotel - Notificaciones
==============================

Persistencia de notificaciones por usuario y difusión en vivo (SSE).

- NotificationService: CRUD sobre la tabla notifications (la sesión la
  inyecta siempre el llamador: endpoint o servicio)
- NotificationHub: registro en memoria de conexiones SSE por usuario.
  Cada conexión tiene su asyncio.Queue; los hilos del thread pool de
  FastAPI publican con loop.call_soon_threadsafe.
"""

import asyncio
import json
import threading
from typing import AsyncIterator, Awaitable, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from config import STREAM_KEEPALIVE_SECONDS
from constants import NOTIFICATION_TYPES
from database import Notification, User
from errors import NotFoundError, ValidationFailed
from logging_config import get_logger
from schemas import NotificationDTO, NotificationPage
import mailer

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 500
MAX_HREF_LENGTH = 300
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


# ==========================================
# HUB SSE
# ==========================================

class NotificationHub:
    """Conexiones SSE abiertas: {user_id: {queue: event_loop}}."""

    def __init__(self):
        self._clients: Dict[int, Dict[asyncio.Queue, asyncio.AbstractEventLoop]] = {}
        self._lock = threading.Lock()

    def register(self, user_id: int) -> asyncio.Queue:
        """Debe llamarse desde el event loop que va a consumir la cola."""
        queue = asyncio.Queue()
        loop = asyncio.get_running_loop()
        with self._lock:
            self._clients.setdefault(user_id, {})[queue] = loop
        logger.debug(f"SSE conectado user={user_id} ({self.client_count(user_id)} conexiones)")
        return queue

    def unregister(self, user_id: int, queue: asyncio.Queue) -> None:
        with self._lock:
            clients = self._clients.get(user_id)
            if clients is None:
                return
            clients.pop(queue, None)
            if not clients:
                del self._clients[user_id]
        logger.debug(f"SSE desconectado user={user_id}")

    def client_count(self, user_id: int) -> int:
        with self._lock:
            return len(self._clients.get(user_id, {}))

    def publish(self, user_id: int, payload: dict) -> int:
        """
        Envía un evento a todas las conexiones del usuario.

        Returns:
            Número de conexiones a las que se entregó
        """
        with self._lock:
            targets = list(self._clients.get(user_id, {}).items())
        if not targets:
            return 0

        message = json.dumps(payload, default=str)
        delivered = 0
        for queue, loop in targets:
            try:
                loop.call_soon_threadsafe(queue.put_nowait, message)
                delivered += 1
            except RuntimeError:
                # Event loop cerrado: la conexión ya no existe
                self.unregister(user_id, queue)
        return delivered

    async def stream(
        self,
        user_id: int,
        is_disconnected: Callable[[], Awaitable[bool]],
        keepalive_seconds: float = STREAM_KEEPALIVE_SECONDS,
    ) -> AsyncIterator[str]:
        """Generador de eventos SSE: 'data: <json>' por notificación y ':' como keepalive."""
        queue = self.register(user_id)
        try:
            while not await is_disconnected():
                try:
                    message = await asyncio.wait_for(queue.get(), timeout=keepalive_seconds)
                except asyncio.TimeoutError:
                    yield ":\n\n"
                    continue
                yield f"data: {message}\n\n"
        finally:
            self.unregister(user_id, queue)


hub = NotificationHub()


# ==========================================
# SERVICIO
# ==========================================

def _to_payload(notification: Notification) -> dict:
    return NotificationDTO.model_validate(notification).model_dump(by_alias=True, mode="json")


class NotificationService:
    """Notificaciones persistidas. Todas las operaciones reciben la sesión."""

    @staticmethod
    def list_for_user(db: Session, user_id: int, last_id: Optional[int] = None,
                      limit: Optional[int] = None) -> NotificationPage:
        """Página de notificaciones más recientes primero, paginada por cursor (lastId)."""
        take = max(1, min(limit or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE))
        query = db.query(Notification).filter(Notification.user_id == user_id)
        if last_id:
            query = query.filter(Notification.id < last_id)
        items = query.order_by(Notification.id.desc()).limit(take + 1).all()

        has_more = len(items) > take
        return NotificationPage(
            data=[NotificationDTO.model_validate(n) for n in items[:take]],
            has_more=has_more,
        )

    @staticmethod
    def create(db: Session, user_id: int, message: Optional[str], type: Optional[str] = None,
               href: Optional[str] = None) -> NotificationDTO:
        """Notificación creada por el propio usuario (toasts del cliente)."""
        kind = type or "info"
        text = (message or "").strip()
        if not text:
            raise ValidationFailed("Message is required")
        if kind not in NOTIFICATION_TYPES:
            raise ValidationFailed("Invalid type")

        notification = Notification(
            user_id=user_id,
            type=kind,
            message=text[:MAX_MESSAGE_LENGTH],
            href=href[:MAX_HREF_LENGTH] if href else None,
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)
        hub.publish(user_id, _to_payload(notification))
        return NotificationDTO.model_validate(notification)

    @staticmethod
    def create_for_user(db: Session, user_id: int, message: str, type: str = "info",
                        href: Optional[str] = None, email: bool = False) -> Optional[NotificationDTO]:
        """
        Notificación generada por el sistema (reservas, pagos, check-in/out).

        Un fallo aquí no debe deshacer la operación de negocio que ya se
        confirmó: se registra en el log y se devuelve None.
        """
        try:
            notification = Notification(
                user_id=user_id,
                type=type,
                message=message[:MAX_MESSAGE_LENGTH],
                href=href[:MAX_HREF_LENGTH] if href else None,
            )
            db.add(notification)
            db.commit()
            db.refresh(notification)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"No se pudo crear notificación para user={user_id}: {e}")
            return None

        hub.publish(user_id, _to_payload(notification))

        if email:
            user = db.get(User, user_id)
            if user and user.email_notifications:
                mailer.send_notification_email(user.email, message)

        return NotificationDTO.model_validate(notification)

    @staticmethod
    def notify_admins(db: Session, message: str, type: str = "info", href: Optional[str] = None,
                      email: bool = False) -> int:
        """Notifica a todo el staff (admin, superadmin y roles personalizados)."""
        admin_ids: List[int] = [
            uid for (uid,) in db.query(User.id).filter(
                User.role != "user",
                User.is_blocked.is_(False),
            ).all()
        ]
        for admin_id in admin_ids:
            NotificationService.create_for_user(db, admin_id, message, type=type, href=href, email=email)
        return len(admin_ids)

    @staticmethod
    def mark_all_read(db: Session, user_id: int) -> int:
        updated = db.query(Notification).filter(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        ).update({Notification.is_read: True}, synchronize_session=False)
        db.commit()
        return updated

    @staticmethod
    def mark_read(db: Session, user_id: int, notification_id: int) -> None:
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        ).first()
        if not notification:
            raise NotFoundError("Not found")
        if not notification.is_read:
            notification.is_read = True
            db.commit()

    @staticmethod
    def delete(db: Session, user_id: int, notification_id: int) -> None:
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == user_id,
        ).first()
        if not notification:
            raise NotFoundError("Not found")
        db.delete(notification)
        db.commit()
