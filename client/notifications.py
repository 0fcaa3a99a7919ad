"""
RedBoat Hotel - Notification Center
===================================

Estado de notificaciones del dashboard:

- items: toasts efímeros, se eliminan solos tras duration_ms
- history: historial (máx. 100, más reciente primero) y contador de no leídas

El historial se sincroniza con la API por polling (cada 20 s) y por el
stream SSE, que reconecta con backoff exponencial (1 s, 2 s, 4 s ... 30 s).
Si ambas fuentes chocan gana la última escritura. Sin actividad (touch) durante
idle_seconds la sincronización se detiene sola.

Uso:
    center = NotificationCenter(api, authenticated=True)
    center.start()
    center.notify("Booking confirmed", "success")
    ...
    center.stop()
"""

import secrets
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from client.api_client import ApiClient, ApiError
from config import NOTIFICATION_IDLE_SECONDS, NOTIFICATION_POLL_SECONDS, STREAM_MAX_BACKOFF_SECONDS
from logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_DURATION_MS = 3500
HISTORY_LIMIT = 100
# Recorte que aplica la API al guardar
MESSAGE_LIMIT = 500
INITIAL_BACKOFF_SECONDS = 1.0


class NotificationItem(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    type: str = "info"
    message: str
    duration_ms: Optional[int] = None
    href: Optional[str] = None
    server_id: Optional[int] = None
    is_read: bool = False


def _from_server(payload: Dict) -> NotificationItem:
    return NotificationItem(
        id=str(payload["id"]),
        server_id=payload["id"],
        type=payload.get("type") or "info",
        message=payload.get("message") or "",
        href=payload.get("href"),
        is_read=bool(payload.get("isRead")),
    )


def next_backoff(current: float, cap: float = STREAM_MAX_BACKOFF_SECONDS) -> float:
    return min(current * 2, cap)


def backoff_delays(attempts: int, initial: float = INITIAL_BACKOFF_SECONDS,
                   cap: float = STREAM_MAX_BACKOFF_SECONDS) -> List[float]:
    """Esperas sucesivas de reconexión para `attempts` fallos seguidos."""
    delays, delay = [], initial
    for _ in range(attempts):
        delays.append(delay)
        delay = next_backoff(delay, cap)
    return delays


class NotificationCenter:

    def __init__(self, client: ApiClient, authenticated: bool = False,
                 poll_seconds: float = NOTIFICATION_POLL_SECONDS,
                 max_backoff: float = STREAM_MAX_BACKOFF_SECONDS,
                 idle_seconds: Optional[float] = NOTIFICATION_IDLE_SECONDS):
        self.client = client
        self.authenticated = authenticated
        self.poll_seconds = poll_seconds
        self.max_backoff = max_backoff
        self.idle_seconds = idle_seconds

        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._items: List[NotificationItem] = []
        self._history: List[NotificationItem] = []
        self._unread = 0
        self._timers: Dict[str, threading.Timer] = {}
        self._threads: List[threading.Thread] = []
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="notify")
        self._backoff = INITIAL_BACKOFF_SECONDS
        self._last_seen = time.monotonic()

    # ==========================================
    # ESTADO
    # ==========================================

    @property
    def items(self) -> List[NotificationItem]:
        with self._lock:
            return list(self._items)

    @property
    def history(self) -> List[NotificationItem]:
        with self._lock:
            return list(self._history)

    @property
    def unread(self) -> int:
        with self._lock:
            return self._unread

    @property
    def current_backoff(self) -> float:
        return self._backoff

    # ==========================================
    # TOASTS
    # ==========================================

    def notify(self, message: str, type: str = "info", duration_ms: Optional[int] = DEFAULT_DURATION_MS,
               href: Optional[str] = None) -> NotificationItem:
        item = NotificationItem(id=secrets.token_hex(6), type=type, message=message,
                                duration_ms=duration_ms, href=href)
        self._show(item, add_to_history=True)

        if self.authenticated:
            self._executor.submit(self._persist, item)
        return item

    def remove(self, item_id: str) -> None:
        with self._lock:
            self._items = [n for n in self._items if n.id != item_id]
            timer = self._timers.pop(item_id, None)
        if timer is not None:
            timer.cancel()

    def _show(self, item: NotificationItem, add_to_history: bool) -> None:
        with self._lock:
            self._items.append(item)
            if add_to_history:
                entry = item.model_copy(update={"duration_ms": None})
                self._history = [entry] + self._history[:HISTORY_LIMIT - 1]
                self._unread += 1

            if item.duration_ms and item.duration_ms > 0:
                timer = threading.Timer(item.duration_ms / 1000, self.remove, args=(item.id,))
                timer.daemon = True
                self._timers[item.id] = timer
                timer.start()

    def _persist(self, item: NotificationItem) -> None:
        """Fire-and-forget: un fallo al guardar no afecta al toast."""
        try:
            created = self.client.create_notification(item.message, item.type, item.href)
        except ApiError as e:
            logger.warning(f"No se pudo guardar la notificación: {e}")
            return

        server_id = (created or {}).get("id")
        if server_id is None:
            return
        with self._lock:
            # El eco del stream pudo llegar antes y ya enlazó la entrada
            if any(n.server_id == server_id for n in self._history):
                return
            self._history = [
                n.model_copy(update={"server_id": server_id}) if n.id == item.id else n
                for n in self._history
            ]

    # ==========================================
    # HISTORIAL
    # ==========================================

    def refresh(self) -> bool:
        """Reemplaza el historial con el del servidor. False si la petición falla."""
        try:
            page = self.client.list_notifications(limit=HISTORY_LIMIT)
        except ApiError as e:
            logger.debug(f"Polling de notificaciones falló: {e}")
            return False

        history = [_from_server(n) for n in (page or {}).get("data", [])][:HISTORY_LIMIT]
        with self._lock:
            self._history = history
            self._unread = sum(1 for n in history if not n.is_read)
        return True

    def _find_entry(self, item: NotificationItem) -> Optional[int]:
        """Posición de la entrada que ya representa a `item`: misma fila o toast propio aún sin id."""
        for index, entry in enumerate(self._history):
            if entry.server_id == item.server_id:
                return index
        for index, entry in enumerate(self._history):
            if (entry.server_id is None and entry.type == item.type
                    and entry.message.strip()[:MESSAGE_LIMIT] == item.message):
                return index
        return None

    def handle_event(self, payload: Dict) -> NotificationItem:
        """Evento del stream: entra al historial y se muestra como toast si es nuevo."""
        item = _from_server(payload)
        with self._lock:
            index = self._find_entry(item)
            if index is not None:
                previous = self._history[index]
                self._unread += int(not item.is_read) - int(not previous.is_read)
                self._history[index] = item
                return item
            self._history = ([item] + self._history)[:HISTORY_LIMIT]
            if not item.is_read:
                self._unread += 1

        self._show(item.model_copy(update={"id": secrets.token_hex(6), "duration_ms": DEFAULT_DURATION_MS}),
                   add_to_history=False)
        return item

    def mark_read(self, server_id: int) -> None:
        with self._lock:
            for index, entry in enumerate(self._history):
                if entry.server_id == server_id and not entry.is_read:
                    self._history[index] = entry.model_copy(update={"is_read": True})
                    self._unread = max(0, self._unread - 1)
        if self.authenticated:
            self._call_api(self.client.mark_notification_read, server_id)

    def mark_all_read(self) -> None:
        with self._lock:
            self._history = [n.model_copy(update={"is_read": True}) for n in self._history]
            self._unread = 0
        if self.authenticated:
            self._call_api(self.client.mark_all_notifications_read)

    def delete(self, server_id: int) -> None:
        with self._lock:
            removed = [n for n in self._history if n.server_id == server_id]
            self._history = [n for n in self._history if n.server_id != server_id]
            self._unread = max(0, self._unread - sum(1 for n in removed if not n.is_read))
        if self.authenticated:
            self._call_api(self.client.delete_notification, server_id)

    def _call_api(self, method, *args) -> None:
        try:
            method(*args)
        except ApiError as e:
            logger.warning(f"{method.__name__} falló: {e}")

    # ==========================================
    # SINCRONIZACIÓN EN SEGUNDO PLANO
    # ==========================================

    def touch(self) -> None:
        """Marca actividad del usuario; sin ella la sincronización se detiene tras idle_seconds."""
        self._last_seen = time.monotonic()

    @property
    def idle(self) -> bool:
        return self.idle_seconds is not None and time.monotonic() - self._last_seen > self.idle_seconds

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def start(self) -> None:
        if not self.authenticated or self._threads:
            return
        self._stop.clear()
        self.touch()
        for target, name in ((self._poll_loop, "notify-poll"), (self._stream_loop, "notify-stream")):
            thread = threading.Thread(target=target, name=name, daemon=True)
            thread.start()
            self._threads.append(thread)

    def stop(self, timeout: float = 1.0) -> None:
        self._stop.set()
        with self._lock:
            timers, self._timers = list(self._timers.values()), {}
        for timer in timers:
            timer.cancel()
        self._executor.shutdown(wait=True)
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []

    def _poll_loop(self) -> None:
        while not self._stop.is_set():
            if self.idle:
                logger.info("Notification Center inactivo, se detiene la sincronización")
                self._stop.set()
                return
            self.refresh()
            self._stop.wait(self.poll_seconds)

    def _on_stream_connected(self) -> None:
        self._backoff = INITIAL_BACKOFF_SECONDS
        logger.debug("Stream de notificaciones conectado")

    def _stream_loop(self) -> None:
        while not self._stop.is_set():
            try:
                for payload in self.client.stream_events(on_connect=self._on_stream_connected,
                                                         should_stop=self._stop.is_set):
                    if self._stop.is_set():
                        return
                    self.handle_event(payload)
            except ApiError as e:
                logger.info(f"Stream caído ({e}), reintento en {self._backoff:.0f}s")

            if self._stop.wait(self._backoff):
                return
            self._backoff = next_backoff(self._backoff, self.max_backoff)
