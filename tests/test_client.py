"""
Capa cliente del dashboard: ApiClient (httpx.MockTransport), Auth Probe y Notification Center
"""
import ast
import gc
import json
import time
from datetime import date
from pathlib import Path

import httpx
import pytest

from client.api_client import ApiClient, ApiError
from client.auth_probe import guard_route, probe
from client.notifications import NotificationCenter, backoff_delays, next_backoff
from client.routing import UserContext

BASE = "http://api.test/api/v1"
PROJECT_ROOT = Path(__file__).resolve().parents[1]


def make_client(handler) -> ApiClient:
    return ApiClient(base_url=BASE, transport=httpx.MockTransport(handler))


def json_response(status: int, body) -> httpx.Response:
    return httpx.Response(status, json=body)


class TestApiClient:

    def test_unwraps_data(self):
        api = make_client(lambda request: json_response(200, {"data": [{"id": 1}], "message": "ok"}))

        assert api.list_rooms() == [{"id": 1}]

    def test_error_message_from_body(self):
        api = make_client(lambda request: json_response(400, {"message": "Room number already exists"}))

        with pytest.raises(ApiError) as excinfo:
            api.create_room({"roomNumber": "101"})

        assert excinfo.value.message == "Room number already exists"
        assert excinfo.value.status == 400
        assert str(excinfo.value) == "Room number already exists (400)"

    def test_error_without_json(self):
        api = make_client(lambda request: httpx.Response(502, text="Bad gateway"))

        with pytest.raises(ApiError, match="Request failed"):
            api.me()

    def test_network_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(ApiError) as excinfo:
            make_client(handler).me()

        assert excinfo.value.message == "Network error"
        assert excinfo.value.status == 0

    def test_query_params_drop_none_and_format_dates(self):
        seen = {}

        def handler(request):
            seen.update(request.url.params)
            return json_response(200, {"data": []})

        make_client(handler).availability(day=date(2031, 5, 4))

        assert seen == {"date": "2031-05-04"}

    def test_login_keeps_session_cookie_and_logout_clears_it(self):
        def handler(request):
            if request.url.path.endswith("/auth/login"):
                return httpx.Response(200, json={"data": {"id": 1}},
                                      headers={"set-cookie": "auth=token-123; Path=/; HttpOnly"})
            assert request.headers.get("cookie") == "auth=token-123"
            return json_response(200, {"message": "Logged out"})

        api = make_client(handler)
        api.login("ana@example.com", "Secret#123")
        assert api.session_cookie == "token-123"

        api.logout()
        assert api.session_cookie is None

    def test_binary_download(self):
        api = make_client(lambda request: httpx.Response(200, content=b"PK\x03\x04",
                                                        headers={"content-type": "application/zip"}))

        assert api.download_backup("backup-1.zip") == b"PK\x03\x04"

    def test_stream_events(self):
        body = b': connected\n\ndata: {"id": 1, "message": "Hi"}\n\n:\n\ndata: {"id": 2, "message": "Bye"}\n\n'
        api = make_client(lambda request: httpx.Response(200, content=body,
                                                         headers={"content-type": "text/event-stream"}))
        connected = []

        events = list(api.stream_events(on_connect=lambda: connected.append(True)))

        assert connected == [True]
        assert [e["id"] for e in events] == [1, 2]

    def test_stream_rejected(self):
        api = make_client(lambda request: json_response(401, {"message": "Unauthorized"}))

        with pytest.raises(ApiError) as excinfo:
            list(api.stream_events())

        assert excinfo.value.status == 401

    def test_stream_stops_on_keepalive_when_asked(self):
        body = b':\n\n:\n\ndata: {"id": 1, "message": "Late"}\n\n'
        api = make_client(lambda request: httpx.Response(200, content=body))

        assert list(api.stream_events(should_stop=lambda: True)) == []

    def test_close_is_idempotent(self):
        api = make_client(lambda request: json_response(200, {}))

        api.close()
        api.close()

        assert api.closed is True

    def test_unreferenced_client_releases_its_pool(self):
        api = make_client(lambda request: json_response(200, {}))
        pool = api._client

        del api
        gc.collect()

        assert pool.is_closed


class TestAuthProbe:

    def test_authenticated(self):
        context = probe(make_client(lambda request: json_response(200, {"data": {"id": 3, "role": "admin"}})))

        assert context.is_authenticated is True
        assert context.role == "admin"

    def test_blocked(self):
        context = probe(make_client(lambda request: json_response(403, {"message": "blocked"})))

        assert context.is_authenticated is False
        assert context.is_blocked is True

    def test_any_other_failure_is_anonymous(self):
        context = probe(make_client(lambda request: httpx.Response(500)))

        assert context == UserContext(is_authenticated=False)

    def test_guard_redirects(self):
        anonymous = UserContext(is_authenticated=False)
        guest = UserContext(is_authenticated=True, role="user")
        superadmin = UserContext(is_authenticated=True, role="superadmin")
        blocked = UserContext(is_authenticated=False, is_blocked=True)

        assert guard_route("/user/bookings", "user", anonymous).redirect_to == "/login"
        assert guard_route("/admin/reports", "admin", guest).redirect_to == "/dashboard"
        assert guard_route("/user/bookings", "user", superadmin).redirect_to == "/admin"
        assert guard_route("/admin/backup", "admin", superadmin).can_access is True
        assert guard_route("/dashboard", "user", blocked).redirect_to == "/blocked"

    def test_blocked_user_can_see_public_pages(self):
        blocked = UserContext(is_authenticated=False, is_blocked=True)

        assert guard_route("/blocked", None, blocked).can_access is True
        assert guard_route("/rooms", None, blocked).can_access is True

    def test_custom_role_navigates_as_admin(self):
        clerk = UserContext(is_authenticated=True, role="frontdesk")

        assert guard_route("/admin/bookings", "admin", clerk).can_access is True
        permission = guard_route("/user/profile", "user", clerk)
        assert permission.can_access is False
        assert permission.reason == "Role 'user' required"


class RecordingApi:
    """Doble de ApiClient para el Notification Center."""

    def __init__(self, history=None, fail=False):
        self.history = history or []
        self.fail = fail
        self.calls = []
        self.stream_attempts = 0

    def create_notification(self, message, type="info", href=None):
        self.calls.append(("create", message, type))
        if self.fail:
            raise ApiError("Network error")
        return {"id": 99}

    def list_notifications(self, last_id=None, limit=None):
        if self.fail:
            raise ApiError("Unauthorized", 401)
        return {"data": self.history, "hasMore": False}

    def mark_notification_read(self, notification_id):
        self.calls.append(("read", notification_id))

    def mark_all_notifications_read(self):
        self.calls.append(("read-all",))

    def delete_notification(self, notification_id):
        self.calls.append(("delete", notification_id))
        if self.fail:
            raise ApiError("Not found", 404)

    def stream_events(self, on_connect=None, should_stop=None):
        self.stream_attempts += 1
        raise ApiError("Stream unavailable", 503)


class TestNotificationCenter:

    def test_backoff_sequence(self):
        assert backoff_delays(7) == [1, 2, 4, 8, 16, 30, 30]
        assert next_backoff(16, cap=30) == 30

    def test_toast_expires_but_stays_in_history(self):
        center = NotificationCenter(RecordingApi())

        item = center.notify("Saved", "success", duration_ms=50)
        assert [n.id for n in center.items] == [item.id]
        time.sleep(0.3)

        assert center.items == []
        assert center.history[0].message == "Saved"
        assert center.unread == 1
        center.stop()

    def test_toast_without_duration_stays(self):
        center = NotificationCenter(RecordingApi())

        item = center.notify("Sticky", duration_ms=None)
        center.remove(item.id)

        assert center.items == []
        center.stop()

    def test_authenticated_toasts_are_persisted(self):
        api = RecordingApi()
        center = NotificationCenter(api, authenticated=True)

        center.notify("Booking created", "success")
        center.stop()

        assert api.calls == [("create", "Booking created", "success")]

    def test_persist_failure_is_swallowed(self):
        api = RecordingApi(fail=True)
        center = NotificationCenter(api, authenticated=True)

        center.notify("Offline", "warning", duration_ms=None)
        center.stop()

        assert center.history[0].message == "Offline"

    def test_anonymous_toasts_stay_local(self):
        api = RecordingApi()
        center = NotificationCenter(api)

        center.notify("Hello")
        center.stop()

        assert api.calls == []

    def test_history_is_capped(self):
        center = NotificationCenter(RecordingApi())

        for i in range(105):
            center.notify(f"n{i}", duration_ms=None)

        assert len(center.history) == 100
        assert center.history[0].message == "n104"
        center.stop()

    def test_refresh_replaces_history(self):
        api = RecordingApi(history=[
            {"id": 2, "type": "info", "message": "New", "isRead": False},
            {"id": 1, "type": "success", "message": "Old", "isRead": True},
        ])
        center = NotificationCenter(api)
        center.notify("local", duration_ms=None)

        assert center.refresh() is True
        assert [n.server_id for n in center.history] == [2, 1]
        assert center.unread == 1
        center.stop()

    def test_refresh_failure_keeps_state(self):
        center = NotificationCenter(RecordingApi(fail=True))
        center.notify("local", duration_ms=None)

        assert center.refresh() is False
        assert len(center.history) == 1
        center.stop()

    def test_stream_event_deduplicates(self):
        center = NotificationCenter(RecordingApi())

        center.handle_event({"id": 5, "type": "info", "message": "Checked in", "isRead": False})
        center.handle_event({"id": 5, "type": "info", "message": "Checked in", "isRead": False})

        assert [n.server_id for n in center.history] == [5]
        assert center.unread == 1
        assert len(center.items) == 1
        center.stop()

    def test_mark_read_delete_and_mark_all(self):
        api = RecordingApi(history=[
            {"id": 1, "message": "a", "isRead": False},
            {"id": 2, "message": "b", "isRead": False},
            {"id": 3, "message": "c", "isRead": False},
        ])
        center = NotificationCenter(api, authenticated=True)
        center.refresh()

        center.mark_read(1)
        center.delete(2)
        assert center.unread == 1
        center.mark_all_read()

        assert center.unread == 0
        assert [n.server_id for n in center.history] == [1, 3]
        assert api.calls == [("read", 1), ("delete", 2), ("read-all",)]
        center.stop()

    def test_delete_failure_keeps_optimistic_state(self):
        api = RecordingApi(history=[{"id": 1, "message": "a", "isRead": False}])
        center = NotificationCenter(api, authenticated=True)
        center.refresh()
        api.fail = True

        center.delete(1)

        assert center.history == []
        center.stop()

    def test_background_sync_only_when_authenticated(self):
        center = NotificationCenter(RecordingApi())

        center.start()

        assert center._threads == []
        center.stop()

    def test_stream_reconnect_resets_backoff(self):
        api = RecordingApi()
        center = NotificationCenter(api, authenticated=True)
        center._backoff = 16
        center._on_stream_connected()

        assert center.current_backoff == 1
        center.stop()

    def test_own_toast_echo_is_not_duplicated(self):
        center = NotificationCenter(RecordingApi(), authenticated=True)
        center.notify("Booking created", "success", duration_ms=None)
        center.stop()

        center.handle_event({"id": 99, "type": "success", "message": "Booking created", "isRead": False})

        assert [n.server_id for n in center.history] == [99]
        assert center.unread == 1
        assert len(center.items) == 1

    def test_echo_arriving_before_persist_links_the_toast(self):
        center = NotificationCenter(RecordingApi())
        item = center.notify("  Room ready  ", duration_ms=None)

        center.handle_event({"id": 99, "type": "info", "message": "Room ready", "isRead": False})
        center._persist(item)

        assert [n.server_id for n in center.history] == [99]
        assert center.unread == 1
        assert len(center.items) == 1
        center.stop()

    def test_anonymous_read_and_delete_stay_local(self):
        api = RecordingApi(history=[
            {"id": 1, "message": "a", "isRead": False},
            {"id": 2, "message": "b", "isRead": False},
        ])
        center = NotificationCenter(api)
        center.refresh()

        center.mark_read(1)
        center.delete(2)

        assert api.calls == []
        assert center.unread == 0
        assert [n.server_id for n in center.history] == [1]
        center.stop()

    def test_stream_reconnect_delays_double_up_to_cap(self, monkeypatch):
        api = RecordingApi()
        center = NotificationCenter(api, authenticated=True)
        delays = []

        def record_wait(timeout=None):
            delays.append(timeout)
            return len(delays) == 7

        monkeypatch.setattr(center._stop, "wait", record_wait)
        center._stream_loop()

        assert delays == [1, 2, 4, 8, 16, 30, 30]
        assert api.stream_attempts == 7
        center.stop()

    def test_idle_after_touch_window(self):
        center = NotificationCenter(RecordingApi(), idle_seconds=0.05)

        time.sleep(0.1)
        assert center.idle is True

        center.touch()
        assert center.idle is False
        center.stop()

    def test_idle_center_stops_background_sync(self):
        center = NotificationCenter(RecordingApi(), authenticated=True, poll_seconds=0.01, idle_seconds=0.05)
        center.start()

        deadline = time.monotonic() + 3
        while not center.stopped and time.monotonic() < deadline:
            time.sleep(0.02)

        assert center.stopped is True
        center.stop()
        assert center._threads == []


def test_events_are_json_lines():
    """El stream del servidor y el cliente comparten el formato 'data: <json>'."""
    payload = {"id": 1, "userId": 2, "type": "info", "message": "Hi", "href": None,
               "isRead": False, "createdAt": "2031-01-01T00:00:00"}
    body = f"data: {json.dumps(payload)}\n\n".encode()
    api = make_client(lambda request: httpx.Response(200, content=body))

    assert list(api.stream_events()) == [payload]


class TestDashboardModule:
    """El dashboard solo habla con la API a través de client/."""

    @staticmethod
    def _imports(filename):
        tree = ast.parse((PROJECT_ROOT / filename).read_text(encoding="utf-8"))
        modules, names = set(), set()
        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                modules.update(alias.name for alias in node.names)
            elif isinstance(node, ast.ImportFrom):
                modules.add(node.module)
                names.update(alias.name for alias in node.names)
        return modules, names

    def test_dashboard_does_not_load_the_database(self):
        modules, _ = self._imports("app.py")

        assert "database" not in modules
        assert "constants" in modules
        assert not any(m.split(".")[0] in ("sqlalchemy", "services") for m in modules)

    def test_constants_have_no_dependencies(self):
        modules, _ = self._imports("constants.py")

        assert modules == set()

    def test_dashboard_routes_per_session(self):
        _, names = self._imports("app.py")

        assert "routing_manager" not in names
        assert "RoutingManager" in names
