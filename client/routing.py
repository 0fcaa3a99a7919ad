"""
RedBoat Hotel - Routing Manager
===============================

Registro estático de páginas del dashboard (públicas, de usuario y de
admin) y el gestor que decide, para el contexto de usuario actual, si una
ruta es accesible, a dónde redirigir y qué migas de pan mostrar.

El contexto (autenticado + rol) lo fija el Auth Probe. Los roles de staff
(superadmin y roles personalizados) navegan como "admin".

Uso:
    from client.routing import routing_manager
    routing_manager.set_user_context(UserContext(is_authenticated=True, role="user"))
    routing_manager.check_route_permission("/admin")   # -> canAccess False, /dashboard
"""

import re
from typing import Dict, List, Optional
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class RoutingModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)


class RouteConfig(RoutingModel):
    path: str
    title: str
    description: Optional[str] = None
    icon: Optional[str] = None
    requires_auth: bool = False
    required_role: Optional[str] = None  # "user" | "admin"
    is_public: bool = False
    is_hidden: bool = False


class UserContext(RoutingModel):
    is_authenticated: bool = False
    role: Optional[str] = None
    is_blocked: bool = False


class RoutePermission(RoutingModel):
    can_access: bool
    redirect_to: Optional[str] = None
    reason: Optional[str] = None


class RouteMetadata(RoutingModel):
    title: str
    description: Optional[str] = None
    icon: Optional[str] = None


# ==========================================
# REGISTRO DE RUTAS
# ==========================================

def _public(path: str, title: str, description: str = None, hidden: bool = False) -> RouteConfig:
    return RouteConfig(path=path, title=title, description=description, is_public=True, is_hidden=hidden)


def _protected(path: str, title: str, description: str, icon: str, role: str, hidden: bool = False) -> RouteConfig:
    return RouteConfig(
        path=path, title=title, description=description, icon=icon,
        requires_auth=True, required_role=role, is_hidden=hidden,
    )


PUBLIC_ROUTES: List[RouteConfig] = [
    _public("/", "Welcome", "Hotel Management System"),
    _public("/about", "About RedBoat", "Learn more about RedBoat Hotel and our story"),
    _public("/rooms", "Rooms", "Browse RedBoat rooms and rates"),
    _public("/contact", "Contact Us", "Get in touch with RedBoat Hotel"),
    _public("/login", "Login"),
    _public("/signup", "Sign Up"),
    _public("/forgot-password", "Forgot Password"),
    _public("/verify-code", "Verify Code"),
    _public("/reset-password", "Reset Password"),
    _public("/choose-username", "Choose Username"),
    _public("/checkout/success", "Payment Success"),
    _public("/checkout/cancel", "Payment Canceled"),
    _public("/blocked", "Account Blocked", "Your account has been blocked", hidden=True),
]

USER_ROUTES: List[RouteConfig] = [
    _protected("/dashboard", "Dashboard", "Overview of your account and recent activity", "dashboard", "user"),
    _protected("/user/profile", "Profile", "Manage your personal information", "user", "user"),
    _protected("/user/bookings", "My Bookings", "View and manage your room bookings", "calendar", "user"),
    _protected("/user/rooms", "Rooms", "Browse available rooms and amenities", "home", "user"),
    _protected("/user/calendar", "Calendar", "View your booking calendar", "calendar", "user"),
    _protected("/user/feedback", "Feedback", "Share your experience and suggestions", "message", "user"),
    _protected("/user/settings", "Settings", "Account settings and preferences", "settings", "user"),
]

ADMIN_ROUTES: List[RouteConfig] = [
    _protected("/admin", "Admin Dashboard", "System overview and key metrics", "dashboard", "admin"),
    _protected("/admin/user-management", "User Management", "Manage user accounts and permissions", "users", "admin"),
    _protected("/admin/room-management", "Room Management", "Manage rooms, amenities, and availability", "home", "admin"),
    _protected("/admin/bookings", "Bookings", "Manage all bookings and reservations", "calendar", "admin"),
    _protected("/admin/calendar", "Calendar", "System-wide booking calendar", "calendar", "admin"),
    _protected("/admin/housekeeping", "Housekeeping", "Manage housekeeping tasks and schedules", "cleaning", "admin"),
    _protected("/admin/reports", "Reports", "Generate reports and analytics", "chart", "admin"),
    _protected("/admin/activity-logs", "Activity Logs", "Audit trail of user and staff actions", "list", "admin"),
    _protected("/admin/settings", "Settings", "System configuration and settings", "settings", "admin"),
    # Oculta del menú: solo el superadmin la usa
    _protected("/admin/backup", "Backup & Restore", "Database backup and restore (Superadmin only)",
               "database", "admin", hidden=True),
]

ALL_ROUTES: List[RouteConfig] = PUBLIC_ROUTES + USER_ROUTES + ADMIN_ROUTES

_ROUTES_BY_PATH: Dict[str, RouteConfig] = {route.path: route for route in ALL_ROUTES}

# Validación de parámetros de ruta
ROUTE_PARAM_SCHEMA = {
    "id": re.compile(r"^\d+$"),  # id numérico de la base
    "slug": re.compile(r"^[a-z0-9-]+$", re.IGNORECASE),
    "uuid": re.compile(r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$", re.IGNORECASE),
    "email": re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$"),
    "phone": re.compile(r"^\+?[\d\s\-()]+$"),
    "date": re.compile(r"^\d{4}-\d{2}-\d{2}$"),
}


def get_route_by_path(path: str) -> Optional[RouteConfig]:
    return _ROUTES_BY_PATH.get(path)


def get_routes_by_role(role: str) -> List[RouteConfig]:
    if role == "user":
        return list(USER_ROUTES)
    if role == "admin":
        return list(ADMIN_ROUTES)
    if role == "public":
        return list(PUBLIC_ROUTES)
    return []


def navigation_role(role: Optional[str]) -> str:
    """Grupo de navegación de un rol: todo rol distinto de "user" es staff."""
    if not role or role == "user":
        return "user"
    return "admin"


def default_route_for(role: Optional[str]) -> str:
    return "/admin" if navigation_role(role) == "admin" else "/dashboard"


# ==========================================
# ROUTING MANAGER
# ==========================================

class RoutingManager:
    """Singleton: usar RoutingManager.get_instance() o el módulo routing_manager."""

    _instance: Optional["RoutingManager"] = None

    def __init__(self):
        self._user_context: Optional[UserContext] = None

    @classmethod
    def get_instance(cls) -> "RoutingManager":
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def for_context(cls, context: Optional[UserContext]) -> "RoutingManager":
        """Instancia propia de una sesión, separada del singleton del proceso."""
        manager = cls()
        manager.set_user_context(context)
        return manager

    def set_user_context(self, context: Optional[UserContext]) -> None:
        self._user_context = context

    def get_user_context(self) -> Optional[UserContext]:
        return self._user_context

    @property
    def _is_authenticated(self) -> bool:
        return bool(self._user_context and self._user_context.is_authenticated)

    @property
    def _role(self) -> str:
        return navigation_role(self._user_context.role if self._user_context else None)

    def check_route_permission(self, path: str) -> RoutePermission:
        route = get_route_by_path(path)
        if route is None:
            return RoutePermission(can_access=False, redirect_to="/", reason="Route not found")

        if route.is_public:
            return RoutePermission(can_access=True)

        if route.requires_auth and not self._is_authenticated:
            return RoutePermission(can_access=False, redirect_to="/login", reason="Authentication required")

        if route.required_role and self._role != route.required_role:
            return RoutePermission(
                can_access=False,
                redirect_to=default_route_for(self._role),
                reason=f"Role '{route.required_role}' required",
            )

        return RoutePermission(can_access=True)

    def get_available_routes(self) -> List[RouteConfig]:
        if not self._is_authenticated:
            return get_routes_by_role("public")
        return get_routes_by_role(self._role)

    def get_navigation_routes(self) -> List[RouteConfig]:
        return filter_visible_routes(self.get_available_routes())

    def get_breadcrumbs(self, path: str) -> List[RouteConfig]:
        breadcrumbs = []
        current_path = ""
        for segment in get_breadcrumb_path(path):
            current_path += f"/{segment}"
            route = get_route_by_path(current_path)
            if route:
                breadcrumbs.append(route)
        return breadcrumbs

    def get_route_metadata(self, path: str) -> RouteMetadata:
        route = get_route_by_path(path)
        if route is None:
            return RouteMetadata(title="Page Not Found")
        return RouteMetadata(title=route.title, description=route.description, icon=route.icon)

    def generate_route_url(self, path: str, params: Optional[Dict[str, str]] = None) -> str:
        url = path
        for key, value in (params or {}).items():
            url = url.replace(f":{key}", str(value))
        return url

    def is_admin_route(self, path: str) -> bool:
        return path.startswith("/admin")

    def is_user_route(self, path: str) -> bool:
        return path.startswith("/user") or path == "/dashboard"

    def is_public_route(self, path: str) -> bool:
        route = get_route_by_path(path)
        return bool(route and route.is_public)

    def get_default_route(self, role: Optional[str]) -> str:
        return default_route_for(role)

    def validate_route_params(self, path: str, params: Dict[str, object]) -> bool:
        """La ruta debe existir y cada ':param' del path debe venir en params."""
        if get_route_by_path(path) is None:
            return False
        return all(name in params for name in re.findall(r":(\w+)", path))


routing_manager = RoutingManager.get_instance()


# ==========================================
# HELPERS
# ==========================================

def validate_route(path: str) -> bool:
    return get_route_by_path(path) is not None


def generate_route(path: str, params: Optional[Dict[str, str]] = None) -> str:
    return routing_manager.generate_route_url(path, params)


def generate_route_with_query(path: str, params: Optional[Dict[str, str]] = None,
                              query: Optional[Dict[str, str]] = None) -> str:
    url = generate_route(path, params)
    if query:
        url += f"?{urlencode(query)}"
    return url


def can_navigate_to(path: str) -> bool:
    return routing_manager.check_route_permission(path).can_access


def get_route_redirect(path: str) -> Optional[str]:
    return routing_manager.check_route_permission(path).redirect_to


def get_route_title(path: str) -> str:
    return routing_manager.get_route_metadata(path).title


def is_current_route(path: str, current_path: str) -> bool:
    return current_path == path or current_path.startswith(path + "/")


def is_parent_route(parent_path: str, child_path: str) -> bool:
    return child_path.startswith(parent_path + "/")


def get_breadcrumb_path(path: str) -> List[str]:
    return [segment for segment in path.split("/") if segment]


def get_route_depth(path: str) -> int:
    return len(get_breadcrumb_path(path))


def get_parent_path(path: str) -> str:
    segments = get_breadcrumb_path(path)
    if len(segments) <= 1:
        return "/"
    return "/" + "/".join(segments[:-1])


def get_child_paths(parent_path: str, routes: List[RouteConfig] = ALL_ROUTES) -> List[RouteConfig]:
    return [r for r in routes if r.path.startswith(parent_path + "/") and r.path != parent_path]


def filter_routes_by_role(routes: List[RouteConfig], role: str) -> List[RouteConfig]:
    return [r for r in routes if not r.required_role or r.required_role == role]


def filter_routes_by_auth(routes: List[RouteConfig], is_authenticated: bool) -> List[RouteConfig]:
    return [r for r in routes if r.is_public or r.requires_auth == is_authenticated]


def filter_visible_routes(routes: List[RouteConfig]) -> List[RouteConfig]:
    return [r for r in routes if not r.is_hidden]


def search_routes(routes: List[RouteConfig], query: str) -> List[RouteConfig]:
    needle = query.lower()
    return [
        r for r in routes
        if needle in r.title.lower()
        or (r.description and needle in r.description.lower())
        or needle in r.path.lower()
    ]


def get_route_stats(routes: List[RouteConfig] = ALL_ROUTES) -> Dict[str, int]:
    total = len(routes)
    hidden = sum(1 for r in routes if r.is_hidden)
    return {
        "total": total,
        "publicRoutes": sum(1 for r in routes if r.is_public),
        "protectedRoutes": sum(1 for r in routes if r.requires_auth),
        "adminRoutes": sum(1 for r in routes if r.required_role == "admin"),
        "userRoutes": sum(1 for r in routes if r.required_role == "user"),
        "hiddenRoutes": hidden,
        "visibleRoutes": total - hidden,
    }


def validate_route_param(param: str, value: str, type: str) -> bool:
    """Valida `value` contra el esquema `type` (id, slug, uuid, email, phone, date)."""
    pattern = ROUTE_PARAM_SCHEMA.get(type)
    return bool(pattern and pattern.match(value))
