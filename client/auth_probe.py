"""
RedBoat Hotel - Auth Probe y Route Guard
========================================

Cada página protegida pregunta a GET /me quién es el usuario antes de
renderizar. Cualquier fallo cuenta como "no autenticado"; un 403 indica
cuenta bloqueada.
"""

from typing import Optional

from client.api_client import ApiClient, ApiError
from client.routing import (
    RoutePermission,
    RoutingManager,
    UserContext,
    default_route_for,
    get_route_by_path,
    navigation_role,
)
from logging_config import get_logger

logger = get_logger(__name__)

BLOCKED_ROUTE = "/blocked"
LOGIN_ROUTE = "/login"


def probe(client: ApiClient) -> UserContext:
    try:
        user = client.me() or {}
    except ApiError as e:
        if e.status == 403:
            logger.info("Probe: cuenta bloqueada")
            return UserContext(is_authenticated=False, is_blocked=True)
        logger.debug(f"Probe sin sesión: {e}")
        return UserContext(is_authenticated=False)

    return UserContext(is_authenticated=True, role=user.get("role") or "user")


def guard_route(path: str, required_role: Optional[str], context: UserContext) -> RoutePermission:
    """
    Decide si la página `path` puede renderizar para `context`.

    required_role es el rol que la página declara ("user" | "admin" | None);
    el superadmin y los roles personalizados cuentan como "admin".
    """
    route = get_route_by_path(path)
    is_public = bool(route and route.is_public)

    if context.is_blocked and not is_public:
        return RoutePermission(can_access=False, redirect_to=BLOCKED_ROUTE, reason="Account blocked")

    if not context.is_authenticated and not is_public:
        return RoutePermission(can_access=False, redirect_to=LOGIN_ROUTE, reason="Authentication required")

    if required_role and context.is_authenticated and navigation_role(context.role) != required_role:
        return RoutePermission(
            can_access=False,
            redirect_to=default_route_for(context.role),
            reason=f"Role '{required_role}' required",
        )

    manager = RoutingManager()
    manager.set_user_context(context)
    return manager.check_route_permission(path)
