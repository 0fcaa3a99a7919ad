"""
RedBoat Hotel API - Dependency Injection
========================================

Provides the database session and the authenticated user to FastAPI endpoints.
Works with the Hybrid Monolith pattern - imports from root.

La sesión viaja en la cookie "auth" (JWT). Los chequeos de rol usan
permissions.py; los roles personalizados se filtran además por sus flags
de módulo (tabla roles) y los flags individuales del usuario.
"""

from typing import Dict, Generator, Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

# Import from ROOT - Single Source of Truth
from config import AUTH_COOKIE_NAME
from database import SessionLocal, User
from logging_config import get_logger
from permissions import can, is_admin_role, module_allowed
from security import decode_access_token
from services import RoleService

logger = get_logger(__name__)

BLOCKED_MESSAGE = "Your account has been blocked. Please contact support."


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency for FastAPI.

    Yields a session that is properly closed after use.
    The smart @with_db decorator in services.py will detect this
    injected session and use it instead of creating its own.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        SessionLocal.remove()


def _user_from_cookie(request: Request, db: Session) -> Optional[User]:
    token = request.cookies.get(AUTH_COOKIE_NAME)
    if not token:
        return None
    payload = decode_access_token(token)
    if not payload or not payload.get("sub"):
        return None
    try:
        user_id = int(payload["sub"])
    except (TypeError, ValueError):
        return None
    return db.get(User, user_id)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Usuario de la cookie de sesión. 401 sin sesión válida, 403 si está bloqueado."""
    user = _user_from_cookie(request, db)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    if user.is_blocked:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=BLOCKED_MESSAGE)
    return user


def get_optional_user(request: Request, db: Session = Depends(get_db)) -> Optional[User]:
    """Como get_current_user pero devuelve None en lugar de fallar (rutas públicas)."""
    user = _user_from_cookie(request, db)
    if user is None or user.is_blocked:
        return None
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    if not is_admin_role(user.role):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return user


def require_superadmin(user: User = Depends(get_current_user)) -> User:
    if user.role != "superadmin":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Superadmin access required")
    return user


def effective_permissions(db: Session, user: User) -> Dict[str, bool]:
    """Flags de módulo del rol AND flags individuales del usuario."""
    role_permissions = RoleService.get_permissions(db, user.role) or {}
    user_permissions = user.admin_permissions or {}
    flags = set(role_permissions) | set(user_permissions)
    return {
        flag: role_permissions.get(flag) is not False and user_permissions.get(flag) is not False
        for flag in flags
    }


def require_permission(action: str, resource: str):
    """
    Dependency factory: exige el grant "<action>:<resource>" y el flag de módulo.

    Usage:
        @router.get("/users", dependencies=[Depends(require_permission("readAny", "user"))])
    """
    def permission_checker(user: User = Depends(get_current_user), db: Session = Depends(get_db)) -> User:
        if user.role == "superadmin":
            return user
        if not can(user.role, action, resource):
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        if is_admin_role(user.role) and not module_allowed(effective_permissions(db, user), resource):
            logger.warning(f"{user.email} sin permiso de módulo para {resource}")
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient module permissions for this role",
            )
        return user

    return permission_checker


def client_info(request: Request) -> Dict[str, Optional[str]]:
    """IP (respetando x-forwarded-for) y user agent para el registro de actividad."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        ip = forwarded.split(",")[0].strip()
    else:
        ip = request.client.host if request.client else None
    return {"ip": ip, "user_agent": request.headers.get("user-agent")}
