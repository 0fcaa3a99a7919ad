"""
RedBoat Hotel - Control de acceso (RBAC)
========================================

Grants por rol en forma de acciones "<verbo><Own|Any>" sobre recursos:

- user:        perfil y reservas propias
- admin:       user + usuarios, reservas, habitaciones, housekeeping, reportes, actividad
- superadmin:  admin + borrado de usuarios

Los roles personalizados se evalúan como admin y después se filtran por
los permisos de módulo guardados en la tabla roles (y, si existen, por los
permisos individuales del usuario).
"""

from typing import Dict, FrozenSet, Optional

from constants import SYSTEM_ROLES

USER_GRANTS = frozenset({
    "readOwn:profile", "updateOwn:profile",
    "readOwn:booking", "createOwn:booking", "updateOwn:booking",
})

ADMIN_GRANTS = USER_GRANTS | frozenset({
    "readAny:user", "updateAny:user",
    "readAny:booking", "updateAny:booking", "deleteAny:booking",
    "readAny:room", "createAny:room", "updateAny:room", "deleteAny:room",
    "readAny:housekeeping", "updateAny:housekeeping",
    "readAny:report",
    "readAny:activity",
})

SUPERADMIN_GRANTS = ADMIN_GRANTS | frozenset({"deleteAny:user"})

GRANTS: Dict[str, FrozenSet[str]] = {
    "user": USER_GRANTS,
    "admin": ADMIN_GRANTS,
    "superadmin": SUPERADMIN_GRANTS,
}

# Recurso -> flag de módulo que lo habilita
MODULE_FOR_RESOURCE = {
    "booking": "manageBookings",
    "room": "manageRooms",
    "housekeeping": "manageHousekeeping",
    "user": "manageUsers",
    "report": "viewReports",
}


def grant_role(role: Optional[str]) -> str:
    """Rol con el que se consultan los grants: los personalizados cuentan como admin."""
    if not role:
        return "user"
    return role if role in SYSTEM_ROLES else "admin"


def is_admin_role(role: Optional[str]) -> bool:
    return grant_role(role) in ("admin", "superadmin")


def can(role: Optional[str], action: str, resource: str) -> bool:
    return f"{action}:{resource}" in GRANTS[grant_role(role)]


def module_allowed(permissions: Optional[dict], resource: str) -> bool:
    """Un módulo está permitido salvo que su flag sea explícitamente False."""
    flag = MODULE_FOR_RESOURCE.get(resource)
    if flag is None:
        return True
    return (permissions or {}).get(flag) is not False
