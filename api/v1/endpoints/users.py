"""
RedBoat Hotel API - User Endpoints
==================================

Montado en la raíz de la API: /me, /profile y /users/...
"""

from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from api.deps import client_info, get_current_user, get_db, require_permission, require_superadmin

from database import User
from services import ActivityLogService, UserService
from schemas import (
    ApiModel, DataResponse, MessageResponse, PasswordChange, ProfileUpdate, RoleAssignment, UserDTO,
)

router = APIRouter()


# ==========================================
# API-SPECIFIC SCHEMAS
# ==========================================

class AdminPermissionsBody(ApiModel):
    admin_permissions: Optional[Dict[str, bool]] = None


# ==========================================
# SESIÓN Y PERFIL
# ==========================================

@router.get("/me", response_model=DataResponse[UserDTO], summary="Current Session")
def me(user: User = Depends(get_current_user)):
    """Lo usa el Auth Probe del cliente: 401 sin sesión, 403 si la cuenta está bloqueada."""
    return DataResponse(data=UserDTO.model_validate(user))


@router.get("/profile", response_model=DataResponse[UserDTO], summary="Get Profile")
def get_profile(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return DataResponse(data=UserService.get_user(db, user.id))


@router.put("/profile", response_model=DataResponse[UserDTO], summary="Update Profile")
def update_profile(data: ProfileUpdate, request: Request, user: User = Depends(get_current_user),
                   db: Session = Depends(get_db)):
    updated = UserService.update_profile(db, user.id, data)
    ActivityLogService.log(
        db, "update", "profile", actor=user, resource_id=user.id,
        details={"fields": sorted(data.model_dump(exclude_none=True))}, **client_info(request),
    )
    return DataResponse(data=updated, message="Profile updated successfully")


@router.put("/profile/password", response_model=MessageResponse, summary="Change Password")
def change_password(data: PasswordChange, request: Request, user: User = Depends(get_current_user),
                    db: Session = Depends(get_db)):
    UserService.change_password(db, user.id, data.current_password, data.new_password)
    ActivityLogService.log(db, "change-password", "profile", actor=user, resource_id=user.id,
                           **client_info(request))
    return MessageResponse(message="Password updated successfully")


# ==========================================
# ADMINISTRACIÓN DE USUARIOS
# ==========================================

@router.get("/users", response_model=DataResponse[List[UserDTO]], summary="List Users")
def list_users(db: Session = Depends(get_db), _: User = Depends(require_permission("readAny", "user"))):
    return DataResponse(data=UserService.list_users(db))


@router.put("/users/{user_id}/role", response_model=DataResponse[UserDTO], summary="Assign Role")
def assign_role(user_id: int, data: RoleAssignment, request: Request,
                actor: User = Depends(require_superadmin), db: Session = Depends(get_db)):
    updated = UserService.assign_role(db, actor.id, user_id, data.role)
    ActivityLogService.log(db, "assign-role", "user", actor=actor, resource_id=user_id,
                           details={"role": updated.role}, **client_info(request))
    return DataResponse(data=updated, message="User role updated successfully")


@router.put("/users/{user_id}/admin-permissions", response_model=DataResponse[UserDTO],
            summary="Set Admin Permissions")
def update_admin_permissions(user_id: int, data: AdminPermissionsBody, request: Request,
                             actor: User = Depends(require_superadmin), db: Session = Depends(get_db)):
    updated = UserService.update_admin_permissions(db, user_id, data.admin_permissions)
    ActivityLogService.log(db, "update-permissions", "user", actor=actor, resource_id=user_id,
                           details=updated.admin_permissions, **client_info(request))
    return DataResponse(data=updated, message="Admin permissions updated successfully")


@router.put("/users/{user_id}/block", response_model=DataResponse[UserDTO], summary="Block User")
def block_user(user_id: int, request: Request, db: Session = Depends(get_db),
               actor: User = Depends(require_permission("updateAny", "user"))):
    updated = UserService.set_blocked(db, actor.id, user_id, True)
    ActivityLogService.log(db, "block", "user", actor=actor, resource_id=user_id, **client_info(request))
    return DataResponse(data=updated, message="User blocked successfully")


@router.put("/users/{user_id}/unblock", response_model=DataResponse[UserDTO], summary="Unblock User")
def unblock_user(user_id: int, request: Request, db: Session = Depends(get_db),
                 actor: User = Depends(require_permission("updateAny", "user"))):
    updated = UserService.set_blocked(db, actor.id, user_id, False)
    ActivityLogService.log(db, "unblock", "user", actor=actor, resource_id=user_id, **client_info(request))
    return DataResponse(data=updated, message="User unblocked successfully")
