"""
RedBoat Hotel API - Role Endpoints
==================================

Roles personalizados con flags de módulo. Listar: admin. Crear, editar y
borrar: solo superadmin. Los roles del sistema no se tocan.
"""

from typing import List

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from api.deps import client_info, get_db, require_admin, require_superadmin

from database import User
from services import ActivityLogService, RoleService
from schemas import DataResponse, MessageResponse, RoleCreate, RoleDTO, RoleUpdate

router = APIRouter()


@router.get("", response_model=DataResponse[List[RoleDTO]], summary="List Roles")
def list_roles(db: Session = Depends(get_db), _: User = Depends(require_admin)):
    return DataResponse(data=RoleService.list_roles(db))


@router.post("", response_model=DataResponse[RoleDTO], status_code=status.HTTP_201_CREATED,
             summary="Create Role")
def create_role(data: RoleCreate, request: Request, actor: User = Depends(require_superadmin),
                db: Session = Depends(get_db)):
    role = RoleService.create_role(db, data)
    ActivityLogService.log(db, "create", "role", actor=actor, resource_id=role.id,
                           details={"name": role.name}, **client_info(request))
    return DataResponse(data=role, message="Role created successfully")


@router.put("/{role_id}", response_model=DataResponse[RoleDTO], summary="Update Role")
def update_role(role_id: int, data: RoleUpdate, request: Request, actor: User = Depends(require_superadmin),
                db: Session = Depends(get_db)):
    role = RoleService.update_role(db, role_id, data)
    ActivityLogService.log(db, "update", "role", actor=actor, resource_id=role_id,
                           details={"name": role.name}, **client_info(request))
    return DataResponse(data=role, message="Role updated successfully")


@router.delete("/{role_id}", response_model=MessageResponse, summary="Delete Role")
def delete_role(role_id: int, request: Request, actor: User = Depends(require_superadmin),
                db: Session = Depends(get_db)):
    name = RoleService.delete_role(db, role_id)
    ActivityLogService.log(db, "delete", "role", actor=actor, resource_id=role_id,
                           details={"name": name}, **client_info(request))
    return MessageResponse(message="Role deleted successfully")
