"""
RedBoat Hotel API - Navigation Endpoints
========================================

Expone el Routing Manager del cliente para la sesión del llamador.
Sin sesión se navega como usuario no autenticado (rutas públicas).
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from api.deps import get_optional_user

from client.routing import RouteConfig, RoutePermission, RoutingManager, UserContext
from database import User
from schemas import DataResponse

router = APIRouter()


def _manager_for(user: Optional[User]) -> RoutingManager:
    """Una instancia por petición: el singleton es del proceso del dashboard."""
    if user is not None:
        return RoutingManager.for_context(UserContext(is_authenticated=True, role=user.role))
    return RoutingManager.for_context(UserContext(is_authenticated=False))


@router.get("", response_model=DataResponse[List[RouteConfig]], summary="Navigation Routes")
def navigation_routes(user: Optional[User] = Depends(get_optional_user)):
    return DataResponse(data=_manager_for(user).get_navigation_routes())


@router.get("/check", response_model=DataResponse[RoutePermission], summary="Check Route Permission")
def check_route(path: str = Query(...), user: Optional[User] = Depends(get_optional_user)):
    return DataResponse(data=_manager_for(user).check_route_permission(path))


@router.get("/breadcrumbs", response_model=DataResponse[List[RouteConfig]], summary="Breadcrumbs")
def breadcrumbs(path: str = Query(...), user: Optional[User] = Depends(get_optional_user)):
    return DataResponse(data=_manager_for(user).get_breadcrumbs(path))
