"""
RedBoat Hotel API - Room Endpoints
==================================

HYBRID MONOLITH: Imports from root services.py and schemas.py

Listado público, disponibilidad por día o rango, calendario mensual,
gestión de habitaciones (admin), housekeeping y reseñas.
"""

from datetime import date
from typing import List, Optional, Union

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

# Import from API deps
from api.deps import client_info, get_current_user, get_db, require_permission

# IMPORT FROM ROOT - Single Source of Truth
from database import User
from errors import ValidationFailed
from services import ActivityLogService, ReviewService, RoomService
from schemas import (
    CalendarDayDTO, DataResponse, HousekeepingOverview, HousekeepingUpdate, MessageResponse,
    RoomCreate, RoomDayStatusDTO, RoomDTO, RoomRangeAvailabilityDTO, RoomReviewCreate,
    RoomReviewDTO, RoomReviewSummary, RoomUpdate,
)

router = APIRouter()


# ==========================================
# CONSULTAS PÚBLICAS
# ==========================================

@router.get(
    "",
    response_model=DataResponse[List[RoomDTO]],
    summary="List Available Rooms",
    description="Public listing: only rooms currently marked as available.",
)
def list_rooms(db: Session = Depends(get_db)):
    return DataResponse(data=RoomService.list_rooms(db, only_available=True))


@router.get(
    "/availability",
    response_model=DataResponse[Union[List[RoomDayStatusDTO], List[RoomRangeAvailabilityDTO]]],
    summary="Room Availability",
    description="Use `date` for a single day or `startDate` + `endDate` for a range.",
)
def availability(
    day: Optional[date] = Query(default=None, alias="date"),
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    db: Session = Depends(get_db),
):
    if start_date and end_date:
        return DataResponse(data=RoomService.availability_between(db, start_date, end_date))
    if day:
        return DataResponse(data=RoomService.availability_on(db, day))
    raise ValidationFailed("Provide either date or startDate and endDate")


@router.get("/calendar", response_model=DataResponse[List[CalendarDayDTO]], summary="Monthly Availability")
def month_calendar(
    year: Optional[int] = Query(default=None, description="Año (ej: 2025)"),
    month: Optional[int] = Query(default=None, ge=1, le=12, description="Mes (1-12)"),
    db: Session = Depends(get_db),
):
    today = date.today()
    return DataResponse(data=RoomService.month_calendar(db, year or today.year, month or today.month))


# ==========================================
# GESTIÓN (ADMIN)
# ==========================================

@router.get("/admin", response_model=DataResponse[List[RoomDTO]], summary="List All Rooms")
def list_all_rooms(db: Session = Depends(get_db), _: User = Depends(require_permission("readAny", "room"))):
    return DataResponse(data=RoomService.list_rooms(db))


@router.post("", response_model=DataResponse[RoomDTO], status_code=status.HTTP_201_CREATED,
             summary="Create Room")
def create_room(data: RoomCreate, request: Request, db: Session = Depends(get_db),
                actor: User = Depends(require_permission("createAny", "room"))):
    room = RoomService.create_room(db, data)
    ActivityLogService.log(db, "create", "room", actor=actor, resource_id=room.id,
                           details={"roomNumber": room.room_number}, **client_info(request))
    return DataResponse(data=room, message="Room created successfully")


@router.post("/sample", response_model=DataResponse[List[RoomDTO]], status_code=status.HTTP_201_CREATED,
             summary="Seed Sample Rooms")
def seed_sample_rooms(db: Session = Depends(get_db), _: User = Depends(require_permission("createAny", "room"))):
    created = RoomService.seed_sample_rooms(db)
    return DataResponse(data=created, message=f"{len(created)} sample rooms created")


@router.get("/housekeeping", response_model=DataResponse[HousekeepingOverview], summary="Housekeeping Overview")
def housekeeping_overview(db: Session = Depends(get_db),
                          _: User = Depends(require_permission("readAny", "housekeeping"))):
    return DataResponse(data=RoomService.housekeeping_overview(db))


@router.put("/housekeeping/{room_id}", response_model=DataResponse[RoomDTO], summary="Update Housekeeping")
def update_housekeeping(room_id: int, data: HousekeepingUpdate, request: Request, db: Session = Depends(get_db),
                        actor: User = Depends(require_permission("updateAny", "housekeeping"))):
    room = RoomService.update_housekeeping(db, room_id, data.housekeeping_status)
    ActivityLogService.log(db, "update", "housekeeping", actor=actor, resource_id=room_id,
                           details={"housekeepingStatus": room.housekeeping_status}, **client_info(request))
    return DataResponse(data=room, message="Housekeeping status updated")


@router.get("/{room_id}", response_model=DataResponse[RoomDTO], summary="Get Room")
def get_room(room_id: int, db: Session = Depends(get_db)):
    return DataResponse(data=RoomService.get_room(db, room_id))


@router.put("/{room_id}", response_model=DataResponse[RoomDTO], summary="Update Room")
def update_room(room_id: int, data: RoomUpdate, request: Request, db: Session = Depends(get_db),
                actor: User = Depends(require_permission("updateAny", "room"))):
    room = RoomService.update_room(db, room_id, data)
    ActivityLogService.log(db, "update", "room", actor=actor, resource_id=room_id,
                           details=data.model_dump(exclude_unset=True, by_alias=True), **client_info(request))
    return DataResponse(data=room, message="Room updated successfully")


@router.delete("/{room_id}", response_model=MessageResponse, summary="Delete Room")
def delete_room(room_id: int, request: Request, db: Session = Depends(get_db),
                actor: User = Depends(require_permission("deleteAny", "room"))):
    number = RoomService.delete_room(db, room_id)
    ActivityLogService.log(db, "delete", "room", actor=actor, resource_id=room_id,
                           details={"roomNumber": number}, **client_info(request))
    return MessageResponse(message="Room deleted successfully")


# ==========================================
# RESEÑAS
# ==========================================

@router.get("/{room_id}/reviews", response_model=DataResponse[RoomReviewSummary], summary="Room Reviews")
def list_reviews(room_id: int, db: Session = Depends(get_db)):
    return DataResponse(data=ReviewService.list_for_room(db, room_id))


@router.post("/{room_id}/reviews", response_model=DataResponse[RoomReviewDTO], summary="Review Room")
def upsert_review(room_id: int, data: RoomReviewCreate, user: User = Depends(get_current_user),
                  db: Session = Depends(get_db)):
    """Crea o actualiza la reseña del usuario; exige una estancia finalizada en la habitación."""
    return DataResponse(data=ReviewService.upsert(db, room_id, user.id, data), message="Review saved")
