"""
RedBoat Hotel API - Calendar Endpoints
======================================

HYBRID MONOLITH: Imports from root services.py and schemas.py
"""

from typing import Dict, List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

# Import from API deps
from api.deps import get_db, require_permission

# IMPORT FROM ROOT - Single Source of Truth
from database import User
from services import CalendarService
from schemas import CalendarEventDTO, DataResponse

router = APIRouter()


@router.get(
    "/events",
    response_model=DataResponse[List[CalendarEventDTO]],
    summary="Get Calendar Events",
    description="Get booking spans for a specific month. FullCalendar compatible.",
)
def get_calendar_events(
    year: int = Query(..., ge=2020, le=2100, description="Year"),
    month: int = Query(..., ge=1, le=12, description="Month (1-12)"),
    db: Session = Depends(get_db),
    _: User = Depends(require_permission("readAny", "booking")),
):
    return DataResponse(data=CalendarService.get_monthly_events(db, year, month))


@router.get(
    "/occupancy",
    response_model=DataResponse[Dict[str, Dict]],
    summary="Get Occupancy Map",
    description="Get daily booked-room counts for a month with a free/medium/high level.",
)
def get_occupancy_map(
    year: int = Query(..., ge=2020, le=2100, description="Year"),
    month: int = Query(..., ge=1, le=12, description="Month (1-12)"),
    db: Session = Depends(get_db),
    _: User = Depends(require_permission("readAny", "booking")),
):
    return DataResponse(data=CalendarService.get_occupancy_map(db, year, month))
