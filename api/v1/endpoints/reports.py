"""
RedBoat Hotel API - Report Endpoints
====================================

Requieren el grant readAny:report y el flag de módulo viewReports.
Sin fechas, el periodo son los últimos 30 días.
"""

from datetime import date
from typing import Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.deps import get_db, require_permission

from database import User
import reports
from schemas import DataResponse

router = APIRouter()

can_view_reports = require_permission("readAny", "report")


@router.get("/occupancy", response_model=DataResponse[Dict], summary="Occupancy Report")
def occupancy(
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    db: Session = Depends(get_db),
    _: User = Depends(can_view_reports),
):
    return DataResponse(data=reports.occupancy_report(db, start_date, end_date))


@router.get("/revenue", response_model=DataResponse[Dict], summary="Revenue Report")
def revenue(
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    db: Session = Depends(get_db),
    _: User = Depends(can_view_reports),
):
    return DataResponse(data=reports.revenue_report(db, start_date, end_date))


@router.get("/bookings", response_model=DataResponse[Dict], summary="Booking Analytics")
def booking_analytics(
    start_date: Optional[date] = Query(default=None, alias="startDate"),
    end_date: Optional[date] = Query(default=None, alias="endDate"),
    db: Session = Depends(get_db),
    _: User = Depends(can_view_reports),
):
    return DataResponse(data=reports.booking_analytics(db, start_date, end_date))


@router.get("/dashboard", response_model=DataResponse[Dict], summary="Dashboard Summary")
def dashboard(db: Session = Depends(get_db), _: User = Depends(can_view_reports)):
    return DataResponse(data=reports.dashboard_report(db))
