"""
RedBoat Hotel API - Activity Log Endpoints
==========================================
"""

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from api.deps import get_db, require_permission

from database import User
from services import ActivityLogService
from schemas import ActivityLogPage

router = APIRouter()


@router.get("/logs", response_model=ActivityLogPage, summary="Activity Logs")
def list_logs(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1),
    q: Optional[str] = Query(default=None, description="Busca en email, acción y recurso"),
    date_from: Optional[date] = Query(default=None, alias="dateFrom"),
    date_to: Optional[date] = Query(default=None, alias="dateTo"),
    db: Session = Depends(get_db),
    _: User = Depends(require_permission("readAny", "activity")),
):
    return ActivityLogService.list_logs(db, page, limit, q, date_from, date_to)
