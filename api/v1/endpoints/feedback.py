"""
RedBoat Hotel API - Feedback Endpoints
======================================
"""

from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from api.deps import get_current_user, get_db, require_admin

from database import User
from services import FeedbackService
from schemas import DataResponse, FeedbackCreate, FeedbackDTO

router = APIRouter()


@router.post("", response_model=DataResponse[FeedbackDTO], status_code=status.HTTP_201_CREATED,
             summary="Send Feedback")
def create_feedback(data: FeedbackCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return DataResponse(data=FeedbackService.create(db, user.id, data), message="Thank you for your feedback!")


@router.get("/my", response_model=DataResponse[List[FeedbackDTO]], summary="My Feedback")
def my_feedback(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return DataResponse(data=FeedbackService.list_for_user(db, user.id))


@router.get("", response_model=DataResponse[List[FeedbackDTO]], summary="All Feedback")
def list_feedback(db: Session = Depends(get_db), _: User = Depends(require_admin)):
    return DataResponse(data=FeedbackService.list_all(db))
