"""
RedBoat Hotel API - Booking Endpoints
=====================================

HYBRID MONOLITH: Imports from root services.py and schemas.py

Ciclo de vida: pending -> confirmed -> checked-in -> checked-out, con la
cancelación como camino lateral que el admin aprueba o rechaza.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

# Import from API deps
from api.deps import client_info, get_current_user, get_db, require_permission

# IMPORT FROM ROOT - Single Source of Truth
from database import User
from services import ActivityLogService, BookingService
from schemas import (
    BookingCreate, BookingDTO, BookingStatusUpdate, CancellationRequest, CheckInRequest,
    CheckOutRequest, CheckOutResult, DataResponse, DeclineCancellationRequest, PaymentStatusUpdate,
)

router = APIRouter()


# ==========================================
# HUÉSPED
# ==========================================

@router.post(
    "",
    response_model=DataResponse[BookingDTO],
    status_code=status.HTTP_201_CREATED,
    summary="Create Booking",
    description="Create a pending booking. Rejects rooms already booked for the requested nights.",
)
def create_booking(data: BookingCreate, request: Request, user: User = Depends(get_current_user),
                   db: Session = Depends(get_db)):
    booking = BookingService.create_booking(db, user.id, data)
    ActivityLogService.log(
        db, "create", "booking", actor=user, resource_id=booking.id,
        details={"roomId": booking.room_id, "totalAmount": booking.total_amount}, **client_info(request),
    )
    return DataResponse(data=booking, message="Booking created successfully")


@router.get("/user-bookings", response_model=DataResponse[List[BookingDTO]], summary="My Bookings")
def list_user_bookings(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return DataResponse(data=BookingService.list_user_bookings(db, user.id))


@router.get(
    "",
    response_model=DataResponse[List[BookingDTO]],
    summary="List Bookings",
    description="Admin view. Pending bookings carry pendingDurationSeconds.",
)
def list_bookings(db: Session = Depends(get_db), _: User = Depends(require_permission("readAny", "booking"))):
    return DataResponse(data=BookingService.list_all(db))


@router.get("/{booking_id}", response_model=DataResponse[BookingDTO], summary="Get Booking")
def get_booking(booking_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return DataResponse(data=BookingService.get_booking(db, booking_id, user.id, user.role))


@router.put("/{booking_id}/payment", response_model=DataResponse[BookingDTO], summary="Update Payment Status")
def update_payment(booking_id: int, data: PaymentStatusUpdate, request: Request,
                   user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """El dueño solo puede marcar como pagada; el admin puede además reembolsar."""
    booking = BookingService.update_payment(
        db, booking_id, user.id, user.role, data.payment_status, data.payment_method, data.transaction_id,
    )
    ActivityLogService.log(db, "update-payment", "booking", actor=user, resource_id=booking_id,
                           details={"paymentStatus": booking.payment_status}, **client_info(request))
    return DataResponse(data=booking, message="Payment status updated successfully")


@router.post("/{booking_id}/request-cancel", response_model=DataResponse[BookingDTO], summary="Request Cancellation")
def request_cancellation(booking_id: int, request: Request, data: Optional[CancellationRequest] = None,
                         user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    reason = data.reason if data else ""
    booking = BookingService.request_cancellation(db, booking_id, user.id, reason)
    ActivityLogService.log(db, "request-cancel", "booking", actor=user, resource_id=booking_id,
                           details={"reason": reason}, **client_info(request))
    return DataResponse(data=booking, message="Cancellation request submitted")


# ==========================================
# ADMIN
# ==========================================

@router.put("/{booking_id}/status", response_model=DataResponse[BookingDTO], summary="Update Booking Status")
def update_status(booking_id: int, data: BookingStatusUpdate, request: Request, db: Session = Depends(get_db),
                  actor: User = Depends(require_permission("updateAny", "booking"))):
    booking = BookingService.update_status(db, booking_id, data.status, data.admin_notes)
    ActivityLogService.log(db, "update-status", "booking", actor=actor, resource_id=booking_id,
                           details={"status": data.status}, **client_info(request))
    return DataResponse(data=booking, message="Booking status updated successfully")


@router.put("/{booking_id}/checkin", response_model=DataResponse[BookingDTO], summary="Check In")
def check_in(booking_id: int, request: Request, data: Optional[CheckInRequest] = None,
             db: Session = Depends(get_db), actor: User = Depends(require_permission("updateAny", "booking"))):
    data = data or CheckInRequest()
    booking = BookingService.check_in(db, booking_id, actor.id, data.checkin_notes, data.additional_charges)
    ActivityLogService.log(db, "checkin", "booking", actor=actor, resource_id=booking_id,
                           details={"lateCheckInFee": booking.late_check_in_fee}, **client_info(request))
    return DataResponse(data=booking, message="Guest checked in successfully")


@router.put("/{booking_id}/checkout", response_model=DataResponse[CheckOutResult], summary="Check Out")
def check_out(booking_id: int, request: Request, data: Optional[CheckOutRequest] = None,
              db: Session = Depends(get_db), actor: User = Depends(require_permission("updateAny", "booking"))):
    data = data or CheckOutRequest()
    result = BookingService.check_out(
        db, booking_id, actor.id, data.checkout_notes, data.additional_charges, data.room_condition,
    )
    ActivityLogService.log(
        db, "checkout", "booking", actor=actor, resource_id=booking_id,
        details={"totalCharges": result.summary.total_charges, "balanceDue": result.summary.balance_due},
        **client_info(request),
    )
    return DataResponse(data=result, message="Guest checked out successfully")


@router.post("/{booking_id}/approve-cancel", response_model=DataResponse[BookingDTO], summary="Approve Cancellation")
def approve_cancellation(booking_id: int, request: Request, db: Session = Depends(get_db),
                         actor: User = Depends(require_permission("updateAny", "booking"))):
    booking = BookingService.approve_cancellation(db, booking_id)
    ActivityLogService.log(db, "approve-cancel", "booking", actor=actor, resource_id=booking_id,
                           **client_info(request))
    return DataResponse(data=booking, message="Cancellation approved")


@router.post("/{booking_id}/decline-cancel", response_model=DataResponse[BookingDTO], summary="Decline Cancellation")
def decline_cancellation(booking_id: int, request: Request, data: Optional[DeclineCancellationRequest] = None,
                         db: Session = Depends(get_db),
                         actor: User = Depends(require_permission("updateAny", "booking"))):
    booking = BookingService.decline_cancellation(db, booking_id, data.admin_notes if data else "")
    ActivityLogService.log(db, "decline-cancel", "booking", actor=actor, resource_id=booking_id,
                           **client_info(request))
    return DataResponse(data=booking, message="Cancellation declined")
