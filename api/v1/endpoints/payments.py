"""
RedBoat Hotel API - Payment Endpoints
=====================================

Stripe Checkout: crear sesión, confirmar al volver del checkout y webhook.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query, Request
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from api.deps import client_info, get_current_user, get_db

from database import User
from payments import PaymentService
from services import ActivityLogService
from schemas import BookingDTO, CheckoutSessionDTO, CheckoutSessionRequest, DataResponse

router = APIRouter()


@router.post("/checkout-session", response_model=DataResponse[CheckoutSessionDTO], summary="Create Checkout Session")
def create_checkout_session(data: CheckoutSessionRequest, request: Request,
                            user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    session = PaymentService.create_checkout_session(db, data.booking_id, user.id, user.role)
    ActivityLogService.log(db, "checkout-session", "payment", actor=user, resource_id=data.booking_id,
                           details={"sessionId": session.id}, **client_info(request))
    return DataResponse(data=session)


@router.get("/confirm", response_model=DataResponse[BookingDTO], summary="Confirm Checkout Session")
def confirm_session(session_id: Optional[str] = Query(default=None), db: Session = Depends(get_db),
                    _: User = Depends(get_current_user)):
    booking = PaymentService.confirm_session(db, session_id)
    return DataResponse(data=booking, message="Payment confirmed")


@router.post("/webhook", summary="Stripe Webhook")
async def stripe_webhook(request: Request, stripe_signature: Optional[str] = Header(default=None),
                         db: Session = Depends(get_db)):
    """Cuerpo crudo: la firma se verifica sobre los bytes exactos que envió Stripe."""
    payload = await request.body()
    event_type = await run_in_threadpool(PaymentService.handle_webhook, db, payload, stripe_signature)
    return {"received": True, "type": event_type}
