"""
RedBoat Hotel - Pagos con Stripe Checkout
=========================================

Flujo:
1. POST /payments/checkout-session: crea la sesión de Stripe para una
   reserva confirmada y devuelve {id, url}
2. El huésped paga en Stripe y vuelve a /checkout/success?session_id=...
3. GET /payments/confirm o el webhook checkout.session.completed marcan
   la reserva como pagada (BookingService.mark_paid es idempotente)
"""

from typing import Optional

import stripe
from sqlalchemy.orm import Session

from config import CLIENT_ORIGIN, STRIPE_CURRENCY, STRIPE_SECRET_KEY, STRIPE_WEBHOOK_SECRET
from database import Booking
from errors import Conflict, Forbidden, NotFoundError, ServiceError, ValidationFailed
from logging_config import get_logger
from permissions import is_admin_role
from schemas import BookingDTO, CheckoutSessionDTO
from services import BookingService

logger = get_logger(__name__)


def _client() -> None:
    if not STRIPE_SECRET_KEY:
        raise ServiceError("Payments are not configured", 503)
    stripe.api_key = STRIPE_SECRET_KEY


def _booking_id_from(session) -> Optional[int]:
    metadata = getattr(session, "metadata", None) or {}
    raw = metadata["bookingId"] if "bookingId" in metadata else None
    try:
        return int(raw) if raw else None
    except (TypeError, ValueError):
        return None


class PaymentService:

    @staticmethod
    def create_checkout_session(db: Session, booking_id: Optional[int], user_id: int,
                                role: str) -> CheckoutSessionDTO:
        if not booking_id:
            raise ValidationFailed("bookingId is required")
        booking = db.get(Booking, booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        if booking.user_id != user_id and not is_admin_role(role):
            raise Forbidden("Not authorized to pay for this booking")
        if booking.payment_status == "paid":
            raise ValidationFailed("Booking is already paid")
        if booking.status != "confirmed":
            raise ValidationFailed("Booking must be approved by admin before payment")

        _client()
        room = booking.room
        try:
            session = stripe.checkout.Session.create(
                mode="payment",
                payment_method_types=["card"],
                line_items=[{
                    "quantity": 1,
                    "price_data": {
                        "currency": STRIPE_CURRENCY,
                        "unit_amount": round(booking.total_amount * 100),
                        "product_data": {
                            "name": f"Room {room.room_number if room else ''} • {room.room_type if room else 'Room'}",
                            "description": f"Booking {booking.id}",
                        },
                    },
                }],
                success_url=f"{CLIENT_ORIGIN}/checkout/success?session_id={{CHECKOUT_SESSION_ID}}",
                cancel_url=f"{CLIENT_ORIGIN}/checkout/cancel?bookingId={booking.id}",
                metadata={"bookingId": str(booking.id), "userId": str(booking.user_id)},
            )
        except stripe.StripeError as e:
            logger.error(f"[Stripe] createCheckoutSession falló para reserva {booking.id}: {e}")
            raise ServiceError("Failed to create checkout session", 500)

        booking.stripe_session_id = session.id
        db.commit()
        logger.info(f"[Stripe] sesión {session.id} creada para reserva {booking.id}")
        return CheckoutSessionDTO(id=session.id, url=session.url)

    @staticmethod
    def confirm_session(db: Session, session_id: Optional[str]) -> BookingDTO:
        if not session_id:
            raise ValidationFailed("session_id is required")
        _client()
        try:
            session = stripe.checkout.Session.retrieve(session_id)
        except stripe.StripeError as e:
            logger.error(f"[Stripe] no se pudo recuperar la sesión {session_id}: {e}")
            raise ServiceError("Failed to confirm session", 500)

        is_paid = session.payment_status == "paid" or session.status == "complete"
        if not is_paid:
            raise Conflict("Session not paid yet")

        booking_id = _booking_id_from(session)
        if not booking_id:
            raise ValidationFailed("Session has no booking attached")
        return BookingService.mark_paid(
            db, booking_id, "stripe",
            transaction_id=session.payment_intent, session_id=session.id,
        )

    @staticmethod
    def handle_webhook(db: Session, payload: bytes, signature: Optional[str]) -> str:
        """Verifica la firma y procesa el evento. Devuelve el tipo de evento."""
        try:
            event = stripe.Webhook.construct_event(payload, signature, STRIPE_WEBHOOK_SECRET)
        except (ValueError, stripe.SignatureVerificationError) as e:
            logger.warning(f"[Stripe] firma de webhook inválida: {e}")
            raise ValidationFailed(f"Webhook Error: {e}")

        event_type = event["type"]
        if event_type == "checkout.session.completed":
            session = event["data"]["object"]
            booking_id = _booking_id_from(session)
            if booking_id:
                BookingService.mark_paid(
                    db, booking_id, "stripe",
                    transaction_id=session.payment_intent, session_id=session.id,
                )
        else:
            logger.debug(f"[Stripe] evento ignorado: {event_type}")
        return event_type
