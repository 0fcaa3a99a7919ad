"""
Pagos: Stripe Checkout con la librería stripe simulada
"""
from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
import stripe
from fastapi.testclient import TestClient

import payments
from database import Booking
from tests.conftest import API, make_booking


@pytest.fixture
def stripe_configured(monkeypatch):
    monkeypatch.setattr(payments, "STRIPE_SECRET_KEY", "sk_test_123")


@pytest.fixture
def confirmed_booking(db_session, guest, room, tomorrow):
    return make_booking(db_session, guest, room, tomorrow, status="confirmed")


def _session(booking_id, payment_status="paid", status="complete"):
    return SimpleNamespace(
        id="cs_test_1", url="https://checkout.stripe.test/cs_test_1",
        payment_status=payment_status, status=status,
        payment_intent="pi_test_1", metadata={"bookingId": str(booking_id)},
    )


class TestCheckoutSession:

    def test_not_configured(self, as_guest: TestClient, confirmed_booking):
        response = as_guest.post(f"{API}/payments/checkout-session", json={"bookingId": confirmed_booking.id})

        assert response.status_code == 503
        assert response.json()["message"] == "Payments are not configured"

    def test_creates_session(self, as_guest: TestClient, stripe_configured, confirmed_booking, db_session, monkeypatch):
        create = MagicMock(return_value=_session(confirmed_booking.id, "unpaid", "open"))
        monkeypatch.setattr(stripe.checkout.Session, "create", create)

        response = as_guest.post(f"{API}/payments/checkout-session", json={"bookingId": confirmed_booking.id})

        assert response.status_code == 200
        assert response.json()["data"] == {"id": "cs_test_1", "url": "https://checkout.stripe.test/cs_test_1"}
        kwargs = create.call_args.kwargs
        assert kwargs["line_items"][0]["price_data"]["unit_amount"] == 200000
        assert kwargs["metadata"]["bookingId"] == str(confirmed_booking.id)
        db_session.expire_all()
        assert db_session.get(Booking, confirmed_booking.id).stripe_session_id == "cs_test_1"

    def test_booking_id_required(self, as_guest: TestClient):
        response = as_guest.post(f"{API}/payments/checkout-session", json={})

        assert response.status_code == 400
        assert response.json()["message"] == "bookingId is required"

    def test_pending_booking_needs_approval(self, as_guest: TestClient, db_session, guest, room, tomorrow):
        booking = make_booking(db_session, guest, room, tomorrow)

        response = as_guest.post(f"{API}/payments/checkout-session", json={"bookingId": booking.id})

        assert response.status_code == 400
        assert response.json()["message"] == "Booking must be approved by admin before payment"

    def test_already_paid(self, as_guest: TestClient, db_session, guest, room, tomorrow):
        booking = make_booking(db_session, guest, room, tomorrow, status="confirmed", payment_status="paid")

        response = as_guest.post(f"{API}/payments/checkout-session", json={"bookingId": booking.id})

        assert response.status_code == 400
        assert response.json()["message"] == "Booking is already paid"

    def test_someone_elses_booking(self, as_guest: TestClient, stripe_configured, db_session, other_guest, room,
                                   tomorrow):
        booking = make_booking(db_session, other_guest, room, tomorrow, status="confirmed")

        response = as_guest.post(f"{API}/payments/checkout-session", json={"bookingId": booking.id})

        assert response.status_code == 403
        assert response.json()["message"] == "Not authorized to pay for this booking"


class TestConfirm:

    def test_confirm_marks_booking_paid(self, as_guest: TestClient, stripe_configured, confirmed_booking, monkeypatch):
        monkeypatch.setattr(stripe.checkout.Session, "retrieve", MagicMock(return_value=_session(confirmed_booking.id)))

        response = as_guest.get(f"{API}/payments/confirm", params={"session_id": "cs_test_1"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["paymentStatus"] == "paid"
        assert data["paymentMethod"] == "stripe"
        assert data["transactionId"] == "pi_test_1"

    def test_unpaid_session(self, as_guest: TestClient, stripe_configured, confirmed_booking, monkeypatch):
        unpaid = _session(confirmed_booking.id, "unpaid", "open")
        monkeypatch.setattr(stripe.checkout.Session, "retrieve", MagicMock(return_value=unpaid))

        response = as_guest.get(f"{API}/payments/confirm", params={"session_id": "cs_test_1"})

        assert response.status_code == 409
        assert response.json()["message"] == "Session not paid yet"

    def test_session_id_required(self, as_guest: TestClient, stripe_configured):
        response = as_guest.get(f"{API}/payments/confirm")

        assert response.status_code == 400
        assert response.json()["message"] == "session_id is required"


class TestWebhook:

    def test_completed_checkout_marks_paid(self, client: TestClient, confirmed_booking, db_session, monkeypatch):
        event = {"type": "checkout.session.completed", "data": {"object": _session(confirmed_booking.id)}}
        monkeypatch.setattr(stripe.Webhook, "construct_event", MagicMock(return_value=event))

        response = client.post(f"{API}/payments/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=x"})

        assert response.status_code == 200
        assert response.json() == {"received": True, "type": "checkout.session.completed"}
        db_session.expire_all()
        booking = db_session.get(Booking, confirmed_booking.id)
        assert booking.payment_status == "paid"
        assert booking.stripe_session_id == "cs_test_1"

    def test_other_events_are_acknowledged(self, client: TestClient, confirmed_booking, db_session, monkeypatch):
        event = {"type": "payment_intent.created", "data": {"object": {}}}
        monkeypatch.setattr(stripe.Webhook, "construct_event", MagicMock(return_value=event))

        response = client.post(f"{API}/payments/webhook", content=b"{}", headers={"stripe-signature": "t=1,v1=x"})

        assert response.status_code == 200
        db_session.expire_all()
        assert db_session.get(Booking, confirmed_booking.id).payment_status == "pending"

    def test_bad_signature(self, client: TestClient, monkeypatch):
        error = stripe.SignatureVerificationError("No signatures found matching the expected signature", "t=1")
        monkeypatch.setattr(stripe.Webhook, "construct_event", MagicMock(side_effect=error))

        response = client.post(f"{API}/payments/webhook", content=b"{}", headers={"stripe-signature": "t=1"})

        assert response.status_code == 400
        assert response.json()["message"].startswith("Webhook Error: No signatures found")
