"""
Reservas: precio, solapes, pagos, check-in/out con recargos y cancelaciones
"""
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from database import Notification
from errors import ValidationFailed
from services import BookingService, calculate_booking_pricing, late_check_in_fee, late_check_out_fee
from tests.conftest import API, login_as, make_booking, make_room


def _booking_payload(room, check_in: date, nights: int = 2, guests: int = 1) -> dict:
    return {
        "roomId": room.id,
        "checkInDate": check_in.isoformat(),
        "checkOutDate": (check_in + timedelta(days=nights)).isoformat(),
        "numberOfGuests": guests,
        "guestName": "Ana Reyes",
        "contactNumber": "0917 123 4567",
    }


class TestPricing:

    def test_extra_person_rate_per_night(self, tomorrow):
        pricing = calculate_booking_pricing(1000, 2, tomorrow, tomorrow + timedelta(days=3), 4)

        assert pricing["nights"] == 3
        assert pricing["base_amount"] == 3000
        assert pricing["extra_person_charge"] == 1800
        assert pricing["total_amount"] == 4800

    def test_late_check_in_fee_per_started_hour(self, tomorrow, noon_on):
        assert late_check_in_fee(tomorrow, noon_on(tomorrow, 15, 0)) == 0
        assert late_check_in_fee(tomorrow, noon_on(tomorrow, 17, 30)) == 30
        assert late_check_in_fee(tomorrow, noon_on(tomorrow, 23, 0)) == 50

    def test_late_check_out_fee_and_early_departure(self, tomorrow, noon_on):
        assert late_check_out_fee(tomorrow, noon_on(tomorrow, 10, 0)) == (0.0, False)
        assert late_check_out_fee(tomorrow, noon_on(tomorrow, 13, 30)) == (60.0, False)
        assert late_check_out_fee(tomorrow, noon_on(tomorrow, 20, 0)) == (100.0, False)
        assert late_check_out_fee(tomorrow, noon_on(tomorrow - timedelta(days=1), 9, 0)) == (0.0, True)


class TestCreateBooking:

    def test_create_booking_with_extra_guests(self, as_guest: TestClient, room, tomorrow, admin, db_session):
        response = as_guest.post(f"{API}/bookings", json=_booking_payload(room, tomorrow, nights=2, guests=3))

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["status"] == "pending"
        assert data["paymentStatus"] == "pending"
        assert data["totalAmount"] == 2600
        assert data["contactNumber"] == "09171234567"
        assert db_session.query(Notification).filter_by(user_id=admin.id).count() == 1

    def test_past_check_in_is_rejected(self, as_guest: TestClient, room):
        response = as_guest.post(f"{API}/bookings",
                                 json=_booking_payload(room, date.today() - timedelta(days=1)))

        assert response.status_code == 400
        assert response.json()["message"] == "Check-in date cannot be in the past"

    def test_check_out_must_follow_check_in(self, as_guest: TestClient, room, tomorrow):
        response = as_guest.post(f"{API}/bookings", json=_booking_payload(room, tomorrow, nights=0))

        assert response.status_code == 400
        assert response.json()["message"] == "Check-out date must be after check-in date"

    def test_overlap_with_confirmed_booking(self, as_guest: TestClient, db_session, other_guest, room, tomorrow):
        make_booking(db_session, other_guest, room, tomorrow, nights=2, status="confirmed")

        response = as_guest.post(f"{API}/bookings", json=_booking_payload(room, tomorrow + timedelta(days=1)))

        assert response.status_code == 400
        assert response.json()["message"] == "Room is not available for the selected dates"

    def test_back_to_back_is_allowed(self, as_guest: TestClient, db_session, other_guest, room, tomorrow):
        make_booking(db_session, other_guest, room, tomorrow, nights=2, status="confirmed")

        response = as_guest.post(f"{API}/bookings", json=_booking_payload(room, tomorrow + timedelta(days=2)))

        assert response.status_code == 201

    def test_pending_booking_does_not_block(self, as_guest: TestClient, db_session, other_guest, room, tomorrow):
        make_booking(db_session, other_guest, room, tomorrow, nights=2)

        response = as_guest.post(f"{API}/bookings", json=_booking_payload(room, tomorrow))

        assert response.status_code == 201

    def test_unavailable_room(self, as_guest: TestClient, db_session, tomorrow):
        closed = make_room(db_session, "999", is_available=False)

        response = as_guest.post(f"{API}/bookings", json=_booking_payload(closed, tomorrow))

        assert response.status_code == 400
        assert response.json()["message"] == "Room is not available"


class TestBookingAccess:

    def test_user_bookings_only_lists_own(self, as_guest: TestClient, db_session, guest, other_guest, room, tomorrow):
        make_booking(db_session, guest, room, tomorrow)
        make_booking(db_session, other_guest, room, tomorrow + timedelta(days=5))

        response = as_guest.get(f"{API}/bookings/user-bookings")

        assert response.status_code == 200
        assert [b["userId"] for b in response.json()["data"]] == [guest.id]

    def test_other_users_booking_is_forbidden(self, as_guest: TestClient, db_session, other_guest, room, tomorrow):
        booking = make_booking(db_session, other_guest, room, tomorrow)

        response = as_guest.get(f"{API}/bookings/{booking.id}")

        assert response.status_code == 403
        assert response.json()["message"] == "Access denied"

    def test_admin_list_has_pending_duration(self, as_admin: TestClient, db_session, guest, room, tomorrow):
        make_booking(db_session, guest, room, tomorrow)
        make_booking(db_session, guest, room, tomorrow + timedelta(days=5), status="confirmed")

        response = as_admin.get(f"{API}/bookings")

        assert response.status_code == 200
        by_status = {b["status"]: b for b in response.json()["data"]}
        assert by_status["pending"]["pendingDurationSeconds"] >= 0
        assert by_status["confirmed"]["pendingDurationSeconds"] is None

    def test_guest_cannot_list_all(self, as_guest: TestClient):
        assert as_guest.get(f"{API}/bookings").status_code == 403


class TestStatusAndPayment:

    def test_admin_confirms_booking(self, as_admin: TestClient, db_session, guest, room, tomorrow):
        booking = make_booking(db_session, guest, room, tomorrow)

        response = as_admin.put(f"{API}/bookings/{booking.id}/status", json={"status": "confirmed"})

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "confirmed"
        assert db_session.query(Notification).filter_by(user_id=guest.id).count() == 1

    def test_owner_marks_paid(self, as_guest: TestClient, db_session, guest, room, tomorrow):
        booking = make_booking(db_session, guest, room, tomorrow, status="confirmed")

        response = as_guest.put(f"{API}/bookings/{booking.id}/payment", json={"paymentStatus": "paid"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["paymentStatus"] == "paid"
        assert data["paymentMethod"] == "other"
        assert data["paymentDate"] is not None

    def test_owner_can_only_mark_paid(self, as_guest: TestClient, db_session, guest, room, tomorrow):
        booking = make_booking(db_session, guest, room, tomorrow)

        response = as_guest.put(f"{API}/bookings/{booking.id}/payment", json={"paymentStatus": "refunded"})

        assert response.status_code == 403
        assert response.json()["message"] == "You can only mark bookings as paid"

    def test_paid_booking_cannot_go_back_to_pending(self, as_admin: TestClient, db_session, guest, room, tomorrow):
        booking = make_booking(db_session, guest, room, tomorrow, payment_status="paid")

        response = as_admin.put(f"{API}/bookings/{booking.id}/payment", json={"paymentStatus": "pending"})

        assert response.status_code == 400
        assert response.json()["message"].startswith("Cannot mark a paid booking as pending")

    def test_admin_refunds(self, as_admin: TestClient, db_session, guest, room, tomorrow):
        booking = make_booking(db_session, guest, room, tomorrow, payment_status="paid")

        response = as_admin.put(f"{API}/bookings/{booking.id}/payment", json={"paymentStatus": "refunded"})

        assert response.status_code == 200
        assert response.json()["data"]["paymentStatus"] == "refunded"


class TestCheckIn:

    def test_check_in_records_fee_and_dirties_room(self, db_session, guest, admin, room, tomorrow, noon_on):
        booking = make_booking(db_session, guest, room, tomorrow, status="confirmed", payment_status="paid")

        result = BookingService.check_in(db_session, booking.id, admin.id, now=noon_on(tomorrow, 17, 30))

        assert result.status == "checked-in"
        assert result.late_check_in_fee == 30
        db_session.refresh(room)
        assert room.is_available is False
        assert room.housekeeping_status == "dirty"

    def test_payment_required(self, db_session, guest, admin, room, tomorrow, noon_on):
        booking = make_booking(db_session, guest, room, tomorrow, status="confirmed")

        with pytest.raises(ValidationFailed, match="Payment required before check-in"):
            BookingService.check_in(db_session, booking.id, admin.id, now=noon_on(tomorrow))

    def test_pending_booking_cannot_check_in(self, db_session, guest, admin, room, tomorrow, noon_on):
        booking = make_booking(db_session, guest, room, tomorrow, payment_status="paid")

        with pytest.raises(ValidationFailed, match="Invalid booking status for check-in"):
            BookingService.check_in(db_session, booking.id, admin.id, now=noon_on(tomorrow))

    def test_dirty_room_blocks_check_in(self, db_session, guest, admin, tomorrow, noon_on):
        dirty = make_room(db_session, "102", housekeeping_status="dirty")
        booking = make_booking(db_session, guest, dirty, tomorrow, status="confirmed", payment_status="paid")

        with pytest.raises(ValidationFailed, match="Room not ready for check-in"):
            BookingService.check_in(db_session, booking.id, admin.id, now=noon_on(tomorrow))

    def test_one_day_early_is_allowed_two_is_not(self, db_session, guest, admin, room, tomorrow, noon_on):
        booking = make_booking(db_session, guest, room, tomorrow + timedelta(days=3),
                               status="confirmed", payment_status="paid")

        with pytest.raises(ValidationFailed, match="Check-in too early"):
            BookingService.check_in(db_session, booking.id, admin.id, now=noon_on(tomorrow + timedelta(days=1)))

        result = BookingService.check_in(db_session, booking.id, admin.id, now=noon_on(tomorrow + timedelta(days=2)))
        assert result.status == "checked-in"
        assert result.late_check_in_fee == 0

    def test_check_in_through_api(self, as_admin: TestClient, db_session, guest, room):
        booking = make_booking(db_session, guest, room, date.today(), status="confirmed", payment_status="paid")

        response = as_admin.put(f"{API}/bookings/{booking.id}/checkin", json={"checkinNotes": "Early arrival"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "checked-in"
        assert data["actualCheckInTime"] is not None
        assert data["adminNotes"] == "Early arrival"


class TestCheckOut:

    @pytest.fixture
    def stay(self, db_session, guest, admin, room, tomorrow, noon_on):
        booking = make_booking(db_session, guest, room, tomorrow, nights=2, status="confirmed", payment_status="paid")
        BookingService.check_in(db_session, booking.id, admin.id, now=noon_on(tomorrow, 15, 0))
        return booking

    def test_late_check_out_leaves_balance(self, db_session, stay, admin, room, tomorrow, noon_on):
        result = BookingService.check_out(db_session, stay.id, admin.id,
                                          now=noon_on(tomorrow + timedelta(days=2), 13, 30))

        summary = result.summary
        assert summary.late_check_out_fee == 60
        assert summary.extended_stay_charge == 0
        assert summary.total_charges == 2060
        assert summary.amount_paid == 2000
        assert summary.balance_due == 60
        assert summary.actual_nights == 2
        assert summary.is_early_check_out is False
        db_session.refresh(room)
        assert room.is_available is True
        assert room.housekeeping_status == "dirty"

    def test_extended_stay_charges_extra_nights(self, db_session, stay, admin, tomorrow, noon_on):
        result = BookingService.check_out(db_session, stay.id, admin.id, additional_charges=150,
                                          now=noon_on(tomorrow + timedelta(days=3), 10, 0))

        summary = result.summary
        assert summary.actual_nights == 3
        assert summary.extended_stay_charge == 1000
        assert summary.late_check_out_fee == 100
        assert summary.additional_charges == 150
        assert summary.total_charges == 3250
        assert summary.balance_due == 1250

    def test_early_check_out_has_no_fee(self, db_session, stay, admin, tomorrow, noon_on):
        result = BookingService.check_out(db_session, stay.id, admin.id,
                                          now=noon_on(tomorrow + timedelta(days=1), 9, 0))

        assert result.summary.is_early_check_out is True
        assert result.summary.late_check_out_fee == 0
        assert result.summary.balance_due == 0

    def test_check_out_requires_check_in(self, as_admin: TestClient, db_session, guest, room, tomorrow):
        booking = make_booking(db_session, guest, room, tomorrow, status="confirmed")

        response = as_admin.put(f"{API}/bookings/{booking.id}/checkout")

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid booking status for check-out"

    def test_check_out_through_api_returns_summary(self, as_admin: TestClient, stay, db_session):
        response = as_admin.put(f"{API}/bookings/{stay.id}/checkout", json={"checkoutNotes": "All good"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["booking"]["status"] == "checked-out"
        assert data["booking"]["checkoutNotes"] == "All good"
        assert {"baseAmount", "totalCharges", "amountPaid", "balanceDue", "isEarlyCheckOut"} <= set(data["summary"])


class TestCancellation:

    def test_request_and_approve(self, client: TestClient, db_session, guest, admin, room, tomorrow):
        booking = make_booking(db_session, guest, room, tomorrow, status="confirmed")

        login_as(client, guest)
        requested = client.post(f"{API}/bookings/{booking.id}/request-cancel", json={"reason": "Change of plans"})
        assert requested.status_code == 200
        assert requested.json()["data"]["cancellationRequested"] is True

        login_as(client, admin)
        approved = client.post(f"{API}/bookings/{booking.id}/approve-cancel")
        assert approved.status_code == 200
        assert approved.json()["data"]["status"] == "cancelled"
        assert approved.json()["data"]["cancellationRequested"] is False

    def test_decline_keeps_booking(self, as_admin: TestClient, db_session, guest, room, tomorrow):
        booking = make_booking(db_session, guest, room, tomorrow, status="confirmed", cancellation_requested=True)

        response = as_admin.post(f"{API}/bookings/{booking.id}/decline-cancel", json={"adminNotes": "Non-refundable"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["status"] == "confirmed"
        assert data["cancellationRequested"] is False
        assert data["adminNotes"] == "Non-refundable"

    def test_only_pending_or_confirmed(self, as_guest: TestClient, db_session, guest, room, tomorrow):
        booking = make_booking(db_session, guest, room, tomorrow, status="checked-out")

        response = as_guest.post(f"{API}/bookings/{booking.id}/request-cancel")

        assert response.status_code == 400
        assert response.json()["message"] == "Only pending or confirmed bookings can be cancelled"

    def test_cannot_cancel_someone_elses_booking(self, as_guest: TestClient, db_session, other_guest, room, tomorrow):
        booking = make_booking(db_session, other_guest, room, tomorrow)

        response = as_guest.post(f"{API}/bookings/{booking.id}/request-cancel")

        assert response.status_code == 403

    def test_approve_without_request(self, as_admin: TestClient, db_session, guest, room, tomorrow):
        booking = make_booking(db_session, guest, room, tomorrow)

        response = as_admin.post(f"{API}/bookings/{booking.id}/approve-cancel")

        assert response.status_code == 400
        assert response.json()["message"] == "No cancellation request to approve"
