"""
Habitaciones: listado, gestión, disponibilidad, calendario, housekeeping y reseñas
"""
from datetime import date, timedelta

from fastapi.testclient import TestClient

from tests.conftest import API, login_as, make_booking, make_room

NEW_ROOM = {
    "roomNumber": "501",
    "roomType": "Deluxe",
    "price": 2500,
    "capacity": 3,
    "amenities": ["WiFi", "TV"],
    "description": "Sea view",
}


class TestRoomListing:

    def test_public_list_only_available(self, client: TestClient, db_session):
        make_room(db_session, "101")
        make_room(db_session, "102", is_available=False)

        response = client.get(f"{API}/rooms")

        assert response.status_code == 200
        assert [r["roomNumber"] for r in response.json()["data"]] == ["101"]

    def test_admin_list_includes_unavailable(self, as_admin: TestClient, db_session):
        make_room(db_session, "101")
        make_room(db_session, "102", is_available=False)

        response = as_admin.get(f"{API}/rooms/admin")

        assert response.status_code == 200
        assert len(response.json()["data"]) == 2

    def test_get_missing_room(self, client: TestClient):
        response = client.get(f"{API}/rooms/999")

        assert response.status_code == 404
        assert response.json()["message"] == "Room not found"


class TestRoomManagement:

    def test_create_room(self, as_admin: TestClient):
        response = as_admin.post(f"{API}/rooms", json=NEW_ROOM)

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["roomNumber"] == "501"
        assert data["housekeepingStatus"] == "clean"
        assert data["isAvailable"] is True

    def test_guest_cannot_create_room(self, as_guest: TestClient):
        assert as_guest.post(f"{API}/rooms", json=NEW_ROOM).status_code == 403

    def test_duplicate_room_number(self, as_admin: TestClient, room):
        response = as_admin.post(f"{API}/rooms", json={**NEW_ROOM, "roomNumber": room.room_number})

        assert response.status_code == 400
        assert response.json()["message"] == "Room number already exists"

    def test_invalid_room_type(self, as_admin: TestClient):
        response = as_admin.post(f"{API}/rooms", json={**NEW_ROOM, "roomType": "Cabin"})

        assert response.status_code == 400
        assert response.json()["message"].startswith("Room type must be one of")

    def test_update_room(self, as_admin: TestClient, room):
        response = as_admin.put(f"{API}/rooms/{room.id}", json={"price": 1500, "isAvailable": False})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["price"] == 1500
        assert data["isAvailable"] is False
        assert data["roomType"] == "Standard"

    def test_delete_room(self, as_admin: TestClient, room):
        response = as_admin.delete(f"{API}/rooms/{room.id}")

        assert response.status_code == 200
        assert as_admin.get(f"{API}/rooms/{room.id}").status_code == 404

    def test_delete_room_with_active_booking(self, as_admin: TestClient, db_session, guest, room, tomorrow):
        make_booking(db_session, guest, room, tomorrow, status="confirmed")

        response = as_admin.delete(f"{API}/rooms/{room.id}")

        assert response.status_code == 400
        assert response.json()["message"].startswith("Cannot delete room with active bookings")

    def test_seed_sample_rooms_is_idempotent(self, as_admin: TestClient):
        first = as_admin.post(f"{API}/rooms/sample")
        second = as_admin.post(f"{API}/rooms/sample")

        assert first.status_code == 201
        assert {r["roomNumber"] for r in first.json()["data"]} == {"101", "201", "301", "401"}
        assert second.json()["data"] == []


class TestAvailability:

    def test_single_day(self, client: TestClient, db_session, guest, room, tomorrow):
        booking = make_booking(db_session, guest, room, tomorrow, status="confirmed")
        make_room(db_session, "102")

        response = client.get(f"{API}/rooms/availability", params={"date": tomorrow.isoformat()})

        assert response.status_code == 200
        by_number = {r["roomNumber"]: r for r in response.json()["data"]}
        assert by_number["101"]["isAvailable"] is False
        assert by_number["101"]["booking"]["id"] == booking.id
        assert by_number["102"]["isAvailable"] is True

    def test_check_out_day_is_free(self, client: TestClient, db_session, guest, room, tomorrow):
        make_booking(db_session, guest, room, tomorrow, nights=2, status="confirmed")

        response = client.get(f"{API}/rooms/availability",
                              params={"date": (tomorrow + timedelta(days=2)).isoformat()})

        assert response.json()["data"][0]["isAvailable"] is True

    def test_range(self, client: TestClient, db_session, guest, room, tomorrow):
        make_booking(db_session, guest, room, tomorrow + timedelta(days=3), status="confirmed")

        response = client.get(f"{API}/rooms/availability", params={
            "startDate": tomorrow.isoformat(),
            "endDate": (tomorrow + timedelta(days=7)).isoformat(),
        })

        assert response.status_code == 200
        entry = response.json()["data"][0]
        assert entry["room"]["roomNumber"] == "101"
        assert entry["isAvailable"] is False
        assert len(entry["bookings"]) == 1

    def test_missing_parameters(self, client: TestClient):
        response = client.get(f"{API}/rooms/availability")

        assert response.status_code == 400
        assert response.json()["message"] == "Provide either date or startDate and endDate"

    def test_inverted_range(self, client: TestClient, tomorrow):
        response = client.get(f"{API}/rooms/availability", params={
            "startDate": tomorrow.isoformat(), "endDate": tomorrow.isoformat(),
        })

        assert response.status_code == 400
        assert response.json()["message"] == "End date must be after start date"


class TestCalendars:

    def test_month_calendar_has_every_day(self, client: TestClient, db_session, guest, room):
        make_booking(db_session, guest, room, date(2031, 2, 10), nights=3, status="confirmed")

        response = client.get(f"{API}/rooms/calendar", params={"year": 2031, "month": 2})

        assert response.status_code == 200
        days = response.json()["data"]
        assert len(days) == 28
        assert days[9]["rooms"][0]["isAvailable"] is False
        assert days[12]["rooms"][0]["isAvailable"] is True

    def test_occupancy_map(self, as_admin: TestClient, db_session, guest, room):
        booking = make_booking(db_session, guest, room, date(2031, 1, 30), nights=4, status="checked-in")

        response = as_admin.get(f"{API}/calendar/occupancy", params={"year": 2031, "month": 1})

        assert response.status_code == 200
        occupancy = response.json()["data"]
        assert occupancy["2031-01-31"] == {"count": 1, "status": "medium", "ids": [booking.id], "guests": ["Ana Guest"]}
        assert occupancy["2031-01-29"]["status"] == "free"

    def test_calendar_events(self, as_admin: TestClient, db_session, guest, room):
        make_booking(db_session, guest, room, date(2031, 3, 5), status="checked-in")
        make_booking(db_session, guest, room, date(2031, 3, 20), status="pending")

        response = as_admin.get(f"{API}/calendar/events", params={"year": 2031, "month": 3})

        events = response.json()["data"]
        assert len(events) == 1
        assert events[0]["resourceId"] == "101"
        assert events[0]["color"] == "#4CAF50"
        assert events[0]["extendedProps"]["status"] == "checked-in"

    def test_calendar_requires_staff(self, as_guest: TestClient):
        assert as_guest.get(f"{API}/calendar/events", params={"year": 2031, "month": 3}).status_code == 403


class TestHousekeeping:

    def test_overview_counts(self, as_admin: TestClient, db_session):
        make_room(db_session, "101")
        make_room(db_session, "102", housekeeping_status="dirty")

        response = as_admin.get(f"{API}/rooms/housekeeping")

        assert response.status_code == 200
        summary = response.json()["data"]["summary"]
        assert summary == {"clean": 1, "dirty": 1, "in-progress": 0}

    def test_update_status(self, as_admin: TestClient, room):
        response = as_admin.put(f"{API}/rooms/housekeeping/{room.id}", json={"housekeepingStatus": "in-progress"})

        assert response.status_code == 200
        assert response.json()["data"]["housekeepingStatus"] == "in-progress"

    def test_invalid_status(self, as_admin: TestClient, room):
        response = as_admin.put(f"{API}/rooms/housekeeping/{room.id}", json={"housekeepingStatus": "sparkling"})

        assert response.status_code == 400


class TestReviewsAndFeedback:

    def test_review_requires_finished_stay(self, as_guest: TestClient, room):
        response = as_guest.post(f"{API}/rooms/{room.id}/reviews", json={"rating": 5, "comment": "Great"})

        assert response.status_code == 403
        assert response.json()["message"] == "You can only review rooms you have stayed in"

    def test_review_is_upserted(self, client: TestClient, db_session, guest, other_guest, room):
        make_booking(db_session, guest, room, date(2030, 1, 1), status="checked-out")
        make_booking(db_session, other_guest, room, date(2030, 2, 1), status="checked-out")

        login_as(client, guest)
        client.post(f"{API}/rooms/{room.id}/reviews", json={"rating": 2})
        updated = client.post(f"{API}/rooms/{room.id}/reviews", json={"rating": 4, "comment": " Better "})
        assert updated.status_code == 200
        assert updated.json()["data"]["comment"] == "Better"

        login_as(client, other_guest)
        client.post(f"{API}/rooms/{room.id}/reviews", json={"rating": 5})

        summary = client.get(f"{API}/rooms/{room.id}/reviews").json()["data"]
        assert summary["count"] == 2
        assert summary["averageRating"] == 4.5

    def test_rating_out_of_range(self, as_guest: TestClient, room):
        response = as_guest.post(f"{API}/rooms/{room.id}/reviews", json={"rating": 6})

        assert response.status_code == 400

    def test_feedback_flow(self, client: TestClient, guest, admin):
        login_as(client, guest)
        created = client.post(f"{API}/feedback", json={"rating": 5, "comment": "Lovely stay"})
        assert created.status_code == 201
        assert created.json()["message"] == "Thank you for your feedback!"
        assert len(client.get(f"{API}/feedback/my").json()["data"]) == 1
        assert client.get(f"{API}/feedback").status_code == 403

        login_as(client, admin)
        everything = client.get(f"{API}/feedback").json()["data"]
        assert everything[0]["comment"] == "Lovely stay"
