"""
Herramientas de administración: reportes (pandas), registro de actividad y backups
"""
import io
import zipfile
from datetime import date, timedelta

import pytest
from fastapi.testclient import TestClient

from database import ActivityLog, Room
from services import ActivityLogService
from tests.conftest import API, make_booking, make_room


@pytest.fixture
def stays(db_session, guest, room, tomorrow):
    """Dos reservas que cuentan como ingreso y una pendiente."""
    return [
        make_booking(db_session, guest, room, tomorrow, nights=2, status="confirmed"),
        make_booking(db_session, guest, room, tomorrow + timedelta(days=5), nights=3, status="checked-out"),
        make_booking(db_session, guest, room, tomorrow + timedelta(days=10), nights=1),
    ]


class TestReports:

    def test_occupancy(self, as_admin: TestClient, stays):
        response = as_admin.get(f"{API}/reports/occupancy")

        assert response.status_code == 200
        data = response.json()["data"]
        summary = data["summary"]
        assert summary["totalRooms"] == 1
        assert summary["totalBookings"] == 2
        assert summary["totalRoomNights"] == 5
        assert summary["occupancyRate"] == pytest.approx(16.67)
        assert summary["period"]["days"] == 30
        assert data["roomTypeBreakdown"] == {"Standard": {"bookings": 2, "revenue": 5000.0}}
        assert len(data["dailyOccupancy"]) == 31

    def test_revenue(self, as_admin: TestClient, stays, guest):
        data = as_admin.get(f"{API}/reports/revenue").json()["data"]

        assert data["summary"]["totalRevenue"] == 5000
        assert data["summary"]["averageBookingValue"] == 2500
        assert data["paymentStatusBreakdown"] == {"pending": 2, "paid": 0, "refunded": 0}
        assert data["topCustomers"] == [
            {"name": "Test User", "email": guest.email, "totalSpent": 5000.0, "bookings": 2},
        ]
        assert sum(day["revenue"] for day in data["dailyRevenue"]) == 5000

    def test_booking_analytics(self, as_admin: TestClient, stays):
        data = as_admin.get(f"{API}/reports/bookings").json()["data"]

        assert data["summary"]["totalBookings"] == 3
        assert data["summary"]["averageDuration"] == 2.0
        assert data["statusBreakdown"]["pending"] == 1
        assert data["statusBreakdown"]["checked-out"] == 1
        assert data["lengthOfStay"] == {"1": 1, "2": 1, "3": 1}
        assert data["guestStats"] == {"totalGuests": 1, "repeatGuests": 1, "newGuests": 0}

    def test_period_outside_bookings(self, as_admin: TestClient, stays):
        response = as_admin.get(f"{API}/reports/revenue", params={"startDate": "2020-01-01", "endDate": "2020-01-31"})

        data = response.json()["data"]
        assert data["summary"]["totalRevenue"] == 0
        assert data["summary"]["period"] == {"startDate": "2020-01-01", "endDate": "2020-01-31"}
        assert data["topCustomers"] == []

    def test_inverted_period(self, as_admin: TestClient):
        response = as_admin.get(f"{API}/reports/occupancy", params={"startDate": "2024-02-01", "endDate": "2024-01-01"})

        assert response.status_code == 400
        assert response.json()["message"] == "End date must be after start date"

    def test_dashboard(self, as_admin: TestClient, stays):
        data = as_admin.get(f"{API}/reports/dashboard").json()["data"]

        assert data["overview"]["totalRooms"] == 1
        assert data["overview"]["totalBookings"] == 3
        assert data["overview"]["roomsNeedingCleaning"] == 0
        assert len(data["recentBookings"]) == 3
        assert data["today"] == {"checkIns": 0, "checkOuts": 0}

    def test_empty_database(self, as_admin: TestClient):
        data = as_admin.get(f"{API}/reports/bookings").json()["data"]

        assert data["summary"]["totalBookings"] == 0
        assert data["guestStats"]["totalGuests"] == 0

    def test_guest_is_denied(self, as_guest: TestClient):
        assert as_guest.get(f"{API}/reports/revenue").status_code == 403


class TestActivityLogs:

    def test_actions_are_audited(self, as_admin: TestClient, admin, db_session):
        as_admin.post(f"{API}/rooms", json={"roomNumber": "777", "roomType": "Suite", "price": 5000, "capacity": 4})

        entry = db_session.query(ActivityLog).filter_by(action="create", resource="room").one()
        assert entry.actor_email == admin.email
        assert entry.details == {"roomNumber": "777"}
        assert entry.ip is not None

    def test_pagination_and_search(self, as_admin: TestClient, db_session, admin):
        for i in range(12):
            ActivityLogService.log(db_session, "update", "room", actor=admin, resource_id=i)
        ActivityLogService.log(db_session, "login", "auth", actor_email="someone@example.com", status="failure")

        page = as_admin.get(f"{API}/activity/logs", params={"page": 2, "limit": 5}).json()
        assert page["pagination"] == {"page": 2, "limit": 5, "total": 13, "pages": 3}
        assert len(page["data"]) == 5

        found = as_admin.get(f"{API}/activity/logs", params={"q": "someone"}).json()
        assert [log["action"] for log in found["data"]] == ["login"]
        assert found["data"][0]["status"] == "failure"

    def test_date_filter(self, as_admin: TestClient, db_session, admin):
        ActivityLogService.log(db_session, "update", "room", actor=admin)
        yesterday = (date.today() - timedelta(days=1)).isoformat()

        response = as_admin.get(f"{API}/activity/logs", params={"dateFrom": yesterday, "dateTo": yesterday})

        assert response.json()["pagination"]["total"] == 0

    def test_guest_is_denied(self, as_guest: TestClient):
        assert as_guest.get(f"{API}/activity/logs").status_code == 403


class TestBackups:

    def test_admin_is_not_enough(self, as_admin: TestClient):
        response = as_admin.post(f"{API}/backup/create")

        assert response.status_code == 403
        assert response.json()["message"] == "Superadmin access required"

    def test_create_and_list(self, as_superadmin: TestClient, room):
        created = as_superadmin.post(f"{API}/backup/create")

        assert created.status_code == 200
        body = created.json()
        assert body["filename"].startswith("backup-") and body["filename"].endswith(".zip")
        assert body["metadata"]["collections"]["rooms"] == 1

        listed = as_superadmin.get(f"{API}/backup/list").json()["backups"]
        assert [b["filename"] for b in listed] == [body["filename"]]
        assert listed[0]["metadata"]["version"] == "1.0"

    def test_download_contains_metadata(self, as_superadmin: TestClient, room):
        filename = as_superadmin.post(f"{API}/backup/create").json()["filename"]

        response = as_superadmin.get(f"{API}/backup/download/{filename}")

        assert response.status_code == 200
        assert response.headers["content-type"] == "application/zip"
        names = zipfile.ZipFile(io.BytesIO(response.content)).namelist()
        assert "metadata.json" in names and "rooms.json" in names

    def test_restore_rolls_back_changes(self, as_superadmin: TestClient, db_session, room):
        filename = as_superadmin.post(f"{API}/backup/create").json()["filename"]
        make_room(db_session, "202")

        response = as_superadmin.post(f"{API}/backup/restore/{filename}")

        assert response.status_code == 200
        assert response.json()["results"]["rooms"] == {"deleted": 2, "inserted": 1}
        assert [r.room_number for r in db_session.query(Room).all()] == ["101"]

    def test_restore_from_upload(self, as_superadmin: TestClient, db_session, room):
        filename = as_superadmin.post(f"{API}/backup/create").json()["filename"]
        content = as_superadmin.get(f"{API}/backup/download/{filename}").content
        db_session.delete(db_session.get(Room, room.id))
        db_session.commit()

        response = as_superadmin.post(f"{API}/backup/upload",
                                      files={"file": ("hotel.zip", content, "application/zip")})

        assert response.status_code == 200
        assert response.json()["restoredFrom"] == "hotel.zip"
        assert db_session.query(Room).count() == 1

    def test_upload_rejects_non_zip(self, as_superadmin: TestClient):
        response = as_superadmin.post(f"{API}/backup/upload",
                                      files={"file": ("notes.zip", b"not a zip", "application/zip")})

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid backup file"

    def test_delete(self, as_superadmin: TestClient):
        filename = as_superadmin.post(f"{API}/backup/create").json()["filename"]

        assert as_superadmin.delete(f"{API}/backup/{filename}").status_code == 200
        assert as_superadmin.get(f"{API}/backup/list").json()["backups"] == []

    def test_invalid_and_missing_files(self, as_superadmin: TestClient):
        invalid = as_superadmin.get(f"{API}/backup/download/notes.txt")
        missing = as_superadmin.post(f"{API}/backup/restore/backup-missing.zip")

        assert invalid.status_code == 400
        assert invalid.json()["message"] == "Invalid backup filename"
        assert missing.status_code == 404
        assert missing.json()["message"] == "Backup file not found"
