"""
Unit tests for staff availability endpoints
"""
import pytest
from datetime import time
from fastapi import status

from app.models.models import StaffAvailability

DAY = "2030-06-03"


@pytest.fixture
def availability_payload(test_staff):
    return {
        "staff_id": test_staff.id,
        "date": DAY,
        "working_start": "10:00",
        "working_end": "16:00",
        "slot_duration": 30,
        "breaks": [{"start_time": "12:00", "end_time": "12:30", "reason": "lunch"}]
    }


@pytest.fixture
def created_availability(client, salon_headers, availability_payload):
    response = client.post("/api/v1/staff-availability/", headers=salon_headers, json=availability_payload)
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


@pytest.mark.unit
class TestAvailabilityRecords:
    """Tests for availability CRUD"""

    def test_create_availability(self, client, salon_headers, availability_payload, test_staff):
        response = client.post("/api/v1/staff-availability/", headers=salon_headers, json=availability_payload)

        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["staff_id"] == test_staff.id
        assert data["working_start"] == "10:00"
        assert data["working_end"] == "16:00"
        assert data["max_bookings"] == 1
        assert data["is_day_off"] is False
        assert data["breaks"][0]["reason"] == "lunch"
        assert data["breaks"][0]["start_time"] == "12:00"

    def test_create_availability_defaults(self, client, salon_headers, test_staff):
        response = client.post(
            "/api/v1/staff-availability/",
            headers=salon_headers,
            json={"staff_id": test_staff.id, "date": DAY}
        )
        assert response.status_code == status.HTTP_201_CREATED
        data = response.json()
        assert data["working_start"] == "09:00"
        assert data["working_end"] == "18:00"
        assert data["slot_duration"] == 60

    def test_create_duplicate(self, client, salon_headers, availability_payload, created_availability):
        response = client.post("/api/v1/staff-availability/", headers=salon_headers, json=availability_payload)
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_create_unknown_staff(self, client, salon_headers, availability_payload):
        availability_payload["staff_id"] = 999
        response = client.post("/api/v1/staff-availability/", headers=salon_headers, json=availability_payload)
        assert response.status_code == status.HTTP_404_NOT_FOUND

    @pytest.mark.parametrize("changes", [
        {"working_start": "16:00", "working_end": "10:00"},
        {"breaks": [{"start_time": "09:00", "end_time": "10:30"}]},
        {"breaks": [
            {"start_time": "12:00", "end_time": "13:00"},
            {"start_time": "12:30", "end_time": "13:30"}
        ]},
        {"slot_duration": 10},
        {"working_start": "9am"},
    ])
    def test_create_invalid_layout(self, client, salon_headers, availability_payload, changes):
        availability_payload.update(changes)
        response = client.post("/api/v1/staff-availability/", headers=salon_headers, json=availability_payload)
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_get_and_list(self, client, salon_headers, created_availability, test_staff):
        response = client.get(f"/api/v1/staff-availability/{created_availability['id']}", headers=salon_headers)
        assert response.status_code == status.HTTP_200_OK

        response = client.get(
            f"/api/v1/staff-availability/?start_date=2030-06-01&end_date=2030-06-30&staff_id={test_staff.id}",
            headers=salon_headers
        )
        assert response.status_code == status.HTTP_200_OK
        assert [a["id"] for a in response.json()] == [created_availability["id"]]

    def test_list_requires_range(self, client, salon_headers):
        response = client.get("/api/v1/staff-availability/", headers=salon_headers)
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_other_salon_cannot_read(self, client, other_salon, created_availability):
        response = client.get(
            f"/api/v1/staff-availability/{created_availability['id']}",
            headers={"X-Salon-ID": str(other_salon.id)}
        )
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_update_availability(self, client, salon_headers, created_availability):
        response = client.put(
            f"/api/v1/staff-availability/{created_availability['id']}",
            headers=salon_headers,
            json={"working_end": "17:00", "breaks": []}
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["working_end"] == "17:00"
        assert data["working_start"] == "10:00"
        assert data["breaks"] == []

    def test_update_keeps_breaks_when_omitted(self, client, salon_headers, created_availability):
        response = client.put(
            f"/api/v1/staff-availability/{created_availability['id']}",
            headers=salon_headers,
            json={"notes": "Training in the morning"}
        )
        assert response.status_code == status.HTTP_200_OK
        assert len(response.json()["breaks"]) == 1

    def test_create_stores_time_values(self, db, client, salon_headers, created_availability):
        record = db.query(StaffAvailability).filter(StaffAvailability.id == created_availability["id"]).one()
        assert record.working_start == time(10, 0)
        assert record.working_end == time(16, 0)
        assert record.breaks[0].start_time == time(12, 0)

    def test_update_single_time_field(self, client, salon_headers, created_availability):
        response = client.put(
            f"/api/v1/staff-availability/{created_availability['id']}",
            headers=salon_headers,
            json={"working_start": "09:30"}
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["working_start"] == "09:30"
        assert data["working_end"] == "16:00"

    def test_update_clears_nullable_fields(self, client, salon_headers, created_availability):
        url = f"/api/v1/staff-availability/{created_availability['id']}"
        response = client.put(url, headers=salon_headers, json={"max_appointments": 2, "notes": "Short day"})
        assert response.json()["max_appointments"] == 2

        response = client.put(url, headers=salon_headers, json={"max_appointments": None, "notes": None})
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["max_appointments"] is None
        assert data["notes"] is None

    @pytest.mark.parametrize("field", ["working_start", "working_end", "slot_duration", "max_bookings", "is_day_off"])
    def test_update_rejects_null_required_field(self, client, salon_headers, created_availability, field):
        response = client.put(
            f"/api/v1/staff-availability/{created_availability['id']}",
            headers=salon_headers,
            json={field: None}
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_update_invalid_layout(self, client, salon_headers, created_availability):
        # The existing 12:00 break would fall outside 10:00-11:00
        response = client.put(
            f"/api/v1/staff-availability/{created_availability['id']}",
            headers=salon_headers,
            json={"working_end": "11:00"}
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_delete_availability(self, client, salon_headers, created_availability):
        url = f"/api/v1/staff-availability/{created_availability['id']}"
        response = client.delete(url, headers=salon_headers)
        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert client.get(url, headers=salon_headers).status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.unit
class TestBulkAvailability:
    """Tests for bulk creation"""

    def test_bulk_weekdays_and_exclusions(self, db, client, salon_headers, test_staff):
        payload = {
            "staff_id": test_staff.id,
            "start_date": "2030-06-03",  # Monday
            "end_date": "2030-06-09",  # Sunday
            "weekdays": [0, 1, 2, 3, 4],
            "exclude_dates": ["2030-06-05"],
            "template": {"working_start": "09:00", "working_end": "17:00",
                         "breaks": [{"start_time": "13:00", "end_time": "14:00"}]}
        }
        response = client.post("/api/v1/staff-availability/bulk", headers=salon_headers, json=payload)

        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["records_created"] == 4
        records = db.query(StaffAvailability).filter(StaffAvailability.staff_id == test_staff.id).all()
        assert len(records) == 4
        assert all(len(r.breaks) == 1 for r in records)

        response = client.post("/api/v1/staff-availability/bulk", headers=salon_headers, json=payload)
        data = response.json()
        assert data["records_created"] == 0
        assert len(data["skipped_dates"]) == 4

    def test_bulk_invalid_range(self, client, salon_headers, test_staff):
        payload = {
            "staff_id": test_staff.id,
            "start_date": "2030-06-09",
            "end_date": "2030-06-03",
            "template": {}
        }
        response = client.post("/api/v1/staff-availability/bulk", headers=salon_headers, json=payload)
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


@pytest.mark.unit
class TestAvailabilityQueries:
    """Tests for slots, checks and schedule overview"""

    def test_slots_follow_record(self, client, salon_headers, test_staff, created_availability):
        response = client.get(
            f"/api/v1/staff-availability/slots/{test_staff.id}?date={DAY}&duration=60",
            headers=salon_headers
        )
        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["is_default_window"] is False
        assert data["slot_duration"] == 30
        times = [s["time"] for s in data["slots"]]
        # 10:00-16:00 on a 30 minute grid, lunch 12:00-12:30
        assert times[0] == "10:00"
        assert times[-1] == "15:00"
        assert "11:00" in times
        assert "11:30" not in times
        assert "12:00" not in times
        assert "12:30" in times

    def test_slots_day_off(self, client, salon_headers, test_staff):
        client.post(
            "/api/v1/staff-availability/",
            headers=salon_headers,
            json={"staff_id": test_staff.id, "date": DAY, "is_day_off": True, "day_off_reason": "vacation"}
        )
        response = client.get(
            f"/api/v1/staff-availability/slots/{test_staff.id}?date={DAY}&duration=30",
            headers=salon_headers
        )
        data = response.json()
        assert data["is_day_off"] is True
        assert data["slots"] == []
        assert data["total_slots"] == 0

    def test_slots_unknown_staff(self, client, salon_headers):
        response = client.get(f"/api/v1/staff-availability/slots/999?date={DAY}", headers=salon_headers)
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_check_availability(self, client, salon_headers, test_staff, created_availability):
        url = f"/api/v1/staff-availability/check/{test_staff.id}"

        response = client.get(f"{url}?date={DAY}&start_time=10:00&end_time=11:00", headers=salon_headers)
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["available"] is True

        response = client.get(f"{url}?date={DAY}&start_time=11:45&end_time=12:15", headers=salon_headers)
        data = response.json()
        assert data["available"] is False
        assert "lunch" in data["reason"]

        response = client.get(f"{url}?date={DAY}&start_time=15:30&end_time=16:30", headers=salon_headers)
        assert response.json()["available"] is False

    def test_check_availability_with_booking(self, client, salon_headers, test_staff, test_customer, haircut):
        client.post("/api/v1/appointments/", headers=salon_headers, json={
            "customer_id": test_customer.id,
            "staff_id": test_staff.id,
            "date": DAY,
            "start_time": "10:00",
            "service_ids": [haircut.id]
        })
        response = client.get(
            f"/api/v1/staff-availability/check/{test_staff.id}?date={DAY}&start_time=10:15&end_time=10:45",
            headers=salon_headers
        )
        data = response.json()
        assert data["available"] is False
        assert data["conflicts"][0]["start_time"] == "10:00"

    def test_check_availability_bad_time(self, client, salon_headers, test_staff):
        response = client.get(
            f"/api/v1/staff-availability/check/{test_staff.id}?date={DAY}&start_time=ten&end_time=11:00",
            headers=salon_headers
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_schedule_overview(self, client, salon_headers, test_staff, created_availability, test_customer, haircut):
        client.post("/api/v1/appointments/", headers=salon_headers, json={
            "customer_id": test_customer.id,
            "staff_id": test_staff.id,
            "date": DAY,
            "start_time": "10:00",
            "service_ids": [haircut.id]
        })
        response = client.get(
            f"/api/v1/staff-availability/schedule/{test_staff.id}?start_date={DAY}&end_date=2030-06-04",
            headers=salon_headers
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert len(data["days"]) == 2
        first, second = data["days"]
        assert first["working_minutes"] == 330  # 10:00-16:00 minus 30 minute lunch
        assert first["booked_minutes"] == 30
        assert first["breaks"][0]["reason"] == "lunch"
        assert second["is_default_window"] is True
        assert second["working_minutes"] == 540
        assert data["total_appointments"] == 1
        assert data["total_working_minutes"] == 870
