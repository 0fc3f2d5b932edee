from __future__ import annotations

from datetime import date

from fastapi.testclient import TestClient
from sqlalchemy import func, select

from allotment_manager.main import app
from allotment_manager.models import AttendanceRecord

DAY = "2024-03-04"


def doctor_ids(client: TestClient) -> dict[str, int]:
    return {doctor["name"]: doctor["id"] for doctor in client.get("/api/doctors").json()}


def sheet_row(client: TestClient, doctor_id: int, day: str = DAY) -> dict:
    rows = client.get("/api/attendance", params={"date": day}).json()
    return next(row for row in rows if row["id"] == doctor_id)


def test_attendance_requires_a_date():
    client = TestClient(app)

    response = client.get("/api/attendance")

    assert response.status_code == 400
    assert response.json() == {"error": "Date is required"}


def test_unmarked_sheet_lists_every_active_doctor():
    client = TestClient(app)

    rows = client.get("/api/attendance", params={"date": DAY}).json()

    assert len(rows) == 13
    assert all(row["attendance"] is None for row in rows)
    assert all(row["has_leave"] is False for row in rows)
    reddy = next(row for row in rows if row["name"] == "Dr. Reddy")
    assert [station["name"] for station in reddy["restrictions"]] == ["ICU"]


def test_marking_twice_keeps_one_row_with_latest_status(db):
    client = TestClient(app)
    kumar = doctor_ids(client)["Dr. Kumar"]

    first = client.post("/api/attendance", json={"doctor_id": kumar, "date": DAY, "status": "present"})
    second = client.post("/api/attendance", json={"doctor_id": kumar, "date": DAY, "status": "absent", "notes": "Sick"})

    assert first.status_code == 200
    assert second.status_code == 200
    assert second.json()["id"] == first.json()["id"]
    assert second.json()["status"] == "absent"
    assert second.json()["notes"] == "Sick"
    count = db.scalar(
        select(func.count(AttendanceRecord.id)).where(
            AttendanceRecord.doctor_id == kumar,
            AttendanceRecord.date == date(2024, 3, 4),
        )
    )
    assert count == 1
    assert sheet_row(client, kumar)["attendance"]["status"] == "absent"


def test_bulk_mark_upserts_every_entry(db):
    client = TestClient(app)
    doctors = doctor_ids(client)
    client.post("/api/attendance", json={"doctor_id": doctors["Dr. Rao"], "date": DAY, "status": "absent"})

    response = client.post(
        "/api/attendance/bulk",
        json={"date": DAY, "attendance": [{"doctor_id": doctor_id, "status": "present"} for doctor_id in doctors.values()]},
    )

    assert response.status_code == 200
    assert response.json() == {"ok": True, "count": 13}
    rows = client.get("/api/attendance", params={"date": DAY}).json()
    assert {row["attendance"]["status"] for row in rows} == {"present"}
    assert db.scalar(select(func.count(AttendanceRecord.id))) == 13


def test_bulk_mark_is_all_or_nothing(db):
    client = TestClient(app)
    doctors = doctor_ids(client)

    response = client.post(
        "/api/attendance/bulk",
        json={
            "date": DAY,
            "attendance": [
                {"doctor_id": doctors["Dr. Kumar"], "status": "present"},
                {"doctor_id": 9999, "status": "present"},
            ],
        },
    )

    assert response.status_code == 404
    assert db.scalar(select(func.count(AttendanceRecord.id))) == 0


def test_approved_leave_marks_doctor_on_leave_without_blocking_attendance():
    client = TestClient(app)
    doctors = doctor_ids(client)
    approved = client.post(
        "/api/leaves",
        json={"doctor_id": doctors["Dr. Nair"], "start_date": "2024-03-01", "end_date": "2024-03-08", "reason": "Conference"},
    ).json()
    client.post(
        "/api/leaves",
        json={"doctor_id": doctors["Dr. Rao"], "start_date": "2024-03-01", "end_date": "2024-03-08", "status": "pending"},
    )

    nair = sheet_row(client, doctors["Dr. Nair"])
    rao = sheet_row(client, doctors["Dr. Rao"])
    marked = client.post("/api/attendance", json={"doctor_id": doctors["Dr. Nair"], "date": DAY, "status": "present"})

    assert nair["has_leave"] is True
    assert nair["leave"]["id"] == approved["id"]
    assert rao["has_leave"] is False
    assert rao["leave"] is None
    assert marked.status_code == 200
    assert sheet_row(client, doctors["Dr. Nair"], "2024-03-09")["has_leave"] is False


def test_attendance_validation_errors():
    client = TestClient(app)
    kumar = doctor_ids(client)["Dr. Kumar"]

    bad_status = client.post("/api/attendance", json={"doctor_id": kumar, "date": DAY, "status": "late"})
    unknown_doctor = client.post("/api/attendance", json={"doctor_id": 9999, "date": DAY, "status": "present"})

    assert bad_status.status_code == 400
    assert "status" in bad_status.json()["error"]
    assert unknown_doctor.status_code == 404
    assert unknown_doctor.json() == {"error": "Doctor not found"}
