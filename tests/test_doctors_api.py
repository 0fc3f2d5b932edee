from __future__ import annotations

from fastapi.testclient import TestClient

from allotment_manager.main import app


def station_ids(client: TestClient) -> dict[str, int]:
    return {station["name"]: station["id"] for station in client.get("/api/stations").json()}


def role_ids(client: TestClient) -> dict[str, int]:
    return {role["name"]: role["id"] for role in client.get("/api/roles").json()}


def test_list_active_doctors_with_roles_and_restrictions():
    client = TestClient(app)

    doctors = client.get("/api/doctors").json()

    assert len(doctors) == 13
    assert [doctor["name"] for doctor in doctors] == sorted(doctor["name"] for doctor in doctors)
    reddy = next(doctor for doctor in doctors if doctor["name"] == "Dr. Reddy")
    assert reddy["role_name"] == "Junior Resident"
    assert [station["name"] for station in reddy["restrictions"]] == ["ICU"]
    sharma = next(doctor for doctor in doctors if doctor["name"] == "Dr. Sharma")
    assert sharma["restrictions"] == []


def test_editing_restrictions_replaces_the_whole_set():
    client = TestClient(app)
    stations = station_ids(client)
    roles = role_ids(client)

    created = client.post(
        "/api/doctors",
        json={"name": "Dr. Das", "role_id": roles["Consultant"], "restrictions": [stations["ICU"], stations["OPD"]]},
    )
    assert created.status_code == 201
    doctor_id = created.json()["id"]
    assert {station["name"] for station in created.json()["restrictions"]} == {"ICU", "OPD"}

    updated = client.put(
        f"/api/doctors/{doctor_id}",
        json={"name": "Dr. Das", "role_id": roles["Consultant"], "restrictions": [stations["OPD"], stations["Surgery"]]},
    )
    assert updated.status_code == 200
    assert {station["name"] for station in updated.json()["restrictions"]} == {"OPD", "Surgery"}

    fetched = client.get(f"/api/doctors/{doctor_id}").json()
    assert {station["name"] for station in fetched["restrictions"]} == {"OPD", "Surgery"}
    allowed = {station["name"] for station in client.get(f"/api/doctors/{doctor_id}/allowed-stations").json()}
    assert "ICU" in allowed
    assert allowed.isdisjoint({"OPD", "Surgery"})


def test_update_changes_name_and_role():
    client = TestClient(app)
    roles = role_ids(client)
    created = client.post("/api/doctors", json={"name": "Dr. Das"}).json()
    assert created["role_id"] is None
    assert created["role_name"] is None

    updated = client.put(
        f"/api/doctors/{created['id']}",
        json={"name": "Dr. Anita Das", "role_id": roles["Junior Resident"], "restrictions": []},
    ).json()

    assert updated["name"] == "Dr. Anita Das"
    assert updated["role_name"] == "Junior Resident"
    assert updated["restrictions"] == []


def test_deactivated_doctor_is_hidden_from_list_but_still_readable():
    client = TestClient(app)
    doctor = client.post("/api/doctors", json={"name": "Dr. Das"}).json()

    deleted = client.delete(f"/api/doctors/{doctor['id']}")

    assert deleted.json() == {"ok": True}
    assert all(row["id"] != doctor["id"] for row in client.get("/api/doctors").json())
    assert client.get(f"/api/doctors/{doctor['id']}").json()["is_active"] is False


def test_doctor_validation_errors():
    client = TestClient(app)
    stations = station_ids(client)

    blank = client.post("/api/doctors", json={"name": "   "})
    missing_name = client.post("/api/doctors", json={"role_id": None})
    unknown_role = client.post("/api/doctors", json={"name": "Dr. Das", "role_id": 9999})
    unknown_station = client.post("/api/doctors", json={"name": "Dr. Das", "restrictions": [stations["ICU"], 9999]})
    unknown_doctor = client.put("/api/doctors/9999", json={"name": "Dr. Das"})

    assert blank.status_code == 400
    assert blank.json() == {"error": "Doctor name is required"}
    assert missing_name.status_code == 400
    assert "name" in missing_name.json()["error"]
    assert unknown_role.status_code == 404
    assert unknown_role.json() == {"error": "Role not found"}
    assert unknown_station.status_code == 404
    assert unknown_station.json() == {"error": "Station not found: 9999"}
    assert unknown_doctor.status_code == 404
    assert len(client.get("/api/doctors").json()) == 13


def test_duplicate_restriction_ids_are_stored_once():
    client = TestClient(app)
    stations = station_ids(client)

    created = client.post("/api/doctors", json={"name": "Dr. Das", "restrictions": [stations["ICU"], stations["ICU"]]})

    assert created.status_code == 201
    assert [station["name"] for station in created.json()["restrictions"]] == ["ICU"]
