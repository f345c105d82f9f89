"""
Geofence API tests: CRUD, ownership rules and containment checks.
"""

import pytest
from sqlalchemy.exc import IntegrityError

from location_sync.app.models.geofence import Geofence
from location_sync.app.models.location_enums import TaskType
from location_sync.app.models.subject import SharedProfile, Subject


def geofence_payload(**overrides):
    payload = {
        "name": "Central Depot",
        "description": "Loading bays 1-4",
        "latitude": 55.6761,
        "longitude": 12.5683,
        "radius_meters": 150,
        "task_type": "LOADING",
        "subject_id": "emp-1",
    }
    payload.update(overrides)
    return payload


@pytest.fixture(autouse=True)
async def owners(db_session):
    """Subjects and the shared profile the geofences below belong to."""
    db_session.add(SharedProfile(id="drivers", name="Drivers"))
    db_session.add_all([
        Subject(id="emp-1"),
        Subject(id="emp-2"),
        Subject(id="emp-7", shared_profile_id="drivers"),
    ])
    await db_session.commit()


@pytest.mark.asyncio
async def test_create_geofence(client):
    response = await client.post("/v1/geofences", json=geofence_payload())

    assert response.status_code == 201
    data = response.json()
    assert data["id"] is not None
    assert data["name"] == "Central Depot"
    assert data["subject_id"] == "emp-1"
    assert data["shared_profile_id"] is None
    assert data["task_type"] == "LOADING"
    assert data["is_active"] is True
    # Decimals serialize as strings
    assert data["latitude"] == "55.6761000"


@pytest.mark.asyncio
async def test_create_geofence_with_both_owners(client):
    response = await client.post(
        "/v1/geofences", json=geofence_payload(shared_profile_id="drivers")
    )

    assert response.status_code == 422
    assert response.json()["error_code"] == "ERR_VALIDATION"


@pytest.mark.asyncio
async def test_create_geofence_without_owner(client):
    response = await client.post("/v1/geofences", json=geofence_payload(subject_id=None))

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_geofence_for_unknown_subject(client):
    response = await client.post("/v1/geofences", json=geofence_payload(subject_id="emp-404"))

    assert response.status_code == 404
    assert response.json()["error_code"] == "ERR_NOT_FOUND_001"
    assert response.json()["details"] == {"resource": "Subject", "id": "emp-404"}

    listed = await client.get("/v1/geofences")
    assert listed.json()["total"] == 0


@pytest.mark.asyncio
async def test_create_geofence_for_unknown_shared_profile(client):
    response = await client.post(
        "/v1/geofences",
        json=geofence_payload(subject_id=None, shared_profile_id="does-not-exist"),
    )

    assert response.status_code == 404
    assert response.json()["details"]["resource"] == "Shared profile"


@pytest.mark.asyncio
@pytest.mark.parametrize("radius", [0, 9, 10001])
async def test_create_geofence_radius_bounds(client, radius):
    response = await client.post("/v1/geofences", json=geofence_payload(radius_meters=radius))

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_geofence_unknown_task_type(client):
    response = await client.post("/v1/geofences", json=geofence_payload(task_type="SLEEPING"))

    assert response.status_code == 422


@pytest.mark.asyncio
async def test_geofence_crud_lifecycle(client):
    created = (await client.post("/v1/geofences", json=geofence_payload())).json()
    url = f"/v1/geofences/{created['id']}"

    fetched = await client.get(url)
    assert fetched.status_code == 200
    assert fetched.json()["name"] == "Central Depot"

    updated = await client.patch(url, json={"name": "North Depot", "radius_meters": 300, "is_active": False})
    assert updated.status_code == 200
    assert updated.json()["name"] == "North Depot"
    assert updated.json()["radius_meters"] == 300
    assert updated.json()["is_active"] is False
    assert updated.json()["subject_id"] == "emp-1"

    deleted = await client.delete(url)
    assert deleted.status_code == 204

    missing = await client.get(url)
    assert missing.status_code == 404
    assert missing.json()["message"] == "Geofence not found"


@pytest.mark.asyncio
async def test_update_cannot_change_owner(client):
    created = (await client.post("/v1/geofences", json=geofence_payload())).json()

    response = await client.patch(
        f"/v1/geofences/{created['id']}", json={"shared_profile_id": "drivers"}
    )

    assert response.status_code == 200
    assert response.json()["subject_id"] == "emp-1"
    assert response.json()["shared_profile_id"] is None


@pytest.mark.asyncio
async def test_update_unknown_geofence(client):
    response = await client.patch("/v1/geofences/999", json={"name": "Ghost"})

    assert response.status_code == 404


@pytest.mark.asyncio
async def test_list_geofences_with_filters(client):
    await client.post("/v1/geofences", json=geofence_payload(name="A"))
    await client.post("/v1/geofences", json=geofence_payload(name="B", is_active=False))
    await client.post(
        "/v1/geofences",
        json=geofence_payload(name="C", subject_id=None, shared_profile_id="drivers"),
    )

    everything = (await client.get("/v1/geofences")).json()
    assert everything["total"] == 3

    own = (await client.get("/v1/geofences", params={"subject_id": "emp-1"})).json()
    assert sorted(g["name"] for g in own["geofences"]) == ["A", "B"]

    active_own = (
        await client.get("/v1/geofences", params={"subject_id": "emp-1", "is_active": "true"})
    ).json()
    assert [g["name"] for g in active_own["geofences"]] == ["A"]
    assert active_own["total"] == 1

    profile = (await client.get("/v1/geofences", params={"shared_profile_id": "drivers"})).json()
    assert [g["name"] for g in profile["geofences"]] == ["C"]


@pytest.mark.asyncio
async def test_check_inside_own_zone(client):
    zone = (await client.post("/v1/geofences", json=geofence_payload())).json()

    response = await client.post(
        "/v1/geofences/check",
        json={"subject_id": "emp-1", "latitude": 55.6762, "longitude": 12.5684},
    )

    assert response.status_code == 200
    assert response.json() == {
        "is_in_zone": True,
        "matches": [{"id": zone["id"], "name": "Central Depot", "task_type": "LOADING"}],
    }


@pytest.mark.asyncio
async def test_check_outside_every_zone(client):
    await client.post("/v1/geofences", json=geofence_payload())

    response = await client.post(
        "/v1/geofences/check",
        json={"subject_id": "emp-1", "latitude": 55.70, "longitude": 12.60},
    )

    assert response.json() == {"is_in_zone": False, "matches": []}


@pytest.mark.asyncio
async def test_check_inherits_shared_profile_zones(client):
    await client.post(
        "/v1/geofences",
        json=geofence_payload(name="Fleet Yard", subject_id=None, shared_profile_id="drivers", task_type="DRIVING"),
    )
    await client.post("/v1/geofences", json=geofence_payload(name="Someone Else", subject_id="emp-2"))

    response = await client.post(
        "/v1/geofences/check",
        json={"subject_id": "emp-7", "latitude": 55.6761, "longitude": 12.5683},
    )

    body = response.json()
    assert body["is_in_zone"] is True
    assert [(m["name"], m["task_type"]) for m in body["matches"]] == [("Fleet Yard", "DRIVING")]


@pytest.mark.asyncio
async def test_check_ignores_inactive_zones(client):
    await client.post("/v1/geofences", json=geofence_payload(is_active=False))

    response = await client.post(
        "/v1/geofences/check",
        json={"subject_id": "emp-1", "latitude": 55.6761, "longitude": 12.5683},
    )

    assert response.json()["is_in_zone"] is False


@pytest.mark.asyncio
async def test_database_enforces_single_owner(db_session):
    db_session.add(Geofence(
        name="Broken",
        latitude=55.6761,
        longitude=12.5683,
        radius_meters=100,
        task_type=TaskType.SMART,
        subject_id="emp-1",
        shared_profile_id="drivers",
    ))

    with pytest.raises(IntegrityError):
        await db_session.commit()
