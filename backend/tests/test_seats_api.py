"""
Tests for the seat HTTP endpoints, including error mapping.
"""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient

from seatkeeper.main import app
from seatkeeper.services.reclaimer import ExpiryReclaimer
from seatkeeper.services.registry_factory import get_reclaimer
from seatkeeper.core.exceptions import StorageUnavailable

API = "/api/v1/seats"


@pytest.mark.asyncio
async def test_list_seats(client: AsyncClient):
    response = await client.get(f"{API}/")
    assert response.status_code == 200
    data = response.json()
    assert data["cached"] is False
    assert [s["seat_number"] for s in data["seats"]][:3] == ["S01", "S02", "W01"]
    assert data["seats"][0]["position"] == {"x": 0, "y": 0}


@pytest.mark.asyncio
async def test_list_seats_by_room(client: AsyncClient):
    response = await client.get(f"{API}/", params={"room": "white"})
    assert response.status_code == 200
    seats = response.json()["seats"]
    assert len(seats) == 6
    assert {s["room"] for s in seats} == {"white"}

    response = await client.get(f"{API}/", params={"room": "lounge"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_reserve_seat(client: AsyncClient, headers_for):
    before = datetime.now(timezone.utc)
    response = await client.post(f"{API}/W01/reserve", json={"hours": 3}, headers=headers_for("user-b"))
    assert response.status_code == 200
    seat = response.json()["seat"]
    assert seat["is_available"] is False
    assert seat["current_user"] == "user-b"
    reserved_until = datetime.fromisoformat(seat["reserved_until"])
    assert before + timedelta(hours=3) <= reserved_until <= datetime.now(timezone.utc) + timedelta(hours=3)

    mine = await client.get(f"{API}/my-reservation", headers=headers_for("user-b"))
    assert mine.json()["seat"]["seat_number"] == "W01"


@pytest.mark.asyncio
async def test_reserve_requires_token(client: AsyncClient):
    response = await client.post(f"{API}/W01/reserve", json={"hours": 1})
    assert response.status_code == 401

    response = await client.post(
        f"{API}/W01/reserve", json={"hours": 1}, headers={"Authorization": "Bearer not-a-token"}
    )
    assert response.status_code == 401


@pytest.mark.asyncio
@pytest.mark.parametrize("hours", [0, 9])
async def test_reserve_invalid_hours(client: AsyncClient, headers_for, hours):
    response = await client.post(f"{API}/W01/reserve", json={"hours": hours}, headers=headers_for("user-a"))
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "INVALID_HOURS"


@pytest.mark.asyncio
async def test_reserve_untyped_hours(client: AsyncClient, headers_for):
    response = await client.post(f"{API}/W01/reserve", json={"hours": "3"}, headers=headers_for("user-a"))
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_reserve_conflicts(client: AsyncClient, headers_for):
    await client.post(f"{API}/W02/reserve", json={"hours": 2}, headers=headers_for("user-a"))

    occupied = await client.post(f"{API}/W02/reserve", json={"hours": 2}, headers=headers_for("user-c"))
    assert occupied.status_code == 409
    assert occupied.json()["error"]["code"] == "SEAT_OCCUPIED"

    second = await client.post(f"{API}/W03/reserve", json={"hours": 1}, headers=headers_for("user-a"))
    assert second.status_code == 409
    error = second.json()["error"]
    assert error["code"] == "ALREADY_HAS_RESERVATION"
    assert error["details"]["current_seat"] == "W02"


@pytest.mark.asyncio
async def test_reserve_unknown_seat(client: AsyncClient, headers_for):
    response = await client.post(f"{API}/W77/reserve", json={"hours": 1}, headers=headers_for("user-a"))
    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_staff_room_is_admin_only(client: AsyncClient, headers_for, admin_headers):
    response = await client.post(f"{API}/S01/reserve", json={"hours": 1}, headers=headers_for("user-a"))
    assert response.status_code == 403

    response = await client.post(f"{API}/S01/reserve", json={"hours": 1}, headers=admin_headers)
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_release(client: AsyncClient, headers_for, admin_headers):
    await client.post(f"{API}/W01/reserve", json={"hours": 4}, headers=headers_for("user-b"))

    denied = await client.post(f"{API}/W01/release", headers=headers_for("user-d"))
    assert denied.status_code == 403
    assert denied.json()["error"]["code"] == "NOT_AUTHORIZED"

    released = await client.post(f"{API}/W01/release", headers=admin_headers)
    assert released.status_code == 200
    assert released.json()["seat"]["is_available"] is True

    mine = await client.get(f"{API}/my-reservation", headers=headers_for("user-b"))
    assert mine.json() == {"seat": None}


@pytest.mark.asyncio
async def test_release_by_holder(client: AsyncClient, headers_for):
    await client.post(f"{API}/W05/reserve", json={"hours": 8}, headers=headers_for("user-a"))
    response = await client.post(f"{API}/W05/release", headers=headers_for("user-a"))
    assert response.status_code == 200
    assert response.json()["message"] == "Seat released successfully"


@pytest.mark.asyncio
async def test_initialize_admin_only(client: AsyncClient, headers_for, admin_headers):
    response = await client.post(f"{API}/initialize", headers=headers_for("user-a"))
    assert response.status_code == 403

    response = await client.post(f"{API}/initialize", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["count"] == 48

    seats = (await client.get(f"{API}/", params={"room": "staff"})).json()["seats"]
    assert [s["seat_number"] for s in seats] == [f"S{i:02d}" for i in range(1, 13)]


@pytest.mark.asyncio
async def test_cleanup_expired(client: AsyncClient, headers_for):
    await client.post(f"{API}/W06/reserve", json={"hours": 1}, headers=headers_for("user-a"))

    response = await client.post(f"{API}/cleanup-expired")
    assert response.status_code == 200
    assert response.json()["count"] == 1

    seat = next(s for s in (await client.get(f"{API}/")).json()["seats"] if s["seat_number"] == "W06")
    assert seat["is_available"] is True


@pytest.mark.asyncio
async def test_cleanup_expired_storage_failure(client: AsyncClient, memory_registry):
    class FailingRegistry(type(memory_registry)):
        async def bulk_reclaim(self, now):
            raise StorageUnavailable("bulk_reclaim")

    app.dependency_overrides[get_reclaimer] = lambda: ExpiryReclaimer(FailingRegistry())

    response = await client.post(f"{API}/cleanup-expired")
    assert response.status_code == 503
    assert response.json()["error"]["code"] == "STORAGE_UNAVAILABLE"


@pytest.mark.asyncio
async def test_health(client: AsyncClient):
    response = await client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "healthy"
    assert data["cache"] == {"status": "disabled"}


@pytest.mark.asyncio
async def test_metrics_endpoint(client: AsyncClient):
    response = await client.get("/metrics")
    assert response.status_code == 200
    assert "seat_reservation_attempts_total" in response.text
