import httpx
import pytest

from app.api.deps import get_calendar, get_clock, get_notifier, get_session
from app.main import app

from conftest import SLOT_TIME


@pytest.fixture
async def client(session_maker, calendar, notifier, clock):
    async def _session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_calendar] = lambda: calendar
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_clock] = lambda: clock
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def _book_body(user_id, service_id, when=SLOT_TIME, **extra):
    return {"user_id": user_id, "service_id": service_id, "booking_datetime": when.isoformat(), **extra}


async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}


async def test_book_and_list(client, catalog):
    resp = await client.post("/api/v1/bookings", json=_book_body(catalog.ann, catalog.service, notes="hi"))

    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "confirmed"
    assert body["confirmation_sent"] is True
    assert body["external_event_id"] == "evt-1"

    listing = await client.get("/api/v1/bookings", params={"user_id": catalog.ann})
    assert listing.status_code == 200
    [row] = listing.json()
    assert row["id"] == body["id"]
    assert row["user_name"] == "Ann Lee"
    assert row["service_name"] == "Swedish Massage"


async def test_taken_slot_is_409(client, catalog):
    await client.post("/api/v1/bookings", json=_book_body(catalog.ann, catalog.service))

    resp = await client.post("/api/v1/bookings", json=_book_body(catalog.bob, catalog.service))

    assert resp.status_code == 409


async def test_unknown_service_is_404(client, catalog):
    resp = await client.post("/api/v1/bookings", json=_book_body(catalog.ann, 999))
    assert resp.status_code == 404


async def test_notes_are_bounded(client, catalog):
    resp = await client.post("/api/v1/bookings", json=_book_body(catalog.ann, catalog.service, notes="x" * 501))
    assert resp.status_code == 422


async def test_slots_reflect_occupancy(client, catalog):
    await client.post("/api/v1/bookings", json=_book_body(catalog.ann, catalog.service))

    resp = await client.get("/api/v1/slots/available", params={"date": "2025-03-01"})

    assert resp.status_code == 200
    [slot] = resp.json()["slots"]
    assert slot["available"] is False


async def test_cancel_then_cancel_again(client, catalog):
    booking = (await client.post("/api/v1/bookings", json=_book_body(catalog.ann, catalog.service))).json()

    first = await client.delete(f"/api/v1/bookings/{booking['id']}")
    second = await client.delete(f"/api/v1/bookings/{booking['id']}")

    assert first.status_code == 204
    assert second.status_code == 404


async def test_cancel_by_other_user_is_403(client, catalog):
    booking = (await client.post("/api/v1/bookings", json=_book_body(catalog.ann, catalog.service))).json()

    resp = await client.delete(f"/api/v1/bookings/{booking['id']}", params={"requester_user_id": catalog.bob})

    assert resp.status_code == 403


async def test_patch_notes(client, catalog):
    booking = (await client.post("/api/v1/bookings", json=_book_body(catalog.ann, catalog.service))).json()

    resp = await client.patch(f"/api/v1/bookings/{booking['id']}", json={"notes": "late arrival"})

    assert resp.status_code == 200
    assert resp.json()["notes"] == "late arrival"


async def test_register_chat_user(client):
    resp = await client.put("/api/v1/users/telegram/424242", json={"username": "zoe", "first_name": "Zoe"})

    assert resp.status_code == 200
    assert resp.json()["telegram_user_id"] == 424242
    assert resp.json()["username"] == "zoe"


async def test_services_hide_retired_unless_asked(client, catalog):
    active = await client.get("/api/v1/services")
    everything = await client.get("/api/v1/services", params={"active_only": "false"})

    assert [s["name"] for s in active.json()] == ["Swedish Massage"]
    assert {s["name"] for s in everything.json()} == {"Swedish Massage", "Retired Massage"}
