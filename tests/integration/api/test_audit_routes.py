"""
Integration tests for Audit API
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from httpx import AsyncClient

from src.api.utils.jwt import generate_jwt
from src.app.services.audit_logger import AuditStoreError
from src.app.services.request_context import Identity, RequestContext


def _auth(user_id="admin-1", role="admin"):
    return {"Authorization": f"Bearer {generate_jwt(user_id, role)}"}


@pytest_asyncio.fixture
async def seeded(app, clock):
    audit_logger = app.state.audit_logger
    context = RequestContext(ip_address="198.51.100.4", method="POST", path="/auth/login")

    await audit_logger.log_login("a@example.com", success=False, context=context)
    clock.advance(minutes=1)
    await audit_logger.log_login("a@example.com", success=False, context=context)
    clock.advance(minutes=1)
    await audit_logger.log_login(
        "a@example.com", success=True, identity=Identity(user_id="user-1"), context=context
    )
    clock.advance(minutes=1)
    await audit_logger.log_data_modification(
        Identity(user_id="user-1"), "invoice", "inv-1", "create"
    )
    await audit_logger.log_password_change(Identity(user_id="user-1"))
    clock.advance(minutes=1)


@pytest.mark.asyncio
async def test_get_audit_events_filtered(client: AsyncClient, seeded):
    response = await client.get(
        "/audit/events",
        params={"event_type": "auth.failed_login", "limit": 1},
        headers=_auth(),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["total"] == 2
    assert data["limit"] == 1
    assert data["offset"] == 0
    assert len(data["events"]) == 1
    event = data["events"][0]
    assert event["category"] == "authentication"
    assert event["severity"] == "warning"
    assert event["actor_id"] is None
    assert event["ip_address"] == "198.51.100.4"
    assert event["created_at"] == "2024-03-01T10:01:00Z"


@pytest.mark.asyncio
async def test_get_audit_events_by_actor(client: AsyncClient, seeded):
    response = await client.get("/audit/events", params={"actor_id": "user-1"}, headers=_auth())

    assert response.status_code == 200
    types = [e["event_type"] for e in response.json()["events"]]
    assert sorted(types) == ["auth.login", "auth.password_change", "data.create"]


@pytest.mark.asyncio
async def test_owner_role_allowed(client: AsyncClient, seeded):
    response = await client.get("/audit/events", headers=_auth("owner-1", "owner"))

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_member_forbidden(client: AsyncClient, seeded):
    response = await client.get("/audit/events", headers=_auth("user-1", "member"))

    assert response.status_code == 403


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "params",
    [
        {"limit": 0},
        {"limit": 501},
        {"category": "billing"},
        {"start_date": "2024-03-02T00:00:00", "end_date": "2024-03-01T00:00:00"},
    ],
)
async def test_invalid_filter(client: AsyncClient, params):
    response = await client.get("/audit/events", params=params, headers=_auth())

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "INVALID_FILTER"


@pytest.mark.asyncio
async def test_security_stats(client: AsyncClient, seeded):
    response = await client.get("/audit/stats", params={"days": 7}, headers=_auth())

    assert response.status_code == 200
    data = response.json()
    assert data["window_days"] == 7
    assert data["total_events"] == 5
    assert data["failed_logins"] == 2
    assert data["successful_logins"] == 1
    assert data["data_modifications"] == 1
    assert data["critical_events"] == 1
    assert data["security_alerts"] == 0


@pytest.mark.asyncio
async def test_security_stats_invalid_window(client: AsyncClient):
    response = await client.get("/audit/stats", params={"days": 400}, headers=_auth())

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "INVALID_FILTER"


@pytest.mark.asyncio
async def test_get_audit_events_store_unavailable(client: AsyncClient, app):
    app.state.audit_logger.get_audit_logs = AsyncMock(
        side_effect=AuditStoreError("Audit audit log query timed out")
    )

    response = await client.get("/audit/events", headers=_auth())

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "AUDIT_STORE_UNAVAILABLE"


@pytest.mark.asyncio
async def test_get_security_stats_store_unavailable(client: AsyncClient, app):
    app.state.audit_logger.get_security_stats = AsyncMock(
        side_effect=AuditStoreError("Audit security stats query failed")
    )

    response = await client.get("/audit/stats", headers=_auth())

    assert response.status_code == 500
    assert response.json()["error"]["code"] == "AUDIT_STORE_UNAVAILABLE"
