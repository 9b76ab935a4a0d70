"""Tests for the destinations and notification history API."""

import uuid

import pytest

from pulsewatch.services.notification_audit import append_audit_record


class TestDestinations:
    @pytest.mark.asyncio
    async def test_create_and_list(self, master_client):
        response = await master_client.post(
            "/api/destinations",
            json={"name": "ops", "url": "https://hooks.slack.com/services/T/B/X", "format": "slack"},
        )

        assert response.status_code == 201
        assert response.json()["format"] == "slack"

        listed = await master_client.get("/api/destinations")
        assert [d["name"] for d in listed.json()] == ["ops"]

    @pytest.mark.asyncio
    async def test_default_format_is_generic(self, master_client):
        response = await master_client.post(
            "/api/destinations", json={"name": "hook", "url": "https://example.com/hook"}
        )

        assert response.json()["format"] == "generic"

    @pytest.mark.asyncio
    async def test_rejects_unknown_format_and_bad_url(self, master_client):
        bad_format = await master_client.post(
            "/api/destinations", json={"name": "a", "url": "https://example.com", "format": "teams"}
        )
        bad_url = await master_client.post(
            "/api/destinations", json={"name": "b", "url": "not a url"}
        )

        assert bad_format.status_code == 422
        assert bad_url.status_code == 422

    @pytest.mark.asyncio
    async def test_duplicate_name_conflicts(self, master_client):
        body = {"name": "ops", "url": "https://example.com/hook"}
        await master_client.post("/api/destinations", json=body)

        response = await master_client.post("/api/destinations", json=body)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "CONFLICT"

    @pytest.mark.asyncio
    async def test_update_and_delete(self, master_client):
        created = (
            await master_client.post(
                "/api/destinations", json={"name": "ops", "url": "https://example.com/hook"}
            )
        ).json()

        updated = await master_client.patch(
            f"/api/destinations/{created['id']}", json={"enabled": False, "format": "discord"}
        )
        assert updated.status_code == 200
        assert updated.json()["enabled"] is False
        assert updated.json()["format"] == "discord"

        deleted = await master_client.delete(f"/api/destinations/{created['id']}")
        assert deleted.status_code == 204

        missing = await master_client.patch(
            f"/api/destinations/{created['id']}", json={"enabled": True}
        )
        assert missing.status_code == 404

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field", ["name", "url", "format", "enabled"])
    async def test_null_field_is_rejected(self, master_client, field):
        created = (
            await master_client.post(
                "/api/destinations", json={"name": "ops", "url": "https://example.com/hook"}
            )
        ).json()

        response = await master_client.patch(f"/api/destinations/{created['id']}", json={field: None})

        assert response.status_code == 422

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "url",
        [
            "http://127.0.0.1/hook",
            "http://169.254.169.254/latest/meta-data/",
            "http://localhost:8000/hook",
        ],
    )
    async def test_internal_url_is_rejected_on_create(self, master_client, url):
        response = await master_client.post("/api/destinations", json={"name": "ops", "url": url})

        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_ERROR"

        listed = await master_client.get("/api/destinations")
        assert listed.json() == []

    @pytest.mark.asyncio
    async def test_internal_url_is_rejected_on_update(self, master_client):
        created = (
            await master_client.post(
                "/api/destinations", json={"name": "ops", "url": "https://example.com/hook"}
            )
        ).json()

        response = await master_client.patch(
            f"/api/destinations/{created['id']}", json={"url": "http://10.0.0.8/hook"}
        )

        assert response.status_code == 422
        fetched = await master_client.get("/api/destinations")
        assert fetched.json()[0]["url"] == "https://example.com/hook"


class TestNotificationHistory:
    @pytest.mark.asyncio
    async def test_history_is_scoped_to_tenant_and_alert(self, master_client, test_session):
        alert_id = uuid.uuid4()
        other_alert = uuid.uuid4()
        destination_id = uuid.uuid4()
        await append_audit_record(
            test_session, alert_id=alert_id, destination_id=destination_id,
            tenant_id="app-1", transition_kind="entered", success=True, status_code=200,
        )
        await append_audit_record(
            test_session, alert_id=other_alert, destination_id=destination_id,
            tenant_id="app-1", transition_kind="entered", success=False, error="Timeout",
        )
        await append_audit_record(
            test_session, alert_id=alert_id, destination_id=destination_id,
            tenant_id="app-2", transition_kind="recovered", success=True, status_code=200,
        )

        everything = await master_client.get("/api/notifications/history")
        assert everything.status_code == 200
        assert len(everything.json()) == 2

        filtered = await master_client.get(
            "/api/notifications/history", params={"alert_id": str(alert_id)}
        )
        records = filtered.json()
        assert len(records) == 1
        assert records[0]["success"] is True
        assert records[0]["status_code"] == 200
        assert records[0]["transition_kind"] == "entered"
