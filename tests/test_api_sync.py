"""Tests for sync trigger, sync operation and stats endpoints.

The app fixture shortens the completion delay to 50ms and the timeout to
500ms, so background transitions can be observed within a test.
"""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from app.api.sync import format_relative_time
from app.models.entities import utcnow


async def wait_for_operation(client, operation_id, statuses, timeout=2.0):
    deadline = asyncio.get_running_loop().time() + timeout
    while True:
        ops = (await client.get("/api/sync-operations")).json()
        op = next(o for o in ops if o["id"] == operation_id)
        if op["status"] in statuses:
            return op
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError(f"operation stuck in {op['status']}")
        await asyncio.sleep(0.02)


class TestSyncNow:

    @pytest.mark.asyncio
    async def test_returns_running_operation(self, client):
        resp = await client.post("/api/sync/now", json={})

        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "running"
        assert data["totalRecords"] == 100
        assert data["recordsProcessed"] == 0
        assert data["operation"] == "sync"
        assert data["endTime"] is None

    @pytest.mark.asyncio
    async def test_body_is_optional(self, client):
        resp = await client.post("/api/sync/now")
        assert resp.status_code == 200
        assert resp.json()["operation"] == "sync"

    @pytest.mark.asyncio
    async def test_operation_and_database(self, client):
        resp = await client.post("/api/sync/now", json={"databaseId": "db-1", "operation": "push"})
        data = resp.json()
        assert data["databaseId"] == "db-1"
        assert data["operation"] == "push"

    @pytest.mark.asyncio
    async def test_completes_in_background(self, client):
        op = (await client.post("/api/sync/now", json={})).json()

        done = await wait_for_operation(client, op["id"], {"completed", "failed"})

        assert done["status"] == "completed"
        assert done["recordsProcessed"] == 100
        assert done["endTime"] is not None

    @pytest.mark.asyncio
    async def test_store_failure_on_completion_ends_failed(self, client, app, monkeypatch):
        store = app.state.store
        original = store.transition_operation
        calls = []

        async def flaky(operation_id, fields, from_status="running"):
            calls.append(fields["status"])
            if len(calls) == 1:
                raise SQLAlchemyError("disk I/O error")
            return await original(operation_id, fields, from_status)

        monkeypatch.setattr(store, "transition_operation", flaky)

        op = (await client.post("/api/sync/now", json={})).json()
        done = await wait_for_operation(client, op["id"], {"completed", "failed"})

        assert done["status"] == "failed"
        assert done["errorMessage"]

    @pytest.mark.asyncio
    async def test_eleventh_trigger_is_rate_limited(self, client, app):
        for _ in range(10):
            resp = await client.post("/api/sync/now", json={})
            assert resp.status_code == 200

        before = len((await client.get("/api/sync-operations")).json())
        resp = await client.post("/api/sync/now", json={})

        assert resp.status_code == 429
        assert "Too many sync operations" in resp.json()["message"]
        assert int(resp.headers["Retry-After"]) > 0
        assert len((await client.get("/api/sync-operations")).json()) == before

    @pytest.mark.asyncio
    async def test_store_failure_is_500(self, client, app, monkeypatch):
        async def boom(fields):
            raise SQLAlchemyError("connection lost")

        monkeypatch.setattr(app.state.store, "create_operation", boom)

        resp = await client.post("/api/sync/now", json={})
        assert resp.status_code == 500
        assert resp.json() == {"message": "Failed to start sync operation"}


class TestSyncOperations:

    @pytest.mark.asyncio
    async def test_create_and_list(self, client):
        resp = await client.post("/api/sync-operations", json={"operation": "pull"})

        assert resp.status_code == 201
        created = resp.json()
        assert created["status"] == "pending"
        assert created["startTime"] is not None

        listed = (await client.get("/api/sync-operations")).json()
        assert [o["id"] for o in listed] == [created["id"]]

    @pytest.mark.asyncio
    async def test_create_requires_operation(self, client):
        resp = await client.post("/api/sync-operations", json={"status": "pending"})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_create_rejects_unknown_status(self, client):
        resp = await client.post("/api/sync-operations", json={"operation": "sync", "status": "paused"})
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_patch_progress(self, client):
        created = (await client.post(
            "/api/sync-operations", json={"operation": "sync", "status": "running", "totalRecords": 10}
        )).json()

        resp = await client.patch(f"/api/sync-operations/{created['id']}", json={"recordsProcessed": 4})

        assert resp.status_code == 200
        assert resp.json()["recordsProcessed"] == 4
        assert resp.json()["status"] == "running"

    @pytest.mark.asyncio
    async def test_end_time_with_offset_stored_as_utc(self, client):
        created = (await client.post(
            "/api/sync-operations",
            json={"operation": "sync", "status": "running", "endTime": "2024-06-01T08:30:00-04:00"},
        )).json()
        assert created["endTime"] == "2024-06-01T12:30:00"

        resp = await client.patch(
            f"/api/sync-operations/{created['id']}",
            json={"endTime": "2024-06-01T13:00:00+01:00"},
        )
        assert resp.json()["endTime"] == "2024-06-01T12:00:00"

        ops = (await client.get("/api/sync-operations")).json()
        assert ops[0]["endTime"] == "2024-06-01T12:00:00"

    @pytest.mark.asyncio
    async def test_status_cannot_move_backwards(self, client):
        created = (await client.post(
            "/api/sync-operations", json={"operation": "sync", "status": "running"}
        )).json()

        resp = await client.patch(f"/api/sync-operations/{created['id']}", json={"status": "pending"})

        assert resp.status_code == 409
        assert resp.json() == {"message": "Sync operation cannot move from running to pending"}
        ops = (await client.get("/api/sync-operations")).json()
        assert ops[0]["status"] == "running"

    @pytest.mark.asyncio
    async def test_status_moves_forward(self, client):
        created = (await client.post("/api/sync-operations", json={"operation": "sync"})).json()
        url = f"/api/sync-operations/{created['id']}"

        assert (await client.patch(url, json={"status": "running"})).json()["status"] == "running"
        assert (await client.patch(url, json={"status": "running"})).status_code == 200
        assert (await client.patch(url, json={"status": "failed"})).json()["status"] == "failed"

    @pytest.mark.asyncio
    async def test_patch_unknown_is_404(self, client):
        resp = await client.patch("/api/sync-operations/nope", json={"status": "failed"})
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_terminal_operation_is_immutable(self, client):
        created = (await client.post(
            "/api/sync-operations", json={"operation": "sync", "status": "completed"}
        )).json()

        resp = await client.patch(f"/api/sync-operations/{created['id']}", json={"status": "running"})

        assert resp.status_code == 409
        ops = (await client.get("/api/sync-operations")).json()
        assert ops[0]["status"] == "completed"


class TestStats:

    @pytest.mark.asyncio
    async def test_empty_store(self, client):
        resp = await client.get("/api/stats")

        assert resp.status_code == 200
        assert resp.json() == {
            "totalRecords": 0,
            "lastSync": "Never",
            "pendingSync": 0,
            "cacheSize": "0.0 MB",
        }

    @pytest.mark.asyncio
    async def test_aggregates(self, client, app):
        store = app.state.store
        db = await store.create_database({"external_id": "a", "name": "A", "record_count": 10})
        await store.create_database({"external_id": "b", "name": "B", "record_count": 5})
        await store.update_database(db.id, {"last_sync": utcnow() - timedelta(minutes=3)})
        await store.create_change({"record_name": "x", "action": "created"})
        await store.create_change({"record_name": "y", "action": "created", "status": "synced"})
        await store.update_settings({"cache_size": 45})

        data = (await client.get("/api/stats")).json()

        assert data["totalRecords"] == 15
        assert data["pendingSync"] == 1
        assert data["lastSync"] == "3m ago"
        assert data["cacheSize"] == "45.0 MB"


class TestFormatRelativeTime:

    def test_buckets(self):
        now = utcnow()
        assert format_relative_time(now, now) == "Just now"
        assert format_relative_time(now - timedelta(minutes=5), now) == "5m ago"
        assert format_relative_time(now - timedelta(hours=2), now) == "2h ago"
        assert format_relative_time(now - timedelta(days=3), now) == "3d ago"
