"""Tests for the OAuth flow and session-held connection state."""

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from app.services.notion import NotionClient


def install_notion(app, handler):
    app.state.notion = NotionClient(
        "client-id",
        "client-secret",
        "http://testserver/auth/external/callback",
        api_url="https://notion.test/v1",
        transport=httpx.MockTransport(handler),
    )


def token_ok(request):
    return httpx.Response(200, json={
        "access_token": "secret_token",
        "workspace_id": "ws-1",
        "bot_id": "bot-1",
    })


async def start_oauth(client):
    """Begin the flow and return the state the consent screen would echo back."""
    resp = await client.get("/auth/external")
    assert resp.status_code == 302
    return parse_qs(urlparse(resp.headers["location"]).query)["state"][0]


async def connect(client, code="abc"):
    state = await start_oauth(client)
    return await client.get(f"/auth/external/callback?code={code}&state={state}")


class TestStartOAuth:

    @pytest.mark.asyncio
    async def test_redirects_to_authorize_url(self, client):
        resp = await client.get("/auth/external")

        assert resp.status_code == 302
        location = resp.headers["location"]
        assert location.startswith("https://notion.test/v1/oauth/authorize?")
        assert "client_id=client-id" in location
        assert parse_qs(urlparse(location).query)["state"][0]

    @pytest.mark.asyncio
    async def test_each_attempt_gets_fresh_state(self, client):
        assert await start_oauth(client) != await start_oauth(client)

    @pytest.mark.asyncio
    async def test_sixth_attempt_is_rate_limited(self, client):
        for _ in range(5):
            assert (await client.get("/auth/external")).status_code == 302

        resp = await client.get("/auth/external")
        assert resp.status_code == 429
        assert "authentication" in resp.json()["message"]


class TestCallback:

    @pytest.mark.asyncio
    async def test_missing_code_is_400(self, client):
        resp = await client.get("/auth/external/callback")
        assert resp.status_code == 400
        assert resp.json() == {"message": "Missing authorization code"}

    @pytest.mark.asyncio
    async def test_success_stores_session(self, client, app):
        install_notion(app, token_ok)

        resp = await connect(client)

        assert resp.status_code == 302
        assert resp.headers["location"] == "/settings?auth=success"

        status = (await client.get("/api/auth/status")).json()
        assert status == {"isAuthenticated": True, "workspaceId": "ws-1"}

    @pytest.mark.asyncio
    async def test_session_token_not_written_to_store(self, client, app):
        install_notion(app, token_ok)
        await connect(client)

        settings = await app.state.store.get_settings()
        assert settings.access_token is None
        assert settings.is_authenticated is False

    @pytest.mark.asyncio
    async def test_exchange_failure_redirects_to_error(self, client, app):
        install_notion(app, lambda r: httpx.Response(400, json={"error": "invalid_grant"}))

        resp = await connect(client, code="bad")

        assert resp.status_code == 302
        assert resp.headers["location"] == "/settings?auth=error"
        status = (await client.get("/api/auth/status")).json()
        assert status["isAuthenticated"] is False

    @pytest.mark.asyncio
    async def test_callback_without_started_flow_is_rejected(self, client, app):
        exchanged = []
        install_notion(app, lambda r: exchanged.append(r) or token_ok(r))

        resp = await client.get("/auth/external/callback?code=abc&state=guessed")

        assert resp.headers["location"] == "/settings?auth=error"
        assert exchanged == []

    @pytest.mark.asyncio
    async def test_mismatched_state_is_rejected(self, client, app):
        exchanged = []
        install_notion(app, lambda r: exchanged.append(r) or token_ok(r))
        await start_oauth(client)

        resp = await client.get("/auth/external/callback?code=abc&state=other")

        assert resp.headers["location"] == "/settings?auth=error"
        assert exchanged == []
        status = (await client.get("/api/auth/status")).json()
        assert status["isAuthenticated"] is False

    @pytest.mark.asyncio
    async def test_replayed_callback_is_rejected(self, client, app):
        exchanged = []
        install_notion(app, lambda r: exchanged.append(r) or token_ok(r))
        state = await start_oauth(client)
        url = f"/auth/external/callback?code=abc&state={state}"

        assert (await client.get(url)).headers["location"] == "/settings?auth=success"
        assert (await client.get(url)).headers["location"] == "/settings?auth=error"
        assert len(exchanged) == 1


class TestStatusAndDisconnect:

    @pytest.mark.asyncio
    async def test_status_unauthenticated(self, client):
        resp = await client.get("/api/auth/status")
        assert resp.status_code == 200
        assert resp.json() == {"isAuthenticated": False, "workspaceId": None}

    @pytest.mark.asyncio
    async def test_disconnect_clears_session(self, client, app):
        install_notion(app, token_ok)
        await connect(client)

        resp = await client.post("/api/auth/disconnect")

        assert resp.status_code == 200
        assert resp.json() == {"success": True}
        status = (await client.get("/api/auth/status")).json()
        assert status == {"isAuthenticated": False, "workspaceId": None}
