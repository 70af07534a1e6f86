"""Notion API client - OAuth token exchange and scope-checked content access."""

import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlencode
import httpx

logger = logging.getLogger(__name__)

AUTHORIZE_SCOPES = ["user:read", "content:read", "content:write", "workspace:read"]


class NotionAuthError(Exception):
    """OAuth code exchange failed."""


class MissingScopeError(Exception):
    """The access token was not granted the scope an operation needs."""

    def __init__(self, scope: str):
        super().__init__(f"Missing required scope: {scope}")
        self.scope = scope


@dataclass
class NotionToken:
    access_token: str
    workspace_id: str | None
    bot_id: str | None


class NotionClient:
    """Async client for the Notion OAuth endpoints."""

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        redirect_uri: str,
        api_url: str = "https://api.notion.com/v1",
        notion_version: str = "2022-06-28",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.redirect_uri = redirect_uri
        self.api_url = api_url.rstrip('/')
        self.notion_version = notion_version
        self._transport = transport

    def authorize_url(self, state: str) -> str:
        """URL the user is redirected to in order to grant access.

        `state` comes back unchanged on the callback and ties it to this request.
        """
        query = urlencode({
            "client_id": self.client_id,
            "response_type": "code",
            "owner": "user",
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(AUTHORIZE_SCOPES),
            "state": state,
        })
        return f"{self.api_url}/oauth/authorize?{query}"

    async def exchange_code(self, code: str) -> NotionToken:
        """Exchange an authorization code for an access token."""
        async with httpx.AsyncClient(transport=self._transport, timeout=30.0) as client:
            try:
                response = await client.post(
                    f"{self.api_url}/oauth/token",
                    auth=(self.client_id, self.client_secret),
                    json={
                        "grant_type": "authorization_code",
                        "code": code,
                        "redirect_uri": self.redirect_uri,
                    },
                )
            except httpx.HTTPError as e:
                raise NotionAuthError(f"Token request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            raise NotionAuthError(f"Unexpected token response: HTTP {response.status_code}")

        if response.status_code >= 400:
            raise NotionAuthError(data.get("error") or "Failed to exchange code for token")

        access_token = data.get("access_token")
        if not access_token:
            raise NotionAuthError("Token response did not include an access token")

        return NotionToken(
            access_token=access_token,
            workspace_id=data.get("workspace_id"),
            bot_id=data.get("bot_id"),
        )

    def content(self, access_token: str, scopes: list[str]) -> "NotionContentClient":
        return NotionContentClient(
            access_token,
            scopes,
            api_url=self.api_url,
            notion_version=self.notion_version,
            transport=self._transport,
        )


class NotionContentClient:
    """Content API access limited to the scopes the token was granted."""

    def __init__(
        self,
        access_token: str,
        scopes: list[str],
        api_url: str = "https://api.notion.com/v1",
        notion_version: str = "2022-06-28",
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.scopes = set(scopes)
        self.api_url = api_url.rstrip('/')
        self.client = httpx.AsyncClient(
            headers={
                "Authorization": f"Bearer {access_token}",
                "Notion-Version": notion_version,
            },
            transport=transport,
            timeout=30.0,
        )

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    def has_scope(self, scope: str) -> bool:
        return scope in self.scopes

    def _require(self, scope: str) -> None:
        if not self.has_scope(scope):
            raise MissingScopeError(scope)

    async def _request(self, method: str, path: str, json: Optional[dict] = None) -> dict[str, Any]:
        response = await self.client.request(method, f"{self.api_url}{path}", json=json)
        response.raise_for_status()
        return response.json()

    async def search_databases(self) -> list[dict]:
        """All databases shared with the integration."""
        self._require("content:read")
        data = await self._request("POST", "/search", {
            "filter": {"property": "object", "value": "database"},
        })
        results = data.get("results", [])
        logger.info(f"Found {len(results)} databases")
        return results

    async def query_database(self, database_id: str, filter: Optional[dict] = None) -> list[dict]:
        self._require("content:read")
        body = {"filter": filter} if filter else {}
        data = await self._request("POST", f"/databases/{database_id}/query", body)
        return data.get("results", [])

    async def create_page(self, database_id: str, properties: dict) -> dict:
        self._require("content:write")
        return await self._request("POST", "/pages", {
            "parent": {"database_id": database_id},
            "properties": properties,
        })

    async def update_page(self, page_id: str, properties: dict) -> dict:
        self._require("content:write")
        return await self._request("PATCH", f"/pages/{page_id}", {"properties": properties})

    async def get_me(self) -> dict:
        self._require("user:read")
        return await self._request("GET", "/users/me")
