"""Notion OAuth endpoints and session-held connection state."""

import logging
import secrets
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse

from app.api.deps import get_notion_client
from app.core.rate_limit import RateLimit
from app.schemas.responses import AuthStatusResponse, DisconnectResponse
from app.services.notion import NotionAuthError, NotionClient

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])

SESSION_KEYS = ("notion_access_token", "notion_workspace_id", "notion_bot_id")
STATE_KEY = "notion_oauth_state"
SUCCESS_REDIRECT = "/settings?auth=success"
ERROR_REDIRECT = "/settings?auth=error"


@router.get("/auth/external", dependencies=[Depends(RateLimit("auth"))])
async def start_oauth(request: Request, notion: NotionClient = Depends(get_notion_client)):
    """Send the user to the Notion consent screen."""
    state = secrets.token_urlsafe(24)
    request.session[STATE_KEY] = state
    return RedirectResponse(url=notion.authorize_url(state), status_code=302)


@router.get("/auth/external/callback", dependencies=[Depends(RateLimit("oauth_callback"))])
async def oauth_callback(
    request: Request,
    code: str | None = None,
    state: str | None = None,
    notion: NotionClient = Depends(get_notion_client),
):
    """Exchange the authorization code and keep the token in the session."""
    if not code:
        raise HTTPException(status_code=400, detail="Missing authorization code")

    # Single use: a replayed callback finds no state to match
    expected = request.session.pop(STATE_KEY, None)
    if not expected or not state or not secrets.compare_digest(expected, state):
        logger.warning("Notion OAuth callback with missing or mismatched state")
        return RedirectResponse(url=ERROR_REDIRECT, status_code=302)

    try:
        token = await notion.exchange_code(code)
    except NotionAuthError as e:
        logger.error(f"Notion OAuth error: {e}")
        return RedirectResponse(url=ERROR_REDIRECT, status_code=302)

    request.session["notion_access_token"] = token.access_token
    request.session["notion_workspace_id"] = token.workspace_id
    request.session["notion_bot_id"] = token.bot_id
    logger.info(f"Connected Notion workspace {token.workspace_id}")

    return RedirectResponse(url=SUCCESS_REDIRECT, status_code=302)


@router.get("/api/auth/status", response_model=AuthStatusResponse, dependencies=[Depends(RateLimit("auth_api"))])
async def auth_status(request: Request):
    return AuthStatusResponse(
        is_authenticated=bool(request.session.get("notion_access_token")),
        workspace_id=request.session.get("notion_workspace_id"),
    )


@router.post("/api/auth/disconnect", response_model=DisconnectResponse, dependencies=[Depends(RateLimit("auth_api"))])
async def disconnect(request: Request):
    """Forget the session's Notion connection."""
    for key in SESSION_KEYS:
        request.session.pop(key, None)
    return DisconnectResponse(success=True)
