"""
StockX OAuth routes: login redirect and authorization callback.
"""

import logging
from typing import Optional

from fastapi import APIRouter
from fastapi.responses import HTMLResponse, PlainTextResponse, RedirectResponse

from ..config import settings
from ..dependencies import get_session_manager, get_token_store
from ..marketplace import AuthExchangeFailed

logger = logging.getLogger(__name__)

router = APIRouter()

STATE_PURPOSE = "stockx-login"


def _redirect_uri() -> str:
    return f"{settings.app_url.rstrip('/')}/callback"


@router.get("/stockx/login")
async def stockx_login():
    """Redirect to the StockX authorization page."""
    if not settings.stockx_client_id:
        return PlainTextResponse("STOCKX_CLIENT_ID is missing from .env", status_code=500)
    if not settings.app_url:
        return PlainTextResponse("APP_URL is missing", status_code=500)

    state = get_session_manager().issue_state(STATE_PURPOSE)
    url = get_token_store().authorization_url(_redirect_uri(), state)
    return RedirectResponse(url=url, status_code=302)


@router.get("/callback")
async def stockx_callback(
    code: Optional[str] = None,
    error: Optional[str] = None,
    state: Optional[str] = None,
):
    """Exchange the authorization code for tokens."""
    if error:
        return PlainTextResponse(f"Error from StockX: {error}", status_code=400)

    if not code:
        return PlainTextResponse("Missing code", status_code=400)

    if not get_session_manager().verify_state(state, STATE_PURPOSE):
        return PlainTextResponse("Invalid or expired state", status_code=400)

    try:
        await get_token_store().exchange_code(code, _redirect_uri())
    except AuthExchangeFailed as e:
        logger.error(f"StockX authorization failed: {e.body}")
        return PlainTextResponse(f"Failed to auth: {e}", status_code=500)

    return HTMLResponse(
        "<h1>Authorized!</h1><p>You can now go back to the app and send POST requests.</p>"
    )
