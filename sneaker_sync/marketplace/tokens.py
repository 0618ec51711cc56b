"""
OAuth token lifecycle for the StockX API.

The store caches the token pair in memory and writes every change through
to an injected storage backend before updating the cache.
"""

import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, Field

from .errors import AuthExchangeFailed

logger = logging.getLogger(__name__)

OAUTH_SCOPE = "offline_access openid"
OAUTH_AUDIENCE = "gateway.stockx.com"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenState(BaseModel):
    """Access/refresh token pair as last issued by the OAuth server."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    expires_in: Optional[int] = None
    updated_at: datetime = Field(default_factory=_utcnow)

    def merged(self, payload: Dict[str, Any]) -> "TokenState":
        """New state with non-empty token fields from ``payload`` applied."""
        data = self.model_dump()
        if not isinstance(payload, dict):
            payload = {}
        for key in ("access_token", "refresh_token", "expires_in"):
            if payload.get(key) is not None:
                data[key] = payload[key]
        data["updated_at"] = _utcnow()
        return TokenState(**data)


class TokenStorage(ABC):
    """Durable home for the token state."""

    @abstractmethod
    async def load(self) -> Optional[TokenState]:
        ...

    @abstractmethod
    async def save(self, state: TokenState) -> None:
        ...


class FileTokenStorage(TokenStorage):
    """Token state as a JSON file at a writable path."""

    def __init__(self, path: str):
        self.path = path

    async def load(self) -> Optional[TokenState]:
        if not os.path.exists(self.path):
            return None

        try:
            with open(self.path, encoding="utf-8") as f:
                return TokenState.model_validate(json.load(f))
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable token file {self.path}: {e}")
            return None

    async def save(self, state: TokenState) -> None:
        os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            f.write(state.model_dump_json())


class DatabaseTokenStorage(TokenStorage):
    """Token state in the marketplace_credentials table."""

    def __init__(self, db):
        self.db = db

    async def load(self) -> Optional[TokenState]:
        credential = await self.db.get_marketplace_credential()
        if credential is None:
            return None
        return TokenState(
            access_token=credential.access_token,
            refresh_token=credential.refresh_token,
            expires_in=credential.expires_in,
            updated_at=credential.updated_at,
        )

    async def save(self, state: TokenState) -> None:
        await self.db.save_marketplace_credential(
            access_token=state.access_token or "",
            refresh_token=state.refresh_token,
            expires_in=state.expires_in,
        )


class TokenStore:
    """
    Supplies and refreshes the marketplace bearer token.

    Concurrent refreshes are not serialized: the last writer wins, and a
    redundant refresh is harmless for the OAuth server.
    """

    def __init__(
        self,
        storage: TokenStorage,
        client_id: str,
        client_secret: str,
        auth_url: str = "https://accounts.stockx.com",
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize token store.

        Args:
            storage: Durable storage backend
            client_id: OAuth client id
            client_secret: OAuth client secret
            auth_url: Base URL of the OAuth server
            http_client: Optional shared HTTP client
        """
        self.storage = storage
        self.client_id = client_id
        self.client_secret = client_secret
        self.auth_url = auth_url.rstrip("/")

        self._client = http_client
        self._owns_client = http_client is None
        self._state: Optional[TokenState] = None

    @property
    def token_url(self) -> str:
        return f"{self.auth_url}/oauth/token"

    @property
    def state(self) -> Optional[TokenState]:
        return self._state

    def authorization_url(self, redirect_uri: str, state: str) -> str:
        """URL of the login page that redirects back with a code."""
        params = {
            "client_id": self.client_id,
            "response_type": "code",
            "redirect_uri": redirect_uri,
            "scope": OAUTH_SCOPE,
            "audience": OAUTH_AUDIENCE,
            "state": state,
        }
        return f"{self.auth_url}/authorize?{urlencode(params)}"

    async def ensure_access_token(self) -> Optional[str]:
        """Current access token, loading persisted state on first use."""
        if self._state is None or not self._state.access_token:
            self._state = await self.storage.load()
        return self._state.access_token if self._state else None

    async def exchange_code(self, code: str, redirect_uri: str) -> TokenState:
        """
        Exchange an authorization code for a token pair and persist it.

        Raises:
            AuthExchangeFailed: With the upstream error body verbatim
        """
        try:
            response = await self._post_token({
                "grant_type": "authorization_code",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "code": code,
                "redirect_uri": redirect_uri,
            })
        except httpx.HTTPError as e:
            raise AuthExchangeFailed({"error": str(e)}) from e

        payload = _json_body(response)
        if not response.is_success:
            logger.error(f"Token exchange error: {payload}")
            raise AuthExchangeFailed(payload, response.status_code)

        logger.info("Token exchange succeeded")
        return await self._persist(payload)

    async def refresh(self) -> bool:
        """
        Refresh the access token using the held refresh token.

        Returns:
            True if a new token was persisted, False otherwise (logged)
        """
        latest = await self.storage.load()
        if latest is not None:
            self._state = latest

        refresh_token = self._state.refresh_token if self._state else None
        if not refresh_token:
            logger.error("No refresh token available")
            return False

        try:
            response = await self._post_token({
                "grant_type": "refresh_token",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": refresh_token,
            })
        except httpx.HTTPError as e:
            logger.error(f"Token refresh exception: {e}")
            return False

        payload = _json_body(response)
        if not response.is_success:
            logger.error(f"Token refresh error: {payload}")
            return False

        await self._persist(payload)
        logger.info("Token successfully refreshed")
        return True

    async def _persist(self, payload: Dict[str, Any]) -> TokenState:
        """Merge over the durable state, write it, then update the cache."""
        existing = await self.storage.load() or self._state or TokenState()
        state = existing.merged(payload)
        await self.storage.save(state)
        self._state = state
        return state

    async def _post_token(self, data: Dict[str, str]) -> httpx.Response:
        client = await self._get_client()
        return await client.post(
            self.token_url,
            data=data,
            headers={"Accept": "application/json"},
        )

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(30.0, connect=10.0))
            self._owns_client = True
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this store created it."""
        if self._owns_client and self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"error": response.text}
