"""
Cookie-based admin sessions, plus signed OAuth state values.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import Request, Response
from itsdangerous import URLSafeTimedSerializer, BadSignature, SignatureExpired


SESSION_MAX_AGE = 24 * 60 * 60  # seconds
SESSION_COOKIE_NAME = "session"
OAUTH_STATE_MAX_AGE = 10 * 60  # seconds


class SessionManager:
    """Manages signed cookie-based sessions."""

    def __init__(self, secret_key: str, secure_cookies: bool = False):
        """
        Initialize session manager.

        Args:
            secret_key: Secret key for signing cookies
            secure_cookies: Mark cookies Secure (HTTPS deployments)
        """
        self._serializer = URLSafeTimedSerializer(secret_key, salt="admin-session")
        self._state_serializer = URLSafeTimedSerializer(secret_key, salt="oauth-state")
        self.secure_cookies = secure_cookies

    def create_session(self, response: Response, user_id: str = "admin") -> None:
        """Sign the session data into a cookie on ``response``."""
        token = self._serializer.dumps({
            "user_id": user_id,
            "created_at": datetime.now(timezone.utc).isoformat(),
        })

        response.set_cookie(
            key=SESSION_COOKIE_NAME,
            value=token,
            max_age=SESSION_MAX_AGE,
            httponly=True,
            samesite="lax",
            secure=self.secure_cookies,
        )

    def get_session(self, request: Request) -> Optional[dict]:
        """
        Get session data from request cookie.

        Returns:
            Session data dict or None if invalid/expired
        """
        token = request.cookies.get(SESSION_COOKIE_NAME)
        if not token:
            return None

        try:
            return self._serializer.loads(token, max_age=SESSION_MAX_AGE)
        except (BadSignature, SignatureExpired):
            return None

    def clear_session(self, response: Response) -> None:
        response.delete_cookie(
            key=SESSION_COOKIE_NAME,
            httponly=True,
            samesite="lax",
        )

    def is_authenticated(self, request: Request) -> bool:
        return self.get_session(request) is not None

    def issue_state(self, purpose: str) -> str:
        """Signed, expiring value for an OAuth ``state`` parameter."""
        return self._state_serializer.dumps({"purpose": purpose})

    def verify_state(self, state: Optional[str], purpose: str) -> bool:
        if not state:
            return False
        try:
            data = self._state_serializer.loads(state, max_age=OAUTH_STATE_MAX_AGE)
        except (BadSignature, SignatureExpired):
            return False
        return isinstance(data, dict) and data.get("purpose") == purpose
