"""
Authentication module.
"""

from sneaker_sync.auth.password import hash_password, verify_password
from sneaker_sync.auth.session import SessionManager, SESSION_COOKIE_NAME

__all__ = [
    "hash_password",
    "verify_password",
    "SessionManager",
    "SESSION_COOKIE_NAME",
]
