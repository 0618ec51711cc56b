"""
Admin password hashing with bcrypt.
"""

from passlib.context import CryptContext

_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a password for ADMIN_PASSWORD_HASH."""
    return _context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    """
    Check a password against a stored hash.

    Returns:
        False for a wrong password or a malformed hash
    """
    try:
        return _context.verify(password, hashed)
    except ValueError:
        return False
