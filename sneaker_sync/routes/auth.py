"""
Authentication routes - login/logout.
"""

import asyncio
import time
from collections import defaultdict
from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ..config import settings
from ..dependencies import get_session_manager, check_auth
from ..auth import verify_password

router = APIRouter()

# Brute force protection: track failed login attempts by IP
failed_attempts = defaultdict(list)
LOCKOUT_THRESHOLD = 5  # Lock after 5 failed attempts
LOCKOUT_DURATION = 300  # 5 minutes in seconds


class LoginRequest(BaseModel):
    password: str


@router.get("/login")
async def login_status(request: Request):
    """Report whether the caller already holds a valid session."""
    return {"authenticated": check_auth(request)}


@router.post("/login")
async def login(request: Request, body: LoginRequest):
    """Start an admin session, with brute force protection."""
    session_manager = get_session_manager()
    client_ip = request.client.host if request.client else "unknown"
    current_time = time.time()

    # Clean up old attempts
    failed_attempts[client_ip] = [
        attempt_time for attempt_time in failed_attempts[client_ip]
        if current_time - attempt_time < LOCKOUT_DURATION
    ]

    if len(failed_attempts[client_ip]) >= LOCKOUT_THRESHOLD:
        remaining = int(LOCKOUT_DURATION - (current_time - failed_attempts[client_ip][0]))
        return JSONResponse(
            {"status": "error", "message": f"Too many failed attempts. Try again in {remaining} seconds."},
            status_code=429
        )

    if settings.admin_password_hash and verify_password(body.password, settings.admin_password_hash):
        failed_attempts[client_ip] = []
        response = JSONResponse({"status": "success"})
        session_manager.create_session(response)
        return response

    failed_attempts[client_ip].append(current_time)

    # Slow down brute force (increases with each attempt)
    delay = min(len(failed_attempts[client_ip]) * 0.5, 3)
    await asyncio.sleep(delay)

    return JSONResponse(
        {"status": "error", "message": "Invalid password"},
        status_code=401
    )


@router.post("/logout")
async def logout():
    """End the admin session."""
    session_manager = get_session_manager()
    response = JSONResponse({"status": "success"})
    session_manager.clear_session(response)
    return response
