"""Bearer-token authentication for the learner API.

Tokens are issued by the external session provider and signed with the shared
JWT_SECRET (HS256). ``sub`` carries the user id and ``role`` the user's role.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Request

from futuretek.config import settings
from futuretek.routes.envelope import ApiError

JWT_ALGORITHM = "HS256"
JWT_EXPIRY_HOURS = 72

ROLES = {"admin", "faculty", "college", "jyotishi", "student"}
# Roles that may see answer keys and other users' data
STAFF_ROLES = {"admin", "faculty"}


def create_access_token(user_id: str, role: str = "student", expires_in: Optional[timedelta] = None) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "role": role,
        "iat": now,
        "exp": now + (expires_in or timedelta(hours=JWT_EXPIRY_HOURS)),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise ApiError("Token expired", "UNAUTHORIZED", 401)
    except jwt.InvalidTokenError:
        raise ApiError("Invalid token", "UNAUTHORIZED", 401)


async def get_current_user(request: Request) -> dict:
    """Extract and validate the current user from the JWT token."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.lower().startswith("bearer "):
        raise ApiError("Not authenticated", "UNAUTHORIZED", 401)

    token = auth_header.split(" ", 1)[1].strip()
    if not token:
        raise ApiError("Empty token", "UNAUTHORIZED", 401)

    payload = decode_token(token)
    user_id = payload.get("sub")
    if not user_id:
        raise ApiError("Invalid token", "UNAUTHORIZED", 401)

    role = payload.get("role") or "student"
    if role not in ROLES:
        role = "student"
    return {"id": user_id, "role": role}


# ── Convenience helpers for route-level auth ────────────────────────

def is_admin(user: dict) -> bool:
    return user["role"] == "admin"


def is_staff(user: dict) -> bool:
    return user["role"] in STAFF_ROLES


def require_user_match(user: dict, user_id: str) -> None:
    """A learner may only act on their own records; admins may act on anyone's."""
    if user_id != user["id"] and not is_admin(user):
        raise ApiError("Access denied", "FORBIDDEN", 403)


def require_admin(user: dict) -> None:
    if not is_admin(user):
        raise ApiError("Admin access required", "FORBIDDEN", 403)
