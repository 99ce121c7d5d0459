"""Password hashing and session-token signing for the portal.

Passwords are verified with bcrypt. Session tokens are HS256 JWTs signed
via python-jose; they carry the user id (``sub``) and the server-side
session id (``sid``).
"""

import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import bcrypt
from dotenv import load_dotenv
from fastapi.security import HTTPBearer
from jose import JWTError, jwt

load_dotenv()

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# JWT configuration
# ---------------------------------------------------------------------------
JWT_SECRET = os.getenv("JWT_SECRET", "portal-dev-secret-change-in-production")
JWT_ALGORITHM = "HS256"
JWT_EXPIRY_HOURS = int(os.getenv("JWT_EXPIRY_HOURS", "24"))

MIN_PASSWORD_LENGTH = 6


# ---------------------------------------------------------------------------
# Password hashing (direct bcrypt)
# ---------------------------------------------------------------------------
def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # Stored value is not a bcrypt hash
        logger.warning("Password hash in unexpected format")
        return False


def looks_hashed(value: str) -> bool:
    return value.startswith(("$2a$", "$2b$", "$2y$"))


# ---------------------------------------------------------------------------
# HTTPBearer scheme (shared with deps.py)
# ---------------------------------------------------------------------------
security = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def session_expiry() -> datetime:
    return datetime.now(timezone.utc) + timedelta(hours=JWT_EXPIRY_HOURS)


def create_session_token(user_id: str, session_id: str, expires_at: Optional[datetime] = None) -> str:
    """Create a signed JWT for the given user and session."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "sid": session_id,
        "exp": expires_at or session_expiry(),
        "iat": now,
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_session_token(token: str) -> Optional[dict[str, Any]]:
    """Return the token claims, or ``None`` for malformed/expired tokens."""
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except JWTError as exc:
        logger.warning("JWT validation failed: %s", exc)
        return None
    if not payload.get("sub") or not payload.get("sid"):
        return None
    return payload
