# backend/app/core/security.py

import jwt
import bcrypt
from datetime import datetime, timedelta
from typing import Optional

from app.core.config_loader import settings
from app.core.errors import AuthenticationError


ALGORITHM = "HS256"


# ---------------------------------------------------------------------------
# PASSWORD HASHING
# ---------------------------------------------------------------------------
def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, hashed: str) -> bool:
    return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))


# ---------------------------------------------------------------------------
# JWT CREATION
# ---------------------------------------------------------------------------
def create_access_token(subject: str, expires_minutes: Optional[int] = None) -> str:
    """
    Default expiration comes from settings.access_token_expire_minutes
    """
    minutes = expires_minutes if expires_minutes is not None else settings.access_token_expire_minutes
    now = datetime.utcnow()

    payload = {
        "sub": subject,
        "exp": now + timedelta(minutes=minutes),
        "iat": now,
    }

    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=ALGORITHM)


# ---------------------------------------------------------------------------
# JWT VERIFY
# ---------------------------------------------------------------------------
def decode_token(token: str) -> Optional[dict]:
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[ALGORITHM])
    except jwt.PyJWTError:
        return None


def user_id_from_header(authorization: Optional[str]) -> str:
    """Resolve the `sub` claim of a `Bearer <token>` header or raise 401."""
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Missing or invalid token")
    payload = decode_token(authorization.split(" ", 1)[1])
    if not payload or not payload.get("sub"):
        raise AuthenticationError("Invalid token")
    return str(payload["sub"])
