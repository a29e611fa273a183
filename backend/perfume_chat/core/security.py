# backend/perfume_chat/core/security.py

import jwt
import bcrypt
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from perfume_chat.core.config_loader import settings


ALGORITHM = "HS256"

USER_TYPES = ("guest", "regular")


@dataclass
class SessionUser:
    id: str
    type: str


@dataclass
class Session:
    user: SessionUser


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
def create_access_token(subject: str, user_type: str = "regular", expires_minutes: Optional[int] = None) -> str:
    """
    Default expiration comes from settings (7 days)
    """
    if expires_minutes is None:
        expires_minutes = settings.access_token_expire_minutes
    expire = datetime.utcnow() + timedelta(minutes=expires_minutes)

    payload = {
        "sub": subject,
        "type": user_type,
        "exp": expire,
        "iat": datetime.utcnow(),
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


# ---------------------------------------------------------------------------
# SESSION
# ---------------------------------------------------------------------------
def get_session(authorization: Optional[str]) -> Optional[Session]:
    """Resolve an `Authorization: Bearer <token>` header to a session."""
    if not authorization or not authorization.startswith("Bearer "):
        return None

    payload = decode_token(authorization.split(" ", 1)[1])
    if not payload or not payload.get("sub"):
        return None

    user_type = payload.get("type")
    if user_type not in USER_TYPES:
        user_type = "regular"

    return Session(user=SessionUser(id=str(payload["sub"]), type=user_type))
