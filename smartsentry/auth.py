"""SmartSentry Backend — Password hashing and JWT tokens"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt

from smartsentry.config import JWT_ALGORITHM, JWT_EXPIRE_DAYS, JWT_SECRET

logger = logging.getLogger("smartsentry.auth")


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=10)).decode()


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        return False


def create_token(user_id: str, secret: str = JWT_SECRET, expires_days: int = JWT_EXPIRE_DAYS) -> str:
    payload = {
        "userId": user_id,
        "iat": datetime.now(timezone.utc),
        "exp": datetime.now(timezone.utc) + timedelta(days=expires_days),
    }
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def extract_token(header_value: Optional[str]) -> Optional[str]:
    """Token from an Authorization header; both 'Bearer <token>' and a raw token are accepted."""
    if not header_value:
        return None
    value = header_value.strip()
    if value.lower().startswith("bearer "):
        value = value[7:].strip()
    return value or None


def decode_token(token: str, secret: str = JWT_SECRET) -> Optional[str]:
    """User id carried by a valid token, or None if invalid/expired."""
    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.PyJWTError as e:
        logger.info(f"Rejected token: {e}")
        return None
    user_id = payload.get("userId")
    return str(user_id) if user_id else None
