import os
import time
import logging
from typing import Optional, Dict, Any

import jwt

logger = logging.getLogger(__name__)

ALGORITHM = "HS256"
DEFAULT_TTL_SECONDS = 60 * 60 * 24 * 7


def _secret() -> str:
    return os.getenv("SECRET_KEY") or "dev-secret-change-me"


def create_token(user_id: int, *, role: Optional[str] = None, ttl_seconds: int = DEFAULT_TTL_SECONDS) -> str:
    """Sign a short access token. Only used by tooling and tests; the API never issues tokens."""
    now = int(time.time())
    payload = {
        "sub": str(user_id),
        "iat": now,
        "exp": now + int(ttl_seconds),
        "type": "access",
    }
    if role:
        payload["role"] = role
    return jwt.encode(payload, _secret(), algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    if not token:
        return None
    try:
        return jwt.decode(token, _secret(), algorithms=[ALGORITHM])
    except jwt.ExpiredSignatureError:
        logger.info("jwt_expired")
        return None
    except jwt.InvalidTokenError:
        return None


def get_bearer_token(auth_header: Optional[str]) -> Optional[str]:
    if not auth_header:
        return None
    parts = auth_header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def user_id_from_payload(payload: Optional[Dict[str, Any]]) -> Optional[int]:
    if not payload:
        return None
    try:
        return int(payload.get("sub"))
    except (TypeError, ValueError):
        return None
