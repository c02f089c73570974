from __future__ import annotations
from datetime import datetime, timedelta, timezone
from typing import Any
import jwt
from engage.config import settings

# Tokens are issued by the identity service with the same shared secret.
# make_access_token mirrors its format for local tooling and tests.

ACCESS_TTL_MIN = 15

def make_access_token(sub: str, ttl_min: int = ACCESS_TTL_MIN) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": sub,
        "type": "access",
        "iat": now.timestamp(),
        "exp": int((now + timedelta(minutes=ttl_min)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_alg)

def decode_token(token: str) -> dict[str, Any]:
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_alg])
