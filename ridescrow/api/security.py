"""
Bearer-token helpers.

Tokens are issued by the external signing provider; the ledger only checks
them.  ``sub`` carries the caller identity used for every authorization
decision.  ``create_access_token`` exists for tooling and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

import jwt

from ridescrow.config import settings


def create_access_token(identity: str, expires_minutes: Optional[int] = None) -> str:
    """
    Create a signed JWT access token.

    Payload fields:
    - sub: caller identity
    - exp: expiration (UTC)
    - iat: issued-at (UTC)
    """
    expire_in = (
        expires_minutes
        if expires_minutes is not None
        else settings.access_token_expire_minutes
    )
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": identity,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(minutes=expire_in)).timestamp()),
    }
    return jwt.encode(payload, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Dict[str, Any]:
    """Decode and validate a JWT token, raising jwt exceptions if invalid."""
    return jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
