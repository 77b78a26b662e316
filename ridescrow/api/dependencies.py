"""FastAPI dependency injection helpers."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ridescrow.api.security import decode_token
from ridescrow.config import settings
from ridescrow.domain.entities import LedgerPolicy
from ridescrow.infrastructure.database import async_session_factory, read_session_factory

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncSession:  # type: ignore[misc]
    """Yield a ledger session; commit on success, rollback on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_read_db() -> AsyncSession:  # type: ignore[misc]
    """Yield a session on the public read mirror; never commits."""
    async with read_session_factory() as session:
        try:
            yield session
        finally:
            await session.rollback()


def get_policy() -> LedgerPolicy:
    return LedgerPolicy.from_settings(settings)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> str:
    """Return the caller identity (``sub``) of a valid bearer token, else 401."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise _unauthorized("Missing authentication token.")
    try:
        payload = decode_token(credentials.credentials)
    except jwt.PyJWTError:
        raise _unauthorized("Invalid or expired token.")

    identity = payload.get("sub")
    if not isinstance(identity, str) or not identity.strip():
        raise _unauthorized("Invalid token.")
    return identity.strip()
