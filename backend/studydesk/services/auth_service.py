"""JWT authentication for StudyDesk.

Tokens are issued by the external auth provider; this service only
verifies them. ``create_access_token`` exists for tooling and tests.

Claims read from the token:
- **sub**: user id (owner key on every row)
- **email**: optional
- **is_anonymous**: anonymous sessions skip the approval gate
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from studydesk.config import Settings, get_settings
from studydesk.database import get_db
from studydesk.exceptions import Forbidden, Unauthenticated
from studydesk.models import Profile

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


def create_access_token(
    data: dict,
    expires_delta: timedelta | None = None,
    *,
    settings: Settings | None = None,
) -> str:
    """Create a JWT access token.

    Args:
        data: Claims to encode (must include ``sub``).
        expires_delta: Lifetime of the token; defaults to one hour.
        settings: Optional settings override (useful for testing).
    """
    if settings is None:
        settings = get_settings()

    to_encode = data.copy()
    expire = datetime.now(UTC) + (expires_delta if expires_delta is not None else timedelta(hours=1))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_token(token: str, *, settings: Settings | None = None) -> dict:
    """Decode and verify a JWT token.

    Raises:
        JWTError: If the token is invalid, expired, or tampered with.
    """
    if settings is None:
        settings = get_settings()
    return jwt.decode(
        token,
        settings.JWT_SECRET,
        algorithms=[settings.JWT_ALGORITHM],
        options={"verify_aud": False},
    )


async def get_current_user(token: str | None = Depends(oauth2_scheme)) -> dict:
    """FastAPI dependency that extracts the current user from a Bearer token.

    Returns a dict with:
    - user_id: token subject
    - email / username: email claim (may be None)
    - is_anonymous: bool
    """
    if not token:
        raise Unauthenticated()

    try:
        payload = verify_token(token)
    except JWTError:
        logger.debug("Rejected bearer token", exc_info=True)
        raise Unauthenticated() from None

    user_id: str | None = payload.get("sub")
    if not user_id:
        raise Unauthenticated()

    email = payload.get("email")
    return {
        "user_id": str(user_id),
        "email": email,
        "username": email,
        "is_anonymous": bool(payload.get("is_anonymous", False)),
    }


async def is_approved(db: AsyncSession, user_id: str) -> bool:
    """Approval check against ``profiles``.

    Only an existing profile with ``approved = false`` blocks; a user with
    no profile row is let through.
    """
    result = await db.execute(select(Profile.approved).where(Profile.id == user_id))
    approved = result.scalar_one_or_none()
    return approved is None or bool(approved)


async def get_approved_user(
    current_user: dict = Depends(get_current_user),  # noqa: B008
    db: AsyncSession = Depends(get_db),  # noqa: B008
) -> dict:
    """Like :func:`get_current_user` but rejects accounts pending approval."""
    if current_user["is_anonymous"]:
        return current_user
    if not await is_approved(db, current_user["user_id"]):
        raise Forbidden(message_key="auth.pending_approval")
    return current_user


def is_admin(email: str | None, *, settings: Settings | None = None) -> bool:
    if not email:
        return False
    if settings is None:
        settings = get_settings()
    return email.strip().lower() in settings.admin_emails
