"""
Bearer-token auth. Identity providers (OAuth, wallet sign-in) are external; they hand
out HS256 JWTs whose subject is the user id and whose `roles` claim lists admin roles.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Iterable

from jose import JWTError, jwt

from cfs_backend.config import Settings, get_settings


@dataclass(frozen=True)
class Actor:
    """The authenticated caller."""
    user_id: str
    roles: frozenset[str] = field(default_factory=frozenset)


def create_access_token(
    subject: str,
    roles: Iterable[str] = (),
    settings: Settings | None = None,
) -> str:
    settings = settings or get_settings()
    expire = datetime.now(timezone.utc) + timedelta(minutes=settings.access_token_expire_minutes)
    to_encode = {"sub": subject, "roles": sorted(set(roles)), "exp": expire}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, settings: Settings | None = None) -> Actor | None:
    """Actor for a valid token; None if the token is missing a subject, expired or forged."""
    settings = settings or get_settings()
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None
    subject = payload.get("sub")
    if not subject:
        return None
    roles = payload.get("roles") or []
    if not isinstance(roles, list):
        roles = []
    return Actor(user_id=str(subject), roles=frozenset(str(r) for r in roles))
