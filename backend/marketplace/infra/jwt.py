"""HS256 access tokens for the HTTP API and the relay socket handshake."""

from __future__ import annotations

import time
from typing import Iterable, Optional

import jwt

from marketplace.settings import settings

ISSUER = "marketplace-api"
AUDIENCE = "marketplace-fe"
_ALGORITHM = "HS256"
_REQUIRED_CLAIMS = ["exp", "iat", "iss", "aud", "sub"]


def issue_access_token(
    subject: str,
    *,
    phone: Optional[str] = None,
    roles: Iterable[str] = (),
    ttl_seconds: Optional[int] = None,
) -> str:
    issued_at = int(time.time())
    lifetime = settings.access_ttl_minutes * 60 if ttl_seconds is None else ttl_seconds
    claims = {
        "sub": subject,
        "iss": ISSUER,
        "aud": AUDIENCE,
        "iat": issued_at,
        "exp": issued_at + lifetime,
    }
    if phone:
        claims["phone"] = phone
    role_list = [role for role in roles if role]
    if role_list:
        claims["roles"] = role_list
    return jwt.encode(claims, settings.secret_key, algorithm=_ALGORITHM)


def decode_access(token: str) -> dict:
    """Return the verified claims; raises jwt.InvalidTokenError subclasses."""
    return jwt.decode(
        token,
        settings.secret_key,
        algorithms=[_ALGORITHM],
        audience=AUDIENCE,
        issuer=ISSUER,
        leeway=5,
        options={"require": _REQUIRED_CLAIMS},
    )
