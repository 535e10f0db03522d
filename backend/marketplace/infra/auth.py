"""Authentication helpers for FastAPI endpoints and socket connections.

- Bearer JWTs (HS256, settings.secret_key) are the only credential outside dev.
- Dev mode additionally accepts X-User-Id / X-User-Roles headers for local tools.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidTokenError

from marketplace.infra import jwt as jwt_helper
from marketplace.settings import settings


@dataclass(slots=True)
class AuthenticatedUser:
	id: str
	phone: Optional[str] = None
	roles: Tuple[str, ...] = ()

	def has_role(self, role: str) -> bool:
		return role in self.roles


_bearer_scheme = HTTPBearer(auto_error=False)


def _parse_roles(claim: object) -> Tuple[str, ...]:
	if isinstance(claim, (list, tuple)):
		return tuple(str(r).strip() for r in claim if str(r).strip())
	if isinstance(claim, str):
		return tuple(part.strip() for part in claim.split(",") if part.strip())
	return ()


def parse_token(token: str) -> AuthenticatedUser:
	"""Decode a token into an AuthenticatedUser; raises ValueError when invalid."""
	try:
		payload = jwt_helper.decode_access(token)
	except InvalidTokenError:
		raise ValueError("invalid_token") from None
	phone = payload.get("phone")
	return AuthenticatedUser(
		id=str(payload["sub"]),
		phone=str(phone) if phone else None,
		roles=_parse_roles(payload.get("roles") or payload.get("role")),
	)


def verify_access_jwt(token: str) -> AuthenticatedUser:
	try:
		return parse_token(token)
	except ValueError:
		# Normalise all decode failures to invalid_token for the API surface
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token") from None


async def get_current_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_user_roles: Optional[str] = Header(default=None, alias="X-User-Roles"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> AuthenticatedUser:
	"""Resolve the authenticated user.

	In development we allow simple headers. In all other environments, headers are
	ignored and a valid Bearer JWT is required.
	"""
	if credentials and credentials.scheme.lower() == "bearer":
		return verify_access_jwt(credentials.credentials)

	if settings.is_dev() and x_user_id:
		return AuthenticatedUser(id=x_user_id, roles=_parse_roles(x_user_roles))

	raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")


def require_roles(*required: str):
	"""Return a dependency that enforces the presence of any of the given roles.

	Usage:
		@router.post("/verify", dependencies=[Depends(require_roles("admin"))])
	"""

	async def _guard(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
		if any(user.has_role(role) for role in required):
			return user
		raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_role")

	return _guard
