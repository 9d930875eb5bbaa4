"""Authentication helpers for FastAPI endpoints.

Credential storage and session cookies live outside this service. Requests
arrive with a HS256 bearer token minted by the auth collaborator; in
development a plain ``X-User-Id`` header is also honoured for local tools.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from inkwell.infra import jwt as jwt_helper
from inkwell.settings import settings


@dataclass(slots=True)
class AuthenticatedUser:
	id: int
	username: Optional[str] = None


_bearer_scheme = HTTPBearer(auto_error=False)


def _parse_user_id(raw: object) -> int:
	try:
		user_id = int(str(raw).strip())
	except (TypeError, ValueError):
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token") from None
	if user_id <= 0:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	return user_id


def verify_access_jwt(token: str) -> AuthenticatedUser:
	"""Decode and validate an access JWT and return an AuthenticatedUser."""
	try:
		payload = jwt_helper.decode_access(token)
	except Exception:
		# Normalise all decode failures to invalid_token for the API surface
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token") from None
	username = payload.get("username")
	return AuthenticatedUser(
		id=_parse_user_id(payload.get("sub")),
		username=str(username) if username is not None else None,
	)


async def get_optional_user(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Optional[AuthenticatedUser]:
	"""Resolve the viewer when credentials are present, else None.

	Invalid credentials still fail with 401; only their absence yields None.
	"""
	if credentials and credentials.scheme.lower() == "bearer":
		return verify_access_jwt(credentials.credentials)
	# In dev only, allow X-User-Id fallback for local tools
	if settings.is_dev() and x_user_id:
		return AuthenticatedUser(id=_parse_user_id(x_user_id))
	return None


async def get_current_user(
	user: Optional[AuthenticatedUser] = Depends(get_optional_user),
) -> AuthenticatedUser:
	if user is None:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="authentication_required")
	return user
