import logging
import time
from typing import Any, Dict, Optional

import httpx
from fastapi import APIRouter, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from pydantic import BaseModel

from ..errors import Unauthorized
from ..schemas import SyncUserRequest, success_response
from ..settings import Settings
from ..users import UserDirectory
from .deps import get_settings, get_user_directory

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])

bearer_scheme = HTTPBearer(auto_error=False)


class User(BaseModel):
	# Auth0 subject claim
	sub: str


# jwks_url -> (fetched_at, jwks)
_jwks_cache: Dict[str, tuple] = {}


async def _fetch_jwks(settings: Settings) -> Dict[str, Any]:
	url = f"{settings.auth0_issuer}.well-known/jwks.json"
	cached = _jwks_cache.get(url)
	if cached and time.monotonic() - cached[0] < settings.jwks_cache_seconds:
		return cached[1]
	async with httpx.AsyncClient(timeout=10) as client:
		r = await client.get(url)
		r.raise_for_status()
		jwks = r.json()
	_jwks_cache[url] = (time.monotonic(), jwks)
	return jwks


async def _signing_key(token: str, settings: Settings) -> Dict[str, Any]:
	kid = jwt.get_unverified_header(token).get("kid")
	jwks = await _fetch_jwks(settings)
	for key in jwks.get("keys", []):
		if key.get("kid") == kid:
			return key
	raise Unauthorized("Unknown signing key")


async def verify_token(token: str, settings: Settings) -> Dict[str, Any]:
	"""Decode and validate a bearer token; Auth0 RS256 when configured, shared-secret otherwise."""
	try:
		if settings.auth0_domain:
			key = await _signing_key(token, settings)
			return jwt.decode(
				token,
				key,
				algorithms=["RS256"],
				audience=settings.auth0_audience,
				issuer=settings.auth0_issuer,
			)
		options = {} if settings.auth0_audience else {"verify_aud": False}
		return jwt.decode(
			token,
			settings.jwt_secret_key,
			algorithms=[settings.jwt_algorithm],
			audience=settings.auth0_audience,
			options=options,
		)
	except JWTError as exc:
		raise Unauthorized("Could not validate credentials") from exc
	except httpx.HTTPError as exc:
		logger.error("JWKS fetch failed: %s", exc)
		raise Unauthorized("Could not validate credentials") from exc


async def get_current_user(
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
	settings: Settings = Depends(get_settings),
) -> User:
	if credentials is None or not credentials.credentials:
		raise Unauthorized("Missing bearer token")
	payload = await verify_token(credentials.credentials, settings)
	sub: Optional[str] = payload.get("sub")
	if not sub:
		raise Unauthorized("Missing auth subject")
	return User(sub=sub)


@router.get("/me")
def me(user: User = Depends(get_current_user), directory: UserDirectory = Depends(get_user_directory)):
	# New Auth0 accounts get their rows here, so later calls never 404
	return success_response(directory.ensure_user(user.sub))


@router.post("/register-if-needed")
def register_if_needed(
	req: Optional[SyncUserRequest] = None,
	user: User = Depends(get_current_user),
	directory: UserDirectory = Depends(get_user_directory),
):
	req = req or SyncUserRequest()
	data = directory.ensure_user(user.sub, username=req.username, email=req.email, avatar_url=req.avatar_url)
	return success_response(data, "User synced")
