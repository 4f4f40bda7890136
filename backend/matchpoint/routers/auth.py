import os
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, Header, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded

from ..context import AppContext, get_context
from ..exceptions import FailureDetail, Forbidden, Unauthorized
from ..models import ROLE_ADMIN, ROLE_PLAYER


JWT_ALG = "HS256"
JWT_EXPIRE_SECONDS = 3600
ACCESS_TOKEN_COOKIE = "access_token"
VALID_ROLES = {ROLE_ADMIN, ROLE_PLAYER}


def _rate_limits_disabled() -> bool:
  return (os.getenv("DISABLE_RATE_LIMITS") or "").lower() == "true"


def _get_client_ip(request: Request) -> str:
  forwarded = request.headers.get("X-Forwarded-For")
  if forwarded:
    parts = [ip.strip() for ip in forwarded.split(",") if ip.strip()]
    if parts:
      return parts[-1]
  real_ip = request.headers.get("X-Real-IP")
  if real_ip:
    return real_ip
  return request.client.host if request.client else ""


limiter = Limiter(key_func=_get_client_ip)


def settlement_rate_limit() -> str:
  if _rate_limits_disabled():
    return "1000/second"
  return "30/minute"


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
  detail = exc.detail if isinstance(exc.detail, str) else ""
  if detail:
    message = f"rate limit exceeded: {detail}"
  else:
    message = "rate limit exceeded: please wait before submitting another request."
  problem = FailureDetail(message=message, code="rate_limit_exceeded", status=429)
  return JSONResponse(status_code=429, content=problem.model_dump())


@dataclass(frozen=True)
class Identity:
  """Caller identity as asserted by a verified access token."""

  uid: str
  role: str

  @property
  def is_admin(self) -> bool:
    return self.role == ROLE_ADMIN


def _utcnow() -> datetime:
  """Return a timezone-aware UTC ``datetime``."""

  return datetime.now(timezone.utc)


def create_access_token(
    secret: str, uid: str, role: str, *, expires_in: int = JWT_EXPIRE_SECONDS
) -> str:
  if role not in VALID_ROLES:
    raise ValueError(f"unknown role: {role!r}")
  payload = {
      "sub": uid,
      "role": role,
      "exp": _utcnow() + timedelta(seconds=expires_in),
  }
  return jwt.encode(payload, secret, algorithm=JWT_ALG)


def _extract_bearer_token(request: Request, authorization: str | None) -> str:
  if authorization and authorization.lower().startswith("bearer "):
    return authorization.split(" ", 1)[1].strip()

  cookie_token = request.cookies.get(ACCESS_TOKEN_COOKIE)
  if cookie_token:
    return cookie_token

  raise Unauthorized("missing token", code="auth_missing_token")


def decode_identity(token: str, secret: str) -> Identity:
  try:
    payload = jwt.decode(token, secret, algorithms=[JWT_ALG])
  except jwt.ExpiredSignatureError:
    raise Unauthorized("token expired", code="auth_token_expired")
  except jwt.PyJWTError:
    raise Unauthorized("invalid token", code="auth_invalid_token")

  uid = payload.get("sub")
  role = payload.get("role")
  if not isinstance(uid, str) or not uid:
    raise Unauthorized("invalid token", code="auth_invalid_token")
  if role not in VALID_ROLES:
    raise Unauthorized("token carries no valid role", code="auth_invalid_role")
  return Identity(uid=uid, role=role)


async def get_current_identity(
    request: Request,
    authorization: str | None = Header(None),
    context: AppContext = Depends(get_context),
) -> Identity:
  # Claims only: authorization never reads the store.
  token = _extract_bearer_token(request, authorization)
  return decode_identity(token, context.settings.jwt_secret)


async def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
  if not identity.is_admin:
    raise Forbidden()
  return identity
