"""Bearer-token identity for API callers.

Tokens are minted by the external auth provider and signed with the shared
``JWT_SECRET``. The first time a subject shows up it is mirrored into the
``user`` table so arenas can reference it as organizer.
"""

import logging
import os
from typing import Any

import jwt
from fastapi import Depends, Header, Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import SCORE_RATE_LIMIT
from ..db import get_session
from ..models import User
from ..exceptions import http_problem

logger = logging.getLogger(__name__)


def get_jwt_secret() -> str:
  secret = os.getenv("JWT_SECRET")
  if not secret:
    raise RuntimeError("JWT_SECRET environment variable is required")
  if len(secret) < 32 or secret.lower() in {"secret", "changeme", "default"}:
    raise RuntimeError(
        "JWT_SECRET must be at least 32 characters and not a common default"
    )
  return secret


JWT_ALG = "HS256"
ACCESS_TOKEN_COOKIE = "access_token"


def _rate_limits_disabled() -> bool:
  return (os.getenv("DISABLE_SCORE_RATE_LIMITS") or "").lower() == "true"


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


def score_rate_limit() -> str:
  if _rate_limits_disabled():
    return "1000/second"
  return SCORE_RATE_LIMIT


async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
  detail = exc.detail if isinstance(exc.detail, str) else ""
  if detail:
    message = f"rate limit exceeded: {detail}"
  else:
    message = "rate limit exceeded: please wait before submitting another request."
  return JSONResponse(
      status_code=429,
      content={
          "detail": message,
          "code": "rate_limit_exceeded",
      },
  )


def _extract_bearer_token(request: Request, authorization: str | None) -> str:
  if authorization and authorization.lower().startswith("bearer "):
    return authorization.split(" ", 1)[1]

  cookie_token = request.cookies.get(ACCESS_TOKEN_COOKIE)
  if cookie_token:
    return cookie_token

  raise http_problem(
      status_code=401,
      detail="missing token",
      code="auth_missing_token",
  )


def decode_token(token: str) -> dict[str, Any]:
  try:
    return jwt.decode(token, get_jwt_secret(), algorithms=[JWT_ALG])
  except jwt.ExpiredSignatureError:
    raise http_problem(
        status_code=401,
        detail="token expired",
        code="auth_token_expired",
    )
  except jwt.PyJWTError:
    raise http_problem(
        status_code=401,
        detail="invalid token",
        code="auth_invalid_token",
    )


async def _resolve_user(payload: dict[str, Any], session: AsyncSession) -> User:
  uid = payload.get("sub")
  if not uid:
    raise http_problem(
        status_code=401,
        detail="invalid token",
        code="auth_invalid_token",
    )
  user = await session.get(User, uid)
  if user:
    return user

  username = (payload.get("username") or "").strip().lower()
  if not username:
    raise http_problem(
        status_code=401,
        detail="user not found",
        code="auth_user_not_found",
    )
  user = User(id=uid, username=username, name=payload.get("name"), is_admin=False)
  session.add(user)
  await session.commit()
  logger.info("Registered user %s from auth provider token", uid)
  return user


async def get_current_user(
    request: Request,
    authorization: str | None = Header(None),
    session: AsyncSession = Depends(get_session),
) -> User:
  token = _extract_bearer_token(request, authorization)
  payload = decode_token(token)
  return await _resolve_user(payload, session)
