from __future__ import annotations

import base64
import binascii
import hmac
import json
import time
from hashlib import sha256
from typing import Literal

from fastapi import Depends, Header
from pydantic import BaseModel
from sqlalchemy.orm import Session

from siteops.core.config import get_settings
from siteops.core.errors import AuthenticationError, PermissionDeniedError
from siteops.persistence.models import UserModel
from siteops.persistence.pg import get_session


Role = Literal["admin", "user"]

SYSTEM_ACTOR_ID = "system"


class Actor(BaseModel):
    id: str
    role: Role
    username: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def _token_key() -> bytes:
    settings = get_settings()
    return settings.token_signing_secret.encode("utf-8")


def create_session_token(
    user_id: str,
    role: str,
    username: str,
    ttl_seconds: int | None = None,
    version: int = 0,
) -> str:
    settings = get_settings()
    now = int(time.time())
    payload = {
        "sub": user_id,
        "role": role,
        "username": username,
        "ver": version,
        "iat": now,
        "exp": now + (ttl_seconds if ttl_seconds is not None else settings.token_ttl_seconds),
    }
    body = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    mac = hmac.new(_token_key(), body, sha256).digest()
    return base64.urlsafe_b64encode(body + mac).decode("ascii")


def verify_session_token(token: str) -> dict:
    try:
        raw = base64.urlsafe_b64decode(token.encode("ascii"))
    except (binascii.Error, UnicodeEncodeError) as exc:
        raise AuthenticationError("invalid token encoding") from exc

    if len(raw) <= 32:
        raise AuthenticationError("invalid token body")

    body, mac = raw[:-32], raw[-32:]
    expected = hmac.new(_token_key(), body, sha256).digest()
    if not hmac.compare_digest(mac, expected):
        raise AuthenticationError("token signature mismatch")

    payload = json.loads(body.decode("utf-8"))
    if int(time.time()) > int(payload.get("exp", 0)):
        raise AuthenticationError("token expired")
    return payload


def _extract_token(authorization: str | None) -> str:
    if not authorization:
        raise AuthenticationError("missing bearer token")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise AuthenticationError("invalid authorization header")
    return token.strip()


def authenticate(session: Session, authorization: str | None) -> Actor:
    """Resolve the bearer token to its user; revoked or deactivated sessions are refused."""
    settings = get_settings()
    if not settings.auth_enabled:
        return Actor(id=SYSTEM_ACTOR_ID, role="admin", username=SYSTEM_ACTOR_ID)

    payload = verify_session_token(_extract_token(authorization))
    user = session.get(UserModel, str(payload.get("sub", "")))
    if user is None or not user.is_active:
        raise AuthenticationError("user not found or inactive")
    if int(payload.get("ver", -1)) != user.token_version:
        raise AuthenticationError("session has been revoked")
    return Actor(id=user.id, role=user.role, username=user.username)


def get_actor(
    authorization: str | None = Header(default=None),
    session: Session = Depends(get_session),
) -> Actor:
    return authenticate(session, authorization)


def require_admin(actor: Actor) -> None:
    if not actor.is_admin:
        raise PermissionDeniedError("admin role required")


def get_admin(actor: Actor = Depends(get_actor)) -> Actor:
    require_admin(actor)
    return actor
