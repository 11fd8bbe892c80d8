from __future__ import annotations

import hmac
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy import func, or_, select, update
from sqlalchemy.orm import Session
from werkzeug.security import check_password_hash, generate_password_hash

from siteops.core.config import get_settings
from siteops.core.errors import AuthenticationError, ConflictError, NotFoundError, ValidationError
from siteops.core.otp import OtpGenerator, get_otp_generator
from siteops.core.security import create_session_token
from siteops.core.timeutils import as_utc, isoformat_z, now_utc
from siteops.domain.projects import get_active_project
from siteops.persistence.models import UserModel
from siteops.persistence.pg import flush

logger = logging.getLogger(__name__)

PHONE_PATTERN = re.compile(r"^[0-9]{10}$")
ROLES = ("admin", "user")


@dataclass(frozen=True)
class OtpChallenge:
    user_id: str
    code: str
    expires_at: datetime


def _validate_new_user(username: str, password: str, phone: str, role: str) -> None:
    if not username or not 3 <= len(username.strip()) <= 30:
        raise ValidationError("username must be 3 to 30 characters")
    if not password or len(password) < 6:
        raise ValidationError("password must be at least 6 characters")
    if not phone or not PHONE_PATTERN.match(phone):
        raise ValidationError("phone must be 10 digits")
    if role not in ROLES:
        raise ValidationError("role must be admin or user")


def count_users(session: Session) -> int:
    return int(session.scalar(select(func.count()).select_from(UserModel)) or 0)


def get_user(session: Session, user_id: str) -> UserModel:
    user = session.get(UserModel, user_id)
    if user is None:
        raise NotFoundError(f"user not found: {user_id}")
    return user


def create_user(
    session: Session,
    username: str,
    password: str,
    phone: str,
    role: str = "user",
    project_id: str | None = None,
) -> UserModel:
    _validate_new_user(username, password, phone, role)
    username = username.strip()
    existing = session.scalar(
        select(UserModel).where(or_(UserModel.username == username, UserModel.phone == phone)).limit(1)
    )
    if existing is not None:
        raise ConflictError("user with this username or phone already exists")
    if project_id:
        get_active_project(session, project_id)

    user = UserModel(
        username=username,
        password_hash=generate_password_hash(password),
        phone=phone,
        role=role,
        project_id=project_id or None,
    )
    session.add(user)
    flush(session)
    logger.info("user created: id=%s username=%s role=%s", user.id, user.username, user.role)
    return user


def list_users_stmt(role: str | None = None, is_active: bool | None = None, project_id: str | None = None):
    stmt = select(UserModel)
    if role:
        stmt = stmt.where(UserModel.role == role)
    if is_active is not None:
        stmt = stmt.where(UserModel.is_active.is_(is_active))
    if project_id:
        stmt = stmt.where(UserModel.project_id == project_id)
    return stmt.order_by(UserModel.created_at.desc(), UserModel.id.asc())


def set_user_active(session: Session, user_id: str, is_active: bool) -> UserModel:
    user = get_user(session, user_id)
    user.is_active = is_active
    flush(session)
    logger.info("user status changed: id=%s is_active=%s", user.id, is_active)
    return user


def delete_user(session: Session, user_id: str) -> None:
    user = get_user(session, user_id)
    session.delete(user)
    flush(session)
    logger.info("user deleted: id=%s username=%s", user_id, user.username)


def refresh_all_users(session: Session) -> int:
    result = session.execute(
        update(UserModel).values(
            otp_code=None,
            otp_expires_at=None,
            otp_verified=False,
            last_login=None,
            token_version=UserModel.token_version + 1,
        )
    )
    flush(session)
    return int(result.rowcount or 0)


def _issue_otp(user: UserModel, generator: OtpGenerator | None = None) -> OtpChallenge:
    settings = get_settings()
    generator = generator or get_otp_generator(settings)
    code = generator.generate()
    user.otp_code = code
    user.otp_expires_at = now_utc() + timedelta(seconds=settings.otp_ttl_seconds)
    user.otp_verified = False
    return OtpChallenge(user_id=user.id, code=code, expires_at=user.otp_expires_at)


def login(
    session: Session,
    username: str,
    password: str,
    device_id: str | None = None,
    user_agent: str | None = None,
    generator: OtpGenerator | None = None,
) -> OtpChallenge:
    """First login step: check the password and hand out a one-time code."""
    user = session.scalar(
        select(UserModel).where(UserModel.username == (username or "").strip()).where(UserModel.is_active.is_(True))
    )
    if user is None or not check_password_hash(user.password_hash, password or ""):
        logger.warning("login refused: username=%s", username)
        raise AuthenticationError("invalid credentials")

    challenge = _issue_otp(user, generator)
    if device_id:
        user.device_id = device_id
        user.last_login_device = user_agent or "Unknown"
    flush(session)
    logger.info("otp issued: user=%s", user.id)
    return challenge


def _active_user(session: Session, user_id: str) -> UserModel:
    user = session.get(UserModel, user_id)
    if user is None or not user.is_active:
        raise NotFoundError("user not found or inactive")
    return user


def resend_otp(session: Session, user_id: str, generator: OtpGenerator | None = None) -> OtpChallenge:
    user = _active_user(session, user_id)
    challenge = _issue_otp(user, generator)
    flush(session)
    logger.info("otp re-issued: user=%s", user.id)
    return challenge


def verify_otp(session: Session, user_id: str, code: str) -> tuple[UserModel, str]:
    """Second login step: a valid, unexpired, unused code yields a session token."""
    user = _active_user(session, user_id)
    if (
        user.otp_code is None
        or user.otp_verified
        or user.otp_expires_at is None
        or as_utc(user.otp_expires_at) < now_utc()
        or not hmac.compare_digest(user.otp_code.encode("utf-8"), (code or "").encode("utf-8"))
    ):
        logger.warning("otp rejected: user=%s", user.id)
        raise AuthenticationError("invalid or expired OTP")

    user.otp_verified = True
    user.last_login = now_utc()
    flush(session)
    token = create_session_token(user.id, user.role, user.username, version=user.token_version)
    logger.info("login completed: user=%s", user.id)
    return user, token


def logout(session: Session, user_id: str) -> None:
    user = session.get(UserModel, user_id)
    if user is None:
        return
    user.otp_code = None
    user.otp_expires_at = None
    user.otp_verified = False
    user.token_version += 1
    flush(session)


def user_to_dict(user: UserModel) -> dict:
    return {
        "id": user.id,
        "username": user.username,
        "phone": user.phone,
        "role": user.role,
        "is_active": user.is_active,
        "project_id": user.project_id,
        "last_login": isoformat_z(user.last_login),
        "created_at": isoformat_z(user.created_at),
    }
