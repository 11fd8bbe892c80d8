from __future__ import annotations

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from siteops.core.config import get_settings
from siteops.core.security import Actor, get_actor
from siteops.core.timeutils import isoformat_z
from siteops.domain.users import OtpChallenge, get_user, login, logout, resend_otp, user_to_dict, verify_otp
from siteops.persistence.pg import get_session

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    username: str = Field(min_length=3)
    password: str = Field(min_length=4)
    device_id: str | None = None


class VerifyOtpRequest(BaseModel):
    user_id: str = Field(min_length=1)
    otp: str = Field(min_length=4, max_length=6, pattern=r"^[0-9]+$")


class ResendOtpRequest(BaseModel):
    user_id: str = Field(min_length=1)


def _challenge_payload(challenge: OtpChallenge) -> dict:
    data = {"user_id": challenge.user_id, "expires_at": isoformat_z(challenge.expires_at)}
    if get_settings().otp_echo:
        data["otp"] = challenge.code
    return data


@router.post("/login")
def post_login(
    request: LoginRequest,
    user_agent: str | None = Header(default=None),
    session: Session = Depends(get_session),
):
    challenge = login(
        session,
        request.username,
        request.password,
        device_id=request.device_id,
        user_agent=user_agent,
    )
    return {"message": "OTP sent for verification", "data": _challenge_payload(challenge)}


@router.post("/verify-otp")
def post_verify_otp(request: VerifyOtpRequest, session: Session = Depends(get_session)):
    user, token = verify_otp(session, request.user_id, request.otp)
    return {"message": "Login successful", "data": {"token": token, "user": user_to_dict(user)}}


@router.post("/resend-otp")
def post_resend_otp(request: ResendOtpRequest, session: Session = Depends(get_session)):
    challenge = resend_otp(session, request.user_id)
    return {"message": "OTP resent successfully", "data": _challenge_payload(challenge)}


@router.post("/logout")
def post_logout(actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    logout(session, actor.id)
    return {"message": "Logged out successfully"}


@router.get("/me")
def get_me(actor: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return {"data": user_to_dict(get_user(session, actor.id))}
