from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Header, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from siteops.api.utils import paginate
from siteops.core.security import Actor, authenticate, get_admin, require_admin
from siteops.domain.users import (
    count_users,
    create_user,
    delete_user,
    list_users_stmt,
    refresh_all_users,
    set_user_active,
    user_to_dict,
)
from siteops.persistence.pg import get_session

router = APIRouter(prefix="/api/users", tags=["users"])


class CreateUserRequest(BaseModel):
    username: str = Field(min_length=3, max_length=30)
    password: str = Field(min_length=6)
    phone: str = Field(pattern=r"^[0-9]{10}$")
    role: Literal["admin", "user"] = "user"
    project_id: str | None = None


class UserStatusRequest(BaseModel):
    is_active: bool


@router.post("", status_code=201)
def post_user(
    request: CreateUserRequest,
    authorization: str | None = Header(default=None),
    session: Session = Depends(get_session),
):
    # The very first account bootstraps the system and needs no admin.
    if count_users(session) > 0:
        require_admin(authenticate(session, authorization))
    user = create_user(
        session,
        username=request.username,
        password=request.password,
        phone=request.phone,
        role=request.role,
        project_id=request.project_id,
    )
    return {"message": "User created successfully", "data": user_to_dict(user)}


@router.get("")
def get_users(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    role: Literal["admin", "user"] | None = Query(default=None),
    is_active: bool | None = Query(default=None),
    project_id: str | None = Query(default=None),
    _: Actor = Depends(get_admin),
    session: Session = Depends(get_session),
):
    stmt = list_users_stmt(role=role, is_active=is_active, project_id=project_id)
    users, pagination = paginate(session, stmt, page, limit, serialize=user_to_dict)
    return {"users": users, "pagination": pagination}


@router.put("/refresh-all")
def put_refresh_all(_: Actor = Depends(get_admin), session: Session = Depends(get_session)):
    modified = refresh_all_users(session)
    return {"message": "All users refreshed successfully", "modified_count": modified}


@router.put("/{user_id}/status")
def put_user_status(
    user_id: str,
    request: UserStatusRequest,
    _: Actor = Depends(get_admin),
    session: Session = Depends(get_session),
):
    user = set_user_active(session, user_id, request.is_active)
    return {"message": "User status updated", "data": user_to_dict(user)}


@router.delete("/{user_id}")
def remove_user(
    user_id: str,
    _: Actor = Depends(get_admin),
    session: Session = Depends(get_session),
):
    delete_user(session, user_id)
    return {"message": "User deleted successfully"}
