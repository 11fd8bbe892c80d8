from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from siteops.api.utils import paginate
from siteops.core.security import Actor, get_actor
from siteops.domain.projects import (
    change_project_status,
    create_project,
    delete_project,
    get_visible_project,
    list_projects_stmt,
    project_to_dict,
    update_project,
)
from siteops.persistence.pg import get_session

router = APIRouter(prefix="/api/projects", tags=["projects"])

ProjectStatus = Literal["active", "completed", "on-hold", "cancelled"]


class CreateProjectRequest(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = Field(default=None, max_length=500)
    date: datetime | None = None


class UpdateProjectRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, max_length=500)
    status: ProjectStatus | None = None
    date: datetime | None = None


class ProjectStatusRequest(BaseModel):
    status: ProjectStatus


@router.post("", status_code=201)
def post_project(
    request: CreateProjectRequest,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    project = create_project(session, actor, request.name, request.description, request.date)
    return {"message": "Project created successfully", "data": project_to_dict(project)}


@router.get("")
def get_projects(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    status: ProjectStatus | None = Query(default=None),
    search: str | None = Query(default=None),
    sort_by: str = Query(default="createdAt"),
    sort_order: Literal["asc", "desc"] = Query(default="desc"),
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    stmt = list_projects_stmt(actor, status=status, search=search, sort_by=sort_by, sort_order=sort_order)
    projects, pagination = paginate(session, stmt, page, limit, serialize=project_to_dict)
    return {"projects": projects, "pagination": pagination}


@router.get("/{project_id}")
def get_project_detail(
    project_id: str,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    return {"data": project_to_dict(get_visible_project(session, project_id, actor))}


@router.put("/{project_id}")
def put_project(
    project_id: str,
    request: UpdateProjectRequest,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    project = update_project(session, project_id, actor, request.model_dump(exclude_unset=True))
    return {"message": "Project updated successfully", "data": project_to_dict(project)}


@router.patch("/{project_id}/status")
def patch_project_status(
    project_id: str,
    request: ProjectStatusRequest,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    project = change_project_status(session, project_id, actor, request.status)
    return {"message": "Project status updated successfully", "data": project_to_dict(project)}


@router.delete("/{project_id}")
def remove_project(
    project_id: str,
    actor: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    delete_project(session, project_id, actor)
    return {"message": "Project deleted successfully"}
