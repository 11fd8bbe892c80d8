from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from siteops.core.errors import ConflictError, NotFoundError, PermissionDeniedError, ValidationError
from siteops.core.security import Actor
from siteops.core.timeutils import isoformat_z, parse_datetime
from siteops.persistence.models import MaterialBatchModel, ProjectModel
from siteops.persistence.pg import flush

logger = logging.getLogger(__name__)

PROJECT_STATUSES = ("active", "completed", "on-hold", "cancelled")
SORTABLE_FIELDS = {"createdAt": "created_at", "created_at": "created_at", "name": "name", "date": "date", "status": "status"}


def _validate_status(status: str) -> str:
    if status not in PROJECT_STATUSES:
        raise ValidationError(f"invalid project status: {status}")
    return status


def _validate_fields(name: str | None, description: str | None) -> None:
    if name is not None and not name.strip():
        raise ValidationError("project name is required")
    if description is not None and len(description.strip()) > 500:
        raise ValidationError("description must be less than 500 characters")


def get_project(session: Session, project_id: str) -> ProjectModel:
    project = session.get(ProjectModel, project_id)
    if project is None:
        raise NotFoundError(f"project not found: {project_id}")
    return project


def get_active_project(session: Session, project_id: str) -> ProjectModel:
    project = get_project(session, project_id)
    if not project.is_active:
        raise NotFoundError(f"project not found: {project_id}")
    return project


def get_visible_project(session: Session, project_id: str, actor: Actor) -> ProjectModel:
    project = get_active_project(session, project_id)
    _check_access(project, actor)
    return project


def _check_access(project: ProjectModel, actor: Actor) -> None:
    if not actor.is_admin and project.created_by != actor.id:
        raise PermissionDeniedError("access denied")


def create_project(
    session: Session,
    actor: Actor,
    name: str,
    description: str | None = None,
    date: str | datetime | None = None,
) -> ProjectModel:
    _validate_fields(name, description)
    name = name.strip()
    existing = session.scalar(
        select(ProjectModel)
        .where(ProjectModel.name == name)
        .where(ProjectModel.is_active.is_(True))
        .where(ProjectModel.created_by == actor.id)
    )
    if existing is not None:
        raise ConflictError("a project with this name already exists")

    project = ProjectModel(
        name=name,
        description=description.strip() if description else None,
        date=parse_datetime(date),
        created_by=actor.id,
    )
    session.add(project)
    flush(session)
    logger.info("project created: id=%s name=%s by=%s", project.id, project.name, actor.id)
    return project


def list_projects_stmt(
    actor: Actor,
    status: str | None = None,
    search: str | None = None,
    sort_by: str = "createdAt",
    sort_order: str = "desc",
):
    stmt = select(ProjectModel).where(ProjectModel.is_active.is_(True))
    if status:
        stmt = stmt.where(ProjectModel.status == _validate_status(status))
    if search:
        pattern = f"%{search.lower()}%"
        stmt = stmt.where(
            or_(
                func.lower(ProjectModel.name).like(pattern),
                func.lower(func.coalesce(ProjectModel.description, "")).like(pattern),
            )
        )
    if not actor.is_admin:
        stmt = stmt.where(ProjectModel.created_by == actor.id)

    column = getattr(ProjectModel, SORTABLE_FIELDS.get(sort_by, "created_at"))
    stmt = stmt.order_by(column.desc() if sort_order == "desc" else column.asc(), ProjectModel.id.asc())
    return stmt


def update_project(session: Session, project_id: str, actor: Actor, updates: dict) -> ProjectModel:
    project = get_visible_project(session, project_id, actor)

    _validate_fields(updates.get("name"), updates.get("description"))
    if "name" in updates and updates["name"] is not None:
        project.name = updates["name"].strip()
    if "description" in updates:
        project.description = (updates["description"] or "").strip() or None
    if updates.get("status") is not None:
        project.status = _validate_status(updates["status"])
    if updates.get("date") is not None:
        project.date = parse_datetime(updates["date"])
    flush(session)
    return project


def change_project_status(session: Session, project_id: str, actor: Actor, status: str) -> ProjectModel:
    project = get_visible_project(session, project_id, actor)
    _validate_status(status)
    if project.status == status:
        raise ValidationError("project already has this status")
    project.status = status
    flush(session)
    logger.info("project status changed: id=%s status=%s", project.id, status)
    return project


def delete_project(session: Session, project_id: str, actor: Actor) -> ProjectModel:
    """Soft delete: the row stays so material and attendance history keep resolving."""
    project = get_visible_project(session, project_id, actor)
    batch_count = session.scalar(
        select(func.count())
        .select_from(MaterialBatchModel)
        .where(MaterialBatchModel.project_id == project.id)
        .where(MaterialBatchModel.deleted_at.is_(None))
    )
    if batch_count:
        raise ConflictError(f"project still has {batch_count} material batch(es)")
    project.is_active = False
    flush(session)
    logger.info("project deleted: id=%s by=%s", project_id, actor.id)
    return project


def project_to_dict(project: ProjectModel) -> dict:
    return {
        "id": project.id,
        "name": project.name,
        "description": project.description,
        "date": isoformat_z(project.date),
        "status": project.status,
        "created_by": project.created_by,
        "is_active": project.is_active,
        "created_at": isoformat_z(project.created_at),
        "updated_at": isoformat_z(project.updated_at),
    }
