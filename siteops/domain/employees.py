from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from siteops.core.errors import ConflictError, NotFoundError, ValidationError
from siteops.core.timeutils import isoformat_z
from siteops.domain.materials.batches import to_amount
from siteops.persistence.models import EmployeeModel, ProjectModel, employee_projects
from siteops.persistence.pg import flush

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("name", "phone", "address", "salary_per_day", "joining_date")


def _salary(value) -> Decimal:
    return to_amount(value, field="salary_per_day")


def _resolve_projects(session: Session, project_ids: list[str]) -> list[ProjectModel]:
    unique_ids = list(dict.fromkeys(project_ids))
    if not unique_ids:
        return []
    stmt = select(ProjectModel).where(ProjectModel.id.in_(unique_ids)).where(ProjectModel.is_active.is_(True))
    projects = list(session.scalars(stmt).all())
    if len(projects) != len(unique_ids):
        raise ValidationError("invalid project id(s)")
    return projects


def _ensure_unique(session: Session, name: str, phone: str, exclude_id: str | None = None) -> None:
    stmt = select(EmployeeModel).where(
        or_(func.lower(EmployeeModel.name) == name.lower(), EmployeeModel.phone == phone)
    )
    if exclude_id:
        stmt = stmt.where(EmployeeModel.id != exclude_id)
    if session.scalar(stmt.limit(1)) is not None:
        raise ConflictError("employee with same name or phone already exists")


def get_employee(session: Session, employee_id: str) -> EmployeeModel:
    employee = session.get(EmployeeModel, employee_id)
    if employee is None:
        raise NotFoundError(f"employee not found: {employee_id}")
    return employee


def create_employee(
    session: Session,
    name: str,
    phone: str,
    salary_per_day,
    joining_date: date,
    assigned_projects: list[str],
    address: str | None = None,
) -> EmployeeModel:
    if not name or not name.strip() or not phone or not phone.strip():
        raise ValidationError("required fields missing")
    if not assigned_projects:
        raise ValidationError("at least one assigned project is required")
    name = name.strip()
    phone = phone.strip()
    _ensure_unique(session, name, phone)

    employee = EmployeeModel(
        name=name,
        phone=phone,
        address=address.strip().lower() if address else None,
        salary_per_day=_salary(salary_per_day),
        joining_date=joining_date,
        assigned_projects=_resolve_projects(session, assigned_projects),
    )
    session.add(employee)
    flush(session)
    logger.info("employee created: id=%s name=%s", employee.id, employee.name)
    return employee


def list_employees(session: Session, project_id: str | None = None) -> list[EmployeeModel]:
    stmt = select(EmployeeModel).order_by(EmployeeModel.name.asc())
    if project_id:
        stmt = stmt.join(employee_projects, employee_projects.c.employee_id == EmployeeModel.id).where(
            employee_projects.c.project_id == project_id
        )
    return list(session.scalars(stmt).unique().all())


def update_employee(session: Session, employee_id: str, updates: dict) -> EmployeeModel:
    employee = get_employee(session, employee_id)

    name = (updates.get("name") or employee.name).strip()
    phone = (updates.get("phone") or employee.phone).strip()
    if name != employee.name or phone != employee.phone:
        _ensure_unique(session, name, phone, exclude_id=employee.id)

    for key in UPDATABLE_FIELDS:
        if updates.get(key) is None:
            continue
        value = updates[key]
        if key == "salary_per_day":
            value = _salary(value)
        elif key == "address":
            value = value.strip().lower()
        elif key in {"name", "phone"}:
            value = value.strip()
        setattr(employee, key, value)
    if updates.get("assigned_projects"):
        employee.assigned_projects = _resolve_projects(session, updates["assigned_projects"])
    flush(session)
    return employee


def delete_employee(session: Session, employee_id: str) -> None:
    employee = get_employee(session, employee_id)
    session.delete(employee)
    flush(session)
    logger.info("employee deleted: id=%s", employee_id)


def employee_to_dict(employee: EmployeeModel) -> dict:
    return {
        "id": employee.id,
        "name": employee.name,
        "phone": employee.phone,
        "address": employee.address,
        "salary_per_day": employee.salary_per_day,
        "joining_date": employee.joining_date.isoformat(),
        "assigned_projects": [{"id": p.id, "name": p.name} for p in employee.assigned_projects],
        "date_created": isoformat_z(employee.date_created),
    }
