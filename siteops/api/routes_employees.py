from __future__ import annotations

import datetime as dt
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from siteops.core.security import Actor, get_admin
from siteops.domain.employees import (
    create_employee,
    delete_employee,
    employee_to_dict,
    get_employee,
    list_employees,
    update_employee,
)
from siteops.persistence.pg import get_session

router = APIRouter(prefix="/api/employees", tags=["employees"])


class CreateEmployeeRequest(BaseModel):
    name: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    address: str | None = None
    salary_per_day: Decimal = Field(ge=0, decimal_places=2)
    joining_date: dt.date
    assigned_projects: list[str] = Field(min_length=1)


class UpdateEmployeeRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    phone: str | None = Field(default=None, min_length=1)
    address: str | None = None
    salary_per_day: Decimal | None = Field(default=None, ge=0, decimal_places=2)
    joining_date: dt.date | None = None
    assigned_projects: list[str] | None = None


@router.post("", status_code=201)
def post_employee(
    request: CreateEmployeeRequest,
    _: Actor = Depends(get_admin),
    session: Session = Depends(get_session),
):
    employee = create_employee(
        session,
        name=request.name,
        phone=request.phone,
        salary_per_day=request.salary_per_day,
        joining_date=request.joining_date,
        assigned_projects=request.assigned_projects,
        address=request.address,
    )
    return employee_to_dict(employee)


@router.get("")
def get_employees(_: Actor = Depends(get_admin), session: Session = Depends(get_session)):
    return [employee_to_dict(e) for e in list_employees(session)]


@router.get("/project/{project_id}")
def get_project_employees(
    project_id: str,
    _: Actor = Depends(get_admin),
    session: Session = Depends(get_session),
):
    return [employee_to_dict(e) for e in list_employees(session, project_id=project_id)]


@router.get("/{employee_id}")
def get_employee_detail(
    employee_id: str,
    _: Actor = Depends(get_admin),
    session: Session = Depends(get_session),
):
    return employee_to_dict(get_employee(session, employee_id))


@router.put("/{employee_id}")
def put_employee(
    employee_id: str,
    request: UpdateEmployeeRequest,
    _: Actor = Depends(get_admin),
    session: Session = Depends(get_session),
):
    employee = update_employee(session, employee_id, request.model_dump(exclude_unset=True))
    return employee_to_dict(employee)


@router.delete("/{employee_id}")
def remove_employee(
    employee_id: str,
    _: Actor = Depends(get_admin),
    session: Session = Depends(get_session),
):
    delete_employee(session, employee_id)
    return {"message": "Employee permanently deleted"}

