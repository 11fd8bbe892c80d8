from __future__ import annotations

import datetime as dt

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from siteops.core.security import Actor, get_actor
from siteops.domain.attendance import (
    ATTENDANCE_STATUSES,
    attendance_to_dict,
    group_attendance_by_employee,
    list_attendance,
    mark_attendance,
)
from siteops.persistence.pg import get_session

router = APIRouter(prefix="/api/attendance", tags=["attendance"])


class MarkAttendanceRequest(BaseModel):
    employee_id: str
    status: str = Field(description=", ".join(ATTENDANCE_STATUSES))
    in_time: str = Field(min_length=1)
    out_time: str = Field(min_length=1)
    work: str | None = None
    date: dt.date


@router.post("", status_code=201)
def post_attendance(
    request: MarkAttendanceRequest,
    _: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    record = mark_attendance(
        session,
        employee_id=request.employee_id,
        status=request.status,
        in_time=request.in_time,
        out_time=request.out_time,
        attendance_date=request.date,
        work=request.work,
    )
    return {"message": "Attendance recorded", "data": attendance_to_dict(record)}


@router.get("")
def get_attendance(_: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return [attendance_to_dict(record) for record in list_attendance(session)]


@router.get("/grouped")
def get_attendance_grouped(_: Actor = Depends(get_actor), session: Session = Depends(get_session)):
    return group_attendance_by_employee(session)
