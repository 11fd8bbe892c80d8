from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from siteops.core.errors import ConflictError, ValidationError
from siteops.core.timeutils import isoformat_z
from siteops.domain.employees import get_employee
from siteops.domain.projects import get_project
from siteops.persistence.models import AttendanceModel, EmployeeModel
from siteops.persistence.pg import flush

logger = logging.getLogger(__name__)

ATTENDANCE_STATUSES = ("Present", "Absent", "Half Day")
HALF_DAY_FACTOR = Decimal("0.5")


def mark_attendance(
    session: Session,
    employee_id: str,
    status: str,
    in_time: str,
    out_time: str,
    attendance_date: date,
    work: str | None = None,
) -> AttendanceModel:
    if status not in ATTENDANCE_STATUSES:
        raise ValidationError(f"invalid attendance status: {status}")
    if not in_time or not out_time:
        raise ValidationError("in_time and out_time are required")
    employee = get_employee(session, employee_id)

    existing = session.scalar(
        select(AttendanceModel)
        .where(AttendanceModel.employee_id == employee.id)
        .where(AttendanceModel.attendance_date == attendance_date)
    )
    if existing is not None:
        raise ConflictError("attendance already marked for this date")

    record = AttendanceModel(
        employee_id=employee.id,
        status=status,
        in_time=in_time,
        out_time=out_time,
        work=work,
        attendance_date=attendance_date,
    )
    session.add(record)
    flush(session)
    logger.info("attendance recorded: employee=%s date=%s status=%s", employee.id, attendance_date, status)
    return record


def list_attendance(session: Session) -> list[AttendanceModel]:
    stmt = select(AttendanceModel).order_by(AttendanceModel.attendance_date.asc(), AttendanceModel.id.asc())
    return list(session.scalars(stmt).unique().all())


def _record_to_dict(record: AttendanceModel) -> dict:
    return {
        "date": record.attendance_date.isoformat(),
        "status": record.status,
        "in_time": record.in_time or "-",
        "out_time": record.out_time or "-",
        "work": record.work or "-",
    }


def attendance_to_dict(record: AttendanceModel) -> dict:
    return {
        "id": record.id,
        "employee": {"id": record.employee.id, "name": record.employee.name},
        **_record_to_dict(record),
        "created_at": isoformat_z(record.created_at),
    }


def group_attendance_by_employee(session: Session) -> list[dict]:
    grouped: dict[str, dict] = {}
    for record in list_attendance(session):
        employee = record.employee
        entry = grouped.setdefault(
            employee.id,
            {
                "employee_id": employee.id,
                "name": employee.name,
                "phone": employee.phone or "-",
                "joining_date": employee.joining_date.isoformat(),
                "projects": [p.name for p in employee.assigned_projects],
                "records": [],
            },
        )
        entry["records"].append(_record_to_dict(record))
    return list(grouped.values())


@dataclass
class EmployeeAttendanceSummary:
    employee: EmployeeModel
    records: list[AttendanceModel] = field(default_factory=list)
    present: int = 0
    half: int = 0
    absent: int = 0

    @property
    def total_salary(self) -> Decimal:
        return (self.present + HALF_DAY_FACTOR * self.half) * self.employee.salary_per_day

    def to_dict(self) -> dict:
        return {
            "employee": {
                "id": self.employee.id,
                "name": self.employee.name,
                "phone": self.employee.phone,
                "salary_per_day": self.employee.salary_per_day,
            },
            "attendance": [
                {
                    "date": record.attendance_date.isoformat(),
                    "status": record.status,
                    "in_time": record.in_time,
                    "out_time": record.out_time,
                    "daily_work": record.work,
                }
                for record in self.records
            ],
            "present": self.present,
            "half": self.half,
            "absent": self.absent,
            "total_salary": self.total_salary,
        }


def build_attendance_report(
    session: Session,
    project_id: str,
    year: int,
    month: int,
) -> list[EmployeeAttendanceSummary]:
    """Monthly attendance and salary per employee assigned to a project.

    Attendance dates are calendar days, so the month is taken as-is without
    timezone conversion.
    """
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    if not 1 <= year < 9999:
        raise ValidationError("year out of range")
    first_day = date(year, month, 1)
    next_month = date(year + (month == 12), month % 12 + 1, 1)
    project = get_project(session, project_id)

    records = session.scalars(
        select(AttendanceModel)
        .where(AttendanceModel.attendance_date >= first_day)
        .where(AttendanceModel.attendance_date < next_month)
        .order_by(AttendanceModel.attendance_date.asc(), AttendanceModel.id.asc())
    ).unique().all()

    summaries: dict[str, EmployeeAttendanceSummary] = {}
    for record in records:
        employee = record.employee
        if not any(p.id == project.id for p in employee.assigned_projects):
            continue
        summary = summaries.setdefault(employee.id, EmployeeAttendanceSummary(employee=employee))
        summary.records.append(record)
        if record.status == "Present":
            summary.present += 1
        elif record.status == "Half Day":
            summary.half += 1
        else:
            summary.absent += 1
    return list(summaries.values())
