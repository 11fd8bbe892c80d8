from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from siteops.core.config import get_settings
from siteops.core.security import Actor, get_actor
from siteops.domain.attendance import build_attendance_report
from siteops.domain.materials import build_material_report
from siteops.persistence.pg import get_session

router = APIRouter(prefix="/api/dpr", tags=["reports"])


@router.get("/material-report/{project_id}")
def get_material_report(
    project_id: str,
    month: int = Query(..., description="1-12"),
    year: int = Query(...),
    _: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    lines = build_material_report(session, project_id, year=year, month=month)
    return {
        "project_id": project_id,
        "period": {"year": year, "month": month, "timezone": get_settings().report_timezone},
        "materials": [line.to_dict() for line in lines],
    }


@router.get("/attendance-report/{project_id}")
def get_attendance_report(
    project_id: str,
    month: int = Query(..., description="1-12"),
    year: int = Query(...),
    _: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    summaries = build_attendance_report(session, project_id, year=year, month=month)
    return {
        "project_id": project_id,
        "period": {"year": year, "month": month},
        "employees": [summary.to_dict() for summary in summaries],
    }
