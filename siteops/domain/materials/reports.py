from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from siteops.core.config import get_settings
from siteops.core.timeutils import as_utc, month_range
from siteops.domain.materials.batches import ZERO
from siteops.domain.projects import get_project
from siteops.persistence.models import MaterialBatchModel


@dataclass(frozen=True)
class AdditionEntry:
    date: datetime
    quantity: Decimal
    added_by: str
    within_month: bool


@dataclass(frozen=True)
class ConsumptionEntry:
    date: datetime
    quantity: Decimal
    consumed_by: str
    within_month: bool


@dataclass
class MaterialReportLine:
    batch_id: str
    material_code: str
    name: str
    remaining: Decimal
    additions: list[AdditionEntry] = field(default_factory=list)
    consumptions: list[ConsumptionEntry] = field(default_factory=list)
    monthly_added: Decimal = ZERO
    monthly_consumed: Decimal = ZERO

    def to_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "material_code": self.material_code,
            "name": self.name,
            "remaining": self.remaining,
            "additions": [
                {
                    "date": entry.date.date().isoformat(),
                    "quantity": entry.quantity,
                    "added_by": entry.added_by,
                    "within_month": entry.within_month,
                }
                for entry in self.additions
            ],
            "consumptions": [
                {
                    "date": entry.date.date().isoformat(),
                    "quantity": entry.quantity,
                    "consumed_by": entry.consumed_by,
                    "within_month": entry.within_month,
                }
                for entry in self.consumptions
            ],
            "monthly_added": self.monthly_added,
            "monthly_consumed": self.monthly_consumed,
        }


def _within(moment: datetime, start: datetime, end: datetime) -> bool:
    return start <= as_utc(moment) <= end


def build_report_line(batch: MaterialBatchModel, start: datetime, end: datetime) -> MaterialReportLine:
    delivered_in_month = _within(batch.delivered_at, start, end)
    consumptions = [
        ConsumptionEntry(
            date=as_utc(usage.occurred_at),
            quantity=usage.quantity,
            consumed_by=usage.taken_by or "N/A",
            within_month=_within(usage.occurred_at, start, end),
        )
        for usage in batch.usage_events
    ]
    return MaterialReportLine(
        batch_id=batch.id,
        material_code=batch.material_code,
        name=batch.name,
        remaining=batch.remaining_quantity,
        additions=[
            AdditionEntry(
                date=as_utc(batch.delivered_at),
                quantity=batch.delivered_quantity,
                added_by=batch.added_by,
                within_month=delivered_in_month,
            )
        ],
        consumptions=consumptions,
        monthly_added=batch.delivered_quantity if delivered_in_month else ZERO,
        monthly_consumed=sum((entry.quantity for entry in consumptions if entry.within_month), ZERO),
    )


def build_material_report(
    session: Session,
    project_id: str,
    year: int,
    month: int,
    tz_name: str | None = None,
) -> list[MaterialReportLine]:
    """Reconstruct a project's monthly material movements from batch history.

    Read-only: the same history always yields the same report.
    """
    start, end = month_range(year, month, tz_name or get_settings().report_timezone)
    project = get_project(session, project_id)
    batches = session.scalars(
        select(MaterialBatchModel)
        .where(MaterialBatchModel.project_id == project.id)
        .order_by(MaterialBatchModel.delivered_at.asc(), MaterialBatchModel.seq_id.asc())
    ).all()
    return [build_report_line(batch, start, end) for batch in batches]
