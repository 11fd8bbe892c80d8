from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from siteops.domain.materials.batches import ZERO
from siteops.persistence.models import MaterialBatchModel, MaterialUsageEventModel


@dataclass(frozen=True)
class MaterialTotal:
    material_code: str
    total: Decimal


def _as_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    return value if isinstance(value, Decimal) else Decimal(str(value))


def total_available(session: Session, material_code: str | None = None) -> list[MaterialTotal]:
    """Sum of remaining quantity per material code over live batches."""
    stmt = (
        select(MaterialBatchModel.material_code, func.sum(MaterialBatchModel.remaining_quantity))
        .where(MaterialBatchModel.deleted_at.is_(None))
        .group_by(MaterialBatchModel.material_code)
        .order_by(MaterialBatchModel.material_code.asc())
    )
    if material_code is not None:
        stmt = stmt.where(MaterialBatchModel.material_code == material_code)
    rows = [MaterialTotal(code, _as_decimal(total)) for code, total in session.execute(stmt).all()]
    if material_code is not None and not rows:
        return [MaterialTotal(material_code, ZERO)]
    return rows


def total_consumed(session: Session, material_code: str | None = None) -> list[MaterialTotal]:
    """Sum of usage quantities per material code, tombstoned batches included."""
    stmt = (
        select(MaterialBatchModel.material_code, func.sum(MaterialUsageEventModel.quantity))
        .join(MaterialUsageEventModel, MaterialUsageEventModel.batch_seq_id == MaterialBatchModel.seq_id)
        .group_by(MaterialBatchModel.material_code)
        .order_by(MaterialBatchModel.material_code.asc())
    )
    if material_code is not None:
        stmt = stmt.where(MaterialBatchModel.material_code == material_code)
    rows = [MaterialTotal(code, _as_decimal(total)) for code, total in session.execute(stmt).all()]
    if material_code is not None and not rows:
        return [MaterialTotal(material_code, ZERO)]
    return rows


def available_for(session: Session, material_code: str) -> Decimal:
    return total_available(session, material_code)[0].total


def consumed_for(session: Session, material_code: str) -> Decimal:
    return total_consumed(session, material_code)[0].total
