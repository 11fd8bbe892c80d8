from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum

from sqlalchemy import Select, select
from sqlalchemy.orm import Session

from siteops.core.errors import NotFoundError, StockRemainingError, ValidationError
from siteops.core.timeutils import isoformat_z, now_utc, parse_datetime
from siteops.domain.projects import get_active_project
from siteops.persistence.models import MaterialBatchModel
from siteops.persistence.pg import flush

logger = logging.getLogger(__name__)

QUANTITY_PLACES = 3
MONEY_PLACES = 2
MAX_WHOLE_DIGITS = 11
ZERO = Decimal("0")


class BatchStatus(str, Enum):
    AVAILABLE = "Available"
    OUT_OF_STOCK = "Out of Stock"
    ON_HOLD = "On Hold"

    @classmethod
    def parse(cls, value: str) -> "BatchStatus":
        normalized = " ".join(value.replace("_", " ").split()).lower()
        for status in cls:
            if status.value.lower() == normalized:
                return status
        raise ValidationError(f"invalid status value: {value!r}")


def _to_decimal(value, field: str, places: int, allow_zero: bool) -> Decimal:
    try:
        number = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"{field} must be a number") from exc
    if not number.is_finite():
        raise ValidationError(f"{field} must be a number")
    if number < ZERO or (number == ZERO and not allow_zero):
        raise ValidationError(f"{field} must be greater than 0")
    # Refuse anything finer than the column scale instead of rounding it.
    if number.normalize().as_tuple().exponent < -places:
        raise ValidationError(f"{field} allows at most {places} decimal places")
    if number.adjusted() >= MAX_WHOLE_DIGITS:
        raise ValidationError(f"{field} is too large")
    return number


def to_quantity(value, field: str = "quantity", allow_zero: bool = False) -> Decimal:
    return _to_decimal(value, field, QUANTITY_PLACES, allow_zero)


def to_amount(value, field: str = "amount") -> Decimal:
    return _to_decimal(value, field, MONEY_PLACES, allow_zero=True)


def _require_text(value: str | None, field: str) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    return str(value).strip()


def add_batch(
    session: Session,
    material_code: str,
    name: str,
    quantity,
    added_by: str,
    project_id: str,
    amount=0,
    delivered_at: str | datetime | None = None,
    document: str | None = None,
) -> MaterialBatchModel:
    """Record one inbound delivery; the whole quantity starts out as remaining."""
    material_code = _require_text(material_code, "material_code")
    name = _require_text(name, "name")
    added_by = _require_text(added_by, "added_by")
    delivered = to_quantity(quantity)
    unit_amount = to_amount(amount)
    project = get_active_project(session, _require_text(project_id, "project_id"))

    batch = MaterialBatchModel(
        material_code=material_code,
        name=name,
        delivered_quantity=delivered,
        remaining_quantity=delivered,
        written_off_quantity=ZERO,
        unit_amount=unit_amount,
        delivered_at=parse_datetime(delivered_at),
        added_by=added_by,
        document=document or None,
        status=BatchStatus.AVAILABLE.value,
        project_id=project.id,
    )
    session.add(batch)
    flush(session)
    logger.info(
        "material batch added: id=%s code=%s qty=%s project=%s by=%s",
        batch.id,
        material_code,
        delivered,
        project.id,
        added_by,
    )
    return batch


def live_batches_stmt() -> Select[tuple[MaterialBatchModel]]:
    return select(MaterialBatchModel).where(MaterialBatchModel.deleted_at.is_(None))


def get_batch(session: Session, batch_id: str) -> MaterialBatchModel:
    batch = session.scalar(live_batches_stmt().where(MaterialBatchModel.id == batch_id))
    if batch is None:
        raise NotFoundError(f"material batch not found: {batch_id}")
    return batch


def list_batches(
    session: Session,
    material_code: str | None = None,
    project_id: str | None = None,
    include_deleted: bool = False,
) -> list[MaterialBatchModel]:
    stmt = select(MaterialBatchModel) if include_deleted else live_batches_stmt()
    if material_code:
        stmt = stmt.where(MaterialBatchModel.material_code == material_code)
    if project_id:
        stmt = stmt.where(MaterialBatchModel.project_id == project_id)
    stmt = stmt.order_by(MaterialBatchModel.delivered_at.asc(), MaterialBatchModel.seq_id.asc())
    return list(session.scalars(stmt).all())


def group_batches_by_code(batches: list[MaterialBatchModel]) -> list[dict]:
    grouped: dict[str, list[MaterialBatchModel]] = {}
    for batch in batches:
        grouped.setdefault(batch.material_code, []).append(batch)
    return [{"material_code": code, "batches": items} for code, items in grouped.items()]


def update_status_by_code(session: Session, material_code: str, status: str | BatchStatus) -> int:
    """Set the status of every live batch of a code.

    Marking a code out of stock zeroes the remaining quantity of each batch and
    books the zeroed amount as written off, so that
    ``remaining == delivered - consumed - written_off`` keeps holding.
    """
    target = status if isinstance(status, BatchStatus) else BatchStatus.parse(status)
    batches = list(session.scalars(live_batches_stmt().where(MaterialBatchModel.material_code == material_code)).all())
    if not batches:
        raise NotFoundError(f"no materials found with material code: {material_code}")

    modified = 0
    for batch in batches:
        changed = batch.status != target.value
        batch.status = target.value
        if target is BatchStatus.OUT_OF_STOCK and batch.remaining_quantity > ZERO:
            logger.info(
                "writing off material batch: id=%s code=%s qty=%s",
                batch.id,
                batch.material_code,
                batch.remaining_quantity,
            )
            batch.written_off_quantity += batch.remaining_quantity
            batch.remaining_quantity = ZERO
            changed = True
        if changed:
            modified += 1
    flush(session)
    return modified


def delete_batch(session: Session, batch_id: str) -> MaterialBatchModel:
    batch = get_batch(session, batch_id)
    if batch.remaining_quantity > ZERO:
        logger.warning("refused to delete batch with stock: id=%s remaining=%s", batch.id, batch.remaining_quantity)
        raise StockRemainingError(
            f"material batch {batch.id} still holds {batch.remaining_quantity}; consume or write it off first"
        )
    batch.deleted_at = now_utc()
    flush(session)
    logger.info("material batch deleted: id=%s code=%s", batch.id, batch.material_code)
    return batch


def delete_batches_by_code(session: Session, material_code: str) -> int:
    batches = list(session.scalars(live_batches_stmt().where(MaterialBatchModel.material_code == material_code)).all())
    if not batches:
        raise NotFoundError(f"no materials found with material code: {material_code}")
    stocked = [batch for batch in batches if batch.remaining_quantity > ZERO]
    if stocked:
        total = sum((batch.remaining_quantity for batch in stocked), ZERO)
        logger.warning("refused to delete material code with stock: code=%s remaining=%s", material_code, total)
        raise StockRemainingError(
            f"{len(stocked)} batch(es) of {material_code} still hold {total}; consume or write them off first"
        )
    deleted_at = now_utc()
    for batch in batches:
        batch.deleted_at = deleted_at
    flush(session)
    logger.info("material code deleted: code=%s batches=%d", material_code, len(batches))
    return len(batches)


def batch_to_dict(batch: MaterialBatchModel, include_usage: bool = True, include_project: bool = False) -> dict:
    data = {
        "id": batch.id,
        "material_code": batch.material_code,
        "name": batch.name,
        "delivered_quantity": batch.delivered_quantity,
        "remaining_quantity": batch.remaining_quantity,
        "written_off_quantity": batch.written_off_quantity,
        "amount": batch.unit_amount,
        "delivered_at": isoformat_z(batch.delivered_at),
        "added_by": batch.added_by,
        "document": batch.document,
        "status": batch.status,
        "project_id": batch.project_id,
        "deleted_at": isoformat_z(batch.deleted_at),
        "created_at": isoformat_z(batch.created_at),
        "updated_at": isoformat_z(batch.updated_at),
    }
    if include_project:
        data["project_assigned"] = {"id": batch.project.id, "name": batch.project.name}
    if include_usage:
        data["usage_events"] = [
            {
                "consumption_id": usage.consumption_id,
                "taken_by": usage.taken_by,
                "quantity": usage.quantity,
                "date": isoformat_z(usage.occurred_at),
            }
            for usage in batch.usage_events
        ]
    return data
