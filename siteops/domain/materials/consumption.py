from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Sequence

from sqlalchemy.orm import Session

from siteops.core.errors import InsufficientStockError, MaterialNotFoundError, ValidationError
from siteops.core.timeutils import isoformat_z, parse_datetime
from siteops.domain.materials.batches import ZERO, BatchStatus, live_batches_stmt, to_quantity
from siteops.persistence.models import MaterialBatchModel, MaterialUsageEventModel
from siteops.persistence.pg import flush

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Allocation:
    batch_id: str
    quantity: Decimal


@dataclass
class ConsumptionResult:
    consumption_id: str
    material_code: str
    requested_quantity: Decimal
    taken_by: str
    occurred_at: datetime
    allocations: list[Allocation] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "consumption_id": self.consumption_id,
            "material_code": self.material_code,
            "requested_quantity": self.requested_quantity,
            "taken_by": self.taken_by,
            "date": isoformat_z(self.occurred_at),
            "allocations": [
                {"batch_id": item.batch_id, "quantity": item.quantity} for item in self.allocations
            ],
        }


def plan_fifo_allocation(
    batches: Sequence[MaterialBatchModel],
    quantity: Decimal,
    material_code: str = "",
) -> list[Allocation]:
    """Split ``quantity`` across ``batches`` in the given (oldest first) order.

    Raises ``InsufficientStockError`` before anything is allocated when the
    batches together hold less than requested.
    """
    available = sum((batch.remaining_quantity for batch in batches), ZERO)
    if available < quantity:
        raise InsufficientStockError(material_code, quantity, available)

    needed = quantity
    allocations: list[Allocation] = []
    for batch in batches:
        if needed <= ZERO:
            break
        take = min(batch.remaining_quantity, needed)
        if take <= ZERO:
            continue
        allocations.append(Allocation(batch_id=batch.id, quantity=take))
        needed -= take
    return allocations


def select_fifo_batches(session: Session, material_code: str) -> list[MaterialBatchModel]:
    stmt = (
        live_batches_stmt()
        .where(MaterialBatchModel.material_code == material_code)
        .where(MaterialBatchModel.remaining_quantity > 0)
        .where(MaterialBatchModel.status != BatchStatus.OUT_OF_STOCK.value)
        .order_by(MaterialBatchModel.delivered_at.asc(), MaterialBatchModel.seq_id.asc())
        .with_for_update()
    )
    return list(session.scalars(stmt).all())


def consume_material(
    session: Session,
    material_code: str,
    quantity,
    taken_by: str,
    occurred_at: str | datetime | None = None,
) -> ConsumptionResult:
    """Withdraw ``quantity`` of a material, depleting the oldest deliveries first.

    Every touched batch gets one usage event. All mutations are flushed in the
    caller's transaction, so a failure part-way leaves no batch modified once
    the transaction rolls back.
    """
    if not material_code or not material_code.strip():
        raise ValidationError("material_code is required")
    if not taken_by or not taken_by.strip():
        raise ValidationError("taken_by is required")
    material_code = material_code.strip()
    requested = to_quantity(quantity)
    when = parse_datetime(occurred_at)

    batches = select_fifo_batches(session, material_code)
    if not batches:
        logger.warning("consumption refused, no stock: code=%s requested=%s", material_code, requested)
        raise MaterialNotFoundError(material_code)

    try:
        allocations = plan_fifo_allocation(batches, requested, material_code)
    except InsufficientStockError as exc:
        logger.warning(
            "consumption refused, insufficient stock: code=%s requested=%s available=%s",
            material_code,
            exc.requested,
            exc.available,
        )
        raise

    result = ConsumptionResult(
        consumption_id=str(uuid.uuid4()),
        material_code=material_code,
        requested_quantity=requested,
        taken_by=taken_by.strip(),
        occurred_at=when,
        allocations=allocations,
    )
    by_id = {batch.id: batch for batch in batches}
    for allocation in allocations:
        batch = by_id[allocation.batch_id]
        batch.remaining_quantity -= allocation.quantity
        batch.usage_events.append(
            MaterialUsageEventModel(
                consumption_id=result.consumption_id,
                taken_by=result.taken_by,
                quantity=allocation.quantity,
                occurred_at=when,
            )
        )
    flush(session)

    logger.info(
        "material consumed: code=%s qty=%s batches=%d by=%s consumption_id=%s",
        material_code,
        requested,
        len(allocations),
        result.taken_by,
        result.consumption_id,
    )
    return result
