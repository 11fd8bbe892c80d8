from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from siteops.core.security import Actor, get_actor, get_admin
from siteops.domain.materials import (
    add_batch,
    consume_material,
    delete_batch,
    delete_batches_by_code,
    list_batches,
    total_available,
    total_consumed,
    update_status_by_code,
)
from siteops.domain.materials.batches import batch_to_dict, group_batches_by_code
from siteops.persistence.pg import get_session

router = APIRouter(prefix="/api/materials", tags=["materials"])


class AddBatchRequest(BaseModel):
    material_code: str = Field(min_length=1)
    name: str = Field(min_length=1)
    quantity: Decimal = Field(gt=0, decimal_places=3)
    amount: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    added_by: str = Field(min_length=1)
    date: datetime | None = None
    project_id: str = Field(min_length=1)
    document: str | None = None


class TakeMaterialRequest(BaseModel):
    material_code: str = Field(min_length=1)
    quantity: Decimal = Field(gt=0, decimal_places=3)
    taken_by: str = Field(min_length=1)
    date: datetime | None = None


class StatusUpdateRequest(BaseModel):
    status: str


@router.post("/add", status_code=201)
def add_material(
    request: AddBatchRequest,
    _: Actor = Depends(get_admin),
    session: Session = Depends(get_session),
):
    batch = add_batch(
        session,
        material_code=request.material_code,
        name=request.name,
        quantity=request.quantity,
        added_by=request.added_by,
        project_id=request.project_id,
        amount=request.amount,
        delivered_at=request.date,
        document=request.document,
    )
    return batch_to_dict(batch)


@router.post("/take")
def take_material(
    request: TakeMaterialRequest,
    _: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    result = consume_material(
        session,
        material_code=request.material_code,
        quantity=request.quantity,
        taken_by=request.taken_by,
        occurred_at=request.date,
    )
    return {"message": "Material taken successfully", "consumption": result.to_dict()}


@router.get("")
def get_materials(
    material_code: str | None = Query(default=None),
    project_id: str | None = Query(default=None),
    _: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    batches = list_batches(session, material_code=material_code, project_id=project_id)
    return {"count": len(batches), "materials": [batch_to_dict(batch) for batch in batches]}


@router.get("/all-details-grouped")
def get_materials_grouped(
    _: Actor = Depends(get_actor),
    session: Session = Depends(get_session),
):
    groups = group_batches_by_code(list_batches(session))
    return [
        {
            "material_code": group["material_code"],
            "documents": [batch_to_dict(b, include_project=True) for b in group["batches"]],
        }
        for group in groups
    ]


@router.get("/total-availability")
def get_total_availability(
    material_code: str | None = Query(default=None),
    _: Actor = Depends(get_admin),
    session: Session = Depends(get_session),
):
    return [
        {"material_code": item.material_code, "total_available": item.total}
        for item in total_available(session, material_code)
    ]


@router.get("/total-consumed")
def get_total_consumed(
    material_code: str | None = Query(default=None),
    _: Actor = Depends(get_admin),
    session: Session = Depends(get_session),
):
    return [
        {"material_code": item.material_code, "total_consumed": item.total}
        for item in total_consumed(session, material_code)
    ]


@router.put("/status/{material_code}")
def put_material_status(
    material_code: str,
    request: StatusUpdateRequest,
    _: Actor = Depends(get_admin),
    session: Session = Depends(get_session),
):
    modified = update_status_by_code(session, material_code, request.status)
    return {"message": f"Status updated for material code {material_code}", "modified_count": modified}


@router.delete("/by-code/{material_code}")
def delete_material_code(
    material_code: str,
    _: Actor = Depends(get_admin),
    session: Session = Depends(get_session),
):
    deleted = delete_batches_by_code(session, material_code)
    return {"message": f"Deleted {deleted} material(s) with material code: {material_code}", "deleted_count": deleted}


@router.delete("/{batch_id}")
def delete_material_batch(
    batch_id: str,
    _: Actor = Depends(get_admin),
    session: Session = Depends(get_session),
):
    delete_batch(session, batch_id)
    return {"message": "Material document deleted successfully"}
