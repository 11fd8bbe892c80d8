from siteops.domain.materials.aggregates import MaterialTotal, total_available, total_consumed
from siteops.domain.materials.batches import (
    BatchStatus,
    add_batch,
    delete_batch,
    delete_batches_by_code,
    get_batch,
    list_batches,
    update_status_by_code,
)
from siteops.domain.materials.consumption import Allocation, ConsumptionResult, consume_material
from siteops.domain.materials.reports import MaterialReportLine, build_material_report

__all__ = [
    "Allocation",
    "BatchStatus",
    "ConsumptionResult",
    "MaterialReportLine",
    "MaterialTotal",
    "add_batch",
    "build_material_report",
    "consume_material",
    "delete_batch",
    "delete_batches_by_code",
    "get_batch",
    "list_batches",
    "total_available",
    "total_consumed",
    "update_status_by_code",
]
