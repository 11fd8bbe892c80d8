from __future__ import annotations

from decimal import Decimal


class SiteOpsError(Exception):
    error_code = "api_error"
    http_status = 500

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(SiteOpsError, ValueError):
    error_code = "validation_error"
    http_status = 400


class NotFoundError(SiteOpsError, LookupError):
    error_code = "not_found"
    http_status = 404


class MaterialNotFoundError(NotFoundError):
    def __init__(self, material_code: str):
        super().__init__(f"material not found or out of stock: {material_code}")
        self.material_code = material_code


class ConflictError(SiteOpsError):
    error_code = "conflict"
    http_status = 409


class InsufficientStockError(ConflictError):
    error_code = "insufficient_stock"

    def __init__(self, material_code: str, requested: Decimal, available: Decimal):
        super().__init__(
            f"not enough material available for {material_code}: requested={requested} available={available}"
        )
        self.material_code = material_code
        self.requested = requested
        self.available = available


class StockRemainingError(ConflictError):
    error_code = "stock_remaining"


class AuthenticationError(SiteOpsError):
    error_code = "authentication_failed"
    http_status = 401


class PermissionDeniedError(SiteOpsError, PermissionError):
    error_code = "permission_denied"
    http_status = 403


class PersistenceError(SiteOpsError):
    error_code = "persistence_error"
    http_status = 500
