# Overview: Domain error taxonomy shared by the ledger, order and catalog services.

"""
Service-layer errors.

Every error carries a stable `kind`, the HTTP status the API layer maps it to,
and an optional `details` dict (e.g. which order line failed). Routes render
them with `to_response()`; services never build HTTP responses themselves.
"""

from __future__ import annotations


class ServiceError(Exception):
    """Base class for expected business failures."""

    kind = "error"
    status_code = 400
    label = "Request failed"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_response(self) -> tuple[dict, int]:
        body = {"error": self.label, "kind": self.kind, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body, self.status_code


class NotFoundError(ServiceError):
    """Product, order or ledger record absent."""

    kind = "not_found"
    status_code = 404
    label = "Not found"


class InsufficientStockError(ServiceError):
    """Requested decrement exceeds the on-hand quantity."""

    kind = "insufficient_stock"
    status_code = 400
    label = "Insufficient stock"


class InvalidStateError(ServiceError):
    """Mutation attempted on a record whose status does not allow it."""

    kind = "invalid_state"
    status_code = 400
    label = "Invalid state"


class ConflictError(ServiceError):
    """409-level business rule conflict (e.g., duplicate SKU)."""

    kind = "conflict"
    status_code = 409
    label = "Conflict"


def internal_error_response() -> tuple[dict, int]:
    return {"error": "Internal server error", "kind": "internal", "message": "Internal server error"}, 500
