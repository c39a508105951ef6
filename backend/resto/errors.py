# Overview: Domain exception taxonomy shared by services and routes.

"""
Error taxonomy.

Services raise these; routes translate them into the JSON envelope with the
matching HTTP status. Anything not listed here is reported as a generic 500.
"""

from __future__ import annotations


class DomainError(Exception):
    """Base class for errors that map to a client-facing response."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(DomainError, ValueError):
    """400-level input problem, reported as a list of field errors."""

    def __init__(self, message: str = "Invalid data", errors: list[dict] | None = None):
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def single(cls, field: str, message: str) -> "ValidationError":
        return cls(message, errors=[{"field": field, "message": message}])


class NotFoundError(DomainError):
    """Entity is absent, inactive, or belongs to another restaurant."""

    status_code = 404


class OrderItemNotFoundError(NotFoundError):
    """An order line names an inventory item the restaurant cannot sell."""

    status_code = 400


class InsufficientStockError(DomainError):
    """Requested order quantity exceeds what the inventory item has on hand."""

    status_code = 400

    def __init__(self, item_name: str, available: int):
        super().__init__(f"Insufficient stock for {item_name}. Available: {available}")
        self.item_name = item_name
        self.available = available


class ConflictError(DomainError, ValueError):
    """Business rule conflict (duplicate email, shift already open)."""

    status_code = 400


class InvalidStateError(DomainError):
    """Operation is not allowed in the entity's current lifecycle state."""

    status_code = 400


class AuthenticationError(DomainError):
    """Missing, invalid or expired credentials."""

    status_code = 401


class PermissionDeniedError(DomainError):
    """Authenticated user lacks the role required for the operation."""

    status_code = 403
