# Overview: Typed business errors carrying an HTTP status; mapped to the JSON error envelope in create_app.

"""
Error taxonomy for the order core.

Every business-rule failure is raised as an AppError subclass. Routes never
catch these themselves: the handlers registered in create_app() turn them into

    {"success": false, "error": <code>, "message": <text>, "details": {...}}

with the status code carried by the error class. Anything that is not an
AppError is logged and returned as an opaque 500.
"""

from __future__ import annotations


class AppError(Exception):
    """Base class for errors that map to a client-visible HTTP response."""
    status_code = 400
    code = "BAD_REQUEST"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {
            "success": False,
            "error": self.code,
            "message": self.message,
        }
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(AppError):
    """400-level input problem. Field-level messages go in details["errors"]."""
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, errors: list[str] | None = None):
        super().__init__(message, details={"errors": errors or [message]})
        self.errors = errors or [message]


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"


class MappingNotFoundError(NotFoundError):
    code = "MAPPING_NOT_FOUND"

    def __init__(self, external_product_id: str, source: str):
        super().__init__(
            f"No product mapping found for external product ID: {external_product_id} (source: {source})",
            details={"external_product_id": external_product_id, "source": source},
        )
        self.external_product_id = external_product_id
        self.source = source


class InsufficientStockError(AppError):
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_name: str, requested: int | None = None, available: int | None = None):
        details = {"product": product_name}
        if requested is not None:
            details["requested"] = requested
        if available is not None:
            details["available"] = available
        super().__init__(f"Insufficient stock for product: {product_name}", details=details)
        self.product_name = product_name


class InvalidTransitionError(AppError):
    code = "INVALID_TRANSITION"


class InvalidStatusError(AppError):
    code = "INVALID_STATUS"


class PaymentNotCompletedError(AppError):
    code = "PAYMENT_NOT_COMPLETED"

    def __init__(self, payment_status: str | None):
        status = payment_status or "PENDING"
        super().__init__(
            "Order cannot be completed. Payment must be completed first. "
            f"Current payment status: {status}",
            details={"payment_status": status},
        )
        self.payment_status = status


class OverReturnError(AppError):
    code = "OVER_RETURN"

    def __init__(self, message: str, available: int):
        super().__init__(message, details={"available": available})
        self.available = available


class OrderNotEditableError(AppError):
    code = "ORDER_NOT_EDITABLE"


class AlreadyCancelledError(AppError):
    code = "ALREADY_CANCELLED"


class PaymentError(AppError):
    code = "PAYMENT_ERROR"


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class ConflictError(AppError):
    """409-level business rule conflict (e.g., duplicate external order)."""
    status_code = 409
    code = "CONFLICT"


class ServiceUnavailableError(AppError):
    """Store-level contention that outlived the retry budget; safe to retry."""
    status_code = 503
    code = "RETRYABLE"


class OrderNotReturnableError(AppError):
    """A CANCELLED order has already been restocked in full; nothing is left to return."""
    code = "ORDER_NOT_RETURNABLE"
