"""Errors raised by the billing services.

Every error raised inside a booking transaction aborts the whole unit of work;
callers receive one of these with a human readable message and can rely on no
stock, history or booking row having been changed by the failed attempt.
"""

from __future__ import annotations


class BillingError(Exception):
    """Base class for failures surfaced by the billing services."""

    status_code = 500
    default_message = "Billing operation failed."

    def __init__(self, message: str | None = None, *, detail=None):
        self.message = message or self.default_message
        self.detail = detail
        # Set by the coordinator to the stage that was running when it failed.
        self.stage: str | None = None
        super().__init__(self.message)


class ValidationError(BillingError):
    """A required field is missing or malformed; raised before any mutation."""

    status_code = 400
    default_message = "Missing required fields."


class InsufficientStock(BillingError):
    """Requested cases exceed the ``current_cases`` of a stock row."""

    status_code = 409
    default_message = "Insufficient stock."

    def __init__(self, message: str | None = None, *, stock_id=None, available=None, requested=None):
        super().__init__(message)
        self.stock_id = stock_id
        self.available = available
        self.requested = requested


class NotFound(BillingError):
    status_code = 404
    default_message = "Not found."


class AlreadyConverted(BillingError):
    """The challan has already been billed."""

    status_code = 409
    default_message = "Challan has already been converted to a bill."


class InternalFailure(BillingError):
    """Document generation or storage failure."""

    status_code = 500
    default_message = "Internal failure while processing the booking."


class RenderError(InternalFailure):
    default_message = "Failed to generate the invoice document."


__all__ = [
    "AlreadyConverted",
    "BillingError",
    "InsufficientStock",
    "InternalFailure",
    "NotFound",
    "RenderError",
    "ValidationError",
]
