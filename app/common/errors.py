"""Application error taxonomy.

Every error carries the HTTP status and the user-facing message; handlers in
``app.main`` turn them into ``{"error": message}`` responses.
"""

from __future__ import annotations

from typing import Optional


class AppError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class ConfigurationError(AppError):
    """Missing or invalid secrets. Fatal, message surfaced verbatim."""

    status_code = 500
    default_message = "Service is not configured"


class PaymentProviderError(AppError):
    status_code = 500
    default_message = "Payment provider error"

    def __init__(self, message: Optional[str] = None, *, provider_status: Optional[int] = None,
                 provider_detail: Optional[str] = None) -> None:
        super().__init__(message)
        self.provider_status = provider_status
        self.provider_detail = provider_detail


class PaymentProviderUnavailable(PaymentProviderError):
    default_message = "Payment provider unavailable"


class OrderCreationFailed(PaymentProviderError):
    default_message = "Failed to create PayPal order"


class CaptureFailed(PaymentProviderError):
    default_message = "Failed to capture payment"


class InputError(AppError):
    status_code = 400
    default_message = "Invalid request"


class ForbiddenError(AppError):
    status_code = 403
    default_message = "Not allowed"


class NotFoundError(AppError):
    status_code = 404
    default_message = "Not found"


class AlreadyEnrolledError(AppError):
    status_code = 409
    default_message = "This student is already enrolled in this course"


class OrderExpiredError(AppError):
    status_code = 410
    default_message = "This order has expired. Please start checkout again."
