from __future__ import annotations
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.common.utils import to_money


class CamelModel(BaseModel):
    """Wire models use camelCase keys, matching the browser client."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ===========================
# ORDER CREATION
# ===========================
class CreateOrderRequest(CamelModel):
    course_id: Optional[str] = Field(None, examples=["C1"])
    course_title: Optional[str] = None
    amount: Optional[Decimal] = Field(None, examples=["499.00"])
    return_url: Optional[str] = None
    cancel_url: Optional[str] = None
    idempotency_key: Optional[str] = None


class CreateOrderResponse(CamelModel):
    order_id: str
    approval_url: Optional[str] = None
    status: Optional[str] = None


class PaymentLinkRequest(CamelModel):
    course_id: Optional[str] = None


# ===========================
# CAPTURE
# ===========================
class CaptureRequest(CamelModel):
    order_id: Optional[str] = None
    user_id: Optional[str] = None


class EnrollmentOutcome(str, Enum):
    enrolled = "enrolled"
    # Capture completed but nobody was signed in; claim after sign-up.
    deferred = "deferred"
    # Payment received, ledger write failed; queued for reconciliation.
    pending_reconciliation = "pending_reconciliation"
    not_enrolled = "not_enrolled"


class CaptureResponse(CamelModel):
    status: Optional[str] = None
    order_id: str
    payer_email: Optional[str] = None
    course_id: Optional[str] = None
    course_slug: Optional[str] = None
    enrollment_status: EnrollmentOutcome


# ===========================
# PENDING ORDERS
# ===========================
class PendingOrderStatus(str, Enum):
    created = "CREATED"
    captured = "CAPTURED"
    failed = "FAILED"
    expired = "EXPIRED"


class PendingOrder(BaseModel):
    order_id: str
    course_id: str
    course_slug: Optional[str] = None
    user_id: Optional[str] = None
    amount: Decimal
    currency: str = "ZAR"
    status: PendingOrderStatus = PendingOrderStatus.created
    provider_status: Optional[str] = None
    approval_url: Optional[str] = None
    idempotency_key: Optional[str] = None
    payer_email: Optional[str] = None
    created_at: Optional[datetime] = None
    expires_at: datetime
    captured_at: Optional[datetime] = None

    @field_validator("amount", mode="before")
    @classmethod
    def _coerce_amount(cls, v):
        return to_money(v)

    class Config:
        from_attributes = True

    def is_expired(self, now: datetime) -> bool:
        return self.status == PendingOrderStatus.created and now >= self.expires_at


class PendingOrderView(CamelModel):
    order_id: str
    course_id: str
    course_slug: Optional[str] = None
    status: PendingOrderStatus
    expires_at: datetime


class ExpiredOrdersResult(CamelModel):
    expired: int


# ===========================
# RECONCILIATION
# ===========================
class Reconciliation(BaseModel):
    id: str
    order_id: str
    user_id: str
    course_id: Optional[str] = None
    status: str = "open"
    attempts: int = 1
    last_error: Optional[str] = None
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None


class ReconciliationRunResult(BaseModel):
    attempted: int = 0
    resolved: int = 0
    still_open: int = 0
