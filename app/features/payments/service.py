"""PayPal checkout: order creation, capture, and enrollment reconciliation.

Lifecycle of one purchase::

    create_order  -> pending_orders row (CREATED, TTL) -> buyer approves at PayPal
    capture_order -> PayPal capture -> enrollment upsert -> pending row CAPTURED

The enrollment side effect is idempotent on (user_id, course_id). When the
ledger write fails after money was taken, the failure is queued in
``enrollment_reconciliations`` and the caller is told the enrollment is
pending rather than complete.
"""

from __future__ import annotations

import logging
import uuid
from datetime import timedelta
from typing import Any, Dict, Optional

from app.adapters.paypal_client import approval_url, get_paypal_client
from app.core.config import get_settings
from app.common import events
from app.common.deps import CurrentUser
from app.common.errors import (
    CaptureFailed,
    ForbiddenError,
    InputError,
    NotFoundError,
    OrderCreationFailed,
    OrderExpiredError,
)
from app.common.utils import current_timestamp, format_money, to_money
from app.features.courses.schemas import Course
from app.features.courses.service import get_course, require_published_course
from app.features.enrollments.schemas import EnrollmentSource
from app.features.enrollments.service import ensure_enrollment
from .repository import pending_order_repository, reconciliation_repository
from .schemas import (
    CaptureResponse,
    CreateOrderRequest,
    CreateOrderResponse,
    EnrollmentOutcome,
    PendingOrder,
    PendingOrderStatus,
    PendingOrderView,
    Reconciliation,
    ReconciliationRunResult,
)

logger = logging.getLogger("payments.service")

COMPLETED = "COMPLETED"


# ---------------------------------------------------------------------------
# Order creation
# ---------------------------------------------------------------------------
def build_order_payload(course: Course, *, currency: str, return_url: str, cancel_url: str) -> Dict[str, Any]:
    """PayPal Orders v2 body: one purchase unit carrying the course id as reference."""
    settings = get_settings()
    return {
        "intent": "CAPTURE",
        "purchase_units": [
            {
                "reference_id": course.id,
                "description": course.title[:127],
                "amount": {
                    "currency_code": currency,
                    "value": format_money(course.price),
                },
            }
        ],
        "payment_source": {
            "paypal": {
                "experience_context": {
                    "payment_method_preference": "IMMEDIATE_PAYMENT_REQUIRED",
                    "brand_name": settings.paypal_brand_name,
                    "locale": settings.paypal_locale,
                    "landing_page": "LOGIN",
                    "user_action": "PAY_NOW",
                    "return_url": return_url,
                    "cancel_url": cancel_url,
                }
            }
        },
    }


async def _replay_idempotent(key: str, course_id: str, user_id: Optional[str]) -> Optional[CreateOrderResponse]:
    row = await pending_order_repository.get_by_idempotency_key(key)
    if not row:
        return None
    pending = PendingOrder(**row)
    if pending.user_id != user_id:
        logger.warning("order.key_owner_mismatch key=%s owner=%s caller=%s", key, pending.user_id, user_id)
        raise ForbiddenError("Idempotency key belongs to another account")
    if pending.course_id != course_id:
        raise InputError("Idempotency key was already used for a different course")
    if pending.status != PendingOrderStatus.created or pending.is_expired(current_timestamp()):
        # A finished or stale order cannot be handed out again; the caller must use a fresh key.
        raise InputError("Idempotency key refers to an order that is no longer payable")
    logger.info("order.replayed order_id=%s key=%s", pending.order_id, key)
    return CreateOrderResponse(
        order_id=pending.order_id,
        approval_url=pending.approval_url,
        status=pending.provider_status,
    )


async def create_order(req: CreateOrderRequest, user: Optional[CurrentUser] = None,
                       idempotency_key: Optional[str] = None) -> CreateOrderResponse:
    settings = get_settings()
    if not req.course_id:
        raise InputError("Missing required fields")
    if req.amount is not None and req.amount <= 0:
        raise InputError("Amount must be greater than zero")

    course = await require_published_course(req.course_id)
    if course.is_free:
        raise InputError("This course is free; enroll without payment")
    if req.amount is not None and to_money(req.amount) != course.price:
        logger.warning("order.price_mismatch course_id=%s client=%s catalog=%s",
                       course.id, req.amount, course.price)
        raise InputError("Course price has changed. Please refresh and try again.")

    key = idempotency_key or req.idempotency_key
    if key:
        replay = await _replay_idempotent(key, course.id, user.id if user else None)
        if replay is not None:
            return replay
    request_id = key or str(uuid.uuid4())

    payload = build_order_payload(
        course,
        currency=settings.payment_currency,
        return_url=req.return_url or settings.default_return_url,
        cancel_url=req.cancel_url or settings.default_cancel_url,
    )
    order = await get_paypal_client().create_order(payload, request_id=f"order-{request_id}")
    order_id = order.get("id")
    if not order_id:
        raise OrderCreationFailed(provider_detail=str(order))
    link = approval_url(order)

    now = current_timestamp()
    record = {
        "order_id": order_id,
        "course_id": course.id,
        "course_slug": course.slug,
        "user_id": user.id if user else None,
        "amount": format_money(course.price),
        "currency": settings.payment_currency,
        "status": PendingOrderStatus.created.value,
        "provider_status": order.get("status"),
        "approval_url": link,
        "idempotency_key": key,
        "created_at": now.isoformat(),
        "expires_at": (now + timedelta(minutes=settings.pending_order_ttl_minutes)).isoformat(),
    }
    try:
        await pending_order_repository.insert(record)
    except Exception:
        # Capture can still recover the course from the order's reference_id.
        logger.exception("order.pending_persist_failed order_id=%s course_id=%s", order_id, course.id)

    logger.info("order.created order_id=%s course_id=%s amount=%s user_id=%s",
                order_id, course.id, record["amount"], record["user_id"])
    return CreateOrderResponse(order_id=order_id, approval_url=link, status=order.get("status"))


# ---------------------------------------------------------------------------
# Pending orders
# ---------------------------------------------------------------------------
async def _load_pending(order_id: str) -> Optional[PendingOrder]:
    row = await pending_order_repository.get(order_id)
    if not row:
        return None
    pending = PendingOrder(**row)
    if pending.is_expired(current_timestamp()):
        await pending_order_repository.update(order_id, {"status": PendingOrderStatus.expired.value})
        pending.status = PendingOrderStatus.expired
    return pending


async def get_pending_order(order_id: str) -> PendingOrderView:
    pending = await _load_pending(order_id)
    if pending is None:
        raise NotFoundError("Order not found")
    return PendingOrderView(
        order_id=pending.order_id,
        course_id=pending.course_id,
        course_slug=pending.course_slug,
        status=pending.status,
        expires_at=pending.expires_at,
    )


async def expire_stale_orders() -> int:
    count = await pending_order_repository.expire_stale(current_timestamp().isoformat())
    if count:
        logger.info("orders.expired count=%d", count)
    return count


# ---------------------------------------------------------------------------
# Capture & reconcile
# ---------------------------------------------------------------------------
def _resolve_payer(current: Optional[CurrentUser], body_user_id: Optional[str]) -> Optional[str]:
    if current is None:
        return body_user_id or None
    if body_user_id and body_user_id != current.id:
        raise ForbiddenError("userId does not match the signed-in user")
    return current.id


def _reference_id(capture: Dict[str, Any]) -> Optional[str]:
    units = capture.get("purchase_units") or []
    if not units:
        return None
    return units[0].get("reference_id")


async def _record_for_reconciliation(order_id: str, user_id: str, course_id: Optional[str], error: str) -> None:
    try:
        await reconciliation_repository.record(order_id, user_id, course_id, error)
        events.emit(events.PAYMENT, order_id=order_id)
    except Exception:
        logger.critical(
            "reconciliation.record_failed order_id=%s user_id=%s course_id=%s error=%s; manual remediation required",
            order_id, user_id, course_id, error, exc_info=True,
        )


async def _settle_enrollment(order_id: str, user_id: str, course_id: Optional[str]) -> EnrollmentOutcome:
    """Create the ledger row for a completed capture; queue it when that fails."""
    if not course_id:
        logger.error("capture.missing_reference order_id=%s user_id=%s", order_id, user_id)
        await _record_for_reconciliation(order_id, user_id, None, "capture carried no reference_id")
        return EnrollmentOutcome.pending_reconciliation
    try:
        await ensure_enrollment(user_id, course_id, source=EnrollmentSource.payment, order_id=order_id)
        return EnrollmentOutcome.enrolled
    except Exception as exc:  # noqa: BLE001
        logger.exception("capture.enrollment_failed order_id=%s user_id=%s course_id=%s", order_id, user_id, course_id)
        await _record_for_reconciliation(order_id, user_id, course_id, f"{type(exc).__name__}: {exc}")
        return EnrollmentOutcome.pending_reconciliation


async def capture_order(order_id: Optional[str], *, current: Optional[CurrentUser] = None,
                        body_user_id: Optional[str] = None) -> CaptureResponse:
    if not order_id:
        raise InputError("Missing order ID")
    user_id = _resolve_payer(current, body_user_id)

    pending = await _load_pending(order_id)
    if pending is not None:
        if pending.status == PendingOrderStatus.expired:
            raise OrderExpiredError()
        if pending.user_id:
            if user_id and user_id != pending.user_id:
                logger.warning("capture.owner_mismatch order_id=%s owner=%s caller=%s",
                               order_id, pending.user_id, user_id)
                raise ForbiddenError("This order belongs to another account")
            user_id = pending.user_id
        if pending.status == PendingOrderStatus.captured:
            # Already captured: never charge twice, only re-check the owner's enrollment.
            # A guest order has no owner yet and is attached through claim_order.
            outcome = EnrollmentOutcome.deferred
            if pending.user_id:
                outcome = await _settle_enrollment(order_id, pending.user_id, pending.course_id)
            logger.info("capture.replayed order_id=%s outcome=%s", order_id, outcome.value)
            return CaptureResponse(
                status=pending.provider_status or COMPLETED,
                order_id=order_id,
                payer_email=pending.payer_email,
                course_id=pending.course_id,
                course_slug=pending.course_slug,
                enrollment_status=outcome,
            )

    try:
        capture = await get_paypal_client().capture_order(order_id, request_id=f"capture-{order_id}")
    except CaptureFailed:
        if pending is not None:
            await pending_order_repository.update(order_id, {"status": PendingOrderStatus.failed.value})
        raise

    status = capture.get("status")
    course_id = _reference_id(capture) or (pending.course_id if pending else None)
    payer_email = (capture.get("payer") or {}).get("email_address")

    if status != COMPLETED:
        outcome = EnrollmentOutcome.not_enrolled
    elif user_id:
        outcome = await _settle_enrollment(order_id, user_id, course_id)
    else:
        outcome = EnrollmentOutcome.deferred

    course_slug = pending.course_slug if pending else None
    if course_slug is None and course_id:
        course = await get_course(course_id)
        course_slug = course.slug if course else None

    if pending is not None:
        fields: Dict[str, Any] = {"provider_status": status, "payer_email": payer_email}
        if status == COMPLETED:
            fields.update(status=PendingOrderStatus.captured.value, captured_at=current_timestamp().isoformat())
            if user_id:
                fields["user_id"] = user_id
        try:
            await pending_order_repository.update(order_id, fields)
        except Exception:
            logger.exception("capture.pending_update_failed order_id=%s", order_id)

    logger.info("capture.done order_id=%s status=%s course_id=%s user_id=%s outcome=%s",
                order_id, status, course_id, user_id, outcome.value)
    return CaptureResponse(
        status=status,
        order_id=capture.get("id") or order_id,
        payer_email=payer_email,
        course_id=course_id,
        course_slug=course_slug,
        enrollment_status=outcome,
    )


async def claim_order(order_id: str, user: CurrentUser) -> CaptureResponse:
    """Attach a guest checkout to the user who signed up afterwards."""
    pending = await _load_pending(order_id)
    if pending is None:
        raise NotFoundError("Order not found")
    if pending.status != PendingOrderStatus.captured:
        raise InputError("Payment for this order has not been captured")
    if pending.user_id and pending.user_id != user.id:
        raise ForbiddenError("This order belongs to another account")

    outcome = await _settle_enrollment(order_id, user.id, pending.course_id)
    if not pending.user_id:
        await pending_order_repository.update(order_id, {"user_id": user.id})
    logger.info("order.claimed order_id=%s user_id=%s outcome=%s", order_id, user.id, outcome.value)
    return CaptureResponse(
        status=pending.provider_status or COMPLETED,
        order_id=order_id,
        payer_email=pending.payer_email,
        course_id=pending.course_id,
        course_slug=pending.course_slug,
        enrollment_status=outcome,
    )


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------
async def list_open_reconciliations() -> list[Reconciliation]:
    rows = await reconciliation_repository.list_open()
    return [Reconciliation(**r) for r in rows]


async def retry_reconciliations() -> ReconciliationRunResult:
    result = ReconciliationRunResult()
    for item in await list_open_reconciliations():
        result.attempted += 1
        if not item.course_id:
            await reconciliation_repository.bump(item.id, item.attempts + 1, "no course id; resolve manually")
            result.still_open += 1
            continue
        try:
            await ensure_enrollment(item.user_id, item.course_id, source=EnrollmentSource.payment,
                                    order_id=item.order_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning("reconciliation.retry_failed id=%s order_id=%s err=%s", item.id, item.order_id, exc)
            await reconciliation_repository.bump(item.id, item.attempts + 1, f"{type(exc).__name__}: {exc}")
            result.still_open += 1
            continue
        await reconciliation_repository.resolve(item.id)
        result.resolved += 1
    if result.attempted:
        events.emit(events.PAYMENT)
        logger.info("reconciliation.run attempted=%d resolved=%d open=%d",
                    result.attempted, result.resolved, result.still_open)
    return result
