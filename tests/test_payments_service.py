from datetime import timedelta
from decimal import Decimal

import pytest

from app.common.errors import CaptureFailed, ForbiddenError, InputError, OrderExpiredError
from app.common.utils import current_timestamp
from app.features.payments import service
from app.features.payments.schemas import CreateOrderRequest, EnrollmentOutcome, PendingOrderStatus

pytestmark = pytest.mark.anyio("asyncio")


def _enrollments(db, user_id, course_id="C1"):
    return [r for r in db.rows("enrollments") if r["user_id"] == user_id and r["course_id"] == course_id]


async def test_create_order_uses_catalog_price_and_course_reference(fake_db, fake_paypal, student):
    resp = await service.create_order(CreateOrderRequest(course_id="C1", amount=Decimal("499")), student)

    payload, request_id = fake_paypal.created[0]
    unit = payload["purchase_units"][0]
    assert unit["reference_id"] == "C1"
    assert unit["amount"] == {"currency_code": "ZAR", "value": "499.00"}
    assert payload["intent"] == "CAPTURE"
    context = payload["payment_source"]["paypal"]["experience_context"]
    assert context["return_url"] == "https://ccpq.test/payment-success"
    assert context["cancel_url"] == "https://ccpq.test/courses"
    assert request_id.startswith("order-")

    assert resp.order_id == "ORDER-1"
    assert resp.approval_url == "https://www.paypal.test/checkoutnow?token=ORDER-1"
    pending = fake_db.rows("pending_orders")[0]
    assert pending["status"] == "CREATED"
    assert pending["user_id"] == student.id
    assert pending["course_slug"] == "project-management"


async def test_create_order_formats_fractional_prices(fake_db, fake_paypal):
    await service.create_order(CreateOrderRequest(course_id="C2"))
    assert fake_paypal.created[0][0]["purchase_units"][0]["amount"]["value"] == "1250.50"


async def test_price_mismatch_is_rejected_before_provider_call(fake_db, fake_paypal, student):
    with pytest.raises(InputError) as exc:
        await service.create_order(CreateOrderRequest(course_id="C1", amount=Decimal("399.00")), student)
    assert "price has changed" in exc.value.message
    assert fake_paypal.created == []


@pytest.mark.parametrize("course_id", ["FREE1", "DRAFT1", None])
async def test_unpayable_courses_are_rejected(fake_db, fake_paypal, course_id):
    with pytest.raises(InputError):
        await service.create_order(CreateOrderRequest(course_id=course_id))
    assert fake_paypal.created == []


async def test_idempotency_key_reuses_the_first_order(fake_db, fake_paypal, student):
    first = await service.create_order(CreateOrderRequest(course_id="C1"), student, idempotency_key="k-1")
    second = await service.create_order(CreateOrderRequest(course_id="C1"), student, idempotency_key="k-1")

    assert len(fake_paypal.created) == 1
    assert second.order_id == first.order_id
    assert fake_paypal.created[0][1] == "order-k-1"


async def test_idempotency_key_for_another_course_is_refused(fake_db, fake_paypal, student):
    await service.create_order(CreateOrderRequest(course_id="C1"), student, idempotency_key="k-2")
    with pytest.raises(InputError):
        await service.create_order(CreateOrderRequest(course_id="C2"), student, idempotency_key="k-2")


async def test_pending_order_round_trip(fake_db, fake_paypal, student):
    created = await service.create_order(CreateOrderRequest(course_id="C1"), student)
    view = await service.get_pending_order(created.order_id)
    assert view.course_id == "C1"
    assert view.course_slug == "project-management"
    assert view.status == PendingOrderStatus.created


async def test_capture_enrolls_once_even_when_repeated(fake_db, fake_paypal, student):
    created = await service.create_order(CreateOrderRequest(course_id="C1"), student)

    first = await service.capture_order(created.order_id, current=student)
    second = await service.capture_order(created.order_id, current=student)

    assert first.status == "COMPLETED"
    assert first.enrollment_status == EnrollmentOutcome.enrolled
    assert first.course_slug == "project-management"
    assert first.payer_email == "buyer@example.com"
    assert second.enrollment_status == EnrollmentOutcome.enrolled
    assert len(fake_paypal.captured) == 1
    assert len(_enrollments(fake_db, student.id)) == 1
    assert _enrollments(fake_db, student.id)[0]["source"] == "payment"
    assert fake_db.rows("pending_orders")[0]["status"] == "CAPTURED"


async def test_incomplete_capture_does_not_enroll(fake_db, fake_paypal, student):
    fake_paypal.capture_status = "PENDING"
    created = await service.create_order(CreateOrderRequest(course_id="C1"), student)

    result = await service.capture_order(created.order_id, current=student)

    assert result.status == "PENDING"
    assert result.enrollment_status == EnrollmentOutcome.not_enrolled
    assert _enrollments(fake_db, student.id) == []


async def test_store_outage_queues_reconciliation(fake_db, fake_paypal, student):
    created = await service.create_order(CreateOrderRequest(course_id="C1"), student)
    fake_db.fail("enrollments")

    result = await service.capture_order(created.order_id, current=student)

    assert result.status == "COMPLETED"
    assert result.enrollment_status == EnrollmentOutcome.pending_reconciliation
    outbox = fake_db.rows("enrollment_reconciliations")
    assert len(outbox) == 1
    assert outbox[0]["order_id"] == created.order_id
    assert outbox[0]["status"] == "open"

    fake_db.failures.clear()
    run = await service.retry_reconciliations()
    assert (run.attempted, run.resolved, run.still_open) == (1, 1, 0)
    assert len(_enrollments(fake_db, student.id)) == 1
    assert fake_db.rows("enrollment_reconciliations")[0]["status"] == "resolved"


async def test_capture_without_pending_row_uses_reference_id(fake_db, fake_paypal, student):
    result = await service.capture_order("ORDER-UNKNOWN", current=student)
    assert result.course_id == "C1"
    assert result.course_slug == "project-management"
    assert len(_enrollments(fake_db, student.id)) == 1


async def test_guest_capture_is_deferred_until_claimed(fake_db, fake_paypal, student):
    created = await service.create_order(CreateOrderRequest(course_id="C1"))

    captured = await service.capture_order(created.order_id)
    assert captured.enrollment_status == EnrollmentOutcome.deferred
    assert fake_db.rows("enrollments") == []

    claimed = await service.claim_order(created.order_id, student)
    assert claimed.enrollment_status == EnrollmentOutcome.enrolled
    assert len(_enrollments(fake_db, student.id)) == 1
    assert fake_db.rows("pending_orders")[0]["user_id"] == student.id


async def test_body_user_must_match_token(fake_db, fake_paypal, student):
    created = await service.create_order(CreateOrderRequest(course_id="C1"), student)
    with pytest.raises(ForbiddenError):
        await service.capture_order(created.order_id, current=student, body_user_id="someone-else")
    assert fake_paypal.captured == []


async def test_missing_order_id_is_rejected(fake_db, fake_paypal):
    with pytest.raises(InputError):
        await service.capture_order(None)


async def test_expired_order_cannot_be_captured(fake_db, fake_paypal, student):
    created = await service.create_order(CreateOrderRequest(course_id="C1"), student)
    fake_db.rows("pending_orders")[0]["expires_at"] = (current_timestamp() - timedelta(minutes=1)).isoformat()

    with pytest.raises(OrderExpiredError):
        await service.capture_order(created.order_id, current=student)
    assert fake_paypal.captured == []
    assert fake_db.rows("pending_orders")[0]["status"] == "EXPIRED"


async def test_expire_stale_orders_marks_only_old_created_rows(fake_db, fake_paypal, student):
    await service.create_order(CreateOrderRequest(course_id="C1"), student)
    await service.create_order(CreateOrderRequest(course_id="C2"), student)
    fake_db.rows("pending_orders")[0]["expires_at"] = (current_timestamp() - timedelta(hours=1)).isoformat()

    assert await service.expire_stale_orders() == 1
    assert [r["status"] for r in fake_db.rows("pending_orders")] == ["EXPIRED", "CREATED"]


async def test_failed_capture_marks_order_failed(fake_db, fake_paypal, student):
    created = await service.create_order(CreateOrderRequest(course_id="C1"), student)

    async def _boom(order_id, *, request_id=None):
        raise CaptureFailed(provider_status=422, provider_detail="INSTRUMENT_DECLINED")

    fake_paypal.capture_order = _boom
    with pytest.raises(CaptureFailed):
        await service.capture_order(created.order_id, current=student)
    assert fake_db.rows("pending_orders")[0]["status"] == "FAILED"
    assert fake_db.rows("enrollments") == []


async def test_replayed_capture_only_settles_for_the_order_owner(fake_db, fake_paypal, student, other_student):
    created = await service.create_order(CreateOrderRequest(course_id="C1"), student)
    await service.capture_order(created.order_id, current=student)

    with pytest.raises(ForbiddenError):
        await service.capture_order(created.order_id, body_user_id=other_student.id)
    with pytest.raises(ForbiddenError):
        await service.capture_order(created.order_id, current=other_student)

    anonymous = await service.capture_order(created.order_id)
    assert anonymous.enrollment_status == EnrollmentOutcome.enrolled
    assert {r["user_id"] for r in fake_db.rows("enrollments")} == {student.id}
    assert len(fake_paypal.captured) == 1


async def test_first_capture_refuses_a_different_user(fake_db, fake_paypal, student, other_student):
    created = await service.create_order(CreateOrderRequest(course_id="C1"), student)

    with pytest.raises(ForbiddenError):
        await service.capture_order(created.order_id, current=other_student)
    assert fake_paypal.captured == []
    assert fake_db.rows("enrollments") == []


async def test_anonymous_capture_settles_for_the_order_owner(fake_db, fake_paypal, student):
    created = await service.create_order(CreateOrderRequest(course_id="C1"), student)

    result = await service.capture_order(created.order_id)

    assert result.enrollment_status == EnrollmentOutcome.enrolled
    assert len(_enrollments(fake_db, student.id)) == 1


async def test_captured_guest_order_is_not_enrolled_by_replay(fake_db, fake_paypal, other_student):
    created = await service.create_order(CreateOrderRequest(course_id="C1"))
    await service.capture_order(created.order_id)

    replay = await service.capture_order(created.order_id, body_user_id=other_student.id)

    assert replay.enrollment_status == EnrollmentOutcome.deferred
    assert fake_db.rows("enrollments") == []
    assert fake_db.rows("pending_orders")[0]["user_id"] is None


async def test_idempotency_key_is_scoped_to_its_owner(fake_db, fake_paypal, student, other_student):
    await service.create_order(CreateOrderRequest(course_id="C1"), student, idempotency_key="k-3")

    with pytest.raises(ForbiddenError):
        await service.create_order(CreateOrderRequest(course_id="C1"), other_student, idempotency_key="k-3")
    with pytest.raises(ForbiddenError):
        await service.create_order(CreateOrderRequest(course_id="C1"), None, idempotency_key="k-3")
    assert len(fake_paypal.created) == 1
