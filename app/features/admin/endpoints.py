from typing import List

from fastapi import APIRouter, Depends, status

from app.common.deps import CurrentUser, require_admin
from app.features.courses.schemas import Course
from app.features.courses.service import list_all_courses
from app.features.enrollments import service as enrollments
from app.features.enrollments.schemas import Enrollment, EnrollmentAdminView, ManualEnrollmentRequest
from app.features.payments import service as payments
from app.features.payments.schemas import (
    CreateOrderResponse,
    ExpiredOrdersResult,
    PaymentLinkRequest,
    Reconciliation,
    ReconciliationRunResult,
)
from app.features.profiles.schemas import ProfileWithRoles
from app.features.profiles.service import list_profiles
from .schemas import AdminStats, RecentProgress
from . import service

router = APIRouter(prefix="/admin", tags=["Admin"], dependencies=[Depends(require_admin())])


@router.get("/stats", response_model=AdminStats, summary="Dashboard totals (Admin)")
async def stats():
    return await service.get_stats()


@router.get("/enrollments", response_model=List[EnrollmentAdminView], summary="All enrollments (Admin)")
async def list_enrollments():
    return await enrollments.list_all_enrollments()


@router.post(
    "/enrollments",
    response_model=Enrollment,
    status_code=status.HTTP_201_CREATED,
    summary="Enroll a student manually (Admin)",
    description=(
        "Body `{userId, courseId, paymentReceived}`. Paid courses need `paymentReceived=true`. "
        "Returns 409 when the student is already enrolled."
    ),
)
async def manual_enroll(body: ManualEnrollmentRequest):
    return await enrollments.manual_enroll(body)


@router.post("/payment-links", response_model=CreateOrderResponse, summary="Create a payable link (Admin)")
async def payment_link(body: PaymentLinkRequest):
    return await service.create_payment_link(body.course_id)


@router.get("/students", response_model=List[ProfileWithRoles], summary="Students with roles (Admin)")
async def list_students():
    return await list_profiles()


@router.get("/progress", response_model=RecentProgress, summary="Recent learner activity (Admin)")
async def recent_progress():
    return await service.get_recent_progress()


@router.get("/reconciliations", response_model=List[Reconciliation], summary="Open enrollment reconciliations")
async def list_reconciliations():
    return await payments.list_open_reconciliations()


@router.post("/reconciliations/retry", response_model=ReconciliationRunResult,
             summary="Retry open enrollment reconciliations")
async def retry_reconciliations():
    return await payments.retry_reconciliations()


@router.post("/orders/expire", response_model=ExpiredOrdersResult, summary="Expire stale pending orders")
async def expire_orders():
    return ExpiredOrdersResult(expired=await payments.expire_stale_orders())


@router.get("/courses", response_model=List[Course], summary="All courses including drafts (Admin)")
async def list_courses():
    return await list_all_courses()
