"""Enrollment Ledger.

An enrollment row exists for a (user, course) pair only when one of these
holds: a PayPal capture for the course completed, an admin recorded the
enrollment as paid/free, or the course costs nothing. All write paths share
the ``(user_id, course_id)`` unique key.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from app.common import events
from app.common.errors import AlreadyEnrolledError, InputError, NotFoundError
from app.features.courses.service import get_course
from app.features.profiles.service import profiles_by_user_id
from .repository import enrollment_repository
from .schemas import (
    Enrollment,
    EnrollmentAdminView,
    EnrollmentSource,
    EnrollmentWithCourse,
    ManualEnrollmentRequest,
)

logger = logging.getLogger("enrollments.service")


async def ensure_enrollment(user_id: str, course_id: str, *, source: EnrollmentSource,
                            order_id: Optional[str] = None) -> tuple[Enrollment, bool]:
    """Idempotently create the ledger row. Safe to call for every duplicate capture."""
    row, created = await enrollment_repository.upsert(user_id, course_id, source=source.value, order_id=order_id)
    if created:
        logger.info("enrollment.created user_id=%s course_id=%s source=%s order_id=%s",
                    user_id, course_id, source.value, order_id)
        events.emit(events.ENROLLMENT, user_id=user_id, course_id=course_id)
    return Enrollment(**row), created


async def get_enrollment(user_id: str, course_id: str) -> Optional[Enrollment]:
    row = await enrollment_repository.get(user_id, course_id)
    return Enrollment(**row) if row else None


async def is_enrolled(user_id: str, course_id: str) -> bool:
    return await enrollment_repository.get(user_id, course_id) is not None


async def list_my_enrollments(user_id: str) -> List[EnrollmentWithCourse]:
    rows = await enrollment_repository.list_for_user(user_id)
    return [EnrollmentWithCourse(**r) for r in rows]


async def manual_enroll(request: ManualEnrollmentRequest) -> Enrollment:
    """Admin override. Validates before touching the ledger."""
    if not request.user_id or not request.course_id:
        raise InputError("Please select both a student and a course")

    course = await get_course(request.course_id)
    if course is None:
        raise NotFoundError("Course not found")
    if not course.is_free and not request.payment_received:
        raise InputError('Check "Payment received" after confirming payment to enable enrollment')

    existing = await enrollment_repository.get(request.user_id, request.course_id)
    if existing:
        raise AlreadyEnrolledError()

    source = EnrollmentSource.free if course.is_free else EnrollmentSource.admin
    row = await enrollment_repository.insert(request.user_id, request.course_id, source=source.value)
    logger.info("enrollment.manual user_id=%s course_id=%s source=%s", request.user_id, request.course_id, source.value)
    events.emit(events.ENROLLMENT, user_id=request.user_id, course_id=request.course_id)
    return Enrollment(**row)


async def enroll_free(user_id: str, course_id: str) -> Enrollment:
    """Self-service enrollment, only for published free courses."""
    course = await get_course(course_id)
    if course is None or not course.is_published:
        raise NotFoundError("Course not found")
    if not course.is_free:
        raise InputError("This course requires payment")
    enrollment, _ = await ensure_enrollment(user_id, course_id, source=EnrollmentSource.free)
    return enrollment


async def complete_enrollment(user_id: str, course_id: str) -> Enrollment:
    row = await enrollment_repository.mark_completed(user_id, course_id)
    if not row:
        raise NotFoundError("Enrollment not found")
    events.emit(events.ENROLLMENT, user_id=user_id, course_id=course_id)
    return Enrollment(**row)


async def list_all_enrollments() -> List[EnrollmentAdminView]:
    rows = await enrollment_repository.list_all()
    profiles = await profiles_by_user_id([r["user_id"] for r in rows])
    return [EnrollmentAdminView(**r, profile=profiles.get(r["user_id"])) for r in rows]
