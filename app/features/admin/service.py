"""Read models and overrides for the admin dashboard."""

from __future__ import annotations

import asyncio
import logging

from app.common import cache
from app.common.errors import InputError
from app.features.courses.repository import course_repository
from app.features.enrollments.repository import enrollment_repository
from app.features.payments import service as payments
from app.features.payments.schemas import CreateOrderRequest, CreateOrderResponse
from app.features.profiles.service import count_profiles
from app.features.progress.service import recent_activity
from .schemas import AdminStats, RecentProgress

logger = logging.getLogger("admin.service")

STATS_KEY = "stats:dashboard"
RECENT_PROGRESS_LIMIT = 100


async def get_stats() -> AdminStats:
    cached = cache.get(STATS_KEY)
    if cached is not None:
        return cached
    students, courses, enrollments, completed = await asyncio.gather(
        count_profiles(),
        course_repository.count_published(),
        enrollment_repository.count(),
        enrollment_repository.count(completed_only=True),
    )
    stats = AdminStats(
        total_students=students,
        published_courses=courses,
        total_enrollments=enrollments,
        completed_enrollments=completed,
    )
    cache.set(STATS_KEY, stats)
    return stats


async def get_recent_progress() -> RecentProgress:
    return RecentProgress(**await recent_activity(RECENT_PROGRESS_LIMIT))


async def create_payment_link(course_id: str | None) -> CreateOrderResponse:
    """Provider order with no buyer attached; the admin confirms payment by hand.

    The approval link pays for this one order and is returned to the admin only.
    """
    if not course_id:
        raise InputError("Please select a course")
    response = await payments.create_order(CreateOrderRequest(course_id=course_id), None)
    logger.info("admin.payment_link course_id=%s order_id=%s", course_id, response.order_id)
    return response
