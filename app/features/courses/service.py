from __future__ import annotations
from typing import List, Optional

from app.common import events
from app.common.errors import InputError, NotFoundError
from .repository import course_repository
from .schemas import Course, CourseContentUpdate


async def get_course(course_id: str) -> Optional[Course]:
    row = await course_repository.get(course_id)
    return Course(**row) if row else None


async def get_course_by_slug(slug: str) -> Optional[Course]:
    row = await course_repository.get_by_slug(slug)
    return Course(**row) if row else None


async def require_published_course(course_id: str) -> Course:
    """Fetch a course that can be sold: it must exist and be published."""
    course = await get_course(course_id)
    if course is None:
        raise NotFoundError("Course not found")
    if not course.is_published:
        raise InputError("Course is not available for purchase")
    return course


async def list_published_courses(category_slug: Optional[str] = None,
                                 course_type: Optional[str] = None) -> List[Course]:
    category_id = None
    if category_slug:
        category = await course_repository.get_category_by_slug(category_slug)
        if not category:
            return []
        category_id = category["id"]
    rows = await course_repository.list(published_only=True, course_type=course_type, category_id=category_id)
    return [Course(**r) for r in rows]


async def list_all_courses() -> List[Course]:
    rows = await course_repository.list(published_only=False)
    return [Course(**r) for r in rows]


async def update_course_content(course_id: str, content: CourseContentUpdate) -> Course:
    fields = content.model_dump(exclude_none=True)
    if not fields:
        raise InputError("No content fields supplied")
    row = await course_repository.update(course_id, fields)
    if not row:
        raise NotFoundError("Course not found")
    events.emit(events.COURSE, course_id=course_id)
    return Course(**row)
