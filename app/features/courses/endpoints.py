from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, HTTPException, Query

from .schemas import Course, CourseType
from .service import get_course_by_slug, list_published_courses

router = APIRouter(prefix="/courses", tags=["Courses"])


@router.get("/", response_model=List[Course], summary="List published courses")
async def list_courses(
    category: Optional[str] = Query(None, description="Category slug"),
    course_type: Optional[CourseType] = Query(None),
):
    return await list_published_courses(category, course_type.value if course_type else None)


@router.get("/{slug}", response_model=Course, summary="Course detail by slug")
async def read_course(slug: str):
    course = await get_course_by_slug(slug)
    if not course or not course.is_published:
        raise HTTPException(status_code=404, detail="Course not found")
    return course
