from __future__ import annotations
from typing import List

from fastapi import APIRouter, Depends

from app.common.deps import CurrentUser, get_current_user
from .schemas import Enrollment, EnrollmentStatus, EnrollmentWithCourse
from . import service

router = APIRouter(prefix="/enrollments", tags=["Enrollments"])


@router.get("/me", response_model=List[EnrollmentWithCourse], summary="My enrollments")
async def my_enrollments(user: CurrentUser = Depends(get_current_user)):
    return await service.list_my_enrollments(user.id)


@router.get("/me/{course_id}", response_model=EnrollmentStatus, summary="Am I enrolled in this course")
async def my_enrollment(course_id: str, user: CurrentUser = Depends(get_current_user)):
    enrollment = await service.get_enrollment(user.id, course_id)
    return EnrollmentStatus(course_id=course_id, enrolled=enrollment is not None, enrollment=enrollment)


@router.post(
    "/me/{course_id}",
    response_model=Enrollment,
    status_code=201,
    summary="Enroll in a free course",
    description="Paid courses are enrolled through the PayPal checkout instead.",
)
async def enroll_in_free_course(course_id: str, user: CurrentUser = Depends(get_current_user)):
    return await service.enroll_free(user.id, course_id)


@router.post("/me/{course_id}/complete", response_model=Enrollment, summary="Mark my course as completed")
async def complete_course(course_id: str, user: CurrentUser = Depends(get_current_user)):
    return await service.complete_enrollment(user.id, course_id)
