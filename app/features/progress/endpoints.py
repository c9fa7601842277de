from __future__ import annotations
from typing import List

from fastapi import APIRouter, Depends

from app.common.deps import CurrentUser, get_current_user
from .schemas import CourseProgress, LessonProgress, Quiz, QuizAttempt, QuizSubmission
from . import service

router = APIRouter(prefix="/progress", tags=["Progress"])
quiz_router = APIRouter(prefix="/quizzes", tags=["Quizzes"])


@router.post("/lessons/{lesson_id}/complete", response_model=LessonProgress, summary="Mark a lesson complete")
async def complete_lesson(lesson_id: str, user: CurrentUser = Depends(get_current_user)):
    return await service.mark_lesson_complete(user, lesson_id)


@router.get("/courses/{course_id}", response_model=CourseProgress, summary="My progress in a course")
async def read_course_progress(course_id: str, user: CurrentUser = Depends(get_current_user)):
    return await service.course_progress(user, course_id)


@quiz_router.get("/{quiz_id}", response_model=Quiz, summary="Quiz with its questions")
async def read_quiz(quiz_id: str, user: CurrentUser = Depends(get_current_user)):
    return await service.get_quiz(user, quiz_id)


@quiz_router.post("/{quiz_id}/attempts", response_model=QuizAttempt, status_code=201, summary="Submit answers")
async def submit_attempt(quiz_id: str, body: QuizSubmission, user: CurrentUser = Depends(get_current_user)):
    return await service.submit_quiz(user, quiz_id, body.answers)


@quiz_router.get("/{quiz_id}/attempts", response_model=List[QuizAttempt], summary="My attempts")
async def read_attempts(quiz_id: str, user: CurrentUser = Depends(get_current_user)):
    return await service.list_attempts(user, quiz_id)
