"""Lesson completion and quiz attempts.

Progress is only recorded for learners enrolled in the lesson's course;
admins may write progress anywhere (content previews and support).
"""

from __future__ import annotations

import logging
from typing import Dict, List

from app.common import cache, events
from app.common.deps import CurrentUser
from app.common.errors import ForbiddenError, NotFoundError
from app.common.utils import iso_now
from app.features.enrollments.service import is_enrolled
from .repository import progress_repository
from .schemas import CourseProgress, LessonProgress, Quiz, QuizAttempt, QuizQuestion

logger = logging.getLogger("progress.service")


async def _course_of_module(module_id: str) -> str:
    module = await progress_repository.get_module(module_id)
    if not module:
        raise NotFoundError("Module not found")
    return module["course_id"]


async def _ensure_access(user: CurrentUser, course_id: str) -> None:
    if user.can("progress.bypass_enrollment"):
        return
    if not await is_enrolled(user.id, course_id):
        raise ForbiddenError("Enroll in this course to access its lessons")


async def mark_lesson_complete(user: CurrentUser, lesson_id: str) -> LessonProgress:
    lesson = await progress_repository.get_lesson(lesson_id)
    if not lesson:
        raise NotFoundError("Lesson not found")
    await _ensure_access(user, await _course_of_module(lesson["module_id"]))
    row = await progress_repository.upsert_lesson_progress(user.id, lesson_id)
    events.emit(events.LESSON_PROGRESS, user_id=user.id, lesson_id=lesson_id)
    return LessonProgress(**row)


async def course_progress(user: CurrentUser, course_id: str) -> CourseProgress:
    key = f"progress:{user.id}:{course_id}"
    cached = cache.get(key)
    if cached is not None:
        return cached
    lesson_ids = await progress_repository.lesson_ids_for_course(course_id)
    rows = await progress_repository.progress_for_lessons(user.id, lesson_ids)
    lessons = [LessonProgress(**r) for r in rows]
    done = sum(1 for p in lessons if p.completed)
    total = len(lesson_ids)
    result = CourseProgress(
        course_id=course_id,
        total_lessons=total,
        completed_lessons=done,
        percent_complete=round(100 * done / total) if total else 0,
        lessons=lessons,
    )
    cache.set(key, result)
    return result


async def get_quiz(user: CurrentUser, quiz_id: str) -> Quiz:
    row = await progress_repository.get_quiz(quiz_id)
    if not row:
        raise NotFoundError("Quiz not found")
    await _ensure_access(user, await _course_of_module(row["module_id"]))
    questions = [QuizQuestion(**q) for q in await progress_repository.quiz_questions(quiz_id)]
    if not user.is_admin:
        for q in questions:
            q.correct_answer = None
    return Quiz(**row, questions=questions)


def score_answers(questions: List[Dict], answers: Dict[str, int]) -> int:
    """Percentage of questions answered correctly, rounded to an int."""
    if not questions:
        return 0
    correct = sum(1 for q in questions if answers.get(str(q["id"])) == q.get("correct_answer"))
    return round(100 * correct / len(questions))


async def submit_quiz(user: CurrentUser, quiz_id: str, answers: Dict[str, int]) -> QuizAttempt:
    quiz = await progress_repository.get_quiz(quiz_id)
    if not quiz:
        raise NotFoundError("Quiz not found")
    await _ensure_access(user, await _course_of_module(quiz["module_id"]))
    questions = await progress_repository.quiz_questions(quiz_id)
    score = score_answers(questions, answers)
    passed = score >= int(quiz.get("passing_score") or 70)
    row = await progress_repository.insert_attempt({
        "user_id": user.id,
        "quiz_id": quiz_id,
        "score": score,
        "passed": passed,
        "answers": answers,
        "attempted_at": iso_now(),
    })
    logger.info("quiz.attempt user_id=%s quiz_id=%s score=%d passed=%s", user.id, quiz_id, score, passed)
    events.emit(events.QUIZ_ATTEMPT, user_id=user.id, quiz_id=quiz_id)
    return QuizAttempt(**row)


async def list_attempts(user: CurrentUser, quiz_id: str) -> List[QuizAttempt]:
    rows = await progress_repository.list_attempts(user.id, quiz_id)
    return [QuizAttempt(**r) for r in rows]


async def recent_activity(limit: int = 100) -> Dict[str, list]:
    return {
        "lesson_completions": await progress_repository.recent_completions(limit),
        "quiz_attempts": await progress_repository.recent_attempts(limit),
    }
