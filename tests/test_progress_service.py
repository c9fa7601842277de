import pytest

from app.common.errors import ForbiddenError, NotFoundError
from app.features.enrollments.schemas import EnrollmentSource
from app.features.enrollments.service import ensure_enrollment
from app.features.progress import service

pytestmark = pytest.mark.anyio("asyncio")


def test_score_answers_rounds_percentage():
    questions = [{"id": "a", "correct_answer": 0}, {"id": "b", "correct_answer": 1}, {"id": "c", "correct_answer": 2}]
    assert service.score_answers(questions, {"a": 0, "b": 1, "c": 0}) == 67
    assert service.score_answers(questions, {}) == 0
    assert service.score_answers([], {"a": 0}) == 0


async def test_lesson_progress_requires_enrollment(fake_db, student):
    with pytest.raises(ForbiddenError):
        await service.mark_lesson_complete(student, "L1")
    assert fake_db.rows("lesson_progress") == []


async def test_admin_bypasses_enrollment_gate(fake_db, admin):
    progress = await service.mark_lesson_complete(admin, "L1")
    assert progress.completed


async def test_progress_percent_after_completion(fake_db, student):
    await ensure_enrollment(student.id, "C1", source=EnrollmentSource.payment)
    before = await service.course_progress(student, "C1")
    assert before.percent_complete == 0

    await service.mark_lesson_complete(student, "L1")
    await service.mark_lesson_complete(student, "L1")

    after = await service.course_progress(student, "C1")
    assert (after.total_lessons, after.completed_lessons, after.percent_complete) == (2, 1, 50)
    assert len(fake_db.rows("lesson_progress")) == 1


async def test_unknown_lesson(fake_db, student):
    with pytest.raises(NotFoundError):
        await service.mark_lesson_complete(student, "missing")


async def test_quiz_hides_answers_from_students(fake_db, student, admin):
    await ensure_enrollment(student.id, "C1", source=EnrollmentSource.payment)
    quiz = await service.get_quiz(student, "Q1")
    assert [q.correct_answer for q in quiz.questions] == [None, None]
    quiz_admin = await service.get_quiz(admin, "Q1")
    assert [q.correct_answer for q in quiz_admin.questions] == [0, 1]


async def test_submit_quiz_scores_and_records_attempt(fake_db, student):
    await ensure_enrollment(student.id, "C1", source=EnrollmentSource.payment)

    failed = await service.submit_quiz(student, "Q1", {"QQ1": 0, "QQ2": 0})
    passed = await service.submit_quiz(student, "Q1", {"QQ1": 0, "QQ2": 1})

    assert (failed.score, failed.passed) == (50, False)
    assert (passed.score, passed.passed) == (100, True)
    assert len(await service.list_attempts(student, "Q1")) == 2


async def test_quiz_requires_enrollment(fake_db, student):
    with pytest.raises(ForbiddenError):
        await service.submit_quiz(student, "Q1", {"QQ1": 0})
