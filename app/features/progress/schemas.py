from __future__ import annotations
from datetime import datetime
from typing import Dict, List, Optional
from pydantic import BaseModel, Field


class LessonProgress(BaseModel):
    id: Optional[str] = None
    user_id: str
    lesson_id: str
    completed: bool = False
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CourseProgress(BaseModel):
    course_id: str
    total_lessons: int
    completed_lessons: int
    percent_complete: int
    lessons: List[LessonProgress] = []


class QuizQuestion(BaseModel):
    id: str
    quiz_id: str
    question: str
    options: List[str]
    order_index: int = 0
    correct_answer: Optional[int] = None


class Quiz(BaseModel):
    id: str
    module_id: str
    title: str
    description: Optional[str] = None
    passing_score: int = 70
    order_index: int = 0
    questions: List[QuizQuestion] = []


class QuizSubmission(BaseModel):
    # question id -> index of the chosen option
    answers: Dict[str, int] = Field(default_factory=dict)


class QuizAttempt(BaseModel):
    id: Optional[str] = None
    user_id: str
    quiz_id: str
    score: int
    passed: bool
    answers: Dict[str, int] = {}
    attempted_at: Optional[datetime] = None
