from __future__ import annotations
from typing import Any, Dict, List
from pydantic import BaseModel


class AdminStats(BaseModel):
    total_students: int = 0
    published_courses: int = 0
    total_enrollments: int = 0
    completed_enrollments: int = 0


class RecentProgress(BaseModel):
    lesson_completions: List[Dict[str, Any]] = []
    quiz_attempts: List[Dict[str, Any]] = []
