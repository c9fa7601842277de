from __future__ import annotations
from typing import Any, Dict, List, Optional

from app.DB.supabase import get_supabase
from app.DB.query import execute, execute_one
from app.common.utils import iso_now


class ProgressRepository:
    async def get_lesson(self, lesson_id: str) -> Optional[Dict[str, Any]]:
        client = await get_supabase()
        return await execute_one(
            client.table("lessons").select("id, module_id, title").eq("id", lesson_id).limit(1),
            op="lessons.select",
        )

    async def get_module(self, module_id: str) -> Optional[Dict[str, Any]]:
        client = await get_supabase()
        return await execute_one(
            client.table("modules").select("id, course_id, title").eq("id", module_id).limit(1),
            op="modules.select",
        )

    async def lesson_ids_for_course(self, course_id: str) -> List[str]:
        client = await get_supabase()
        modules = await execute(
            client.table("modules").select("id").eq("course_id", course_id),
            op="modules.list_for_course",
        )
        module_ids = [m["id"] for m in modules]
        if not module_ids:
            return []
        lessons = await execute(
            client.table("lessons").select("id").in_("module_id", module_ids).order("order_index"),
            op="lessons.list_for_modules",
        )
        return [l["id"] for l in lessons]

    async def upsert_lesson_progress(self, user_id: str, lesson_id: str) -> Dict[str, Any]:
        client = await get_supabase()
        row = await execute_one(
            client.table("lesson_progress").upsert(
                {"user_id": user_id, "lesson_id": lesson_id, "completed": True, "completed_at": iso_now()},
                on_conflict="user_id,lesson_id",
            ),
            op="lesson_progress.upsert",
        )
        if not row:
            raise RuntimeError("Failed to persist lesson progress")
        return row

    async def progress_for_lessons(self, user_id: str, lesson_ids: List[str]) -> List[Dict[str, Any]]:
        if not lesson_ids:
            return []
        client = await get_supabase()
        return await execute(
            client.table("lesson_progress").select("*").eq("user_id", user_id).in_("lesson_id", lesson_ids),
            op="lesson_progress.list",
        )

    async def get_quiz(self, quiz_id: str) -> Optional[Dict[str, Any]]:
        client = await get_supabase()
        return await execute_one(
            client.table("quizzes").select("*").eq("id", quiz_id).limit(1),
            op="quizzes.select",
        )

    async def quiz_questions(self, quiz_id: str) -> List[Dict[str, Any]]:
        client = await get_supabase()
        return await execute(
            client.table("quiz_questions").select("*").eq("quiz_id", quiz_id).order("order_index"),
            op="quiz_questions.list",
        )

    async def insert_attempt(self, record: Dict[str, Any]) -> Dict[str, Any]:
        client = await get_supabase()
        row = await execute_one(client.table("quiz_attempts").insert(record), op="quiz_attempts.insert")
        if not row:
            raise RuntimeError("Failed to persist quiz attempt")
        return row

    async def list_attempts(self, user_id: str, quiz_id: str) -> List[Dict[str, Any]]:
        client = await get_supabase()
        return await execute(
            client.table("quiz_attempts")
            .select("*")
            .eq("user_id", user_id)
            .eq("quiz_id", quiz_id)
            .order("attempted_at", desc=True),
            op="quiz_attempts.list",
        )

    async def recent_completions(self, limit: int = 100) -> List[Dict[str, Any]]:
        client = await get_supabase()
        return await execute(
            client.table("lesson_progress")
            .select("*, lesson:lessons(title, module:modules(title, course:courses(title)))")
            .eq("completed", True)
            .order("completed_at", desc=True)
            .limit(limit),
            op="lesson_progress.recent",
        )

    async def recent_attempts(self, limit: int = 100) -> List[Dict[str, Any]]:
        client = await get_supabase()
        return await execute(
            client.table("quiz_attempts")
            .select("*, quiz:quizzes(title, module:modules(title, course:courses(title)))")
            .order("attempted_at", desc=True)
            .limit(limit),
            op="quiz_attempts.recent",
        )


progress_repository = ProgressRepository()
