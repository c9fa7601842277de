from __future__ import annotations
from typing import Any, Dict, List, Optional

from app.DB.supabase import get_supabase
from app.DB.query import execute, execute_one, execute_count
from app.common import cache

_WITH_CATEGORY = "*, category:course_categories(*)"
# Published courses still lacking generated long-form content.
MISSING_CONTENT_FILTER = "learning_outcomes.is.null,learning_outcomes.eq.,who_should_take.is.null,who_should_take.eq."


class CourseRepository:
    async def get(self, course_id: str) -> Optional[Dict[str, Any]]:
        client = await get_supabase()
        return await execute_one(
            client.table("courses").select(_WITH_CATEGORY).eq("id", course_id).limit(1),
            op="courses.select_by_id",
        )

    async def get_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        key = f"courses:slug:{slug}"
        cached = cache.get(key)
        if cached is not None:
            return cached
        client = await get_supabase()
        row = await execute_one(
            client.table("courses").select(_WITH_CATEGORY).eq("slug", slug).limit(1),
            op="courses.select_by_slug",
        )
        if row:
            cache.set(key, row)
        return row

    async def list(self, *, published_only: bool = True, course_type: Optional[str] = None,
                   category_id: Optional[str] = None) -> List[Dict[str, Any]]:
        client = await get_supabase()
        query = client.table("courses").select(_WITH_CATEGORY)
        if published_only:
            query = query.eq("is_published", True)
        if course_type:
            query = query.eq("course_type", course_type)
        if category_id:
            query = query.eq("category_id", category_id)
        return await execute(query.order("title"), op="courses.list")

    async def get_category_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        client = await get_supabase()
        return await execute_one(
            client.table("course_categories").select("*").eq("slug", slug).limit(1),
            op="course_categories.select_by_slug",
        )

    async def count_published(self) -> int:
        client = await get_supabase()
        return await execute_count(
            client.table("courses").select("id", count="exact").eq("is_published", True),
            op="courses.count_published",
        )

    async def list_missing_content(self, limit: int) -> List[Dict[str, Any]]:
        client = await get_supabase()
        return await execute(
            client.table("courses")
            .select("id, title, description, curriculum, duration")
            .eq("is_published", True)
            .or_(MISSING_CONTENT_FILTER)
            .limit(limit),
            op="courses.list_missing_content",
        )

    async def count_missing_content(self) -> int:
        client = await get_supabase()
        return await execute_count(
            client.table("courses")
            .select("id", count="exact")
            .eq("is_published", True)
            .or_(MISSING_CONTENT_FILTER),
            op="courses.count_missing_content",
        )

    async def update(self, course_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        client = await get_supabase()
        return await execute_one(
            client.table("courses").update(fields).eq("id", course_id),
            op="courses.update",
        )


course_repository = CourseRepository()
