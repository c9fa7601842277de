from __future__ import annotations
from typing import Any, Dict, List, Optional, Tuple
import logging

from postgrest.exceptions import APIError

from app.DB.supabase import get_supabase
from app.DB.query import execute, execute_one, execute_count
from app.common.errors import AlreadyEnrolledError
from app.common.utils import iso_now

logger = logging.getLogger("enrollments.repository")

# Unique key of the ledger; every write path targets it.
CONFLICT_TARGET = "user_id,course_id"
UNIQUE_VIOLATION = "23505"


class EnrollmentRepository:
    async def get(self, user_id: str, course_id: str) -> Optional[Dict[str, Any]]:
        client = await get_supabase()
        return await execute_one(
            client.table("enrollments").select("*").eq("user_id", user_id).eq("course_id", course_id).limit(1),
            op="enrollments.select_pair",
        )

    async def upsert(self, user_id: str, course_id: str, *, source: str,
                     order_id: Optional[str] = None) -> Tuple[Dict[str, Any], bool]:
        """Insert the (user, course) row unless it exists. Returns (row, created)."""
        client = await get_supabase()
        record = {
            "user_id": user_id,
            "course_id": course_id,
            "enrolled_at": iso_now(),
            "source": source,
            "order_id": order_id,
        }
        rows = await execute(
            client.table("enrollments").upsert(record, on_conflict=CONFLICT_TARGET, ignore_duplicates=True),
            op="enrollments.upsert",
        )
        if rows:
            return rows[0], True
        existing = await self.get(user_id, course_id)
        if existing is None:
            raise RuntimeError("Enrollment upsert returned no row and none exists")
        return existing, False

    async def insert(self, user_id: str, course_id: str, *, source: str) -> Dict[str, Any]:
        client = await get_supabase()
        try:
            row = await execute_one(
                client.table("enrollments").insert({"user_id": user_id, "course_id": course_id, "source": source}),
                op="enrollments.insert",
            )
        except APIError as exc:
            if exc.code == UNIQUE_VIOLATION:
                logger.info("enrollments.insert_conflict user_id=%s course_id=%s", user_id, course_id)
                raise AlreadyEnrolledError() from exc
            raise
        if not row:
            raise RuntimeError("Failed to create enrollment record")
        return row

    async def list_for_user(self, user_id: str) -> List[Dict[str, Any]]:
        client = await get_supabase()
        return await execute(
            client.table("enrollments")
            .select("*, course:courses(*, category:course_categories(*))")
            .eq("user_id", user_id)
            .order("enrolled_at", desc=True),
            op="enrollments.list_for_user",
        )

    async def list_all(self) -> List[Dict[str, Any]]:
        client = await get_supabase()
        return await execute(
            client.table("enrollments")
            .select("*, course:courses(id, title, slug, price)")
            .order("enrolled_at", desc=True),
            op="enrollments.list_all",
        )

    async def mark_completed(self, user_id: str, course_id: str) -> Optional[Dict[str, Any]]:
        client = await get_supabase()
        return await execute_one(
            client.table("enrollments")
            .update({"completed_at": iso_now()})
            .eq("user_id", user_id)
            .eq("course_id", course_id),
            op="enrollments.mark_completed",
        )

    async def count(self, *, completed_only: bool = False) -> int:
        client = await get_supabase()
        query = client.table("enrollments").select("id", count="exact")
        if completed_only:
            query = query.filter("completed_at", "not.is", "null")
        return await execute_count(query, op="enrollments.count")


enrollment_repository = EnrollmentRepository()
