from typing import Optional, List, Dict, Any
import logging

from app.DB.supabase import get_supabase
from app.DB.query import execute, execute_one, execute_count
from app.common import cache

logger = logging.getLogger("profiles.repository")


class ProfileRepository:
    async def get_by_user_id(self, user_id: str) -> Optional[dict]:
        key = f"profiles:uid:{user_id}"
        cached = cache.get(key)
        if cached is not None:
            return cached
        client = await get_supabase()
        value = await execute_one(
            client.table("profiles").select("*").eq("user_id", user_id).limit(1),
            op="profiles.select_by_user_id",
        )
        if value:
            cache.set(key, value)
        return value

    async def list_with_roles(self) -> List[dict]:
        client = await get_supabase()
        return await execute(
            client.table("profiles").select("*, user_roles(role)").order("created_at", desc=True),
            op="profiles.list_with_roles",
        )

    async def get_many(self, user_ids: List[str]) -> List[dict]:
        if not user_ids:
            return []
        client = await get_supabase()
        return await execute(
            client.table("profiles").select("user_id, full_name, avatar_url").in_("user_id", user_ids),
            op="profiles.select_many",
        )

    async def count(self) -> int:
        client = await get_supabase()
        return await execute_count(
            client.table("profiles").select("id", count="exact"),
            op="profiles.count",
        )

    async def get_roles(self, user_id: str) -> List[str]:
        client = await get_supabase()
        rows: List[Dict[str, Any]] = await execute(
            client.table("user_roles").select("role").eq("user_id", user_id),
            op="user_roles.select",
        )
        return sorted({str(r.get("role")).lower() for r in rows if r.get("role")})


profile_repository = ProfileRepository()
