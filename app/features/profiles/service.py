from typing import Optional, List, Dict, Any
from .repository import profile_repository
from .schemas import ProfileWithRoles


def _roles_of(row: Dict[str, Any]) -> List[str]:
    embedded = row.get("user_roles") or []
    if isinstance(embedded, dict):
        embedded = [embedded]
    return sorted({str(r.get("role")).lower() for r in embedded if r.get("role")})


async def list_profiles() -> List[ProfileWithRoles]:
    rows = await profile_repository.list_with_roles()
    out = []
    for row in rows:
        data = {k: v for k, v in row.items() if k != "user_roles"}
        out.append(ProfileWithRoles(**data, roles=_roles_of(row)))
    return out


async def get_profile(user_id: str) -> Optional[Dict[str, Any]]:
    return await profile_repository.get_by_user_id(user_id)


async def profiles_by_user_id(user_ids: List[str]) -> Dict[str, Dict[str, Any]]:
    rows = await profile_repository.get_many(sorted(set(user_ids)))
    return {r["user_id"]: r for r in rows}


async def get_roles(user_id: str) -> List[str]:
    return await profile_repository.get_roles(user_id)


async def count_profiles() -> int:
    return await profile_repository.count()
