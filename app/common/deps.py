"""Shared FastAPI dependencies for authentication, authorization, and context."""

from __future__ import annotations

import asyncio
import logging
import os
import time
from typing import Callable, FrozenSet, Optional

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from app.DB.supabase import get_supabase
from app.common import cache
from app.features.profiles.service import get_roles


logger = logging.getLogger("auth.deps")
security = HTTPBearer(auto_error=True)
optional_security = HTTPBearer(auto_error=False)

ADMIN = "admin"
STUDENT = "student"

# Capabilities granted per role; students get the empty baseline.
ROLE_CAPABILITIES: dict[str, FrozenSet[str]] = {
    ADMIN: frozenset({"admin.access", "enrollments.manage", "content.generate", "progress.bypass_enrollment"}),
    STUDENT: frozenset(),
}
_CAPABILITY_TTL = int(os.getenv("CAPABILITY_CACHE_SECONDS", "300"))


class CurrentUser(BaseModel):
    """Minimal user identity shared across endpoints."""
    id: str
    email: Optional[str] = None
    role: str = STUDENT
    capabilities: FrozenSet[str] = frozenset()

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN

    def can(self, capability: str) -> bool:
        return capability in self.capabilities


async def resolve_role(user_id: str) -> tuple[str, FrozenSet[str]]:
    """Resolve the user's role and capability set once per cache window."""
    key = f"capabilities:{user_id}"
    cached = cache.get(key)
    if cached is not None:
        return cached
    roles = await get_roles(user_id)
    role = ADMIN if ADMIN in roles else STUDENT
    resolved = (role, ROLE_CAPABILITIES[role])
    cache.set(key, resolved, ttl=_CAPABILITY_TTL)
    return resolved


async def _user_from_token(request: Request, token: str) -> CurrentUser:
    client = await get_supabase()
    try:
        t0 = time.perf_counter()
        whoami_timeout = float(os.getenv("AUTH_WHOAMI_TIMEOUT", "5"))
        auth_user = await asyncio.wait_for(client.auth.get_user(token), timeout=whoami_timeout)
        ms = int((time.perf_counter() - t0) * 1000)
        if ms > 50:
            logger.info("auth.get_user_ms=%d", ms)
    except Exception as exc:  # noqa: BLE001
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials") from exc

    if not auth_user or not auth_user.user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials")

    sup_user = auth_user.user
    email = sup_user.email or (sup_user.user_metadata or {}).get("email")
    role, capabilities = await resolve_role(str(sup_user.id))
    current = CurrentUser(id=str(sup_user.id), email=email, role=role, capabilities=capabilities)

    request_id = getattr(request.state, "request_id", None)
    logger.info(
        "auth_resolved user_id=%s role=%s request_id=%s path=%s",
        current.id,
        current.role,
        request_id,
        request.url.path,
    )
    return current


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> CurrentUser:
    """Validate the bearer token with Supabase Auth and attach the role."""
    cached: CurrentUser | None = getattr(request.state, "current_user", None)
    if cached is not None:
        return cached
    current = await _user_from_token(request, credentials.credentials)
    request.state.current_user = current
    return current


async def get_optional_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(optional_security),
) -> Optional[CurrentUser]:
    """Like ``get_current_user`` but anonymous callers resolve to ``None``."""
    if credentials is None or not credentials.credentials:
        return None
    return await get_current_user(request, credentials)


def require_role(*roles: str) -> Callable:
    """Factory returning dependency enforcing that user has one of the roles."""
    normalized = {r.lower() for r in roles if r}

    async def _checker(current: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not normalized or current.role.lower() in normalized or current.is_admin:
            return current
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient role")

    return _checker


def require_admin() -> Callable:
    return require_role(ADMIN)
