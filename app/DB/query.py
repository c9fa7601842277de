"""Query execution wrapper shared by repositories (timeout + slow-query log)."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Dict, List

from app.core.config import get_settings

logger = logging.getLogger("db.query")


async def _run(builder: Any, op: str) -> Any:
    timeout = get_settings().supabase_query_timeout_s
    t0 = time.perf_counter()
    try:
        resp = await asyncio.wait_for(builder.execute(), timeout=timeout)
    except asyncio.TimeoutError:
        raise RuntimeError(f"Supabase {op} timed out after {timeout}s")
    ms = int((time.perf_counter() - t0) * 1000)
    if ms > 50:
        logger.info("supabase_%s_ms=%d", op, ms)
    return resp


async def execute(builder: Any, op: str) -> List[Dict[str, Any]]:
    """Run a PostgREST builder and return its rows (never ``None``)."""
    resp = await _run(builder, op)
    data = getattr(resp, "data", None) if resp is not None else None
    if data is None:
        return []
    return data if isinstance(data, list) else [data]


async def execute_one(builder: Any, op: str) -> Dict[str, Any] | None:
    rows = await execute(builder, op)
    return rows[0] if rows else None


async def execute_count(builder: Any, op: str) -> int:
    resp = await _run(builder, op)
    count = getattr(resp, "count", None)
    if count is None:
        return len(getattr(resp, "data", None) or [])
    return int(count)
