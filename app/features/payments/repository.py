from __future__ import annotations
from typing import Any, Dict, List, Optional
import logging

from app.DB.supabase import get_supabase
from app.DB.query import execute, execute_one
from app.common.utils import iso_now

logger = logging.getLogger("payments.repository")


class PendingOrderRepository:
    """Server-side record of orders awaiting buyer approval and capture."""

    async def insert(self, record: Dict[str, Any]) -> Dict[str, Any]:
        client = await get_supabase()
        row = await execute_one(client.table("pending_orders").insert(record), op="pending_orders.insert")
        if not row:
            raise RuntimeError("Failed to persist pending order")
        return row

    async def get(self, order_id: str) -> Optional[Dict[str, Any]]:
        client = await get_supabase()
        return await execute_one(
            client.table("pending_orders").select("*").eq("order_id", order_id).limit(1),
            op="pending_orders.select",
        )

    async def get_by_idempotency_key(self, key: str) -> Optional[Dict[str, Any]]:
        client = await get_supabase()
        return await execute_one(
            client.table("pending_orders").select("*").eq("idempotency_key", key).limit(1),
            op="pending_orders.select_by_key",
        )

    async def update(self, order_id: str, fields: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        client = await get_supabase()
        return await execute_one(
            client.table("pending_orders").update(fields).eq("order_id", order_id),
            op="pending_orders.update",
        )

    async def expire_stale(self, now_iso: str) -> int:
        client = await get_supabase()
        rows = await execute(
            client.table("pending_orders")
            .update({"status": "EXPIRED"})
            .eq("status", "CREATED")
            .lt("expires_at", now_iso),
            op="pending_orders.expire_stale",
        )
        return len(rows)


class ReconciliationRepository:
    """Outbox of captured payments whose enrollment write failed."""

    async def get_by_order(self, order_id: str) -> Optional[Dict[str, Any]]:
        client = await get_supabase()
        return await execute_one(
            client.table("enrollment_reconciliations").select("*").eq("order_id", order_id).limit(1),
            op="reconciliations.select_by_order",
        )

    async def record(self, order_id: str, user_id: str, course_id: Optional[str], error: str) -> Dict[str, Any]:
        client = await get_supabase()
        existing = await self.get_by_order(order_id)
        if existing:
            fields = {
                "status": "open",
                "attempts": int(existing.get("attempts") or 0) + 1,
                "last_error": error,
                "resolved_at": None,
            }
            row = await execute_one(
                client.table("enrollment_reconciliations").update(fields).eq("id", existing["id"]),
                op="reconciliations.bump",
            )
            return row or {**existing, **fields}
        record = {
            "order_id": order_id,
            "user_id": user_id,
            "course_id": course_id,
            "status": "open",
            "attempts": 1,
            "last_error": error,
        }
        row = await execute_one(client.table("enrollment_reconciliations").insert(record), op="reconciliations.insert")
        if not row:
            raise RuntimeError("Failed to record enrollment reconciliation")
        return row

    async def list_open(self) -> List[Dict[str, Any]]:
        client = await get_supabase()
        return await execute(
            client.table("enrollment_reconciliations").select("*").eq("status", "open").order("created_at"),
            op="reconciliations.list_open",
        )

    async def resolve(self, reconciliation_id: str) -> None:
        client = await get_supabase()
        await execute(
            client.table("enrollment_reconciliations")
            .update({"status": "resolved", "resolved_at": iso_now()})
            .eq("id", reconciliation_id),
            op="reconciliations.resolve",
        )

    async def bump(self, reconciliation_id: str, attempts: int, error: str) -> None:
        client = await get_supabase()
        await execute(
            client.table("enrollment_reconciliations")
            .update({"attempts": attempts, "last_error": error})
            .eq("id", reconciliation_id),
            op="reconciliations.bump",
        )


pending_order_repository = PendingOrderRepository()
reconciliation_repository = ReconciliationRepository()
