"""Expire stale pending orders and retry open enrollment reconciliations.

Run from the repo root (e.g. on a schedule):

    python scripts/payments_maintenance.py
"""
import asyncio
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from app.core.config import get_settings  # noqa: E402
from app.features.payments.service import expire_stale_orders, retry_reconciliations  # noqa: E402


async def main() -> int:
    expired = await expire_stale_orders()
    run = await retry_reconciliations()
    print(f"expired_orders={expired} attempted={run.attempted} resolved={run.resolved} still_open={run.still_open}")
    return 1 if run.still_open else 0


if __name__ == "__main__":
    logging.basicConfig(level=get_settings().log_level)
    raise SystemExit(asyncio.run(main()))
