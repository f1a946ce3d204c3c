"""Worker process for scheduled leave credits.

Runs an asyncio loop that fires the daily credit trigger once per interval.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import date

from leave_ledger.config import get_settings
from leave_ledger.db import dispose_engine, get_session_factory

logger = logging.getLogger(__name__)


async def run_daily_credit_once(today: date | None = None) -> int:
    """Run every credit cycle due today. Returns the number of entries written."""
    from leave_ledger.services.credit_scheduler import run_daily_credit_cycle

    today = today or date.today()
    results = await run_daily_credit_cycle(get_session_factory(), today)
    created = sum(r.transactions_created for r in results)
    logger.info("Daily credit run for %s: frequencies=%d created=%d", today, len(results), created)
    return created


async def run_credit_loop() -> None:
    """Main worker loop: daily credit trigger, then sleep for the configured interval."""
    interval = get_settings().credit_worker_interval_seconds
    logger.info("Credit worker started (interval=%ss)", interval)

    try:
        while True:
            today = date.today()
            try:
                await run_daily_credit_once(today)
            except Exception:
                logger.exception("Credit run failed for %s", today)
            await asyncio.sleep(interval)
    finally:
        await dispose_engine()


def main() -> None:
    """Entry point for the worker process."""
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")
    asyncio.run(run_credit_loop())


if __name__ == "__main__":
    main()
