"""Periodic expiration sweep + reminder tick.

Run once or in a loop:

    python -m services.scheduler --once
    python -m services.scheduler --loop --interval 3600
"""

import argparse
import asyncio
import logging
from datetime import datetime
from typing import Optional

import config
from services.lifecycle import sweep_expirations
from services.notifications import LogNotifier, Notifier
from services.reminders import tick

logger = logging.getLogger(__name__)


def run_cycle(session_factory, now: Optional[datetime] = None, notifier: Optional[Notifier] = None,
              retry_backoff: Optional[float] = None) -> dict:
    """Sweep expirations, then send reminders, both as of the same `now`"""
    now = now or datetime.utcnow()
    db = session_factory()
    try:
        expired = sweep_expirations(db, now)
        result = tick(db, now, notifier or LogNotifier(), retry_backoff=retry_backoff)
    finally:
        db.close()

    logger.info("Scheduler cycle at %s: %d expired, %d reminder(s) sent, %d skipped, %d failed",
                now.isoformat(), len(expired), len(result.emitted), result.skipped, len(result.failed))
    return {"now": now.isoformat(), "expired": expired, **result.to_dict()}


async def run_scheduler(session_factory, loop: bool = True, interval_seconds: Optional[int] = None,
                        notifier: Optional[Notifier] = None) -> int:
    interval_seconds = interval_seconds or config.SCHEDULER_INTERVAL_SECONDS
    notifier = notifier or LogNotifier()
    while True:
        try:
            await asyncio.to_thread(run_cycle, session_factory, None, notifier)
        except asyncio.CancelledError:
            raise
        except Exception:
            # A failed cycle is retried on the next interval
            logger.exception("Scheduler cycle failed")
            if not loop:
                return 1
        if not loop:
            return 0
        await asyncio.sleep(interval_seconds)


def main() -> int:
    from database import init_db

    parser = argparse.ArgumentParser(description="COI expiration sweep and reminder scheduler")
    parser.add_argument("--once", action="store_true", help="Run a single cycle and exit")
    parser.add_argument("--loop", action="store_true", help="Run continuously")
    parser.add_argument("--interval", type=int, default=config.SCHEDULER_INTERVAL_SECONDS,
                        help="Seconds between cycles when looping")
    args = parser.parse_args()

    logging.basicConfig(level=config.LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    session_factory = init_db()
    loop_mode = args.loop and not args.once
    return asyncio.run(run_scheduler(session_factory, loop=loop_mode, interval_seconds=args.interval))


if __name__ == "__main__":
    raise SystemExit(main())
