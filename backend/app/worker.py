"""
Background worker for the SLA breach sweep.

Usage:
    python -m app.worker

Runs SLAScheduler.run_sweep() every SLA_SWEEP_INTERVAL_SECONDS with a fresh
session per run. Several workers may run at once; the sweep's conditional
update keeps re-flagging and duplicate bonuses out.
"""

import asyncio
import logging
import os
from typing import Any, Dict, Optional

from .database import SessionLocal
from .services.sla import SLAScheduler

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Worker configuration
SWEEP_INTERVAL_SECONDS = int(os.getenv("SLA_SWEEP_INTERVAL_SECONDS", "300"))


def run_sweep_once(session_factory=SessionLocal) -> Dict[str, Any]:
    """One sweep in its own session."""
    db = session_factory()
    try:
        return SLAScheduler(db).run_sweep()
    finally:
        db.close()


async def worker_loop(
    interval_seconds: int = SWEEP_INTERVAL_SECONDS,
    max_runs: Optional[int] = None,
    session_factory=SessionLocal,
) -> None:
    """Sweep forever (or max_runs times). A failed run is logged and the loop continues."""
    logger.info(f"SLA worker started (interval {interval_seconds}s)")
    runs = 0

    while max_runs is None or runs < max_runs:
        try:
            summary = await asyncio.to_thread(run_sweep_once, session_factory)
            if summary["breaches_flagged"]:
                logger.info(
                    f"Sweep flagged {summary['breaches_flagged']} complaints, "
                    f"awarded {summary['rewards_awarded']} bonuses"
                )
        except Exception as e:
            logger.exception(f"SLA sweep failed: {e}")

        runs += 1
        if max_runs is not None and runs >= max_runs:
            break
        await asyncio.sleep(interval_seconds)


def main() -> None:
    """Entry point for the worker."""
    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Worker shutting down")


if __name__ == "__main__":
    main()
