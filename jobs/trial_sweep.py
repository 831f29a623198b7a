"""
Periodic sweep that closes out trials whose window has ended,
even for users who never make another request.
"""
import asyncio
import logging
from datetime import datetime
from typing import Optional

from config.settings import settings
from database import AsyncSessionLocal
from services.subscription_service import SubscriptionService, SweepResult

logger = logging.getLogger(__name__)


async def run_trial_sweep(now: Optional[datetime] = None, session_factory=AsyncSessionLocal) -> SweepResult:
    """
    Run one sweep in its own session and commit the transitions.

    Args:
        now: Sweep instant (defaults to the current UTC time)
        session_factory: Session maker to use

    Returns:
        SweepResult with the number of subscriptions processed
    """
    async with session_factory() as session:
        try:
            service = SubscriptionService(session, trial_hours=settings.trial_hours)
            result = await service.sweep_expired_trials(now)
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    logger.info(
        f"Trial sweep processed {result.processed_count} subscriptions "
        f"({result.expired_count} expired, {result.activated_count} activated, {result.failed_count} failed)"
    )
    return result


async def trial_sweep_loop(interval_seconds: int, session_factory=AsyncSessionLocal) -> None:
    """Run the sweep forever, sleeping `interval_seconds` between runs."""
    while True:
        try:
            await run_trial_sweep(session_factory=session_factory)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Trial sweep failed: {e}", exc_info=True)
        await asyncio.sleep(interval_seconds)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
    asyncio.run(run_trial_sweep())
