"""
APScheduler Configuration

Runs the periodic slot completion sweep: slots whose end time has passed are
marked COMPLETED together with their confirmed enrollments.
"""
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from musicroom import config
from musicroom.services.slot_service import get_slot_service

logger = logging.getLogger(__name__)

# Global scheduler instance
scheduler = AsyncIOScheduler()


async def complete_finished_slots():
    """
    Periodic job that closes out slots that have already ended.

    Logs the sweep summary; failures are logged and retried on the next run.
    """
    logger.info("Starting slot completion sweep")

    try:
        summary = await get_slot_service().complete_past_slots()

        if summary["slots_completed"]:
            logger.info(
                f"Completed {summary['slots_completed']} slots "
                f"({summary['enrollments_completed']} enrollments) in {summary['duration_ms']:.2f}ms"
            )

    except Exception as e:
        logger.error(f"Slot completion sweep failed: {e}", exc_info=True)


def configure_scheduler():
    """
    Configure APScheduler with all scheduled jobs.

    Jobs:
        - Slot completion sweep: every SLOT_SWEEP_INTERVAL_MINUTES minutes
    """
    scheduler.add_job(
        complete_finished_slots,
        trigger=IntervalTrigger(minutes=config.SLOT_SWEEP_INTERVAL_MINUTES),
        id='slot_completion_sweep',
        name='Complete Finished Slots',
        replace_existing=True,
        coalesce=True,  # Combine missed runs into single execution
        max_instances=1  # Only one instance at a time
    )

    logger.info(f"Scheduler configured with slot completion sweep every {config.SLOT_SWEEP_INTERVAL_MINUTES} minutes")


def start_scheduler():
    """Start the APScheduler"""
    configure_scheduler()
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler():
    """Stop the APScheduler"""
    if scheduler.running:
        scheduler.shutdown()
    logger.info("Scheduler stopped")
