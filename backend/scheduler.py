# /backend/scheduler.py

import asyncio
import logging
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from app.config.settings import settings
from app.jobs.cart_recovery_job import run_automated_recovery
from app.utils.logging import setup_logging

logger = logging.getLogger("SchedulerService")

async def main():
    setup_logging()
    scheduler = AsyncIOScheduler(timezone="UTC")

    # Cart recovery automation; max_instances=1 keeps a slow run from overlapping the next tick
    scheduler.add_job(
        run_automated_recovery,
        'interval',
        minutes=settings.automation_interval_minutes,
        id="cart_recovery_automation_job",
        max_instances=1,
        coalesce=True,
        replace_existing=True
    )
    logger.info(f"Scheduled job: run_automated_recovery (every {settings.automation_interval_minutes} minutes).")

    scheduler.start()
    logger.info("Scheduler started successfully. Press Ctrl+C to exit.")

    # This loop keeps the script running forever
    try:
        while True:
            await asyncio.sleep(3600)
    except (KeyboardInterrupt, SystemExit):
        scheduler.shutdown()

if __name__ == "__main__":
    asyncio.run(main())
