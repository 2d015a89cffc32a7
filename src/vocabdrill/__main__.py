"""Main entry point for the practice engine batch worker."""
import asyncio
import logging
import signal

from vocabdrill.config import settings
from vocabdrill.logging_config import setup_logging
from vocabdrill.models.base import SessionLocal, init_db
from vocabdrill.monitoring import start_monitoring
from vocabdrill.services.scheduler_service import SchedulerService

logger = logging.getLogger(__name__)


async def shutdown(sig, stop_event: asyncio.Event) -> None:
    """Request shutdown after an exit signal."""
    logger.info(f"Received exit signal {sig.name}...")
    stop_event.set()


async def main() -> None:
    """Run the scheduler until a termination signal arrives."""
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(
            sig,
            lambda s=sig: asyncio.create_task(shutdown(s, stop_event))
        )

    init_db()
    logger.info("Database initialized")

    if settings.monitoring.enabled:
        start_monitoring(settings.monitoring.port)
        logger.info(f"Metrics server listening on port {settings.monitoring.port}")

    db = SessionLocal()
    scheduler = SchedulerService(db)
    try:
        await scheduler.start()
        await stop_event.wait()
    finally:
        logger.info("Cleaning up...")
        await scheduler.stop()
        db.close()


if __name__ == "__main__":
    setup_logging("Starting vocabdrill worker ...")

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt, shutting down...")
