"""Service for running periodic batch jobs."""
import asyncio
import logging
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from vocabdrill.config import settings
from vocabdrill.errors import VocabDrillError
from vocabdrill.models.models import User
from vocabdrill.monitoring import error_count
from vocabdrill.services.practice_service import PracticeService

logger = logging.getLogger(__name__)


class SchedulerService:
    """Service for scheduling the difficulty re-evaluation batch."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db
        self.tasks: Dict[str, asyncio.Task] = {}
        self.running = False
        self.practice_service = PracticeService(db)

    async def start(self) -> None:
        """Start the scheduler service."""
        if self.running:
            return

        self.running = True
        logger.info("Starting scheduler service...")

        self.tasks["difficulty_reevaluation"] = asyncio.create_task(
            self._run_difficulty_reevaluation()
        )

    async def stop(self) -> None:
        """Stop the scheduler service."""
        if not self.running:
            return

        self.running = False
        logger.info("Stopping scheduler service...")

        # Cancel all tasks
        for task in self.tasks.values():
            task.cancel()

        # Wait for tasks to complete
        await asyncio.gather(*self.tasks.values(), return_exceptions=True)
        self.tasks.clear()

    def reevaluate_all_users(self, difficulty_threshold: Optional[int] = None) -> Dict[int, int]:
        """Run the batch re-evaluation for every user, one after another.

        Returns:
            Number of adjusted words per user ID.
        """
        results: Dict[int, int] = {}
        user_ids: List[int] = [user_id for (user_id,) in self.db.query(User.id).order_by(User.id)]
        for user_id in user_ids:
            try:
                adjustments = self.practice_service.batch_reevaluate(user_id, difficulty_threshold)
                results[user_id] = len(adjustments)
            except VocabDrillError as e:
                error_count.labels(error_type=type(e).__name__).inc()
                logger.error("Difficulty re-evaluation failed for user %d: %s", user_id, str(e))
        logger.info(
            "Difficulty re-evaluation finished for %d users, %d words adjusted",
            len(user_ids),
            sum(results.values()),
        )
        return results

    async def _run_difficulty_reevaluation(self) -> None:
        """Run the difficulty re-evaluation task."""
        while self.running:
            try:
                self.reevaluate_all_users()

                # Wait until next run
                await asyncio.sleep(settings.scheduler.reevaluation_interval)

            except asyncio.CancelledError:
                break
            except Exception as e:
                error_count.labels(error_type=type(e).__name__).inc()
                logger.error("Error in difficulty re-evaluation task: %s", str(e))
                await asyncio.sleep(settings.scheduler.retry_delay)
