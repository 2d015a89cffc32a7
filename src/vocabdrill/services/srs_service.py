"""Spaced-repetition interval calculation and maintenance."""
import logging
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import List, Optional, Sequence

from sqlalchemy import and_
from sqlalchemy.orm import Session

from vocabdrill.config import settings
from vocabdrill.models.base import ensure_utc, utcnow
from vocabdrill.models.models import Word, WordRecord
from vocabdrill.models.practice_models import IntervalResult, ReviewScheduleDay
from vocabdrill.services.accuracy_scorer import round_half_up
from vocabdrill.services.word_record_store import WordRecordStore

logger = logging.getLogger(__name__)

MAX_STREAK_BONUS = 1.0
STREAK_BONUS_STEP = 0.2
INCORRECT_FACTOR = 0.5
MIN_INTERVAL_HOURS = 1


def compute_interval(
    level: int,
    is_correct: bool,
    consecutive_correct: int,
    now: Optional[datetime] = None,
    base_intervals: Optional[Sequence[int]] = None,
) -> IntervalResult:
    """Compute the next review delay for a word.

    Correct answers stretch the base interval of the level by up to 100%
    depending on the streak; incorrect answers halve it. The result is
    never shorter than one hour.
    """
    base_intervals = base_intervals or settings.practice.srs_base_intervals
    index = min(max(level, 0), len(base_intervals) - 1)
    base = base_intervals[index]

    if is_correct:
        bonus = min(max(consecutive_correct, 0) * STREAK_BONUS_STEP, MAX_STREAK_BONUS)
        interval_hours = round_half_up(base * (1 + bonus))
    else:
        interval_hours = round_half_up(base * INCORRECT_FACTOR)

    interval_hours = max(interval_hours, MIN_INTERVAL_HOURS)

    now = now or utcnow()
    return IntervalResult(
        interval_hours=interval_hours,
        next_review_at=now + timedelta(hours=interval_hours),
    )


def apply_interval(record: WordRecord, result: IntervalResult) -> None:
    """Copy an interval result onto a word record."""
    record.srs_interval_hours = result.interval_hours
    record.next_review_at = result.next_review_at


class SRSService:
    """Service for SRS maintenance on stored word records."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db
        self.store = WordRecordStore(db)

    def update_srs_data(self, word_record_id: int, is_correct: bool) -> IntervalResult:
        """Recompute the interval of a stored record from its current level and streak."""
        record = self.store.get(word_record_id)
        result = compute_interval(
            record.progression_level, is_correct, record.correct_streak
        )
        apply_interval(record, result)
        self.db.commit()
        logger.info(
            f"SRS data updated for word record {word_record_id}: "
            f"{result.interval_hours}h, next review {result.next_review_at.isoformat()}"
        )
        return result

    def bulk_update_intervals(self, user_id: int, recalculate_all: bool = False) -> int:
        """Recompute intervals for unscheduled records, or all of them."""
        query = self.db.query(WordRecord).filter(WordRecord.user_id == user_id)
        if not recalculate_all:
            query = query.filter(WordRecord.next_review_at.is_(None))

        updated_count = 0
        for record in query.all():
            result = compute_interval(
                record.progression_level,
                bool(record.last_answer_correct),
                record.correct_streak,
            )
            apply_interval(record, result)
            updated_count += 1

        self.db.commit()
        logger.info(f"Bulk updated SRS intervals for {updated_count} words of user {user_id}")
        return updated_count

    def get_review_schedule(
        self, user_id: int, days: int = 7, now: Optional[datetime] = None
    ) -> List[ReviewScheduleDay]:
        """Upcoming reviews grouped by calendar day."""
        now = now or utcnow()
        end = now + timedelta(days=days)
        due_soon = now + timedelta(hours=settings.practice.due_soon_hours)

        rows = (
            self.db.query(WordRecord, Word.text)
            .join(Word, WordRecord.word_id == Word.id)
            .filter(
                and_(
                    WordRecord.user_id == user_id,
                    WordRecord.next_review_at.is_not(None),
                    WordRecord.next_review_at <= end,
                )
            )
            .order_by(WordRecord.next_review_at, WordRecord.id)
            .all()
        )

        schedule: "OrderedDict[str, ReviewScheduleDay]" = OrderedDict()
        for record, text in rows:
            review_at = ensure_utc(record.next_review_at)
            if review_at <= now:
                priority = "overdue"
            elif review_at <= due_soon:
                priority = "due"
            else:
                priority = "upcoming"

            day_key = review_at.date().isoformat()
            day = schedule.setdefault(day_key, ReviewScheduleDay(date=day_key))
            day.words.append(
                {
                    "word_record_id": record.id,
                    "word_text": text,
                    "progression_level": record.progression_level,
                    "next_review_at": review_at,
                    "priority": priority,
                }
            )
        return list(schedule.values())
