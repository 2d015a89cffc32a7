"""Progressive difficulty levels and learning status of word records."""
import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from vocabdrill.models.base import utcnow
from vocabdrill.models.models import WordRecord
from vocabdrill.models.practice_models import (
    MAX_LEVEL,
    MIN_LEVEL,
    LearningStatus,
    ProgressionResult,
    exercise_type_for_level,
)
from vocabdrill.monitoring import level_changes
from vocabdrill.services.accuracy_scorer import round_half_up
from vocabdrill.services.word_record_store import WordRecordStore, retry_on_conflict

logger = logging.getLogger(__name__)

# Level transition thresholds
MIN_ATTEMPTS_TO_ADVANCE = 2
MIN_ATTEMPTS_TO_REGRESS = 3
SUCCESS_RATE_THRESHOLD = 0.6

# Status overrides
DIFFICULT_RATE = 0.4
DIFFICULT_MIN_ATTEMPTS = 5
NEEDS_REVIEW_MIN_ATTEMPTS = 3

# Mastery score components
CORRECT_POINTS = 2
MAX_CORRECT_POINTS = 10
FAST_RESPONSE_SECONDS = 10
FAST_RESPONSE_POINTS = 5
ATTEMPT_POINTS = 0.5
MAX_ATTEMPT_POINTS = 5


def success_rate(attempts: int, correct_attempts: int) -> float:
    return correct_attempts / attempts if attempts > 0 else 0.0


def evaluate_transition(
    level: int, attempts: int, correct_attempts: int, is_correct: bool
) -> Tuple[int, bool]:
    """Decide the next level from counters that already include this attempt."""
    rate = success_rate(attempts, correct_attempts)

    if (
        is_correct
        and attempts >= MIN_ATTEMPTS_TO_ADVANCE
        and rate >= SUCCESS_RATE_THRESHOLD
        and level < MAX_LEVEL
    ):
        return level + 1, True

    if (
        not is_correct
        and attempts >= MIN_ATTEMPTS_TO_REGRESS
        and rate < SUCCESS_RATE_THRESHOLD
        and level > MIN_LEVEL
    ):
        return level - 1, True

    return level, False


def derive_learning_status(level: int, rate: float, attempts: int) -> LearningStatus:
    """Learning status from level and performance at that level."""
    if attempts >= DIFFICULT_MIN_ATTEMPTS and rate < DIFFICULT_RATE:
        return LearningStatus.DIFFICULT
    if attempts >= NEEDS_REVIEW_MIN_ATTEMPTS and rate < SUCCESS_RATE_THRESHOLD:
        return LearningStatus.NEEDS_REVIEW

    if level <= MIN_LEVEL:
        return LearningStatus.NOT_STARTED
    if level >= MAX_LEVEL and rate >= SUCCESS_RATE_THRESHOLD:
        return LearningStatus.LEARNED
    return LearningStatus.IN_PROGRESS


def calculate_mastery_score(
    success_percent: float,
    correct_attempts: int,
    avg_response_time_sec: float,
    attempts: int,
) -> int:
    """Composite 0-100 score of how well a word is known."""
    score = success_percent
    score += min(max(correct_attempts, 0) * CORRECT_POINTS, MAX_CORRECT_POINTS)
    if avg_response_time_sec <= FAST_RESPONSE_SECONDS:
        score += FAST_RESPONSE_POINTS
    score += min(max(attempts, 0) * ATTEMPT_POINTS, MAX_ATTEMPT_POINTS)
    return min(max(round_half_up(score), 0), 100)


def apply_attempt(
    record: WordRecord,
    is_correct: bool,
    response_time_ms: int = 0,
    now: Optional[datetime] = None,
) -> ProgressionResult:
    """Apply one answer to a word record in memory.

    Updates the counters of the level the attempt was made at, the lifetime
    counters, level, status and mastery score. Mastery is computed from the
    lifetime success rate. Committing is left to the caller.
    """
    now = now or utcnow()
    previous_level = record.progression_level

    counters = record.counters_for_level(previous_level)
    counters.attempts += 1
    if is_correct:
        counters.correct_attempts += 1

    record.review_count += 1
    record.total_response_time_ms += max(response_time_ms, 0)
    record.last_reviewed_at = now
    record.last_answer_correct = is_correct
    if is_correct:
        record.correct_count += 1
        record.correct_streak += 1
    else:
        record.mistake_count += 1
        record.correct_streak = 0

    new_level, level_changed = evaluate_transition(
        previous_level, counters.attempts, counters.correct_attempts, is_correct
    )
    record.progression_level = new_level

    rate = counters.success_rate
    record.learning_status = derive_learning_status(new_level, rate, counters.attempts)

    lifetime_rate = success_rate(record.review_count, record.correct_count)
    avg_response_time_sec = record.total_response_time_ms / record.review_count / 1000
    mastery = calculate_mastery_score(
        lifetime_rate * 100, record.correct_count, avg_response_time_sec, record.review_count
    )
    record.mastery_score = mastery

    if level_changed:
        direction = "up" if new_level > previous_level else "down"
        level_changes.labels(direction=direction).inc()
        logger.info(
            f"Word record {record.id} moved {direction} from level {previous_level} "
            f"to {new_level} (rate {rate:.2f} over {counters.attempts} attempts)"
        )

    return ProgressionResult(
        previous_level=previous_level,
        new_level=new_level,
        level_changed=level_changed,
        new_learning_status=record.learning_status,
        next_exercise_type=exercise_type_for_level(new_level),
        mastery_score=mastery,
    )


class ProgressionService:
    """Service for updating the progression of stored word records."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db
        self.store = WordRecordStore(db)

    def update_word_progression(
        self, word_record_id: int, is_correct: bool, response_time_ms: int = 0
    ) -> ProgressionResult:
        """Apply one answer to a stored word record and commit."""

        def _update() -> ProgressionResult:
            record = self.store.get(word_record_id)
            result = apply_attempt(record, is_correct, response_time_ms)
            self.db.commit()
            return result

        return retry_on_conflict(self.db, "update_word_progression", _update)
