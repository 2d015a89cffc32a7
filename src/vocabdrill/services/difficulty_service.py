"""Batch difficulty analysis and schedule correction."""
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from vocabdrill.config import settings
from vocabdrill.models.base import ensure_utc, utcnow
from vocabdrill.models.models import LearningMistake, WordRecord
from vocabdrill.models.practice_models import (
    MIN_LEVEL,
    AttentionItem,
    DifficultyAdjustment,
    LearningStatus,
    WordDifficultyMetrics,
)
from vocabdrill.monitoring import batch_adjustments
from vocabdrill.services.accuracy_scorer import round_half_up
from vocabdrill.services.progression_service import derive_learning_status
from vocabdrill.services.srs_service import apply_interval, compute_interval
from vocabdrill.services.word_record_store import (
    AttemptLog,
    WordRecordStore,
    retry_on_conflict,
)

logger = logging.getLogger(__name__)

# Difficulty score weights
MISTAKE_RATE_WEIGHT = 0.30
CONSISTENCY_WEIGHT = 0.20
RECENT_PERFORMANCE_WEIGHT = 0.25
MASTERY_WEIGHT = 0.15
STATUS_WEIGHT = 0.10

DIVERSITY_PENALTY_PER_TYPE = 5
MAX_DIVERSITY_PENALTY = 20
MAX_MISTAKE_VARIANCE = 10

RECENT_WINDOW = 10  # attempts and mistakes considered "recent"
MISTAKE_HISTORY = 20  # mistakes inspected for type diversity

ATTENTION_THRESHOLD = 60
URGENCY_ORDER = {"high": 3, "medium": 2, "low": 1}


@dataclass(frozen=True)
class InsufficientDataPolicy:
    """Neutral values used when a word has too little history."""
    min_attempts: int = 5
    neutral_consistency: int = 50
    neutral_recent_performance: int = 50
    min_mistake_days: int = 2
    few_days_consistency: int = 70
    empty_success_rate: float = 0.0
    unknown_status_difficulty: int = 50
    status_difficulty: Dict[LearningStatus, int] = field(
        default_factory=lambda: {
            LearningStatus.NOT_STARTED: 30,
            LearningStatus.IN_PROGRESS: 50,
            LearningStatus.LEARNED: 20,
            LearningStatus.NEEDS_REVIEW: 80,
            LearningStatus.DIFFICULT: 90,
        }
    )

    def status_score(self, status: Optional[LearningStatus]) -> int:
        return self.status_difficulty.get(status, self.unknown_status_difficulty)


DEFAULT_POLICY = InsufficientDataPolicy()


def calculate_consistency_score(
    mistake_times: Iterable[datetime],
    total_attempts: int,
    policy: InsufficientDataPolicy = DEFAULT_POLICY,
) -> int:
    """Score 0-100 from the spread of recent mistakes across days.

    Mistakes are counted per calendar day; the population variance of those
    counts (capped at 10) is turned into a score where 100 means evenly
    spread mistakes.
    """
    if total_attempts < policy.min_attempts:
        return policy.neutral_consistency

    per_day = Counter(ensure_utc(moment).date() for moment in mistake_times)
    if len(per_day) < policy.min_mistake_days:
        return policy.few_days_consistency

    counts = list(per_day.values())
    average = sum(counts) / len(counts)
    variance = sum((count - average) ** 2 for count in counts) / len(counts)
    normalized = min(variance, MAX_MISTAKE_VARIANCE) / MAX_MISTAKE_VARIANCE
    return round_half_up((1 - normalized) * 100)


def calculate_recent_performance(
    recent_results: Sequence[bool],
    total_attempts: int,
    policy: InsufficientDataPolicy = DEFAULT_POLICY,
) -> int:
    """Success percentage over the latest attempts."""
    if total_attempts < policy.min_attempts:
        return policy.neutral_recent_performance
    if not recent_results:
        return round_half_up(policy.empty_success_rate * 100)
    correct = sum(1 for result in recent_results if result)
    return max(0, round_half_up(correct / len(recent_results) * 100))


def calculate_difficulty_score(
    mistake_rate: float,
    consistency_score: float,
    recent_performance: float,
    mastery_score: float,
    learning_status: Optional[LearningStatus],
    mistake_types: Dict[str, int],
    policy: InsufficientDataPolicy = DEFAULT_POLICY,
) -> int:
    """Weighted 0-100 difficulty of a word."""
    weighted = (
        mistake_rate * MISTAKE_RATE_WEIGHT
        + (100 - consistency_score) * CONSISTENCY_WEIGHT
        + (100 - recent_performance) * RECENT_PERFORMANCE_WEIGHT
        + (100 - mastery_score) * MASTERY_WEIGHT
        + policy.status_score(learning_status) * STATUS_WEIGHT
    )
    diversity_penalty = min(len(mistake_types) * DIVERSITY_PENALTY_PER_TYPE, MAX_DIVERSITY_PENALTY)
    return min(max(round_half_up(weighted + diversity_penalty), 0), 100)


def _attention_issue(metrics: WordDifficultyMetrics) -> tuple:
    if metrics.difficulty_score >= 85:
        return "high", "Critical difficulty - multiple learning challenges"
    if metrics.mistake_rate > 70:
        return "high", "Very high mistake rate"
    if metrics.consistency_score < 30:
        return "medium", "Inconsistent performance"
    if metrics.recent_performance < 40:
        return "medium", "Declining recent performance"
    return "low", "Moderate difficulty"


class DifficultyService:
    """Service for batch difficulty analysis of a user's words."""

    def __init__(self, db: Session, policy: InsufficientDataPolicy = DEFAULT_POLICY):
        """Initialize the service with a database session."""
        self.db = db
        self.policy = policy
        self.store = WordRecordStore(db)
        self.attempt_log = AttemptLog(db)

    def _mistakes(self, word_record_id: int) -> List[LearningMistake]:
        return (
            self.db.query(LearningMistake)
            .filter(LearningMistake.word_record_id == word_record_id)
            .order_by(LearningMistake.created_at.desc(), LearningMistake.id.desc())
            .limit(MISTAKE_HISTORY)
            .all()
        )

    def word_metrics(self, record: WordRecord) -> WordDifficultyMetrics:
        """Difficulty metrics of a single word record."""
        total_attempts = record.review_count
        mistake_rate = record.mistake_count / total_attempts * 100 if total_attempts else 0.0

        mistakes = self._mistakes(record.id)
        mistake_types = dict(Counter(mistake.type for mistake in mistakes))
        consistency = calculate_consistency_score(
            [mistake.created_at for mistake in mistakes[:RECENT_WINDOW]],
            total_attempts,
            self.policy,
        )
        recent = calculate_recent_performance(
            [attempt.is_correct for attempt in self.attempt_log.recent(record.id, RECENT_WINDOW)],
            total_attempts,
            self.policy,
        )
        score = calculate_difficulty_score(
            mistake_rate,
            consistency,
            recent,
            record.mastery_score,
            record.learning_status,
            mistake_types,
            self.policy,
        )

        return WordDifficultyMetrics(
            word_record_id=record.id,
            word_text=record.word.text if record.word else "",
            difficulty_score=score,
            mistake_rate=mistake_rate,
            mistake_count=record.mistake_count,
            total_attempts=total_attempts,
            avg_response_time_ms=(
                record.total_response_time_ms / total_attempts if total_attempts else 0.0
            ),
            learning_status=record.learning_status,
            progression_level=record.progression_level,
            mastery_score=record.mastery_score,
            consistency_score=consistency,
            recent_performance=recent,
            mistake_types=mistake_types,
        )

    def analyze_word_difficulty(self, user_id: int, limit: int = 50) -> List[WordDifficultyMetrics]:
        """Metrics for the user's practiced words, hardest first."""
        metrics = [self.word_metrics(record) for record in self.store.list_practiced(user_id)]
        metrics.sort(key=lambda m: m.difficulty_score, reverse=True)
        logger.debug(f"Analyzed difficulty of {len(metrics)} words for user {user_id}")
        return metrics[:max(limit, 0)]

    def _plan_adjustment(self, metrics: WordDifficultyMetrics) -> tuple:
        level = metrics.progression_level
        if metrics.mistake_rate > 60 and metrics.consistency_score < 40:
            return max(MIN_LEVEL, level - 2), "High mistake rate with inconsistent performance"
        if metrics.mistake_rate > 40:
            return max(MIN_LEVEL, level - 1), "High mistake rate"
        return level, "Shortened review interval"

    def adjust_review_frequency(
        self,
        user_id: int,
        difficulty_threshold: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> List[DifficultyAdjustment]:
        """Demote and reschedule words whose difficulty reaches the threshold.

        Words already adjusted after their last review are left alone, so
        repeated runs without new answers do not keep demoting them.
        """
        if difficulty_threshold is None:
            difficulty_threshold = settings.practice.difficulty_threshold
        now = now or utcnow()

        adjustments: List[DifficultyAdjustment] = []
        for record in self.store.list_practiced(user_id):
            adjusted_at = ensure_utc(record.difficulty_adjusted_at)
            reviewed_at = ensure_utc(record.last_reviewed_at)
            if adjusted_at is not None and (reviewed_at is None or adjusted_at >= reviewed_at):
                continue

            metrics = self.word_metrics(record)
            if metrics.difficulty_score < difficulty_threshold:
                continue

            adjustment = retry_on_conflict(
                self.db,
                "adjust_review_frequency",
                lambda record_id=record.id: self._apply_adjustment(record_id, now),
            )
            adjustments.append(adjustment)
            batch_adjustments.labels(reason=adjustment.reason).inc()

        logger.info(
            f"Adjusted review frequency of {len(adjustments)} words for user {user_id} "
            f"(threshold {difficulty_threshold})"
        )
        return adjustments

    def _apply_adjustment(self, word_record_id: int, now: datetime) -> DifficultyAdjustment:
        record = self.store.get(word_record_id)
        metrics = self.word_metrics(record)
        old_level = record.progression_level
        new_level, reason = self._plan_adjustment(metrics)

        result = compute_interval(new_level, False, record.correct_streak, now=now)
        record.progression_level = new_level
        if new_level != old_level:
            counters = record.counters_for_level(new_level)
            record.learning_status = derive_learning_status(
                new_level, counters.success_rate, counters.attempts
            )
        apply_interval(record, result)
        record.difficulty_adjusted_at = now
        self.db.commit()

        logger.info(
            f"Word record {word_record_id}: level {old_level} -> {new_level}, "
            f"interval {result.interval_hours}h ({reason})"
        )
        return DifficultyAdjustment(
            word_record_id=word_record_id,
            old_level=old_level,
            new_level=new_level,
            reason=reason,
            new_interval=result.interval_hours,
            next_review_at=result.next_review_at,
        )

    def get_words_needing_attention(self, user_id: int, limit: int = 20) -> List[AttentionItem]:
        """Moderately to very difficult words, most urgent first."""
        items = []
        for metrics in self.analyze_word_difficulty(user_id, limit * 2):
            if metrics.difficulty_score < ATTENTION_THRESHOLD:
                continue
            urgency, issue = _attention_issue(metrics)
            items.append(
                AttentionItem(
                    word_record_id=metrics.word_record_id,
                    word_text=metrics.word_text,
                    difficulty_score=metrics.difficulty_score,
                    urgency_level=urgency,
                    primary_issue=issue,
                )
            )
        items.sort(key=lambda item: (URGENCY_ORDER[item.urgency_level], item.difficulty_score), reverse=True)
        return items[:max(limit, 0)]
