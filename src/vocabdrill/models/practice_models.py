"""Models for practice-related data structures."""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, FrozenSet, Iterable, List, Optional


logger = logging.getLogger(__name__)


class LearningStatus(Enum):
    """Learning status of a word record."""
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    NEEDS_REVIEW = "needs_review"
    DIFFICULT = "difficult"
    LEARNED = "learned"


class ExerciseType(Enum):
    """Available exercise types."""
    REMEMBER_TRANSLATION = "remember-translation"  # Recall the translation
    CHOOSE_RIGHT_WORD = "choose-right-word"  # Choose from options
    MAKE_UP_WORD = "make-up-word"  # Build the word from letters
    WRITE_BY_DEFINITION = "write-by-definition"  # Type the word for a definition
    WRITE_BY_SOUND = "write-by-sound"  # Type the word after hearing it

    @property
    def config(self) -> "ExerciseTypeConfig":
        return EXERCISE_TYPE_CONFIGS[self]

    @property
    def difficulty(self) -> int:
        return self.config.difficulty

    @property
    def canonical_level(self) -> int:
        """Lowest progression level that maps to this type."""
        return min(level for level, type_ in LEVEL_EXERCISE_TYPES.items() if type_ is self)

    @property
    def is_construction(self) -> bool:
        """Reordering-style input graded with a more lenient partial-credit threshold."""
        return self is ExerciseType.MAKE_UP_WORD


@dataclass(frozen=True)
class ExerciseTypeConfig:
    """UI contract of an exercise type. Not used for scheduling."""
    difficulty: int
    max_attempts: int
    requires_audio: bool
    requires_input: bool


EXERCISE_TYPE_CONFIGS: Dict[ExerciseType, ExerciseTypeConfig] = {
    ExerciseType.REMEMBER_TRANSLATION: ExerciseTypeConfig(1, 1, False, False),
    ExerciseType.CHOOSE_RIGHT_WORD: ExerciseTypeConfig(2, 1, False, False),
    ExerciseType.MAKE_UP_WORD: ExerciseTypeConfig(3, 3, False, True),
    ExerciseType.WRITE_BY_DEFINITION: ExerciseTypeConfig(4, 1, False, True),
    ExerciseType.WRITE_BY_SOUND: ExerciseTypeConfig(4, 1, True, True),
}

# Progression level -> exercise type
LEVEL_EXERCISE_TYPES: Dict[int, ExerciseType] = {
    0: ExerciseType.REMEMBER_TRANSLATION,
    1: ExerciseType.REMEMBER_TRANSLATION,
    2: ExerciseType.CHOOSE_RIGHT_WORD,
    3: ExerciseType.MAKE_UP_WORD,
    4: ExerciseType.WRITE_BY_DEFINITION,
    5: ExerciseType.WRITE_BY_SOUND,
}

MIN_LEVEL = 0
MAX_LEVEL = 5


def exercise_type_for_level(level: int) -> ExerciseType:
    """Get the exercise type bound to a progression level."""
    return LEVEL_EXERCISE_TYPES[min(max(level, MIN_LEVEL), MAX_LEVEL)]


class SourcePolicy(Enum):
    """Where session candidates come from."""
    SRS_DUE = "srs_due"
    COLLECTION = "collection"


@dataclass(frozen=True)
class SessionPreferences:
    """Validated practice preferences."""
    enabled_exercise_types: FrozenSet[ExerciseType] = field(
        default_factory=lambda: frozenset(ExerciseType)
    )
    force_difficulty: Optional[int] = None
    skip_easy_mode: bool = False

    @classmethod
    def from_raw(
        cls,
        enabled_exercise_types: Optional[Iterable[str]] = None,
        force_difficulty: Optional[int] = None,
        skip_easy_mode: bool = False,
    ) -> "SessionPreferences":
        """Build preferences from loosely typed input.

        ``None`` enables every exercise type. Unknown type names are dropped
        and an empty result falls back to remember-translation only. A forced
        difficulty outside 1-5 is ignored.
        """
        if enabled_exercise_types is None:
            enabled = frozenset(ExerciseType)
        else:
            parsed = set()
            for name in enabled_exercise_types:
                try:
                    parsed.add(ExerciseType(name))
                except ValueError:
                    logger.warning(f"Ignoring unknown exercise type: {name!r}")
            if not parsed:
                logger.warning("No valid exercise types enabled, falling back to remember-translation")
                parsed = {ExerciseType.REMEMBER_TRANSLATION}
            enabled = frozenset(parsed)

        if force_difficulty is not None and not 1 <= force_difficulty <= 5:
            logger.warning(f"Ignoring forced difficulty out of range: {force_difficulty}")
            force_difficulty = None

        return cls(
            enabled_exercise_types=enabled,
            force_difficulty=force_difficulty,
            skip_easy_mode=skip_easy_mode,
        )


@dataclass
class SessionRequest:
    """Request for composing a practice session."""
    user_id: int
    words_to_study: int
    preferences: SessionPreferences = field(default_factory=SessionPreferences)
    source_policy: SourcePolicy = SourcePolicy.SRS_DUE
    collection_id: Optional[int] = None
    prioritize_overdue: bool = True


@dataclass
class SessionWord:
    """A word scheduled into a session with its exercise type."""
    word_record_id: int
    exercise_type: ExerciseType


@dataclass
class AccuracyResult:
    """Grading of a single answer."""
    is_correct: bool
    accuracy: int
    partial_credit: bool


@dataclass
class ProgressionResult:
    """Outcome of applying one attempt to the progression state machine."""
    previous_level: int
    new_level: int
    level_changed: bool
    new_learning_status: LearningStatus
    next_exercise_type: ExerciseType
    mastery_score: int


@dataclass
class IntervalResult:
    """Next review interval."""
    interval_hours: int
    next_review_at: datetime


@dataclass
class SubmitAnswerRequest:
    """User's answer to an exercise."""
    word_record_id: int
    session_id: Optional[int]
    exercise_type: ExerciseType
    user_input: str
    response_time_ms: int = 0


@dataclass
class SubmitAnswerResult:
    """Result returned for a submitted answer."""
    is_correct: bool
    accuracy: int
    partial_credit: bool
    updated_level: int
    updated_status: LearningStatus
    next_review_at: datetime
    interval_hours: int
    mastery_score: int


@dataclass
class WordDifficultyMetrics:
    """Batch difficulty analysis of a single word."""
    word_record_id: int
    word_text: str
    difficulty_score: int
    mistake_rate: float
    mistake_count: int
    total_attempts: int
    avg_response_time_ms: float
    learning_status: LearningStatus
    progression_level: int
    mastery_score: float
    consistency_score: int
    recent_performance: int
    mistake_types: Dict[str, int] = field(default_factory=dict)


@dataclass
class DifficultyAdjustment:
    """A schedule correction applied by the batch re-evaluation."""
    word_record_id: int
    old_level: int
    new_level: int
    reason: str
    new_interval: int
    next_review_at: datetime


@dataclass
class AttentionItem:
    """A word flagged for attention by difficulty analysis."""
    word_record_id: int
    word_text: str
    difficulty_score: int
    urgency_level: str  # high, medium, low
    primary_issue: str


@dataclass
class ReviewScheduleDay:
    """Reviews falling on one calendar day."""
    date: str
    words: List[Dict[str, object]] = field(default_factory=list)

    @property
    def words_count(self) -> int:
        return len(self.words)
