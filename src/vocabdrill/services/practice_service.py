"""Practice entrypoints: answering, session creation and batch re-evaluation."""
import logging
import time
from typing import List, Optional, Tuple

from sqlalchemy.orm import Session

from vocabdrill.config import settings
from vocabdrill.errors import InvalidInputError, NotFoundError, VocabDrillError
from vocabdrill.models.base import utcnow
from vocabdrill.models.models import (
    ExerciseAttempt,
    LearningMistake,
    PracticeSession,
    User,
)
from vocabdrill.models.practice_models import (
    DifficultyAdjustment,
    ExerciseType,
    SessionPreferences,
    SessionRequest,
    SessionWord,
    SourcePolicy,
    SubmitAnswerRequest,
    SubmitAnswerResult,
)
from vocabdrill.monitoring import answers_submitted, error_count, submit_duration
from vocabdrill.services.accuracy_scorer import get_mistake_type, score_answer
from vocabdrill.services.difficulty_service import DifficultyService
from vocabdrill.services.exercise_selector import select_exercise_type
from vocabdrill.services.progression_service import apply_attempt
from vocabdrill.services.session_composer import SessionComposer
from vocabdrill.services.srs_service import apply_interval, compute_interval
from vocabdrill.services.word_record_store import (
    AttemptLog,
    WordRecordStore,
    retry_on_conflict,
)

logger = logging.getLogger(__name__)


def _parse_exercise_type(value) -> ExerciseType:
    if isinstance(value, ExerciseType):
        return value
    try:
        return ExerciseType(value)
    except ValueError:
        raise InvalidInputError(f"Unknown exercise type: {value!r}")


class PracticeService:
    """Service for practice sessions and answer submission."""

    def __init__(self, db: Session):
        """Initialize the service with a database session."""
        self.db = db
        self.store = WordRecordStore(db)
        self.attempt_log = AttemptLog(db)
        self.composer = SessionComposer(db)
        self.difficulty_service = DifficultyService(db)

    def _get_session(self, session_id: int) -> PracticeSession:
        session = self.db.get(PracticeSession, session_id)
        if session is None:
            raise NotFoundError("Practice session", session_id)
        return session

    def submit_answer(self, request: SubmitAnswerRequest) -> SubmitAnswerResult:
        """Grade an answer and update the word's learning state.

        The attempt, the mistake (for wrong answers), level counters, the
        word record and the session counters are committed in one
        transaction. A concurrent write to the same word record or session
        makes the whole unit re-run against fresh rows.

        Raises:
            InvalidInputError: Negative response time or unknown exercise type.
            NotFoundError: Word record or session does not exist.
            StoreConflictError: Conflicting writes outlasted the retries.
        """
        if request.response_time_ms is None or request.response_time_ms < 0:
            raise InvalidInputError(f"Response time must be non-negative, got {request.response_time_ms}")
        exercise_type = _parse_exercise_type(request.exercise_type)

        def _submit() -> SubmitAnswerResult:
            now = utcnow()
            record = self.store.get(request.word_record_id)
            session = None
            if request.session_id is not None:
                session = self._get_session(request.session_id)
                if session.user_id != record.user_id:
                    raise InvalidInputError(
                        f"Word record {record.id} does not belong to session {session.id}"
                    )

            grade = score_answer(request.user_input, record.word.text, exercise_type)

            self.attempt_log.append(
                ExerciseAttempt(
                    word_record_id=record.id,
                    session_id=request.session_id,
                    exercise_type=exercise_type,
                    raw_input=request.user_input or "",
                    is_correct=grade.is_correct,
                    accuracy=grade.accuracy,
                    partial_credit=grade.partial_credit,
                    response_time_ms=request.response_time_ms,
                    level_at_attempt=record.progression_level,
                    timestamp=now,
                )
            )
            if not grade.is_correct:
                self.db.add(
                    LearningMistake(
                        word_record_id=record.id,
                        type=get_mistake_type(exercise_type),
                        exercise_type=exercise_type,
                        incorrect_value=request.user_input or "",
                        created_at=now,
                    )
                )

            progression = apply_attempt(
                record,
                grade.is_correct,
                request.response_time_ms,
                now=now,
            )
            interval = compute_interval(
                progression.new_level, grade.is_correct, record.correct_streak, now=now
            )
            apply_interval(record, interval)

            if session is not None:
                session.words_studied += 1
                if grade.is_correct:
                    session.correct_answers += 1
                else:
                    session.incorrect_answers += 1

            self.db.commit()

            return SubmitAnswerResult(
                is_correct=grade.is_correct,
                accuracy=grade.accuracy,
                partial_credit=grade.partial_credit,
                updated_level=progression.new_level,
                updated_status=progression.new_learning_status,
                next_review_at=interval.next_review_at,
                interval_hours=interval.interval_hours,
                mastery_score=progression.mastery_score,
            )

        start_time = time.time()
        try:
            result = retry_on_conflict(self.db, "submit_answer", _submit)
        except VocabDrillError as e:
            error_count.labels(error_type=type(e).__name__).inc()
            logger.error(f"Failed to submit answer for word record {request.word_record_id}: {e}")
            raise
        finally:
            submit_duration.observe(time.time() - start_time)

        answers_submitted.labels(
            exercise_type=exercise_type.value,
            result="correct" if result.is_correct else "incorrect",
        ).inc()
        logger.info(
            f"Answer for word record {request.word_record_id} graded "
            f"{'correct' if result.is_correct else 'incorrect'} ({result.accuracy}%), "
            f"level {result.updated_level}, next review in {result.interval_hours}h"
        )
        return result

    def create_session(
        self,
        user_id: int,
        target_size: Optional[int] = None,
        preferences: Optional[SessionPreferences] = None,
        source_policy: SourcePolicy = SourcePolicy.SRS_DUE,
        collection_id: Optional[int] = None,
        prioritize_overdue: bool = True,
    ) -> Tuple[int, List[SessionWord]]:
        """Open a practice session and pick its words and exercise types."""
        if self.db.get(User, user_id) is None:
            raise NotFoundError("User", user_id)
        if source_policy is SourcePolicy.COLLECTION and collection_id is None:
            raise InvalidInputError("A collection source requires a collection_id")
        if source_policy is SourcePolicy.SRS_DUE:
            collection_id = None

        if target_size is None:
            target_size = settings.practice.words_per_session
        target_size = min(target_size, settings.practice.max_words_per_session)
        preferences = preferences or SessionPreferences()

        records = self.composer.compose_session(
            user_id,
            target_size,
            prioritize_overdue=prioritize_overdue,
            collection_id=collection_id,
        )
        words = [
            SessionWord(word_record_id=record.id, exercise_type=select_exercise_type(record, preferences))
            for record in records
        ]

        session = PracticeSession(
            user_id=user_id,
            target_size=max(target_size, 0),
            words_studied=0,
            correct_answers=0,
            incorrect_answers=0,
            is_completed=False,
        )
        self.db.add(session)
        self.db.commit()
        self.db.refresh(session)

        logger.info(f"Created practice session {session.id} for user {user_id} with {len(words)} words")
        return session.id, words

    def start_session(self, request: SessionRequest) -> Tuple[int, List[SessionWord]]:
        """Open a practice session described by a session request."""
        return self.create_session(
            request.user_id,
            request.words_to_study,
            request.preferences,
            source_policy=request.source_policy,
            collection_id=request.collection_id,
            prioritize_overdue=request.prioritize_overdue,
        )

    def complete_session(self, session_id: int) -> PracticeSession:
        """Mark a session as finished."""

        def _complete() -> PracticeSession:
            session = self._get_session(session_id)
            session.is_completed = True
            session.end_time = utcnow()
            self.db.commit()
            return session

        return retry_on_conflict(self.db, "complete_session", _complete)

    def skip_word(self, word_record_id: int, session_id: Optional[int] = None) -> int:
        """Count a skipped word without recording an attempt."""

        def _skip() -> int:
            record = self.store.get(word_record_id)
            if session_id is not None:
                self._get_session(session_id)
            record.skip_count += 1
            self.db.commit()
            return record.skip_count

        skip_count = retry_on_conflict(self.db, "skip_word", _skip)
        logger.info(f"Word record {word_record_id} skipped ({skip_count} total)")
        return skip_count

    def batch_reevaluate(
        self, user_id: int, difficulty_threshold: Optional[int] = None
    ) -> List[DifficultyAdjustment]:
        """Re-evaluate the difficulty of a user's words and adjust schedules."""
        if self.db.get(User, user_id) is None:
            raise NotFoundError("User", user_id)
        return self.difficulty_service.adjust_review_frequency(user_id, difficulty_threshold)
