"""Persistence boundary for word records and the attempt log."""
import logging
import time
from datetime import datetime
from typing import Callable, List, Optional, TypeVar

from sqlalchemy import and_, inspect
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from vocabdrill.config import settings
from vocabdrill.errors import InvalidInputError, NotFoundError, StoreConflictError
from vocabdrill.models.models import (
    Collection,
    ExerciseAttempt,
    User,
    Word,
    WordRecord,
    collection_words,
)
from vocabdrill.models.practice_models import LearningStatus
from vocabdrill.monitoring import store_conflicts

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Columns owned by the engine that callers may overwrite through update()
UPDATABLE_FIELDS = frozenset(
    {
        "progression_level",
        "review_count",
        "correct_count",
        "correct_streak",
        "mistake_count",
        "skip_count",
        "mastery_score",
        "learning_status",
        "srs_interval_hours",
        "next_review_at",
        "last_reviewed_at",
        "last_answer_correct",
        "total_response_time_ms",
        "difficulty_adjusted_at",
    }
)


def retry_on_conflict(
    db: Session,
    operation: str,
    func: Callable[[], T],
    retries: Optional[int] = None,
    initial_delay: Optional[float] = None,
) -> T:
    """Run a read-modify-write unit of work, retrying on stale versions.

    ``func`` must read the rows it changes and commit. When the commit hits a
    row whose version moved underneath it, the transaction is rolled back
    (which expires every loaded row) and ``func`` runs again after an
    exponentially growing delay. Any other error rolls back and propagates.

    Raises:
        StoreConflictError: The conflict persisted through every attempt.
    """
    retries = retries or settings.practice.conflict_retries
    delay = settings.practice.conflict_backoff_seconds if initial_delay is None else initial_delay

    for attempt in range(1, retries + 1):
        try:
            return func()
        except StaleDataError as exc:
            db.rollback()
            store_conflicts.labels(operation=operation).inc()
            logger.warning(f"Write conflict in {operation} (attempt {attempt}/{retries}): {exc}")
            if attempt == retries:
                raise StoreConflictError(operation, attempt) from exc
            time.sleep(delay)
            delay *= 2
        except Exception:
            db.rollback()
            raise

    raise StoreConflictError(operation, retries)


class WordRecordStore:
    """Store for per-user word records."""

    def __init__(self, db: Session):
        """Initialize the store with a database session."""
        self.db = db

    def get(self, word_record_id: int) -> WordRecord:
        """Get a word record by ID."""
        record = self.db.get(WordRecord, word_record_id)
        if record is None:
            raise NotFoundError("Word record", word_record_id)
        return record

    def update(self, word_record_id: int, **fields) -> WordRecord:
        """Overwrite fields of a word record in its own transaction."""
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise InvalidInputError(f"Cannot update word record fields: {sorted(unknown)}")

        def _update() -> WordRecord:
            record = self.get(word_record_id)
            for name, value in fields.items():
                setattr(record, name, value)
            self.db.commit()
            return record

        return retry_on_conflict(self.db, "word_record_update", _update)

    def _base_query(self, user_id: int, collection_id: Optional[int]):
        query = self.db.query(WordRecord).filter(WordRecord.user_id == user_id)
        if collection_id is not None:
            query = query.join(
                collection_words, collection_words.c.word_record_id == WordRecord.id
            ).filter(collection_words.c.collection_id == collection_id)
        return query

    def list_due(
        self,
        user_id: int,
        before: datetime,
        after: Optional[datetime] = None,
        limit: Optional[int] = None,
        collection_id: Optional[int] = None,
    ) -> List[WordRecord]:
        """Records scheduled in ``(after, before]``, earliest first."""
        conditions = [
            WordRecord.next_review_at.is_not(None),
            WordRecord.next_review_at <= before,
        ]
        if after is not None:
            conditions.append(WordRecord.next_review_at > after)

        query = (
            self._base_query(user_id, collection_id)
            .filter(and_(*conditions))
            .order_by(WordRecord.next_review_at, WordRecord.id)
        )
        if limit is not None:
            query = query.limit(max(limit, 0))
        return query.all()

    def list_new(
        self, user_id: int, limit: int, collection_id: Optional[int] = None
    ) -> List[WordRecord]:
        """Never-reviewed records, oldest first."""
        return (
            self._base_query(user_id, collection_id)
            .filter(
                and_(
                    WordRecord.review_count == 0,
                    WordRecord.next_review_at.is_(None),
                )
            )
            .order_by(WordRecord.created_at, WordRecord.id)
            .limit(max(limit, 0))
            .all()
        )

    def list_practiced(self, user_id: int) -> List[WordRecord]:
        """Records with at least one review."""
        return (
            self.db.query(WordRecord)
            .filter(and_(WordRecord.user_id == user_id, WordRecord.review_count > 0))
            .order_by(WordRecord.id)
            .all()
        )

    def create(
        self, user_id: int, word_id: int, collection_id: Optional[int] = None
    ) -> WordRecord:
        """Add a vocabulary item to a user's words at level 0."""
        if self.db.get(User, user_id) is None:
            raise NotFoundError("User", user_id)
        if self.db.get(Word, word_id) is None:
            raise NotFoundError("Word", word_id)

        record = WordRecord(
            user_id=user_id,
            word_id=word_id,
            progression_level=0,
            review_count=0,
            correct_count=0,
            correct_streak=0,
            mistake_count=0,
            skip_count=0,
            mastery_score=0.0,
            learning_status=LearningStatus.NOT_STARTED,
            srs_interval_hours=1,
            total_response_time_ms=0,
        )
        if collection_id is not None:
            collection = self.db.get(Collection, collection_id)
            if collection is None:
                raise NotFoundError("Collection", collection_id)
            record.collections.append(collection)

        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        logger.info(f"Created word record {record.id} for user {user_id}, word {word_id}")
        return record


class AttemptLog:
    """Append-only log of exercise attempts."""

    def __init__(self, db: Session):
        """Initialize the log with a database session."""
        self.db = db

    def append(self, attempt: ExerciseAttempt) -> ExerciseAttempt:
        """Add an attempt to the current transaction.

        The caller commits. An attempt that is already persisted cannot be
        appended again.
        """
        state = inspect(attempt)
        if state.persistent or state.pending or state.detached:
            raise InvalidInputError(f"Exercise attempt {attempt.id} is already recorded")
        self.db.add(attempt)
        return attempt

    def recent(self, word_record_id: int, limit: int = 10) -> List[ExerciseAttempt]:
        """Latest attempts of a word record, newest first."""
        return (
            self.db.query(ExerciseAttempt)
            .filter(ExerciseAttempt.word_record_id == word_record_id)
            .order_by(ExerciseAttempt.timestamp.desc(), ExerciseAttempt.id.desc())
            .limit(max(limit, 0))
            .all()
        )
