"""Database models for the practice engine."""
from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Table,
    UniqueConstraint,
    event,
)
from sqlalchemy.orm import relationship

from vocabdrill.errors import InvalidInputError
from vocabdrill.models.base import Base, TimestampMixin, utcnow
from vocabdrill.models.practice_models import ExerciseType, LearningStatus


collection_words = Table(
    "collection_words",
    Base.metadata,
    Column("collection_id", ForeignKey("collections.id"), primary_key=True),
    Column("word_record_id", ForeignKey("word_records.id"), primary_key=True),
)


class User(Base, TimestampMixin):
    """User model."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    username = Column(String, unique=True, nullable=False)

    # Relationships
    word_records = relationship("WordRecord", back_populates="user")
    sessions = relationship("PracticeSession", back_populates="user")
    collections = relationship("Collection", back_populates="user")


class Word(Base, TimestampMixin):
    """Vocabulary item."""

    __tablename__ = "words"

    id = Column(Integer, primary_key=True)
    text = Column(String, nullable=False)
    translation = Column(String, nullable=False)
    definition = Column(String)
    language_pair = Column(String, nullable=False)  # e.g., "da-en"

    # Relationships
    records = relationship("WordRecord", back_populates="word")


class WordRecord(Base, TimestampMixin):
    """Scheduling state of one vocabulary item for one user."""

    __tablename__ = "word_records"
    __table_args__ = (UniqueConstraint("user_id", "word_id"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    word_id = Column(Integer, ForeignKey("words.id"), nullable=False)
    progression_level = Column(Integer, default=0, nullable=False)  # 0-5
    review_count = Column(Integer, default=0, nullable=False)
    correct_count = Column(Integer, default=0, nullable=False)
    correct_streak = Column(Integer, default=0, nullable=False)
    mistake_count = Column(Integer, default=0, nullable=False)
    skip_count = Column(Integer, default=0, nullable=False)
    mastery_score = Column(Float, default=0.0, nullable=False)  # 0-100
    learning_status = Column(
        Enum(LearningStatus, native_enum=False),
        default=LearningStatus.NOT_STARTED,
        nullable=False,
    )
    srs_interval_hours = Column(Integer, default=1, nullable=False)
    next_review_at = Column(DateTime(timezone=True), index=True)
    last_reviewed_at = Column(DateTime(timezone=True))
    last_answer_correct = Column(Boolean)
    total_response_time_ms = Column(Integer, default=0, nullable=False)
    difficulty_adjusted_at = Column(DateTime(timezone=True))
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    user = relationship("User", back_populates="word_records")
    word = relationship("Word", back_populates="records")
    level_progress = relationship(
        "LevelProgress",
        back_populates="word_record",
        cascade="all, delete-orphan",
    )
    attempts = relationship("ExerciseAttempt", back_populates="word_record")
    mistakes = relationship("LearningMistake", back_populates="word_record")
    collections = relationship(
        "Collection", secondary=collection_words, back_populates="word_records"
    )

    def counters_for_level(self, level: int) -> "LevelProgress":
        """Get the attempt counters for a level, creating them if missing."""
        for progress in self.level_progress:
            if progress.level == level:
                return progress
        progress = LevelProgress(level=level, attempts=0, correct_attempts=0)
        self.level_progress.append(progress)
        return progress

    def __repr__(self) -> str:
        return (
            f"<WordRecord id={self.id} word_id={self.word_id} "
            f"level={self.progression_level} status={self.learning_status}>"
        )


class LevelProgress(Base, TimestampMixin):
    """Attempt counters of a word record at one progression level."""

    __tablename__ = "level_progress"
    __table_args__ = (UniqueConstraint("word_record_id", "level"),)

    id = Column(Integer, primary_key=True)
    word_record_id = Column(Integer, ForeignKey("word_records.id"), nullable=False)
    level = Column(Integer, nullable=False)
    attempts = Column(Integer, default=0, nullable=False)
    correct_attempts = Column(Integer, default=0, nullable=False)

    # Relationships
    word_record = relationship("WordRecord", back_populates="level_progress")

    @property
    def success_rate(self) -> float:
        return self.correct_attempts / self.attempts if self.attempts else 0.0


class ExerciseAttempt(Base):
    """Immutable record of one submitted answer."""

    __tablename__ = "exercise_attempts"

    id = Column(Integer, primary_key=True)
    word_record_id = Column(Integer, ForeignKey("word_records.id"), nullable=False, index=True)
    session_id = Column(Integer, ForeignKey("practice_sessions.id"))
    exercise_type = Column(Enum(ExerciseType, native_enum=False), nullable=False)
    raw_input = Column(String, nullable=False, default="")
    is_correct = Column(Boolean, nullable=False)
    accuracy = Column(Integer, nullable=False)  # 0-100
    partial_credit = Column(Boolean, default=False, nullable=False)
    response_time_ms = Column(Integer, default=0, nullable=False)
    level_at_attempt = Column(Integer, nullable=False)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False, index=True)

    # Relationships
    word_record = relationship("WordRecord", back_populates="attempts")
    session = relationship("PracticeSession", back_populates="attempts")


@event.listens_for(ExerciseAttempt, "before_update")
def reject_attempt_update(mapper, connection, target):
    """Attempts are write-once."""
    raise InvalidInputError(f"Exercise attempt {target.id} cannot be modified")


class LearningMistake(Base, TimestampMixin):
    """An incorrect answer, categorized by mistake type."""

    __tablename__ = "learning_mistakes"

    id = Column(Integer, primary_key=True)
    word_record_id = Column(Integer, ForeignKey("word_records.id"), nullable=False, index=True)
    type = Column(String, nullable=False)  # spelling, meaning, pronunciation, ...
    exercise_type = Column(Enum(ExerciseType, native_enum=False), nullable=False)
    incorrect_value = Column(String, nullable=False, default="")

    # Relationships
    word_record = relationship("WordRecord", back_populates="mistakes")


class PracticeSession(Base, TimestampMixin):
    """Practice session with aggregate answer counters."""

    __tablename__ = "practice_sessions"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    target_size = Column(Integer, nullable=False)
    words_studied = Column(Integer, default=0, nullable=False)
    correct_answers = Column(Integer, default=0, nullable=False)
    incorrect_answers = Column(Integer, default=0, nullable=False)
    is_completed = Column(Boolean, default=False, nullable=False)
    end_time = Column(DateTime(timezone=True))
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    user = relationship("User", back_populates="sessions")
    attempts = relationship("ExerciseAttempt", back_populates="session")


class Collection(Base, TimestampMixin):
    """Named set of a user's word records."""

    __tablename__ = "collections"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    name = Column(String, nullable=False)

    # Relationships
    user = relationship("User", back_populates="collections")
    word_records = relationship(
        "WordRecord", secondary=collection_words, back_populates="collections"
    )
