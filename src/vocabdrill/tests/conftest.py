"""Test configuration."""
import os
from datetime import timedelta
from pathlib import Path
from typing import Callable, Generator, Optional

import pytest
from dotenv import load_dotenv
from faker import Faker

# Set test environment before any imports
os.environ["ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"

# Load test environment variables
test_env_path = Path(__file__).parent.parent.parent.parent / ".env.test"
load_dotenv(test_env_path)

# Import after environment setup
from sqlalchemy.orm import Session

from vocabdrill.models.base import Base, SessionLocal, engine, utcnow
from vocabdrill.models.models import Collection, User, Word, WordRecord
from vocabdrill.models.practice_models import LearningStatus

fake = Faker()


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def user(db: Session) -> User:
    """Create a test user."""
    user = User(username=fake.unique.user_name())
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def make_word(db: Session) -> Callable[..., Word]:
    """Factory for vocabulary items."""

    def _make_word(text: Optional[str] = None) -> Word:
        word = Word(
            text=text or f"{fake.word()}{fake.unique.random_number(digits=6)}",
            translation=fake.word(),
            definition=fake.sentence(),
            language_pair="da-en",
        )
        db.add(word)
        db.commit()
        db.refresh(word)
        return word

    return _make_word


@pytest.fixture
def make_record(db: Session, user: User, make_word) -> Callable[..., WordRecord]:
    """Factory for word records of the test user.

    ``due_in_hours`` schedules the record relative to now; leaving it out
    creates a never-reviewed record.
    """

    def _make_record(
        text: Optional[str] = None,
        level: int = 0,
        due_in_hours: Optional[float] = None,
        review_count: Optional[int] = None,
        owner: Optional[User] = None,
        collection: Optional[Collection] = None,
        **fields,
    ) -> WordRecord:
        word = make_word(text)
        if review_count is None:
            review_count = 0 if due_in_hours is None else 1
        record = WordRecord(
            user_id=(owner or user).id,
            word_id=word.id,
            progression_level=level,
            review_count=review_count,
            correct_count=0,
            correct_streak=0,
            mistake_count=0,
            skip_count=0,
            mastery_score=0.0,
            learning_status=LearningStatus.NOT_STARTED,
            srs_interval_hours=1,
            total_response_time_ms=0,
            next_review_at=(
                utcnow() + timedelta(hours=due_in_hours) if due_in_hours is not None else None
            ),
        )
        for name, value in fields.items():
            setattr(record, name, value)
        if collection is not None:
            record.collections.append(collection)
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    return _make_record
