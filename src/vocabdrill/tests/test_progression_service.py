"""Tests for the progression state machine."""
import random

import pytest
from sqlalchemy.orm import Session

from vocabdrill.errors import NotFoundError
from vocabdrill.models.models import WordRecord
from vocabdrill.models.practice_models import ExerciseType, LearningStatus
from vocabdrill.services.progression_service import (
    ProgressionService,
    apply_attempt,
    calculate_mastery_score,
    derive_learning_status,
    evaluate_transition,
)


def new_record(level: int = 0) -> WordRecord:
    """Create a detached word record with zeroed counters."""
    return WordRecord(
        progression_level=level,
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


def test_advance_after_two_correct() -> None:
    """Test advancement once two attempts succeed."""
    assert evaluate_transition(2, 2, 2, True) == (3, True)
    assert evaluate_transition(2, 1, 1, True) == (2, False)


def test_regress_after_three_poor_attempts() -> None:
    """Test regression on a low success rate."""
    assert evaluate_transition(2, 3, 1, False) == (1, True)
    assert evaluate_transition(2, 2, 0, False) == (2, False)
    assert evaluate_transition(2, 5, 3, False) == (2, False)


def test_transition_bounds() -> None:
    """Test that the level never leaves 0-5."""
    assert evaluate_transition(5, 4, 4, True) == (5, False)
    assert evaluate_transition(0, 3, 0, False) == (0, False)


@pytest.mark.parametrize(
    "level,rate,attempts,expected",
    [
        (0, 0.0, 0, LearningStatus.NOT_STARTED),
        (3, 1.0, 2, LearningStatus.IN_PROGRESS),
        (5, 0.8, 5, LearningStatus.LEARNED),
        (5, 0.5, 2, LearningStatus.IN_PROGRESS),
        (5, 0.5, 3, LearningStatus.NEEDS_REVIEW),
        (3, 0.5, 4, LearningStatus.NEEDS_REVIEW),
        (3, 0.3, 5, LearningStatus.DIFFICULT),
        (0, 0.2, 6, LearningStatus.DIFFICULT),
    ],
)
def test_derive_learning_status(level, rate, attempts, expected) -> None:
    """Test status derivation and its overrides."""
    assert derive_learning_status(level, rate, attempts) == expected


def test_mastery_score() -> None:
    """Test the mastery score components."""
    assert calculate_mastery_score(80, 3, 5, 4) == 93
    assert calculate_mastery_score(80, 3, 15, 4) == 88
    assert calculate_mastery_score(100, 10, 2, 20) == 100
    assert calculate_mastery_score(0, 0, 20, 0) == 0


def test_mastery_score_is_monotonic() -> None:
    """Test that mastery never drops with a better success rate or more correct answers."""
    for percent in range(0, 100, 7):
        for correct in range(0, 8):
            score = calculate_mastery_score(percent, correct, 12, 3)
            assert calculate_mastery_score(percent + 1, correct, 12, 3) >= score
            assert calculate_mastery_score(percent, correct + 1, 12, 3) >= score


def test_mastery_survives_a_single_miss() -> None:
    """Test that one wrong answer after a long correct run keeps mastery high."""
    record = new_record()
    for _ in range(20):
        apply_attempt(record, True)
    assert record.mastery_score == 100

    result = apply_attempt(record, False)
    # 95.2 success rate + 10 for correct answers + 5 for speed + 5 for attempts
    assert result.mastery_score == 100
    assert record.correct_streak == 0


def test_mastery_follows_lifetime_success() -> None:
    """Test mastery of a mostly failed word."""
    record = new_record()
    apply_attempt(record, True, 4000)
    for _ in range(3):
        apply_attempt(record, False, 4000)
    # 25 success rate + 2 for one correct answer + 5 for speed + 2 for attempts
    assert record.mastery_score == 34


def test_apply_attempt_advances() -> None:
    """Test two correct answers at level 2 move the word to level 3."""
    record = new_record(level=2)
    first = apply_attempt(record, True)
    assert first.level_changed is False

    second = apply_attempt(record, True)
    assert second.previous_level == 2
    assert second.new_level == 3
    assert second.level_changed is True
    assert second.next_exercise_type == ExerciseType.MAKE_UP_WORD
    assert second.new_learning_status == LearningStatus.IN_PROGRESS
    assert record.review_count == 2
    assert record.correct_streak == 2


def test_counters_are_level_scoped() -> None:
    """Test that a new level starts with fresh counters."""
    record = new_record(level=2)
    apply_attempt(record, True)
    apply_attempt(record, True)
    assert record.progression_level == 3

    result = apply_attempt(record, True)
    assert result.level_changed is False
    assert record.counters_for_level(3).attempts == 1
    assert record.counters_for_level(2).attempts == 2


def test_apply_attempt_regresses() -> None:
    """Test regression after one correct and two wrong answers."""
    record = new_record(level=2)
    apply_attempt(record, True)
    apply_attempt(record, False)
    result = apply_attempt(record, False)

    assert result.new_level == 1
    assert result.new_learning_status == LearningStatus.NEEDS_REVIEW
    assert record.correct_streak == 0
    assert record.last_answer_correct is False
    assert record.mistake_count == 2


def test_level_stays_in_range() -> None:
    """Test the level bounds over long random answer sequences."""
    rng = random.Random(42)
    record = new_record()
    for _ in range(300):
        apply_attempt(record, rng.random() < 0.5)
        assert 0 <= record.progression_level <= 5
        if not record.last_answer_correct:
            assert record.correct_streak == 0


def test_learned_requires_top_level() -> None:
    """Test that only level 5 words become learned."""
    record = new_record(level=3)
    apply_attempt(record, True)
    result = apply_attempt(record, True)
    assert result.new_level == 4
    assert result.new_learning_status == LearningStatus.IN_PROGRESS

    apply_attempt(record, True)
    result = apply_attempt(record, True)
    assert result.new_level == 5
    assert result.new_learning_status == LearningStatus.LEARNED


def test_top_level_with_low_rate_is_in_progress() -> None:
    """Test that a level 5 word failing its first answer is not learned."""
    record = new_record(level=5)
    result = apply_attempt(record, False)
    assert result.new_level == 5
    assert result.new_learning_status == LearningStatus.IN_PROGRESS


def test_update_word_progression(db: Session, make_record) -> None:
    """Test progression updates on stored records."""
    record = make_record(level=2)
    service = ProgressionService(db)

    service.update_word_progression(record.id, True, 1500)
    result = service.update_word_progression(record.id, True, 2500)

    db.refresh(record)
    assert result.new_level == 3
    assert record.progression_level == 3
    assert record.total_response_time_ms == 4000
    assert len(record.level_progress) == 1


def test_update_word_progression_not_found(db: Session) -> None:
    """Test that a missing record raises NotFoundError."""
    with pytest.raises(NotFoundError):
        ProgressionService(db).update_word_progression(9999, True)
