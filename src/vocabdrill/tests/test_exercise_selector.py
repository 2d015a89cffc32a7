"""Tests for exercise type selection."""
import pytest

from vocabdrill.models.models import WordRecord
from vocabdrill.models.practice_models import ExerciseType, SessionPreferences
from vocabdrill.services.exercise_selector import select_exercise_type

RT = ExerciseType.REMEMBER_TRANSLATION
CRW = ExerciseType.CHOOSE_RIGHT_WORD
MUW = ExerciseType.MAKE_UP_WORD
WBD = ExerciseType.WRITE_BY_DEFINITION
WBS = ExerciseType.WRITE_BY_SOUND


def record_at(level: int) -> WordRecord:
    return WordRecord(progression_level=level)


@pytest.mark.parametrize(
    "level,expected",
    [(0, RT), (1, RT), (2, CRW), (3, MUW), (4, WBD), (5, WBS)],
)
def test_level_mapping(level: int, expected: ExerciseType) -> None:
    """Test the default type for each level."""
    assert select_exercise_type(record_at(level), SessionPreferences()) == expected


def test_forced_difficulty() -> None:
    """Test that a forced difficulty picks its first enabled type."""
    assert select_exercise_type(record_at(0), SessionPreferences(force_difficulty=3)) == MUW

    preferences = SessionPreferences(
        enabled_exercise_types=frozenset({RT, WBD, WBS}), force_difficulty=3
    )
    assert select_exercise_type(record_at(0), preferences) == WBD


def test_forced_difficulty_without_enabled_candidates() -> None:
    """Test falling back to the closest enabled type."""
    preferences = SessionPreferences(enabled_exercise_types=frozenset({WBS}), force_difficulty=1)
    assert select_exercise_type(record_at(1), preferences) == WBS


def test_skip_easy_mode() -> None:
    """Test that remember-translation is skipped when asked."""
    assert select_exercise_type(record_at(0), SessionPreferences(skip_easy_mode=True)) == CRW

    preferences = SessionPreferences(
        enabled_exercise_types=frozenset({RT, MUW}), skip_easy_mode=True
    )
    assert select_exercise_type(record_at(1), preferences) == MUW


def test_skip_easy_mode_with_only_easy_type() -> None:
    """Test that the only enabled type is kept even in skip-easy mode."""
    preferences = SessionPreferences(enabled_exercise_types=frozenset({RT}), skip_easy_mode=True)
    assert select_exercise_type(record_at(0), preferences) == RT


def test_disabled_type_uses_closest_level() -> None:
    """Test the closest-level fallback for disabled types."""
    preferences = SessionPreferences(enabled_exercise_types=frozenset({RT, WBS}))
    assert select_exercise_type(record_at(4), preferences) == WBS
    assert select_exercise_type(record_at(2), preferences) == RT


def test_closest_level_ties_go_lower() -> None:
    """Test that ties prefer the easier type."""
    preferences = SessionPreferences(enabled_exercise_types=frozenset({MUW, WBS}))
    assert select_exercise_type(record_at(4), preferences) == MUW


def test_no_enabled_types() -> None:
    """Test the remember-translation fallback."""
    preferences = SessionPreferences(enabled_exercise_types=frozenset())
    assert select_exercise_type(record_at(5), preferences) == RT


def test_result_is_always_enabled() -> None:
    """Test that the chosen type is one of the enabled ones."""
    enabled_sets = [frozenset({CRW}), frozenset({MUW, WBD}), frozenset({RT, WBS})]
    for enabled in enabled_sets:
        for level in range(6):
            for force in (None, 1, 2, 3, 4, 5):
                for skip in (False, True):
                    preferences = SessionPreferences(
                        enabled_exercise_types=enabled,
                        force_difficulty=force,
                        skip_easy_mode=skip,
                    )
                    assert select_exercise_type(record_at(level), preferences) in enabled


def test_preferences_from_raw() -> None:
    """Test validation of loosely typed preferences."""
    assert SessionPreferences.from_raw().enabled_exercise_types == frozenset(ExerciseType)

    preferences = SessionPreferences.from_raw(["make-up-word", "flashcards"])
    assert preferences.enabled_exercise_types == frozenset({MUW})

    assert SessionPreferences.from_raw([]).enabled_exercise_types == frozenset({RT})
    assert SessionPreferences.from_raw(["bogus"]).enabled_exercise_types == frozenset({RT})

    assert SessionPreferences.from_raw(force_difficulty=7).force_difficulty is None
    assert SessionPreferences.from_raw(force_difficulty=0).force_difficulty is None
    assert SessionPreferences.from_raw(force_difficulty=4).force_difficulty == 4
