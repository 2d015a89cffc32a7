"""Choose the exercise type presented for a word."""
import logging
from typing import Dict, List

from vocabdrill.models.models import WordRecord
from vocabdrill.models.practice_models import (
    LEVEL_EXERCISE_TYPES,
    ExerciseType,
    SessionPreferences,
    exercise_type_for_level,
)

logger = logging.getLogger(__name__)

# Acceptable types per forced difficulty, in order of preference
FORCED_DIFFICULTY_TYPES: Dict[int, List[ExerciseType]] = {
    1: [ExerciseType.REMEMBER_TRANSLATION, ExerciseType.CHOOSE_RIGHT_WORD],
    2: [ExerciseType.CHOOSE_RIGHT_WORD, ExerciseType.MAKE_UP_WORD],
    3: [
        ExerciseType.MAKE_UP_WORD,
        ExerciseType.WRITE_BY_DEFINITION,
        ExerciseType.WRITE_BY_SOUND,
    ],
    4: [ExerciseType.WRITE_BY_DEFINITION, ExerciseType.WRITE_BY_SOUND],
    5: [ExerciseType.WRITE_BY_SOUND, ExerciseType.WRITE_BY_DEFINITION],
}

# Exercise types ordered by the first level they appear at
LEVEL_ORDER: List[ExerciseType] = sorted(
    set(LEVEL_EXERCISE_TYPES.values()), key=lambda t: t.canonical_level
)


def _next_enabled_after(exercise_type: ExerciseType, enabled) -> ExerciseType:
    position = LEVEL_ORDER.index(exercise_type)
    for candidate in LEVEL_ORDER[position + 1:]:
        if candidate in enabled:
            return candidate
    return exercise_type


def _closest_enabled(level: int, enabled) -> ExerciseType:
    # Ties go to the lower canonical level
    return min(enabled, key=lambda t: (abs(t.canonical_level - level), t.canonical_level))


def select_exercise_type(record: WordRecord, preferences: SessionPreferences) -> ExerciseType:
    """Pick the exercise type for a word under the user's preferences."""
    enabled = preferences.enabled_exercise_types
    if not enabled:
        return ExerciseType.REMEMBER_TRANSLATION

    level = record.progression_level
    exercise_type = exercise_type_for_level(level)

    if preferences.force_difficulty is not None:
        allowed = FORCED_DIFFICULTY_TYPES.get(preferences.force_difficulty, [])
        for candidate in allowed:
            if candidate in enabled:
                exercise_type = candidate
                break

    if preferences.skip_easy_mode and exercise_type is ExerciseType.REMEMBER_TRANSLATION:
        exercise_type = _next_enabled_after(exercise_type, enabled)

    if exercise_type not in enabled:
        fallback = _closest_enabled(level, enabled)
        logger.debug(
            f"Exercise type {exercise_type.value} disabled for word record {record.id}, "
            f"using {fallback.value}"
        )
        exercise_type = fallback

    return exercise_type
