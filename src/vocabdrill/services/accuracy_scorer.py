"""Answer grading based on edit distance."""
import math
from typing import Dict, List, Optional

from vocabdrill.models.practice_models import AccuracyResult, ExerciseType

PARTIAL_CREDIT_THRESHOLD = 80
CONSTRUCTION_PARTIAL_CREDIT_THRESHOLD = 70  # drag-and-drop / letter reordering

MISTAKE_TYPES: Dict[ExerciseType, str] = {
    ExerciseType.WRITE_BY_SOUND: "pronunciation",
    ExerciseType.WRITE_BY_DEFINITION: "meaning",
    ExerciseType.REMEMBER_TRANSLATION: "translation",
    ExerciseType.CHOOSE_RIGHT_WORD: "recognition",
    ExerciseType.MAKE_UP_WORD: "spelling",
}


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values."""
    return int(math.floor(value + 0.5))


def normalize(text: Optional[str]) -> str:
    return (text or "").strip().lower()


def levenshtein_distance(first: str, second: str) -> int:
    """Classic Levenshtein distance between two strings."""
    if len(first) < len(second):
        first, second = second, first
    if not second:
        return len(first)

    previous_row = list(range(len(second) + 1))
    for i, first_char in enumerate(first):
        current_row = [i + 1]
        for j, second_char in enumerate(second):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (first_char != second_char)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row
    return previous_row[-1]


def calculate_accuracy(user_input: str, target: str) -> int:
    """Similarity of two already-normalized strings as a 0-100 percentage."""
    max_length = max(len(user_input), len(target))
    if max_length == 0:
        return 100
    distance = levenshtein_distance(user_input, target)
    return round_half_up(100 * (max_length - distance) / max_length)


def score_answer(
    user_input: Optional[str],
    target: str,
    exercise_type: Optional[ExerciseType] = None,
) -> AccuracyResult:
    """Grade a user's answer against the target answer.

    Both strings are trimmed and lowercased. The answer is correct only on
    an exact match; otherwise it may earn partial credit when its accuracy
    reaches the threshold for the exercise type.
    """
    normalized_input = normalize(user_input)
    normalized_target = normalize(target)

    is_correct = normalized_input == normalized_target
    accuracy = calculate_accuracy(normalized_input, normalized_target)

    threshold = PARTIAL_CREDIT_THRESHOLD
    if exercise_type is not None and exercise_type.is_construction:
        threshold = CONSTRUCTION_PARTIAL_CREDIT_THRESHOLD

    return AccuracyResult(
        is_correct=is_correct,
        accuracy=accuracy,
        partial_credit=not is_correct and accuracy >= threshold,
    )


def find_word_differences(user_input: str, target: str) -> List[Dict[str, object]]:
    """Per-position character mismatches, for answer feedback."""
    normalized_input = normalize(user_input)
    normalized_target = normalize(target)
    differences = []
    for position in range(max(len(normalized_input), len(normalized_target))):
        actual = normalized_input[position] if position < len(normalized_input) else ""
        expected = normalized_target[position] if position < len(normalized_target) else ""
        if actual != expected:
            differences.append({"position": position, "expected": expected, "actual": actual})
    return differences


def get_mistake_type(exercise_type: ExerciseType) -> str:
    """Mistake category recorded for a wrong answer in the given exercise."""
    return MISTAKE_TYPES.get(exercise_type, "spelling")
