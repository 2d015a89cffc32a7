"""Tests for answer grading."""
import pytest
from faker import Faker

from vocabdrill.models.practice_models import ExerciseType
from vocabdrill.services.accuracy_scorer import (
    calculate_accuracy,
    find_word_differences,
    get_mistake_type,
    levenshtein_distance,
    normalize,
    score_answer,
)

fake = Faker()


def test_normalize() -> None:
    """Test trimming and case folding."""
    assert normalize("  Hund ") == "hund"
    assert normalize(None) == ""


@pytest.mark.parametrize(
    "first,second,expected",
    [
        ("kitten", "sitting", 3),
        ("", "abc", 3),
        ("abc", "", 3),
        ("flaw", "lawn", 2),
        ("same", "same", 0),
    ],
)
def test_levenshtein_distance(first: str, second: str, expected: int) -> None:
    """Test classic edit distance."""
    assert levenshtein_distance(first, second) == expected


def test_exact_match_is_correct() -> None:
    """Test that identical answers get full marks."""
    for _ in range(10):
        word = fake.word()
        result = score_answer(word, word)
        assert result.is_correct is True
        assert result.accuracy == 100
        assert result.partial_credit is False


def test_normalization() -> None:
    """Test that case and surrounding whitespace are ignored."""
    result = score_answer("  HeLLo ", "hello")
    assert result.is_correct is True
    assert result.accuracy == 100


def test_both_empty() -> None:
    """Test that two empty strings count as a perfect match."""
    result = score_answer("", "   ")
    assert result.is_correct is True
    assert result.accuracy == 100


def test_missing_input() -> None:
    """Test grading of an empty answer."""
    result = score_answer(None, "abc")
    assert result.is_correct is False
    assert result.accuracy == 0
    assert result.partial_credit is False


def test_partial_credit_threshold() -> None:
    """Test that near misses earn partial credit."""
    result = score_answer("helo", "hello")
    assert result.is_correct is False
    assert result.accuracy == 80
    assert result.partial_credit is True

    result = score_answer("kitten", "sitting")
    assert result.accuracy == 57
    assert result.partial_credit is False


def test_construction_threshold() -> None:
    """Test the more lenient threshold for make-up-word."""
    # distance 3 over 10 characters
    assert score_answer("abcdefgxyz", "abcdefghij").accuracy == 70
    assert score_answer("abcdefgxyz", "abcdefghij", ExerciseType.MAKE_UP_WORD).partial_credit is True
    assert score_answer(
        "abcdefgxyz", "abcdefghij", ExerciseType.REMEMBER_TRANSLATION
    ).partial_credit is False


def test_rounding_is_half_up() -> None:
    """Test that x.5 accuracies round up."""
    # 100 * 5 / 8 = 62.5
    assert calculate_accuracy("abcdexyz", "abcdefgh") == 63


def test_accuracy_is_symmetric() -> None:
    """Test that swapping the strings does not change accuracy."""
    for _ in range(20):
        first, second = fake.word(), fake.word()
        assert score_answer(first, second).accuracy == score_answer(second, first).accuracy


def test_accuracy_bounds() -> None:
    """Test that accuracy stays within 0-100."""
    for _ in range(20):
        result = score_answer(fake.pystr(max_chars=12), fake.word())
        assert 0 <= result.accuracy <= 100


def test_find_word_differences() -> None:
    """Test per-position mismatch reporting."""
    assert find_word_differences("cut", "cat") == [
        {"position": 1, "expected": "a", "actual": "u"}
    ]
    assert find_word_differences("ca", "cat") == [
        {"position": 2, "expected": "t", "actual": ""}
    ]
    assert find_word_differences("Cat", "cat") == []


def test_mistake_types() -> None:
    """Test mistake category per exercise type."""
    assert get_mistake_type(ExerciseType.WRITE_BY_SOUND) == "pronunciation"
    assert get_mistake_type(ExerciseType.WRITE_BY_DEFINITION) == "meaning"
    assert get_mistake_type(ExerciseType.REMEMBER_TRANSLATION) == "translation"
    assert get_mistake_type(ExerciseType.CHOOSE_RIGHT_WORD) == "recognition"
    assert get_mistake_type(ExerciseType.MAKE_UP_WORD) == "spelling"
