"""Field matchers: one per expected-answer shape.

Every matcher takes ``(student_value, expected, options)`` and returns a
:class:`MatchResult`. Matchers never raise on malformed student input; a value
of the wrong shape is simply an incorrect answer with explanatory feedback.
"""

from __future__ import annotations

import math
import re
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from app.core.config import settings
from app.schemas.grading import AutoGradeOptions
from app.services.grading.normalizer import normalize_text
from app.services.grading.similarity import calculate_similarity
from app.utils.enums import MatchingStrategy

# Leading numeric prefix, the way form inputs are read ("12.5 cm" -> 12.5)
_LEADING_NUMBER = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")
_WHITESPACE_RUN = re.compile(r"\s+")


@dataclass
class MatchResult:
    correct: bool
    score: float
    max_score: float
    feedback: str
    details: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def parse_number(value: Any) -> Optional[float]:
    """Read a float from a number or the numeric prefix of a string.

    Returns ``None`` when nothing numeric can be read. Booleans are not numbers.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        match = _LEADING_NUMBER.match(value.strip())
        if match:
            number = float(match.group(0))
            return number if math.isfinite(number) else None
    return None


def grade_text_input(student_value: Any, expected: Any, options: AutoGradeOptions) -> MatchResult:
    strategy = options.matching_strategy
    student_text = normalize_text(
        student_value,
        case_sensitive=options.case_sensitive,
        remove_whitespace=options.remove_whitespace,
        remove_punctuation=options.remove_punctuation,
    )
    expected_text = normalize_text(
        expected,
        case_sensitive=options.case_sensitive,
        remove_whitespace=options.remove_whitespace,
        remove_punctuation=options.remove_punctuation,
    )

    max_score = 1.0
    score = 0.0
    correct = False
    details: Dict[str, Any] = {
        "student_answer": student_value,
        "expected_answer": expected,
        "matching_strategy": strategy.value,
    }

    if strategy == MatchingStrategy.exact:
        correct = student_text == expected_text
        score = max_score if correct else 0.0
    elif strategy == MatchingStrategy.fuzzy:
        threshold = (
            options.tolerance
            if options.tolerance is not None
            else settings.DEFAULT_FUZZY_TOLERANCE
        )
        similarity = calculate_similarity(student_text, expected_text)
        correct = similarity >= threshold
        if options.partial_credit:
            score = similarity * max_score
        else:
            score = max_score if correct else 0.0
        details["similarity"] = similarity
        details["threshold"] = threshold
    elif strategy == MatchingStrategy.contains:
        # An empty side is a substring of everything; it never counts as a match.
        if student_text and expected_text:
            correct = expected_text in student_text or student_text in expected_text
        score = max_score if correct else 0.0

    return MatchResult(
        correct=correct,
        score=score,
        max_score=max_score,
        feedback="Correct answer" if correct else f"Expected: {expected}",
        details=details,
    )


def grade_number_input(student_value: Any, expected: Any, options: AutoGradeOptions) -> MatchResult:
    default_tolerance = options.tolerance or 0.0
    if isinstance(expected, dict):
        expected_number = parse_number(expected.get("value"))
        tolerance = parse_number(expected.get("tolerance")) or default_tolerance
    else:
        expected_number = parse_number(expected)
        tolerance = default_tolerance
    student_number = parse_number(student_value)

    if student_number is None or expected_number is None:
        return MatchResult(
            correct=False,
            score=0.0,
            max_score=1.0,
            feedback="Invalid number format",
            details={"student_answer": student_value, "expected_answer": expected},
        )

    difference = abs(student_number - expected_number)
    correct = difference <= tolerance
    score = 0.0
    if correct:
        score = 1.0
    elif options.partial_credit and expected_number != 0:
        relative_error = difference / abs(expected_number)
        score = max(0.0, 1.0 - relative_error)

    return MatchResult(
        correct=correct,
        score=score,
        max_score=1.0,
        feedback="Correct answer" if correct else f"Expected: {expected_number} ± {tolerance}",
        details={
            "student_answer": student_number,
            "expected_answer": expected_number,
            "difference": difference,
            "tolerance": tolerance,
        },
    )


def grade_boolean(student_value: Any, expected: bool, options: AutoGradeOptions) -> MatchResult:
    """Single checkbox or radio: the selection state must match exactly."""
    correct = isinstance(student_value, bool) and student_value == expected
    return MatchResult(
        correct=correct,
        score=1.0 if correct else 0.0,
        max_score=1.0,
        feedback=(
            "Correct selection"
            if correct
            else f"Expected: {'selected' if expected else 'not selected'}"
        ),
        details={"student_answer": student_value, "expected_answer": expected},
    )


def _choice_key(choice: Any) -> Tuple[bool, Any]:
    # True and 1 compare equal in Python but are different options
    return isinstance(choice, bool), choice


def grade_multiple_choice(student_value: Any, expected: Any, options: AutoGradeOptions) -> MatchResult:
    points_per_correct = options.points_per_correct
    raw_choices = student_value if isinstance(student_value, list) else [student_value]
    expected_choices: List[Any] = expected if isinstance(expected, list) else [expected]
    expected_keys = [_choice_key(choice) for choice in expected_choices]
    # Picking the same option twice counts once
    student_choices: List[Any] = []
    student_keys: List[Any] = []
    for choice in raw_choices:
        key = _choice_key(choice)
        if key not in student_keys:
            student_choices.append(choice)
            student_keys.append(key)

    correct_selections = sum(1 for key in student_keys if key in expected_keys)
    incorrect_selections = sum(1 for key in student_keys if key not in expected_keys)
    missed_selections = sum(1 for key in expected_keys if key not in student_keys)

    all_correct = correct_selections == len(expected_choices) and incorrect_selections == 0
    max_score = len(expected_choices) * points_per_correct

    score = 0.0
    if all_correct:
        score = max_score
    elif options.partial_credit:
        # Each wrong pick costs half of what a right pick earns
        score = max(
            0.0,
            correct_selections * points_per_correct
            - incorrect_selections * points_per_correct * 0.5,
        )

    return MatchResult(
        correct=all_correct,
        score=score,
        max_score=max_score,
        feedback=(
            "All correct"
            if all_correct
            else f"{correct_selections}/{len(expected_choices)} correct selections"
        ),
        details={
            "correct_selections": correct_selections,
            "incorrect_selections": incorrect_selections,
            "missed_selections": missed_selections,
            "student_answers": student_choices,
            "expected_answers": expected_choices,
        },
    )


def _as_list(value: Any) -> List[Any]:
    """A bare string is one keyword; other non-list values count as none."""
    if isinstance(value, list):
        return value
    if isinstance(value, str) and value.strip():
        return [value]
    return []


def grade_essay(student_value: Any, criteria: Dict[str, Any], options: AutoGradeOptions) -> MatchResult:
    """Keyword/length rubric for free text.

    One point for the length window (when a bound is configured), one per
    keyword and one per required phrase found in the normalized answer.
    """
    if not isinstance(criteria, dict):
        criteria = {}
    keywords = _as_list(criteria.get("keywords"))
    required_phrases = _as_list(criteria.get("requiredPhrases"))
    min_length = parse_number(criteria.get("minLength")) or 0
    max_length = parse_number(criteria.get("maxLength"))

    student_text = normalize_text(student_value)
    # An empty answer still counts as one word, as form inputs report it
    word_count = len(_WHITESPACE_RUN.split(student_text))

    score = 0.0
    max_score = 0.0
    feedback: List[str] = []
    details: Dict[str, Any] = {
        "word_count": word_count,
        "length_requirement": {"min": min_length, "max": max_length},
        "keyword_matches": {},
        "phrase_matches": {},
    }

    if min_length > 0 or max_length is not None:
        max_score += 1
        within = word_count >= min_length and (max_length is None or word_count <= max_length)
        if within:
            score += 1
            feedback.append(f"Length: {word_count} words (within range)")
        else:
            upper = "" if max_length is None else f"{max_length:g}"
            feedback.append(f"Length: {word_count} words (expected {min_length:g}-{upper})")
        details["length_check"] = within

    if keywords:
        max_score += len(keywords)
        for keyword in keywords:
            found = bool(normalize_text(keyword)) and normalize_text(keyword) in student_text
            details["keyword_matches"][str(keyword)] = found
            if found:
                score += 1
        found_count = sum(1 for hit in details["keyword_matches"].values() if hit)
        feedback.append(f"Keywords: {found_count}/{len(keywords)} found")

    if required_phrases:
        max_score += len(required_phrases)
        for phrase in required_phrases:
            found = bool(normalize_text(phrase)) and normalize_text(phrase) in student_text
            details["phrase_matches"][str(phrase)] = found
            if found:
                score += 1
        found_count = sum(1 for hit in details["phrase_matches"].values() if hit)
        feedback.append(f"Required phrases: {found_count}/{len(required_phrases)} found")

    correct = max_score > 0 and score == max_score

    return MatchResult(
        correct=correct,
        score=score,
        max_score=max_score or 1.0,
        feedback="; ".join(feedback),
        details=details,
    )
