"""Assessment of typed romanization answers.

Checks a learner's answer against the expected RTGS romanization and
turns correctness plus response time into an SM-2 quality grade.
"""

import logging
import unicodedata
from dataclasses import dataclass
from enum import Enum

from backend.config import settings

logger = logging.getLogger(__name__)

WRONG_QUALITY = 1  # Incorrect but familiar
REVEALED_QUALITY = 0  # Complete blackout: the learner gave up

ZERO_WIDTH_CHARS = ["\u200b", "\u200c", "\u200d", "\ufeff"]
IGNORED_PUNCTUATION = [".", ",", "!", "?", ";", ":", "'", '"', "(", ")", "-"]


class AssessmentGrade(Enum):
    """How correct a response is."""

    CORRECT = "correct"
    INCORRECT = "incorrect"


@dataclass
class Assessment:
    """The result of assessing a learner's response."""

    grade: AssessmentGrade
    suggested_quality: int       # 0-5, fed to the memory model
    feedback: str                # Explanation for the learner
    expected: str                # What the correct answer was
    actual: str                  # What the learner answered

    @property
    def correct(self) -> bool:
        return self.grade is AssessmentGrade.CORRECT


def normalize_for_comparison(text: str) -> str:
    """Normalize text for comparison.

    - Unicode NFC normalization
    - Strip whitespace
    - Lowercase
    - Remove zero-width characters and punctuation
    """
    text = unicodedata.normalize("NFC", text.strip())
    text = text.lower()
    for char in ZERO_WIDTH_CHARS:
        text = text.replace(char, "")
    for char in IGNORED_PUNCTUATION:
        text = text.replace(char, "")
    return text.strip()


def quality_from_response(
    correct: bool,
    time_ms: int,
    fast_ms: int | None = None,
    slow_ms: int | None = None,
) -> int:
    """Grade a recall attempt 0-5 from correctness and response time.

    Wrong answers get 1. Correct answers get 5 when faster than
    ``fast_ms``, 4 when faster than ``slow_ms``, otherwise 3.
    """
    if not correct:
        return WRONG_QUALITY

    fast_ms = settings.fast_answer_ms if fast_ms is None else fast_ms
    slow_ms = settings.slow_answer_ms if slow_ms is None else slow_ms

    if time_ms < fast_ms:
        return 5  # Perfect recall
    if time_ms < slow_ms:
        return 4  # Correct with some hesitation
    return 3  # Correct but difficult


def assess_romanization(response: str, expected: str, time_ms: int) -> Assessment:
    """Assess a typed romanization against the expected answer."""
    if expected and normalize_for_comparison(response) == normalize_for_comparison(expected):
        return Assessment(
            grade=AssessmentGrade.CORRECT,
            suggested_quality=quality_from_response(True, time_ms),
            feedback="Correct!",
            expected=expected,
            actual=response,
        )

    if not expected:
        logger.warning("No expected answer for response %r; grading as incorrect", response)

    return Assessment(
        grade=AssessmentGrade.INCORRECT,
        suggested_quality=WRONG_QUALITY,
        feedback=f"Expected: {expected}",
        expected=expected,
        actual=response,
    )
