# ============================================================================
# Input Normalizer
# ============================================================================
"""
Parses what a learner typed into something comparable with the expected
answer.

Accepted numeric forms, tried in order:
    "1 1/2"  mixed number   -> 1.5
    "-3/4"   simple fraction -> -0.75
    "42", "0.5", "7 apples"  leading float literal

Logic & pattern answers are compared as strings (e.g. "k" matches "K").
"""
from typing import Optional, Union
import math
import re

from app.services.practice.answer_extractor import is_string_answer_operation

TOLERANCE = 0.01

_MIXED_NUMBER = re.compile(r"^(\d+)\s+(\d+)\s*/\s*(\d+)$")
_FRACTION = re.compile(r"^(-?\d+)\s*/\s*(\d+)$")
_LEADING_FLOAT = re.compile(r"^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


def normalize(raw: Optional[str]) -> float:
    """Numeric value of ``raw``, NaN when it is not a number"""
    text = (raw or "").strip()
    if not text:
        return math.nan

    match = _MIXED_NUMBER.match(text)
    if match:
        whole, num, den = (int(g) for g in match.groups())
        if den == 0:
            return math.nan
        return whole + num / den

    match = _FRACTION.match(text)
    if match:
        num, den = int(match.group(1)), int(match.group(2))
        if den == 0:
            return math.nan
        return num / den

    match = _LEADING_FLOAT.match(text)
    if match:
        return float(match.group(0))
    return math.nan


def is_valid(value: float) -> bool:
    return not math.isnan(value)


def normalize_text(raw: Optional[Union[str, int, float]]) -> str:
    return str(raw if raw is not None else "").strip().upper()


def is_correct(operation: str, raw: str, expected: Union[int, float, str]) -> bool:
    """Decide correctness of a submission against the extracted answer"""
    if is_string_answer_operation(operation):
        return normalize_text(raw) == normalize_text(expected)

    value = normalize(raw)
    if not is_valid(value):
        return False
    try:
        target = float(expected)
    except (TypeError, ValueError):
        target = normalize(str(expected))
    if not is_valid(target):
        return False
    return abs(value - target) < TOLERANCE


def answers_match(user_answer: str, correct_answer: Union[int, float, str, None]) -> bool:
    """Looser check for stored string answers (challenges)"""
    if correct_answer is None or not normalize_text(correct_answer):
        return False
    if normalize_text(user_answer) == normalize_text(correct_answer):
        return True

    user_value = normalize(user_answer)
    correct_value = normalize(str(correct_answer))
    if not is_valid(user_value) or not is_valid(correct_value):
        return False
    return abs(user_value - correct_value) < TOLERANCE
