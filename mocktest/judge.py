"""
Answer judge shared by the report view and the server-side score recomputation.
Decides correctness of a single answer; never raises.
"""
import logging
import re
from typing import Any, Optional

from engine import NUMERICAL, NUMERICAL_TOLERANCE, SINGLE_CHOICE

logger = logging.getLogger(__name__)

# Leading numeric literal, the way a lenient float parser reads "10", " 9.5cm", ".5", "1e3"
_LEADING_FLOAT = re.compile(r"^\s*([+-]?(?:Infinity|(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?))", re.ASCII)


def is_blank(value: Any) -> bool:
    """True for a missing answer: None or the empty string."""
    return value is None or value == ""


def _as_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def parse_number(value: Any) -> Optional[float]:
    """Parse the leading number of value; None when there is none."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        return float(value)
    match = _LEADING_FLOAT.match(str(value))
    if not match:
        return None
    return float(match.group(1).replace("Infinity", "inf"))


def is_answer_correct(question_type: str, selected: Any, correct_answer: Any) -> bool:
    """
    Judge one answer.

    Args:
        question_type: SINGLE_CHOICE or NUMERICAL
        selected: The user's answer (choice id or numeric literal)
        correct_answer: Non-empty list whose first element is the canonical answer

    Returns:
        True only for a well-formed, matching answer
    """
    if is_blank(selected):
        return False
    if not isinstance(correct_answer, (list, tuple)) or len(correct_answer) == 0:
        return False

    try:
        canonical = correct_answer[0]

        if question_type == SINGLE_CHOICE:
            return _as_text(selected) == _as_text(canonical)

        if question_type == NUMERICAL:
            selected_num = parse_number(selected)
            correct_num = parse_number(canonical)
            if selected_num is None or correct_num is None:
                return False
            return abs(correct_num - selected_num) < NUMERICAL_TOLERANCE
    except Exception as e:
        logger.error(f"Error comparing answers: {e} (selected={selected!r}, correct={correct_answer!r})")
        return False

    return False
