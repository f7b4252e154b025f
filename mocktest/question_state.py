"""
Per-question status lifecycle during an attempt.

Transitions are pure functions (state, event) -> new state so the controller
can own the map and tests can drive them without a UI.
"""
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

from mocktest.judge import is_blank

NOT_VISITED = "not_visited"
UNANSWERED = "unanswered"
ANSWERED = "answered"
MARKED_FOR_REVIEW = "marked_for_review"

STATUSES = (NOT_VISITED, UNANSWERED, ANSWERED, MARKED_FOR_REVIEW)
# Stored rows have no not_visited concept
PERSISTED_ACTIONS = (UNANSWERED, ANSWERED, MARKED_FOR_REVIEW)


@dataclass(frozen=True)
class QuestionState:
    status: str = NOT_VISITED
    selected_answer: Any = None
    time_taken_sec: Optional[int] = None  # reserved, not computed yet


def visit(state: QuestionState) -> QuestionState:
    """First visit promotes not_visited to unanswered; later visits keep the status."""
    if state.status == NOT_VISITED:
        return replace(state, status=UNANSWERED)
    return state


def set_answer(state: QuestionState, value: Any) -> QuestionState:
    """Record an edit. Any review mark is dropped and the status follows the value."""
    status = UNANSWERED if is_blank(value) else ANSWERED
    return replace(state, status=status, selected_answer=value)


def clear(state: QuestionState) -> QuestionState:
    return replace(state, status=UNANSWERED, selected_answer=None)


def mark_for_review(state: QuestionState) -> QuestionState:
    return replace(state, status=MARKED_FOR_REVIEW)


def persisted_action(state: QuestionState) -> str:
    """Action stored with an answer row."""
    if state.status == NOT_VISITED:
        return UNANSWERED
    return state.status


def initial_states(questions: List[Dict], stored: Optional[Dict[str, Dict]] = None) -> Dict[str, QuestionState]:
    """
    Build the state map for an attempt.

    Args:
        questions: Questions in navigation order (dicts with question_id)
        stored: Optional {question_id: {selected_answer, action}} from a resumed attempt

    Returns:
        {question_id: QuestionState} with the first question already visited
    """
    stored = stored or {}
    states: Dict[str, QuestionState] = {}
    for q in questions:
        qid = q["question_id"]
        row = stored.get(qid)
        if row is None:
            states[qid] = QuestionState()
            continue
        action = row.get("action")
        if action not in PERSISTED_ACTIONS:
            action = UNANSWERED if is_blank(row.get("selected_answer")) else ANSWERED
        states[qid] = QuestionState(status=action, selected_answer=row.get("selected_answer"))

    if questions:
        first = questions[0]["question_id"]
        states[first] = visit(states[first])
    return states


def count_by_status(states: Dict[str, QuestionState]) -> Dict[str, int]:
    """Palette legend counts for every in-memory status."""
    counts = {status: 0 for status in STATUSES}
    for state in states.values():
        counts[state.status] += 1
    return counts
