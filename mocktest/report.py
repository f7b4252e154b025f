"""
Scoring and report generation for a finished attempt.

build_report() is pure and is the only scoring algorithm: the report page
calls it through generate_report(), and the server recomputation calls it
before persisting final_score.
"""
import logging
from typing import Any, Dict, List

from engine import CORRECT_SCORE, INCORRECT_SCORE, UNATTEMPTED_SCORE, UNCATEGORIZED
from mocktest.database import DatabaseClient, resolve_question
from mocktest.errors import AuthorizationError, NotFoundError
from mocktest.judge import is_answer_correct, is_blank, parse_number

logger = logging.getLogger(__name__)

CORRECT = "CORRECT"
INCORRECT = "INCORRECT"
UNATTEMPTED = "UNATTEMPTED"

REPORT_TABS = ("ALL", CORRECT, INCORRECT, UNATTEMPTED)

_STAT_KEY = {CORRECT: "correct", INCORRECT: "incorrect", UNATTEMPTED: "unattempted"}
_TOTAL_KEY = {CORRECT: "total_correct", INCORRECT: "total_incorrect", UNATTEMPTED: "total_unattempted"}


def score_for(correct: int, incorrect: int, unattempted: int = 0) -> int:
    return correct * CORRECT_SCORE + incorrect * INCORRECT_SCORE + unattempted * UNATTEMPTED_SCORE


def classify(question: Dict, selected_answer: Any) -> str:
    if is_blank(selected_answer):
        return UNATTEMPTED
    if is_answer_correct(question.get("question_type"), selected_answer, question.get("correct_answer")):
        return CORRECT
    return INCORRECT


def build_report(test_name: str, question_links: List[Dict], answers: Dict[str, Any]) -> Dict:
    """
    Aggregate stored answers into totals and per-subject statistics.

    Args:
        test_name: Display name of the test
        question_links: Test_Questions_Link rows with their Questions join
        answers: {question_id: selected_answer} from stored responses

    Returns:
        {test_name, total_score, total_correct, total_incorrect, total_unattempted,
         subject_stats: {SUBJECT: {correct, incorrect, unattempted, score}}, questions: [...]}
    """
    report = {
        "test_name": test_name,
        "total_score": 0,
        "total_correct": 0,
        "total_incorrect": 0,
        "total_unattempted": 0,
        "subject_stats": {},
        "questions": [],
    }

    resolved = []
    for link in question_links:
        question = resolve_question(link)
        if question is None:
            # Malformed join rows are left out of every count
            continue
        resolved.append(question)
    resolved.sort(key=lambda q: q.get("question_number") or 0)

    for q in resolved:
        question_id = q["question_id"]
        selected_answer = answers.get(question_id)
        if is_blank(selected_answer):
            selected_answer = None
        subject = (q.get("subject") or UNCATEGORIZED).upper()

        stats = report["subject_stats"].setdefault(
            subject, {"correct": 0, "incorrect": 0, "unattempted": 0, "score": 0}
        )
        status = classify(q, selected_answer)
        report[_TOTAL_KEY[status]] += 1
        stats[_STAT_KEY[status]] += 1

        report["questions"].append({
            "question_id": question_id,
            "question_number": q.get("question_number"),
            "question_text": q.get("question_text"),
            "subject": q.get("subject"),
            "correct_answer": q.get("correct_answer"),
            "solution_text": q.get("solution_text"),
            "selected_answer": selected_answer,
            "status": status,
        })

    report["total_score"] = score_for(report["total_correct"], report["total_incorrect"], report["total_unattempted"])
    for stats in report["subject_stats"].values():
        stats["score"] = score_for(stats["correct"], stats["incorrect"], stats["unattempted"])

    return report


def generate_report(database: DatabaseClient, attempt_id: str) -> Dict:
    """
    Recompute the report for the logged-in user's attempt from current stored answers.
    Display only; the authoritative score is the one persisted by calculate_score.
    """
    user = database.get_user()
    if not user:
        raise AuthorizationError()

    try:
        attempt = database.select_attempt(attempt_id)
    except Exception as e:
        raise NotFoundError(f"Attempt not found. {e}") from e
    if attempt is None:
        raise NotFoundError("Attempt not found.")
    if str(attempt["user_id"]) != str(user.id):
        raise AuthorizationError("You do not have permission to view this report.")

    try:
        answers = database.select_answer_responses(attempt_id)
    except Exception as e:
        raise NotFoundError(f"Could not fetch answers. {e}") from e
    try:
        links = database.select_questions_for_test(attempt["test_id"])
    except Exception as e:
        raise NotFoundError(f"Could not fetch questions. {e}") from e

    report = build_report(attempt["test_name"], links, answers)
    logger.info(f"Report for attempt {attempt_id}: score={report['total_score']}")
    return report


def filter_questions(report: Dict, tab: str = "ALL") -> List[Dict]:
    """Questions shown under a review tab (ALL, CORRECT, INCORRECT, UNATTEMPTED)."""
    if tab == "ALL":
        return list(report["questions"])
    return [q for q in report["questions"] if q["status"] == tab]


def format_answer(answer: Any) -> str:
    """Display form of a submitted answer."""
    if is_blank(answer):
        return "Not Answered"
    if isinstance(answer, (list, tuple)):
        return ", ".join(str(a) for a in answer)
    if isinstance(answer, bool):
        return str(answer)
    number = parse_number(answer)
    if number is None:
        return str(answer)
    if number.is_integer():
        return str(int(number))
    return str(number)


def format_correct_answer(answer: Any) -> str:
    if answer is None:
        return "N/A"
    if isinstance(answer, (list, tuple)):
        return ", ".join(format_answer(a) for a in answer)
    return format_answer(answer)
