"""Scoring/report engine."""
from types import SimpleNamespace

import pytest

from conftest import make_question
from mocktest.database import ANSWER_RESPONSES
from mocktest.errors import AuthorizationError, NotFoundError
from mocktest.report import (
    build_report,
    filter_questions,
    format_answer,
    format_correct_answer,
    generate_report,
)


@pytest.fixture
def links():
    return [
        make_question("q1", 1, "SINGLE_CHOICE", ["A"], subject="physics"),
        make_question("q2", 2, "SINGLE_CHOICE", ["B"], subject="Chemistry"),
        make_question("q3", 3, "NUMERICAL", [10], subject="maths"),
    ]


def test_end_to_end_three_questions(links):
    report = build_report("Mock", links, {"q1": "A", "q2": "C"})
    assert report["total_correct"] == 1
    assert report["total_incorrect"] == 1
    assert report["total_unattempted"] == 1
    assert report["total_score"] == 3
    assert [q["status"] for q in report["questions"]] == ["CORRECT", "INCORRECT", "UNATTEMPTED"]


def test_subject_buckets_upper_cased(links):
    report = build_report("Mock", links, {"q1": "A", "q2": "C", "q3": "10"})
    assert report["subject_stats"] == {
        "PHYSICS": {"correct": 1, "incorrect": 0, "unattempted": 0, "score": 4},
        "CHEMISTRY": {"correct": 0, "incorrect": 1, "unattempted": 0, "score": -1},
        "MATHS": {"correct": 1, "incorrect": 0, "unattempted": 0, "score": 4},
    }


def test_subject_scores_sum_to_total():
    links = [
        make_question(f"q{i}", i, "SINGLE_CHOICE", ["A"], subject=subject)
        for i, subject in enumerate(["physics", "PHYSICS", "maths", None, "", "chemistry", "maths"], 1)
    ]
    answers = {"q1": "A", "q2": "B", "q3": "A", "q4": "C", "q6": "", "q7": "B"}
    report = build_report("Mock", links, answers)
    assert sum(s["score"] for s in report["subject_stats"].values()) == report["total_score"]
    assert report["subject_stats"]["UNCATEGORIZED"]["incorrect"] == 1
    assert report["subject_stats"]["UNCATEGORIZED"]["unattempted"] == 1
    assert report["subject_stats"]["PHYSICS"]["correct"] == 1


def test_empty_answer_is_unattempted(links):
    report = build_report("Mock", links, {"q1": "", "q2": None})
    assert report["total_unattempted"] == 3
    assert report["total_score"] == 0
    assert report["questions"][0]["selected_answer"] is None


def test_zero_is_an_answer():
    links = [make_question("q1", 1, "NUMERICAL", [0])]
    report = build_report("Mock", links, {"q1": 0})
    assert report["total_correct"] == 1


def test_unresolved_rows_are_excluded(links):
    broken = [
        {"question_number": 4, "Questions": None},
        {"question_number": 5, "Questions": []},
        {"question_number": 6},
    ]
    report = build_report("Mock", links + broken, {})
    assert len(report["questions"]) == 3
    assert report["total_unattempted"] == 3


def test_list_shaped_join_is_resolved():
    links = [{"question_number": 1, "Questions": [make_question("q1", 1, "SINGLE_CHOICE", ["A"])["Questions"]]}]
    report = build_report("Mock", links, {"q1": "A"})
    assert report["total_score"] == 4


def test_questions_sorted_by_number(links):
    report = build_report("Mock", list(reversed(links)), {})
    assert [q["question_number"] for q in report["questions"]] == [1, 2, 3]


def test_scoring_is_idempotent(links):
    answers = {"q1": "A", "q2": "C", "q3": "9.999"}
    assert build_report("Mock", links, answers) == build_report("Mock", links, answers)


def test_generate_report_from_store(seeded, database):
    seeded.tables[ANSWER_RESPONSES] = [
        {"attempt_id": "a1", "question_id": "q1", "selected_answer": "A", "action": "answered"},
        {"attempt_id": "a1", "question_id": "q2", "selected_answer": "C", "action": "answered"},
        {"attempt_id": "other", "question_id": "q3", "selected_answer": "10", "action": "answered"},
    ]
    report = generate_report(database, "a1")
    assert report["test_name"] == "JEE Main Mock 1"
    assert report["total_score"] == 3
    assert report["total_unattempted"] == 1


def test_generate_report_requires_owner(seeded, database):
    seeded.auth.user = SimpleNamespace(id="intruder", email="i@example.com")
    with pytest.raises(AuthorizationError):
        generate_report(database, "a1")
    seeded.auth.user = None
    with pytest.raises(AuthorizationError):
        generate_report(database, "a1")


def test_generate_report_missing_attempt(seeded, database):
    with pytest.raises(NotFoundError):
        generate_report(database, "missing")


def test_filter_questions(links):
    report = build_report("Mock", links, {"q1": "A", "q2": "C"})
    assert len(filter_questions(report, "ALL")) == 3
    assert [q["question_id"] for q in filter_questions(report, "INCORRECT")] == ["q2"]
    assert [q["question_id"] for q in filter_questions(report, "UNATTEMPTED")] == ["q3"]


def test_answer_display():
    assert format_answer(None) == "Not Answered"
    assert format_answer("") == "Not Answered"
    assert format_answer("10.0") == "10"
    assert format_answer(2.5) == "2.5"
    assert format_answer("B") == "B"
    assert format_correct_answer(None) == "N/A"
    assert format_correct_answer(["A"]) == "A"
    assert format_correct_answer([10, "12.50"]) == "10, 12.5"


def test_answer_display_reads_leading_number():
    assert format_answer("10 m/s") == "10"
    assert format_answer(" 2.50cm") == "2.5"
    assert format_answer("A2") == "A2"
