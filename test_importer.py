"""Test definition import: JSONL parsing and link numbering."""
import json

import importer
from importer import build_test_rows, load_and_transform, parse_line, run_import
from mocktest.database import QUESTIONS, TEST_QUESTIONS_LINK, TESTS, DatabaseClient
from init_db import statements


def line(**fields):
    return json.dumps(fields)


def test_single_choice_with_string_options():
    row = parse_line(line(question_id="p-1", question_type="single_choice", subject="Physics",
                          question_text="Unit of force?", options=["Newton", "Joule"], correct_answer="A"))
    assert row["question_type"] == "SINGLE_CHOICE"
    assert row["options"] == [{"id": "A", "label": "Newton"}, {"id": "B", "label": "Joule"}]
    assert row["correct_answer"] == ["A"]
    assert row["question_id"] == parse_line(line(question_id="p-1", question_type="SINGLE_CHOICE",
                                                 text="x", options=["a", "b"], correct_answer=["B"]))["question_id"]


def test_numerical_keeps_number():
    row = parse_line(line(question_id="m-1", question_type="NUMERICAL", text="2+2", correct_answer=[4]))
    assert row["correct_answer"] == [4]
    assert row["options"] is None
    assert row["subject"] is None


def test_invalid_lines_skipped():
    assert parse_line("") is None
    assert parse_line("{not json") is None
    assert parse_line(line(question_id="x", question_type="ESSAY", text="t", correct_answer=["A"])) is None
    assert parse_line(line(question_id="x", question_type="NUMERICAL", text="t", correct_answer=[])) is None
    # correct answer must name one of the options
    assert parse_line(line(question_id="x", question_type="SINGLE_CHOICE", text="t",
                           options=["a", "b"], correct_answer="E")) is None


def test_links_number_questions_in_file_order(tmp_path):
    path = tmp_path / "test.jsonl"
    path.write_text("\n".join([
        line(question_id="n1", question_type="NUMERICAL", text="a", correct_answer=1),
        "garbage",
        line(question_id="n2", question_type="NUMERICAL", text="b", correct_answer=2),
        line(question_id="n1", question_type="NUMERICAL", text="a again", correct_answer=1),
        line(question_id="n3", question_type="NUMERICAL", text="c", correct_answer=3),
    ]), encoding="utf-8")
    questions = list(load_and_transform(path))
    test, unique, links = build_test_rows("Mock 1", 180, questions)
    assert test["total_questions"] == 3
    assert [q["question_text"] for q in unique] == ["a", "b", "c"]
    assert [link["question_number"] for link in links] == [1, 2, 3]
    assert [link["question_id"] for link in links] == [q["question_id"] for q in questions[:2]] + [questions[3]["question_id"]]
    assert {link["test_id"] for link in links} == {test["test_id"]}


def test_duplicate_question_keeps_first_occurrence(tmp_path, monkeypatch, fake_client):
    path = tmp_path / "test.jsonl"
    path.write_text("\n".join([
        line(question_id="n1", question_type="NUMERICAL", text="first", correct_answer=1),
        line(question_id="n2", question_type="NUMERICAL", text="b", correct_answer=2),
        line(question_id="n1", question_type="NUMERICAL", text="dup", correct_answer=99),
    ]), encoding="utf-8")
    monkeypatch.setattr(importer, "DatabaseClient", lambda admin=False: DatabaseClient(client=fake_client))

    run_import(path, "Mock 1", 180)

    stored = fake_client.rows(QUESTIONS)
    assert len(stored) == 2
    first = next(q for q in stored if q["question_text"] != "b")
    assert first["question_text"] == "first"
    assert first["correct_answer"] == [1]
    assert fake_client.rows(TESTS)[0]["total_questions"] == 2
    links = {link["question_id"]: link["question_number"] for link in fake_client.rows(TEST_QUESTIONS_LINK)}
    assert links[first["question_id"]] == 1


def test_schema_covers_tables():
    sql = "\n".join(statements())
    for table in ("Tests", "Questions", "Test_Questions_Link", "User_Test_Attempts", "User_Answer_Responses"):
        assert f'CREATE TABLE IF NOT EXISTS "{table}"' in sql
