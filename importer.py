"""Ingest a test from .jsonl: one question per line, numbered in file order; bulk UPSERT into Tests, Questions, Test_Questions_Link."""
import argparse
import json
import logging
from pathlib import Path
from uuid import NAMESPACE_DNS, uuid5

from engine import NUMERICAL, SINGLE_CHOICE
from mocktest.database import QUESTIONS, TEST_QUESTIONS_LINK, TESTS, DatabaseClient

logger = logging.getLogger(__name__)

QUESTION_TYPES = {SINGLE_CHOICE, NUMERICAL}


def parse_options(raw_options) -> list | None:
    """Normalize options to [{"id", "label"}]; plain strings get letter ids A, B, C..."""
    if not isinstance(raw_options, list) or len(raw_options) < 2:
        return None
    options = []
    for i, opt in enumerate(raw_options):
        if isinstance(opt, dict) and opt.get("id") is not None:
            options.append({"id": str(opt["id"]), "label": str(opt.get("label") or opt.get("text") or "")})
        elif isinstance(opt, str):
            options.append({"id": chr(ord("A") + i), "label": opt})
        else:
            return None
    return options


def parse_line(line: str) -> dict | None:
    """Parse one JSONL line into a Questions row. Returns None if invalid/skip."""
    line = line.strip()
    if not line:
        return None
    try:
        raw = json.loads(line)
    except json.JSONDecodeError:
        return None
    source_id = raw.get("question_id")
    question_type = (raw.get("question_type") or "").strip().upper()
    if not source_id or question_type not in QUESTION_TYPES:
        return None
    text = raw.get("question_text") or raw.get("text") or ""
    if not text:
        return None

    correct = raw.get("correct_answer")
    if correct is None or correct == "":
        return None
    if not isinstance(correct, list):
        correct = [correct]
    if not correct:
        return None

    options = None
    if question_type == SINGLE_CHOICE:
        options = parse_options(raw.get("options"))
        if options is None:
            return None
        if str(correct[0]) not in {o["id"] for o in options}:
            return None
        correct = [str(c) for c in correct]

    return {
        "question_id": str(uuid5(NAMESPACE_DNS, str(source_id))),
        "question_type": question_type,
        "subject": (raw.get("subject") or "").strip() or None,
        "question_text": text,
        "options": options,
        "correct_answer": correct,
        "solution_text": raw.get("solution_text") or raw.get("explanation") or None,
    }


def load_and_transform(path: Path):
    """Read JSONL and yield transformed question rows."""
    with path.open("r", encoding="utf-8") as f:
        for line_no, line in enumerate(f, 1):
            row = parse_line(line)
            if row:
                yield row
            elif line.strip():
                logger.warning(f"Skipping invalid question on line {line_no}")


def build_test_rows(test_name: str, duration_minutes: int, questions: list[dict]):
    """Test row, the distinct questions and link rows numbering them 1..n in file order."""
    test_id = str(uuid5(NAMESPACE_DNS, f"test:{test_name}"))
    # First occurrence keeps its number
    unique = {}
    for q in questions:
        unique.setdefault(q["question_id"], q)
    questions = list(unique.values())
    test = {
        "test_id": test_id,
        "name": test_name,
        "duration_minutes": duration_minutes,
        "total_questions": len(questions),
    }
    links = [
        {"test_id": test_id, "question_id": q["question_id"], "question_number": n}
        for n, q in enumerate(questions, 1)
    ]
    return test, questions, links


def run_import(jsonl_path: Path, test_name: str, duration_minutes: int, chunk_size: int = 200, dry_run: bool = False):
    if not jsonl_path.exists():
        raise FileNotFoundError(f"JSONL not found: {jsonl_path}")
    test, questions, links = build_test_rows(test_name, duration_minutes, list(load_and_transform(jsonl_path)))
    if dry_run:
        print(f"Dry run: would upsert test {test_name!r} with {len(questions)} questions from {jsonl_path}")
        if questions:
            print("Sample row:", questions[0])
        return
    database = DatabaseClient(admin=True)
    database.upsert_rows(TESTS, [test], on_conflict="test_id", key_columns=["test_id"])
    database.upsert_rows(QUESTIONS, questions, on_conflict="question_id", key_columns=["question_id"], chunk_size=chunk_size)
    database.upsert_rows(
        TEST_QUESTIONS_LINK, links, on_conflict="test_id,question_id", key_columns=["test_id", "question_id"], chunk_size=chunk_size
    )
    print(f"Upserted test {test_name!r} ({test['test_id']}) with {len(questions)} questions from {jsonl_path}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    parser = argparse.ArgumentParser(description="Import a mock test JSONL into Supabase.")
    parser.add_argument("jsonl", help="Path to .jsonl, one question per line in test order")
    parser.add_argument("--name", required=True, help="Test name")
    parser.add_argument("--duration", type=int, default=180, help="Duration in minutes (default 180)")
    parser.add_argument("--chunk-size", type=int, default=200, help="Upsert chunk size (default 200)")
    parser.add_argument("--dry-run", action="store_true", help="Parse only, do not upsert")
    args = parser.parse_args()
    run_import(Path(args.jsonl), args.name, args.duration, chunk_size=args.chunk_size, dry_run=args.dry_run)
