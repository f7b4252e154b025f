"""Shared fixtures: an in-memory stand-in for the Supabase client."""
import copy
import sys
import threading
from pathlib import Path
from types import SimpleNamespace
from uuid import uuid4

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from mocktest.database import ANSWER_RESPONSES, ATTEMPTS, TEST_QUESTIONS_LINK, DatabaseClient, utc_now_iso


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table_name = table
        self.op = "select"
        self.payload = None
        self.on_conflict = None
        self.filters = []
        self.order_by = None
        self.limit_n = None

    def select(self, *columns, **kwargs):
        self.op = "select"
        return self

    def insert(self, row):
        self.op, self.payload = "insert", row
        return self

    def update(self, fields):
        self.op, self.payload = "update", fields
        return self

    def upsert(self, rows, on_conflict=None):
        self.op, self.payload, self.on_conflict = "upsert", rows, on_conflict
        return self

    def eq(self, column, value):
        self.filters.append((column, value))
        return self

    def order(self, column, desc=False):
        self.order_by = (column, desc)
        return self

    def limit(self, n):
        self.limit_n = n
        return self

    def _matches(self, row):
        return all(str(row.get(col)) == str(val) for col, val in self.filters)

    def execute(self):
        with self.db.lock:
            self.db.calls.append((self.table_name, self.op, copy.deepcopy(self.payload)))
            error = self.db.failures.get((self.table_name, self.op))
            if error is not None:
                raise error
            rows = self.db.tables.setdefault(self.table_name, [])

            if self.op == "select":
                data = [copy.deepcopy(r) for r in rows if self._matches(r)]
                if self.order_by:
                    col, desc = self.order_by
                    data.sort(key=lambda r: r.get(col) or 0, reverse=desc)
                if self.limit_n is not None:
                    data = data[: self.limit_n]
                return SimpleNamespace(data=data, count=len(data))

            if self.op == "insert":
                row = dict(self.payload)
                if self.table_name == ATTEMPTS:
                    row.setdefault("attempt_id", str(uuid4()))
                rows.append(row)
                return SimpleNamespace(data=[copy.deepcopy(row)], count=1)

            if self.op == "update":
                updated = []
                for r in rows:
                    if self._matches(r):
                        r.update(self.payload)
                        updated.append(copy.deepcopy(r))
                return SimpleNamespace(data=updated, count=len(updated))

            payload = self.payload if isinstance(self.payload, list) else [self.payload]
            keys = [k.strip() for k in (self.on_conflict or "id").split(",")]
            for new in payload:
                existing = next((r for r in rows if all(str(r.get(k)) == str(new.get(k)) for k in keys)), None)
                if existing is None:
                    rows.append(dict(new))
                else:
                    existing.update(new)
            return SimpleNamespace(data=copy.deepcopy(payload), count=len(payload))


class FakeAuth:
    def __init__(self):
        self.user = None

    def get_user(self, jwt=None):
        return SimpleNamespace(user=self.user) if self.user else None

    def get_session(self):
        return SimpleNamespace(access_token="token", user=self.user) if self.user else None

    def sign_out(self):
        self.user = None


class FakeSupabase:
    """Minimal query-builder surface of supabase.Client backed by dicts."""

    def __init__(self):
        self.tables = {}
        self.calls = []
        self.failures = {}
        self.lock = threading.RLock()
        self.auth = FakeAuth()

    def table(self, name):
        return FakeQuery(self, name)

    def rows(self, name):
        return self.tables.get(name, [])


def make_question(question_id, number, question_type, correct_answer, subject="Physics", options=None):
    return {
        "question_number": number,
        "Questions": {
            "question_id": question_id,
            "question_type": question_type,
            "subject": subject,
            "question_text": f"Question {number}",
            "options": options,
            "correct_answer": correct_answer,
            "solution_text": None,
        },
    }


@pytest.fixture
def fake_client():
    return FakeSupabase()


@pytest.fixture
def database(fake_client):
    return DatabaseClient(client=fake_client)


@pytest.fixture
def seeded(fake_client):
    """Three-question test owned by user-1 with a STARTED attempt."""
    abcd = [{"id": c, "label": f"Option {c}"} for c in "ABCD"]
    fake_client.tables[TEST_QUESTIONS_LINK] = [
        dict(make_question("q3", 3, "NUMERICAL", [10], subject="maths"), test_id="t1"),
        dict(make_question("q1", 1, "SINGLE_CHOICE", ["A"], subject="physics", options=abcd), test_id="t1"),
        dict(make_question("q2", 2, "SINGLE_CHOICE", ["B"], subject="chemistry", options=abcd), test_id="t1"),
    ]
    fake_client.tables[ATTEMPTS] = [{
        "attempt_id": "a1",
        "user_id": "user-1",
        "test_id": "t1",
        "status": "STARTED",
        "start_time": utc_now_iso(),
        "end_time": None,
        "final_score": None,
        "Tests": {"name": "JEE Main Mock 1", "duration_minutes": 180},
    }]
    fake_client.tables[ANSWER_RESPONSES] = []
    fake_client.auth.user = SimpleNamespace(id="user-1", email="student@example.com")
    return fake_client
