"""
Record store for mock test attempts.
Handles Supabase reads and writes for tests, questions, attempts, and answer responses.
"""
import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from supabase import Client, create_client

from engine import ATTEMPT_STARTED

logger = logging.getLogger(__name__)

load_dotenv()

TESTS = "Tests"
QUESTIONS = "Questions"
TEST_QUESTIONS_LINK = "Test_Questions_Link"
ATTEMPTS = "User_Test_Attempts"
ANSWER_RESPONSES = "User_Answer_Responses"


def create_supabase_client(admin: bool = False) -> Client:
    """
    Build a Supabase client from the environment.

    Args:
        admin: Use SUPABASE_SERVICE_ROLE_KEY (server-side scoring) instead of SUPABASE_KEY
    """
    url = os.environ.get("SUPABASE_URL")
    key_name = "SUPABASE_SERVICE_ROLE_KEY" if admin else "SUPABASE_KEY"
    key = os.environ.get(key_name)
    if not url or not key:
        raise ValueError(f"SUPABASE_URL and {key_name} must be set")
    return create_client(url, key)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Timezone-aware datetime from a stored ISO timestamp; naive values are taken as UTC."""
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        try:
            parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
        except ValueError:
            logger.warning(f"Unreadable timestamp: {value!r}")
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _first_embedded(value: Any) -> Optional[Dict]:
    # Embedded joins come back as a dict or a one-element list
    if isinstance(value, list):
        return value[0] if value else None
    if isinstance(value, dict):
        return value
    return None


def resolve_question(link: Dict) -> Optional[Dict]:
    """Flatten a Test_Questions_Link row into a question dict; None when the join is empty."""
    q = _first_embedded(link.get(QUESTIONS))
    if not q or not q.get("question_id"):
        return None
    question = dict(q)
    question["question_number"] = link.get("question_number")
    return question


class DatabaseClient:
    """Wrapper around Supabase client with attempt-specific operations."""

    def __init__(self, client: Optional[Client] = None, admin: bool = False):
        self.client: Client = client if client is not None else create_supabase_client(admin=admin)

    # ============= Auth =============

    def get_session(self):
        """Current auth session or None."""
        return self.client.auth.get_session()

    def get_user(self):
        """Current authenticated user or None."""
        response = self.client.auth.get_user()
        return response.user if response else None

    def sign_in(self, email: str, password: str):
        response = self.client.auth.sign_in_with_password({"email": email, "password": password})
        return response.user

    def sign_out(self) -> None:
        self.client.auth.sign_out()

    # ============= Tests =============

    def list_tests(self) -> List[Dict]:
        response = self.client.table(TESTS).select("*").execute()
        return response.data or []

    def upsert_rows(self, table: str, rows: List[Dict], on_conflict: str, key_columns: List[str], chunk_size: int = 200) -> int:
        """Bulk upsert in chunks. Dedupes by key so no chunk hits the same row twice (Postgres ON CONFLICT error)."""
        n_before = len(rows)
        by_key = {tuple(str(r[c]) for c in key_columns): r for r in rows}
        rows = list(by_key.values())
        if len(rows) < n_before:
            logger.info("Deduped %s rows: %d -> %d", table, n_before, len(rows))
        n_chunks = (len(rows) + chunk_size - 1) // chunk_size
        for i in range(0, len(rows), chunk_size):
            chunk = rows[i : i + chunk_size]
            logger.info("Upserting %s chunk %d/%d (%d rows)", table, i // chunk_size + 1, n_chunks, len(chunk))
            self.client.table(table).upsert(chunk, on_conflict=on_conflict).execute()
        return len(rows)

    # ============= Attempts =============

    def create_attempt(self, user_id: str, test_id: str) -> str:
        """Insert a STARTED attempt and return its attempt_id."""
        row = {
            "user_id": str(user_id),
            "test_id": str(test_id),
            "status": ATTEMPT_STARTED,
            "start_time": utc_now_iso(),
        }
        response = self.client.table(ATTEMPTS).insert(row).execute()
        if not response.data:
            raise RuntimeError("Attempt insert returned no row")
        attempt_id = response.data[0]["attempt_id"]
        logger.info(f"Created attempt {attempt_id} for test {test_id}")
        return attempt_id

    def select_attempt(self, attempt_id: str) -> Optional[Dict]:
        """
        Fetch an attempt joined with its test's name and duration.

        Returns:
            Attempt dict with test_name and duration_minutes, or None if missing
        """
        response = (
            self.client.table(ATTEMPTS)
            .select("attempt_id, user_id, test_id, status, start_time, end_time, final_score, Tests(name, duration_minutes)")
            .eq("attempt_id", str(attempt_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        attempt = dict(response.data[0])
        test = _first_embedded(attempt.pop(TESTS, None)) or {}
        attempt["test_name"] = test.get("name") or "Test Report"
        attempt["duration_minutes"] = test.get("duration_minutes") or 0
        return attempt

    def update_attempt(self, attempt_id: str, fields: Dict) -> None:
        self.client.table(ATTEMPTS).update(fields).eq("attempt_id", str(attempt_id)).execute()

    # ============= Questions =============

    def select_questions_for_test(self, test_id: str) -> List[Dict]:
        """Link rows with their Questions join, ordered by question_number."""
        response = (
            self.client.table(TEST_QUESTIONS_LINK)
            .select("question_number, Questions(*)")
            .eq("test_id", str(test_id))
            .order("question_number", desc=False)
            .execute()
        )
        return response.data or []

    # ============= Answer responses =============

    def upsert_answer_response(self, attempt_id: str, question_id: str, selected_answer: Any, action: str) -> None:
        """Insert or overwrite the answer row keyed on (attempt_id, question_id)."""
        row = {
            "attempt_id": str(attempt_id),
            "question_id": str(question_id),
            "selected_answer": selected_answer,
            "action": action,
        }
        self.client.table(ANSWER_RESPONSES).upsert(row, on_conflict="attempt_id,question_id").execute()

    def select_answer_rows(self, attempt_id: str) -> List[Dict]:
        response = (
            self.client.table(ANSWER_RESPONSES)
            .select("question_id, selected_answer, action")
            .eq("attempt_id", str(attempt_id))
            .execute()
        )
        return response.data or []

    def select_answer_responses(self, attempt_id: str) -> Dict[str, Any]:
        """Mapping question_id -> selected_answer for an attempt."""
        return {row["question_id"]: row.get("selected_answer") for row in self.select_answer_rows(attempt_id)}
