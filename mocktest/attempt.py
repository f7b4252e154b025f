"""
Attempt controller: navigation, answer persistence, and submission for one timed attempt.
Owns the per-question state map and the session timer.
"""
import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor, wait
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from engine import ATTEMPT_COMPLETED
from mocktest import question_state
from mocktest.database import DatabaseClient, parse_timestamp, resolve_question, utc_now_iso
from mocktest.errors import AttemptCompletedError, AuthorizationError, NotFoundError, SubmissionError
from mocktest.question_state import QuestionState
from mocktest.timer import SessionTimer

logger = logging.getLogger(__name__)


def _seconds_since(start_time: Any, now: Optional[datetime] = None) -> int:
    """Whole seconds from start_time to now; 0 when start_time is unknown or in the future."""
    started = parse_timestamp(start_time)
    if started is None:
        return 0
    now = now or datetime.now(timezone.utc)
    return max(0, int((now - started).total_seconds()))


class AttemptController:
    """Drives a single attempt from the first question to submission."""

    def __init__(
        self,
        database: DatabaseClient,
        attempt: Dict,
        questions: List[Dict],
        stored_answers: Optional[Dict[str, Dict]] = None,
        on_submitted: Optional[Callable[[str], Any]] = None,
        executor: Optional[Executor] = None,
        clock: Optional[Callable[[], float]] = None,
        now: Optional[datetime] = None,
    ):
        """
        Args:
            database: Record store
            attempt: Attempt row (attempt_id, duration_minutes, ...)
            questions: Resolved questions in question_number order
            stored_answers: {question_id: {selected_answer, action}} when resuming
            on_submitted: Hand-off called with attempt_id once the attempt is COMPLETED
            executor: Runs background saves; defaults to a single FIFO worker
            clock: Monotonic clock for the timer
            now: Wall-clock time the remaining time is measured at; defaults to the current UTC time
        """
        self.database = database
        self.attempt_id = attempt["attempt_id"]
        self.test_name = attempt.get("test_name")
        self.questions = sorted(questions, key=lambda q: q.get("question_number") or 0)
        self.states: Dict[str, QuestionState] = question_state.initial_states(self.questions, stored_answers)
        self.current_index = 0
        self.submitted = False
        self.on_submitted = on_submitted

        self._submit_lock = threading.Lock()
        self._submitting = False
        # One worker keeps each question's saves in issue order
        self._saver = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="answer-save")
        self._pending: List[Future] = []

        timer_kwargs = {"clock": clock} if clock else {}
        self.timer = SessionTimer(
            attempt.get("duration_minutes") or 0,
            on_expire=self.submit,
            is_active=self.is_active,
            elapsed_seconds=_seconds_since(attempt.get("start_time"), now),
            **timer_kwargs,
        )

    @classmethod
    def load(cls, database: DatabaseClient, attempt_id: str, **kwargs) -> "AttemptController":
        """Open the logged-in user's STARTED attempt with its questions and any saved answers."""
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
            raise AuthorizationError("You do not have permission to take this test.")
        if attempt.get("status") == ATTEMPT_COMPLETED:
            raise AttemptCompletedError(attempt_id)

        try:
            links = database.select_questions_for_test(attempt["test_id"])
        except Exception as e:
            raise NotFoundError(f"Could not fetch questions. {e}") from e
        questions = [q for q in map(resolve_question, links) if q]
        if not questions:
            raise NotFoundError("No questions found for this test.")

        try:
            rows = database.select_answer_rows(attempt_id)
        except Exception as e:
            raise NotFoundError(f"Could not fetch answers. {e}") from e
        stored = {row["question_id"]: row for row in rows}
        logger.info(f"Loaded attempt {attempt_id}: {len(questions)} questions, {len(stored)} saved answers")
        return cls(database, attempt, questions, stored_answers=stored, **kwargs)

    # ============= State =============

    @property
    def current_question(self) -> Dict:
        return self.questions[self.current_index]

    @property
    def current_state(self) -> QuestionState:
        return self.states[self.current_question["question_id"]]

    def state_at(self, index: int) -> QuestionState:
        return self.states[self.questions[index]["question_id"]]

    def is_active(self) -> bool:
        return not self.submitted and not self._submitting

    def _apply(self, index: int, transition: Callable[..., QuestionState], *args) -> None:
        qid = self.questions[index]["question_id"]
        self.states[qid] = transition(self.states[qid], *args)

    # ============= Persistence =============

    def _persist(self, index: int) -> None:
        qid = self.questions[index]["question_id"]
        state = self.states[qid]
        self.database.upsert_answer_response(
            self.attempt_id, qid, state.selected_answer, question_state.persisted_action(state)
        )

    def _save_quietly(self, question_id: str, selected_answer: Any, action: str) -> None:
        # Best effort: a lost save is logged, never surfaced or retried
        try:
            self.database.upsert_answer_response(self.attempt_id, question_id, selected_answer, action)
        except Exception as e:
            logger.error(f"Error saving answer for question {question_id} (attempt {self.attempt_id}): {e}")

    def _save_in_background(self, index: int) -> None:
        qid = self.questions[index]["question_id"]
        state = self.states[qid]  # frozen snapshot, later edits do not leak in
        future = self._saver.submit(
            self._save_quietly, qid, state.selected_answer, question_state.persisted_action(state)
        )
        self._pending = [f for f in self._pending if not f.done()]
        self._pending.append(future)

    def wait_for_saves(self, timeout: Optional[float] = None) -> None:
        """Block until background saves issued so far have finished (failed ones included)."""
        if self._pending:
            wait(self._pending, timeout=timeout)
        self._pending = [f for f in self._pending if not f.done()]

    # ============= Navigation =============

    def navigate(self, target_index: int) -> bool:
        """
        Move to another question, saving the one being left in the background.

        Returns:
            False when target is out of range or already active
        """
        if self.submitted or target_index < 0 or target_index >= len(self.questions):
            return False
        if target_index == self.current_index:
            return False

        self._save_in_background(self.current_index)
        self._apply(target_index, question_state.visit)
        self.current_index = target_index
        return True

    def save_and_next(self) -> bool:
        return self.navigate(self.current_index + 1)

    def mark_for_review_and_next(self) -> bool:
        self._apply(self.current_index, question_state.mark_for_review)
        return self.navigate(self.current_index + 1)

    def clear_response(self) -> None:
        self._apply(self.current_index, question_state.clear)

    def answer_change(self, value: Any) -> None:
        self._apply(self.current_index, question_state.set_answer, value)

    def palette(self) -> List[Dict]:
        """Question number and status for every question, in navigation order."""
        return [
            {
                "index": i,
                "question_number": q.get("question_number"),
                "status": self.states[q["question_id"]].status,
                "current": i == self.current_index,
            }
            for i, q in enumerate(self.questions)
        ]

    # ============= Submission =============

    def submit(self) -> bool:
        """
        Persist the active question, mark the attempt COMPLETED, then hand off for scoring.

        Returns:
            True for the call that submitted; False when ignored (already submitted or in flight)

        Raises:
            SubmissionError: persistence failed; the attempt stays STARTED and submit() may be retried
        """
        if self.submitted or not self._submit_lock.acquire(blocking=False):
            logger.info(f"Submission for attempt {self.attempt_id} already done or in flight, ignoring")
            return False
        try:
            if self.submitted:
                return False
            self._submitting = True
            self.wait_for_saves()
            try:
                self._persist(self.current_index)
                self.database.update_attempt(
                    self.attempt_id, {"status": ATTEMPT_COMPLETED, "end_time": utc_now_iso()}
                )
            except Exception as e:
                logger.error(f"Submission failed for attempt {self.attempt_id}: {e}")
                raise SubmissionError() from e
            self.submitted = True
        finally:
            self._submitting = False
            self._submit_lock.release()

        logger.info(f"Attempt {self.attempt_id} submitted")
        if self.on_submitted is not None:
            self.on_submitted(self.attempt_id)
        return True

    def close(self) -> None:
        self._saver.shutdown(wait=True)
