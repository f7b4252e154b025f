"""JEE Mock Test: login, dashboard, timed test, and report."""
import logging
import sys
from pathlib import Path

# Ensure project root is in path
project_root = Path(__file__).resolve().parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

import streamlit as st

from calculate_score import request_score
from db import access_token, current_user, get_database, sign_out
from engine import CORRECT_SCORE, INCORRECT_SCORE, NUMERICAL, SINGLE_CHOICE
from mocktest.attempt import AttemptController
from mocktest.errors import AttemptCompletedError, AuthorizationError, MockTestError, SubmissionError
from mocktest.question_state import ANSWERED, MARKED_FOR_REVIEW, NOT_VISITED, UNANSWERED, count_by_status
from mocktest.report import REPORT_TABS, filter_questions, format_answer, format_correct_answer, generate_report

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)

PAGES = ("Login", "Dashboard", "Mock Test", "Report")
STATUS_BADGES = {
    NOT_VISITED: "⬜",
    UNANSWERED: "🟥",
    ANSWERED: "🟩",
    MARKED_FOR_REVIEW: "🟪",
}

st.set_page_config(page_title="JEE Mock Test", layout="wide")


def go(page: str, **params) -> None:
    st.query_params.clear()
    st.query_params["page"] = page
    for key, value in params.items():
        st.query_params[key] = value
    st.rerun()


def option_pairs(options):
    """Options as (id, label) pairs whether stored as dicts or 2-item lists."""
    pairs = []
    for opt in options or []:
        if isinstance(opt, dict):
            pairs.append((opt.get("id"), opt.get("label") or opt.get("text") or ""))
        elif isinstance(opt, (list, tuple)) and len(opt) >= 2:
            pairs.append((opt[0], opt[1]))
    return pairs


def hand_off_for_scoring(attempt_id: str) -> None:
    score = request_score(attempt_id, access_token())
    if score is None:
        logger.warning(f"Authoritative score for attempt {attempt_id} not available yet")


# ----- Login -----

def login_page():
    st.header("JEE Test App")
    with st.form("login"):
        email = st.text_input("Email")
        password = st.text_input("Password", type="password")
        submitted = st.form_submit_button("Sign in", type="primary")
    if submitted:
        try:
            user = get_database().sign_in(email, password)
        except Exception as e:
            st.error(f"Could not sign in: {e}")
            return
        if user:
            go("Dashboard")
        st.error("Invalid email or password.")


# ----- Dashboard -----

def dashboard_page(user):
    col1, col2 = st.columns([4, 1])
    with col1:
        st.header(f"Welcome, {user.email}!")
    with col2:
        if st.button("Logout"):
            sign_out()
            go("Login")

    st.subheader("Available Mock Tests")
    try:
        tests = get_database().list_tests()
    except Exception as e:
        logger.error(f"Error fetching tests: {e}")
        st.error(f"Could not load tests. Check .env (SUPABASE_URL, SUPABASE_KEY). {e}")
        return
    if not tests:
        st.info("No tests available at the moment.")
        return

    for test in tests:
        with st.container(border=True):
            c1, c2 = st.columns([4, 1])
            with c1:
                st.markdown(f"**{test.get('name')}**")
                st.caption(f"{test.get('total_questions', '?')} Questions | {test.get('duration_minutes', '?')} Minutes")
            with c2:
                if st.button("Start Test", key=f"start_{test['test_id']}", use_container_width=True):
                    try:
                        attempt_id = get_database().create_attempt(user.id, test["test_id"])
                    except Exception as e:
                        logger.error(f"Error creating test attempt: {e}")
                        st.error("Could not start the test. Please try again.")
                    else:
                        go("Mock Test", attempt=attempt_id)


# ----- Mock Test -----

def load_controller(attempt_id: str) -> AttemptController:
    controller = st.session_state.get("controller")
    if controller is not None and controller.attempt_id == attempt_id:
        return controller
    if controller is not None:
        controller.close()
    controller = AttemptController.load(get_database(), attempt_id, on_submitted=hand_off_for_scoring)
    st.session_state["controller"] = controller
    return controller


def submit_attempt(controller: AttemptController) -> None:
    try:
        controller.submit()
    except SubmissionError as e:
        st.session_state["submit_error"] = e.message


def answer_widget_key(question_id) -> str:
    return f"answer_{question_id}"


def on_answer_change(controller: AttemptController, key: str) -> None:
    controller.answer_change(st.session_state.get(key))


def on_clear(controller: AttemptController) -> None:
    controller.clear_response()
    st.session_state[answer_widget_key(controller.current_question["question_id"])] = None


@st.fragment(run_every=1)
def timer_panel(controller: AttemptController):
    try:
        controller.timer.sync()
    except SubmissionError as e:
        st.session_state["submit_error"] = e.message
    st.metric("Time left", controller.timer.display)
    if controller.submitted:
        st.rerun(scope="app")


def mock_test_page(attempt_id: str):
    try:
        controller = load_controller(attempt_id)
    except AttemptCompletedError:
        go("Report", attempt=attempt_id)
    except MockTestError as e:
        st.error(e.message)
        return

    if controller.submitted:
        go("Report", attempt=attempt_id)

    with st.sidebar:
        timer_panel(controller)
        counts = count_by_status(controller.states)
        st.caption(" · ".join(f"{STATUS_BADGES[s]} {s.replace('_', ' ')}: {n}" for s, n in counts.items()))
        st.subheader("Question Palette")
        cols = st.columns(5)
        for item in controller.palette():
            label = f"{STATUS_BADGES[item['status']]} {item['question_number']}"
            cols[item["index"] % 5].button(
                label,
                key=f"palette_{item['index']}",
                type="primary" if item["current"] else "secondary",
                on_click=controller.navigate,
                args=(item["index"],),
            )

    st.header(controller.test_name or "Mock Test")
    if st.session_state.get("submit_error"):
        st.error(st.session_state.pop("submit_error"))

    q = controller.current_question
    state = controller.current_state
    key = answer_widget_key(q["question_id"])
    if key not in st.session_state:
        st.session_state[key] = state.selected_answer

    st.subheader(f"Question {q.get('question_number')} of {len(controller.questions)}")
    if q.get("subject"):
        st.caption(q["subject"])
    st.write(q.get("question_text") or "")

    if q.get("question_type") == SINGLE_CHOICE:
        pairs = option_pairs(q.get("options"))
        labels = {opt_id: label for opt_id, label in pairs}
        if st.session_state[key] not in labels:
            st.session_state[key] = None
        st.radio(
            "Choose one:",
            options=[opt_id for opt_id, _ in pairs],
            format_func=lambda opt_id: f"{opt_id}. {labels.get(opt_id, '')}",
            key=key,
            on_change=on_answer_change,
            args=(controller, key),
        )
    elif q.get("question_type") == NUMERICAL:
        if st.session_state[key] is not None:
            st.session_state[key] = str(st.session_state[key])
        st.text_input("Your answer:", key=key, on_change=on_answer_change, args=(controller, key))
    else:
        st.warning(f"Unsupported question type: {q.get('question_type')}")

    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.button("Save & Next", type="primary", on_click=controller.save_and_next)
    with col2:
        st.button("Mark for Review & Next", on_click=controller.mark_for_review_and_next)
    with col3:
        st.button("Clear Response", on_click=on_clear, args=(controller,))
    with col4:
        st.button("Submit Test", on_click=submit_attempt, args=(controller,))


# ----- Report -----

def report_page(attempt_id: str):
    try:
        report = generate_report(get_database(), attempt_id)
    except AuthorizationError as e:
        st.error(e.message)
        return
    except MockTestError as e:
        st.error(f"Error: {e.message}")
        return

    col1, col2 = st.columns([4, 1])
    with col1:
        st.header(f"{report['test_name']} - Report")
    with col2:
        if st.button("Back to Dashboard"):
            st.session_state.pop("controller", None)
            go("Dashboard")

    st.subheader("Overall Performance")
    st.caption(f"Correct +{CORRECT_SCORE}, Wrong {INCORRECT_SCORE}, Unattempted 0")
    c1, c2, c3, c4 = st.columns(4)
    c1.metric("Total Score", report["total_score"])
    c2.metric("Correct", report["total_correct"])
    c3.metric("Incorrect", report["total_incorrect"])
    c4.metric("Unattempted", report["total_unattempted"])

    st.subheader("Subject-wise Breakdown")
    st.table([
        {"Subject": subject, "Score": s["score"], "Correct": s["correct"], "Incorrect": s["incorrect"], "Unattempted": s["unattempted"]}
        for subject, s in report["subject_stats"].items()
    ])

    st.subheader("Solution Review")
    tab = st.radio("Show", REPORT_TABS, horizontal=True, label_visibility="collapsed")
    questions = filter_questions(report, tab)
    if not questions:
        st.write("No questions in this category.")
    for q in questions:
        with st.container(border=True):
            st.markdown(f"**Question {q['question_number']} ({q['subject']})**")
            st.write(q.get("question_text") or "")
            if q["status"] == "CORRECT":
                st.success(f"Your Answer: {format_answer(q['selected_answer'])}")
            else:
                st.error(f"Your Answer: {format_answer(q['selected_answer'])}")
                st.success(f"Correct Answer: {format_correct_answer(q['correct_answer'])}")
            with st.expander("Show Solution"):
                st.write(q.get("solution_text") or "No solution provided.")


# ----- Router -----

page = st.query_params.get("page", "Dashboard")
if page not in PAGES:
    page = "Dashboard"

try:
    user = current_user()
except ValueError as e:
    st.error(f"Supabase is not configured. {e}")
    st.stop()

if user is None:
    login_page()
elif page in ("Login", "Dashboard"):
    dashboard_page(user)
elif not st.query_params.get("attempt"):
    st.error("No attempt selected.")
elif page == "Mock Test":
    mock_test_page(st.query_params["attempt"])
else:
    report_page(st.query_params["attempt"])
