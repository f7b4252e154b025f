"""
Authoritative score recomputation.

POST /calculate-score {"attemptId": ...} -> {"score": n} or {"error": msg} with a 4xx status (404 for an unknown attempt, 400 otherwise).
Uses service-role Supabase access and the same build_report() as the report page.
"""
import logging
import os
from typing import Dict, Optional, Tuple

import requests
from dotenv import load_dotenv
from flask import Flask, jsonify, request

from mocktest.database import DatabaseClient
from mocktest.errors import MockTestError, NotFoundError
from mocktest.report import build_report

load_dotenv()

logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


def recalculate_score(database: DatabaseClient, attempt_id: str) -> int:
    """Score an attempt from stored answers and persist final_score."""
    attempt = database.select_attempt(attempt_id)
    if attempt is None:
        raise NotFoundError(f"Attempt {attempt_id} not found")

    answers = database.select_answer_responses(attempt_id)
    links = database.select_questions_for_test(attempt["test_id"])
    report = build_report(attempt["test_name"], links, answers)
    final_score = report["total_score"]

    database.update_attempt(attempt_id, {"final_score": final_score})
    logger.info(
        f"Attempt {attempt_id} scored {final_score} "
        f"({report['total_correct']} correct, {report['total_incorrect']} incorrect, "
        f"{report['total_unattempted']} unattempted)"
    )
    return final_score


def handle_calculate_score(payload: Optional[Dict], database: DatabaseClient) -> Tuple[Dict, int]:
    """Turn a request body into a (body, status) pair; failures never touch final_score."""
    try:
        attempt_id = (payload or {}).get("attemptId")
        if not attempt_id:
            raise ValueError("Missing 'attemptId' in request body")
        score = recalculate_score(database, attempt_id)
        return {"score": score}, 200
    except MockTestError as e:
        logger.error(f"Score recomputation failed: {e}")
        return {"error": e.message}, e.status_code
    except Exception as e:
        logger.error(f"Score recomputation failed: {e}")
        return {"error": str(e)}, 400


def create_app(database: Optional[DatabaseClient] = None) -> Flask:
    app = Flask(__name__)
    state = {"database": database}

    def _database() -> DatabaseClient:
        if state["database"] is None:
            state["database"] = DatabaseClient(admin=True)
        return state["database"]

    @app.route("/calculate-score", methods=["POST", "OPTIONS"])
    def calculate_score():
        if request.method == "OPTIONS":
            return "ok", 200, CORS_HEADERS
        try:
            database = _database()
        except ValueError as e:
            logger.error(f"Scoring service misconfigured: {e}")
            return jsonify({"error": str(e)}), 400, CORS_HEADERS
        body, status = handle_calculate_score(request.get_json(silent=True), database)
        return jsonify(body), status, CORS_HEADERS

    return app


def score_function_url() -> str:
    url = os.environ.get("SCORE_FUNCTION_URL")
    if url:
        return url
    return f"{(os.environ.get('SUPABASE_URL') or '').rstrip('/')}/functions/v1/calculate-score"


def request_score(attempt_id: str, access_token: Optional[str] = None, timeout: float = 15) -> Optional[int]:
    """Ask the scoring service to recompute an attempt. Returns the score, or None on failure."""
    headers = {"Content-Type": "application/json"}
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"
    try:
        resp = requests.post(score_function_url(), json={"attemptId": attempt_id}, headers=headers, timeout=timeout)
        body = resp.json()
    except (requests.RequestException, ValueError) as e:
        logger.error(f"Could not reach scoring service for attempt {attempt_id}: {e}")
        return None
    if resp.status_code != 200:
        logger.error(f"Scoring service rejected attempt {attempt_id}: {body.get('error')}")
        return None
    return body.get("score")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    create_app().run(host="0.0.0.0", port=int(os.environ.get("PORT", "8000")))
