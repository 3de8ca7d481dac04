from flask import Blueprint, g, jsonify, request

from classes.attempt_manager import AttemptManager
from classes.errors import NotFoundError
from classes.question_selector import attempt_questions, project_question
from classes.validators import parse_int, require_fields
from models import db
from models.attempts import TestAttempt
from models.tests import Test
from utils.utils import login_required, role_required

attempt_bp = Blueprint("attempts", __name__)


def _attempt_for_requester(attempt_id):
    if g.user.get("role") == "student":
        return AttemptManager.get_student_attempt(attempt_id, g.user.get("user_id"))
    return AttemptManager.get_attempt(attempt_id)

# Start (or resume) a Test Attempt
@attempt_bp.route("", methods=["POST"])
@role_required("student")
def start_attempt():
    data = request.get_json(silent=True) or {}
    test_id = parse_int(data.get("test_id"), "test_id")

    attempt, created, warnings = AttemptManager.start_attempt(test_id, g.user.get("user_id"))

    body = {
        "message": "Attempt started" if created else "Attempt resumed",
        "attempt": attempt.to_dict(),
    }
    if warnings:
        body["warnings"] = warnings
    return jsonify(body), 201 if created else 200

@attempt_bp.route("/<int:attempt_id>", methods=["GET"])
@login_required
def get_attempt(attempt_id):
    return jsonify({"attempt": _attempt_for_requester(attempt_id).to_dict()}), 200

# Questions frozen on an attempt
@attempt_bp.route("/<int:attempt_id>/questions", methods=["GET"])
@login_required
def get_attempt_questions(attempt_id):
    attempt = _attempt_for_requester(attempt_id)
    role = g.user.get("role")
    questions = [project_question(q, role) for q in attempt_questions(attempt)]
    return jsonify({"attempt_id": attempt.id, "questions": [q.to_dict() for q in questions]}), 200

# Anti-cheat violation events
@attempt_bp.route("/<int:attempt_id>/violations", methods=["POST"])
@role_required("student")
def record_violation(attempt_id):
    data = request.get_json(silent=True) or {}
    require_fields(data, ("violation_type",))
    count = parse_int(data.get("count", 1), "count", minimum=1)

    attempt = AttemptManager.record_violation(attempt_id, g.user.get("user_id"), data["violation_type"], count)
    return jsonify({
        "message": "Violation recorded",
        "attempt": {
            "id": attempt.id,
            "window_switch_count": attempt.window_switch_count,
            "screenshot_attempt_count": attempt.screenshot_attempt_count,
            "phone_call_count": attempt.phone_call_count,
            "total_violations": attempt.total_violations,
        },
    }), 200

# Submit answers and receive the grade
@attempt_bp.route("/<int:attempt_id>/submit", methods=["POST"])
@role_required("student")
def submit_attempt(attempt_id):
    data = request.get_json(silent=True) or {}
    attempt = AttemptManager.submit_attempt(attempt_id, g.user.get("user_id"), data.get("answers", {}))

    return jsonify({
        "message": "Attempt submitted",
        "score": attempt.score,
        "passed": attempt.pass_status,
        "needs_review": attempt.needs_review,
        "correct": attempt.correct_count,
        "total_questions": attempt.total_questions,
        "result": attempt.results,
        "attempt": attempt.to_dict(),
    }), 200

# All attempts at a test (teacher/admin)
@attempt_bp.route("/test/<int:test_id>", methods=["GET"])
@role_required("teacher", "admin")
def list_test_attempts(test_id):
    if not db.session.get(Test, test_id):
        raise NotFoundError("Test not found")

    attempts = (
        TestAttempt.query
        .filter_by(test_id=test_id)
        .order_by(TestAttempt.started_at.desc(), TestAttempt.id.desc())
        .all()
    )
    return jsonify({"attempts": [a.to_dict() for a in attempts]}), 200
