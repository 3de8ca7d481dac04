import logging

import requests
from flask import Blueprint, current_app, jsonify, request, session

from classes.errors import MalformedResponseError, NotFoundError, UpstreamUnavailableError, ValidationError
from classes.grader import grade
from classes.question_selector import Requester
from classes.validators import parse_int, validate_quiz_payload
from models.users import ROLES
from utils.gemini_service import BUSY_MESSAGE, FAILURE_MESSAGE, generate_questions
from utils.utils import load_user, role_required

logger = logging.getLogger(__name__)

generator_bp = Blueprint("generator", __name__)

# per-client generator session, kept in Flask's signed session cookie
USER_SESSION_KEY = "quizgen.currentUser"
ROLE_SESSION_KEY = "quizgen.currentRole"
DEFAULT_ROLE = "student"


def get_quiz_store():
    return current_app.extensions["quiz_store"]

def _current_identity():
    """(user, role) from the request token, else from this client's generator session.

    The session role is a display preference only; staff actions are
    authorized from the token by ``role_required``.
    """
    user = load_user()
    if user:
        requester = Requester.from_token(user)
        return user.get("username_or_email") or str(requester.user_id), requester.role
    return session.get(USER_SESSION_KEY, ""), session.get(ROLE_SESSION_KEY, DEFAULT_ROLE)

def _get_quiz_or_404(quiz_id):
    quiz = get_quiz_store().get_quiz(quiz_id)
    if not quiz:
        raise NotFoundError("Quiz not found")
    return quiz

def _attempt_limit(quiz):
    try:
        limit = int(quiz.get("attemptLimit") or 0)
    except (TypeError, ValueError):
        limit = 0
    return limit or get_quiz_store().get_attempt_limit(quiz["id"])

# Generate questions with the AI provider
@generator_bp.route("/generate", methods=["POST"])
def generate():
    data = request.get_json(silent=True) or {}
    try:
        questions = generate_questions(data.get("topic"), data.get("number"), data.get("type", "topic"))
    except UpstreamUnavailableError:
        logger.warning("AI provider still unavailable after retries")
        raise UpstreamUnavailableError(BUSY_MESSAGE)
    except (MalformedResponseError, requests.RequestException, RuntimeError):
        logger.exception("Failed to generate content")
        raise MalformedResponseError(FAILURE_MESSAGE)

    return jsonify({"questions": questions}), 200

@generator_bp.route("/quizzes", methods=["GET"])
def list_quizzes():
    return jsonify({"quizzes": get_quiz_store().list_quizzes()}), 200

@generator_bp.route("/quizzes", methods=["POST"])
@role_required("teacher", "admin")
def save_quiz():
    data = validate_quiz_payload(request.get_json(silent=True) or {})
    store = get_quiz_store()

    quiz = store.save_quiz(data)
    if "attemptLimit" in data:
        store.set_attempt_limit(quiz["id"], data["attemptLimit"])

    return jsonify({"message": "Quiz saved", "quiz": quiz}), 201

@generator_bp.route("/quizzes/<quiz_id>", methods=["GET"])
def get_quiz(quiz_id):
    return jsonify({"quiz": _get_quiz_or_404(quiz_id)}), 200

@generator_bp.route("/quizzes/<quiz_id>", methods=["DELETE"])
@role_required("teacher", "admin")
def remove_quiz(quiz_id):
    _get_quiz_or_404(quiz_id)
    store = get_quiz_store()
    store.remove_quiz(quiz_id)
    store.remove_attempt_limit(quiz_id)
    return jsonify({"message": "Quiz deleted"}), 200

@generator_bp.route("/quizzes/<quiz_id>/attempt-limit", methods=["PUT"])
@role_required("teacher", "admin")
def set_attempt_limit(quiz_id):
    _get_quiz_or_404(quiz_id)
    data = request.get_json(silent=True) or {}
    limit = parse_int(data.get("limit"), "limit", minimum=0)
    return jsonify({"quiz_id": quiz_id, "limit": get_quiz_store().set_attempt_limit(quiz_id, limit)}), 200

@generator_bp.route("/quizzes/<quiz_id>/attempts", methods=["GET"])
def list_attempts(quiz_id):
    _get_quiz_or_404(quiz_id)
    return jsonify({"attempts": get_quiz_store().list_attempts_for_quiz(quiz_id)}), 200

# Grade and save an attempt at a generated quiz
@generator_bp.route("/quizzes/<quiz_id>/attempts", methods=["POST"])
def submit_attempt(quiz_id):
    quiz = _get_quiz_or_404(quiz_id)
    data = request.get_json(silent=True) or {}
    answers = data.get("answers") or {}
    if not isinstance(answers, dict):
        raise ValidationError("answers must be an object keyed by question number")

    user, _ = _current_identity()
    limit = _attempt_limit(quiz)
    result = grade(quiz.get("questions"), answers)
    attempt, used = get_quiz_store().record_attempt(
        {"quizId": quiz_id, "answers": answers, "result": result.to_dict()}, user, limit
    )

    return jsonify({
        "attempt": attempt,
        "attempts_left": max(0, limit - used) if limit else None,
    }), 201

# Current user / role of this client's generator session
@generator_bp.route("/session", methods=["GET"])
def get_session():
    user, role = _current_identity()
    return jsonify({"user": user, "role": role, "roles": list(ROLES)}), 200

@generator_bp.route("/session", methods=["PUT"])
def update_session():
    data = request.get_json(silent=True) or {}
    if "role" in data:
        if data["role"] not in ROLES:
            raise ValidationError(f"role must be one of: {', '.join(ROLES)}")
        session[ROLE_SESSION_KEY] = data["role"]
    if "user" in data:
        user = (data.get("user") or "").strip()
        if user:
            session[USER_SESSION_KEY] = user
        else:
            session.pop(USER_SESSION_KEY, None)
    return jsonify({
        "user": session.get(USER_SESSION_KEY, ""),
        "role": session.get(ROLE_SESSION_KEY, DEFAULT_ROLE),
    }), 200
