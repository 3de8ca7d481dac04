import bleach
from flask import Blueprint, g, jsonify, request

from classes.errors import NotFoundError, ValidationError
from classes.question_selector import Requester, project_question, select_questions
from classes.question_store import QuestionStore
from classes.validators import validate_question_payload
from models import db
from models.questions import Question
from models.tests import Test
from utils.utils import login_required, role_required

question_bp = Blueprint("questions", __name__)

QUESTION_FIELDS = (
    "question_type", "question_text", "code_language", "options",
    "correct_answer", "test_cases", "explanation", "points", "order_number",
)
ALLOWED_TAGS = ["b", "i", "u", "em", "strong", "code", "pre", "br", "p", "ul", "ol", "li"]


def _clean_text(data):
    for field in ("question_text", "explanation"):
        if data.get(field):
            data[field] = bleach.clean(data[field], tags=ALLOWED_TAGS, strip=True)
    return data

# GET Questions for a Test, scoped by role and attempt
# --------------------------------------------------------------------------------
@question_bp.route("", methods=["GET"])
@login_required
def get_questions():
    questions = select_questions(
        request.args.get("test_id"),
        Requester.from_token(g.user),
        attempt_id=request.args.get("attempt_id"),
    )
    return jsonify({"questions": [q.to_dict() for q in questions]}), 200

# CREATE a Question
# --------------------------------------------------------------------------------
@question_bp.route("", methods=["POST"])
@role_required("teacher", "admin")
def create_question():
    data = _clean_text(validate_question_payload(request.get_json(silent=True) or {}))

    if not db.session.get(Test, data["test_id"]):
        raise NotFoundError("Test not found")

    question = Question(test_id=data["test_id"], **{k: data[k] for k in QUESTION_FIELDS if data.get(k) is not None})
    if question.order_number is None:
        question.order_number = QuestionStore.next_order_number(data["test_id"])

    db.session.add(question)
    db.session.commit()

    return jsonify({
        "message": "Question created successfully",
        "question": project_question(question, g.user.get("role")).to_dict(),
    }), 201

# EDIT a Question
# --------------------------------------------------------------------------------
@question_bp.route("/<int:question_id>", methods=["PUT"])
@role_required("teacher", "admin")
def update_question(question_id):
    question = db.session.get(Question, question_id)
    if not question:
        raise NotFoundError("Question not found")

    data = _clean_text(validate_question_payload(request.get_json(silent=True) or {}, partial=True))
    updates = {k: data[k] for k in QUESTION_FIELDS if k in data}
    if not updates:
        raise ValidationError("No fields to update")
    for field in ("question_type", "question_text", "correct_answer"):
        if field in updates and not updates[field]:
            raise ValidationError(f"{field} cannot be empty")

    for key, value in updates.items():
        setattr(question, key, value)
    db.session.commit()

    return jsonify({
        "message": "Question updated successfully",
        "question": project_question(question, g.user.get("role")).to_dict(),
    }), 200

# DELETE a Question
# --------------------------------------------------------------------------------
@question_bp.route("/<int:question_id>", methods=["DELETE"])
@role_required("admin")
def delete_question(question_id):
    question = db.session.get(Question, question_id)
    if not question:
        raise NotFoundError("Question not found")

    db.session.delete(question)
    db.session.commit()

    return jsonify({"message": "Question deleted successfully"}), 200
