from flask import Blueprint, g, jsonify, request

from classes.errors import NotFoundError, ValidationError
from classes.question_selector import Requester
from classes.validators import parse_int, validate_test_payload
from models import db
from models.courses import Course
from models.tests import Test
from utils.utils import load_user, role_required

test_bp = Blueprint("tests", __name__)

TEST_FIELDS = (
    "course_id", "title", "description", "quiz_type", "test_type", "duration_minutes",
    "start_time", "end_time", "passing_score", "max_attempts", "questions_to_ask",
    "is_active", "detect_window_switch", "prevent_screenshot", "detect_phone_call",
)


def _get_test_or_404(test_id):
    test = db.session.get(Test, test_id)
    if not test:
        raise NotFoundError("Test not found")
    return test

def _check_course(course_id):
    if course_id is not None and not db.session.get(Course, course_id):
        raise ValidationError("Course not found")

# Get all tests; students only see active ones
@test_bp.route("", methods=["GET"])
def get_all_tests():
    requester = Requester.from_token(load_user())

    query = Test.query
    if not requester.is_staff:
        query = query.filter(Test.is_active.is_(True))

    course_id = parse_int(request.args.get("course_id"), "course_id", required=False)
    if course_id is not None:
        query = query.filter(Test.course_id == course_id)

    tests = query.order_by(Test.created_at.desc(), Test.id.desc()).all()
    return jsonify({"tests": [t.to_dict() for t in tests]}), 200

@test_bp.route("/<int:test_id>", methods=["GET"])
def get_test(test_id):
    return jsonify({"test": _get_test_or_404(test_id).to_dict()}), 200

# CREATE a Test
# --------------------------------------------------------------------------------
@test_bp.route("", methods=["POST"])
@role_required("teacher", "admin")
def create_test():
    data = validate_test_payload(request.get_json(silent=True) or {})
    _check_course(data.get("course_id"))

    test = Test(**{k: data[k] for k in TEST_FIELDS if data.get(k) is not None})
    test.created_by = g.user.get("user_id")

    db.session.add(test)
    db.session.commit()

    return jsonify({"message": "Test created successfully", "test": test.to_dict()}), 201

# EDIT a Test
# --------------------------------------------------------------------------------
@test_bp.route("/<int:test_id>", methods=["PUT"])
@role_required("teacher", "admin")
def update_test(test_id):
    test = _get_test_or_404(test_id)
    data = validate_test_payload(request.get_json(silent=True) or {}, partial=True)

    updates = {k: data[k] for k in TEST_FIELDS if k in data}
    if not updates:
        raise ValidationError("No fields to update")
    if "course_id" in updates:
        _check_course(updates["course_id"])
    if "title" in updates and not updates["title"]:
        raise ValidationError("Title is required")

    for key, value in updates.items():
        setattr(test, key, value)
    db.session.commit()

    return jsonify({"message": "Test updated successfully", "test": test.to_dict()}), 200

# DELETE a Test
# --------------------------------------------------------------------------------
@test_bp.route("/<int:test_id>", methods=["DELETE"])
@role_required("admin")
def delete_test(test_id):
    test = _get_test_or_404(test_id)

    db.session.delete(test)
    db.session.commit()

    return jsonify({"message": "Test deleted successfully"}), 200
