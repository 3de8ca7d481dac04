import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from app import create_app  # noqa: E402
from models import db  # noqa: E402
from models.attempts import TestAttempt  # noqa: E402
from models.questions import Question  # noqa: E402
from models.tests import Test  # noqa: E402
from models.users import User  # noqa: E402
from utils.tokens import get_jwt_token  # noqa: E402


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(role="student", username=None, user_id=None, password="secret123"):
        username = username or f"{role}{User.query.count() + 1}"
        user = User(id=user_id, username=username, email=f"{username}@example.com", full_name=username.title(), role=role)
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user
    return _make_user


@pytest.fixture
def auth_headers(app):
    def _auth_headers(user):
        token = get_jwt_token({"user_id": user.id, "username_or_email": user.username, "role": user.role})
        return {"Authorization": f"Bearer {token}"}
    return _auth_headers


@pytest.fixture
def make_test(app):
    def _make_test(question_count=0, test_id=None, first_question_id=None, **fields):
        test = Test(id=test_id, title=fields.pop("title", "Python basics"), **fields)
        db.session.add(test)
        db.session.flush()
        for n in range(1, question_count + 1):
            db.session.add(Question(
                id=(first_question_id + n - 1) if first_question_id else None,
                test_id=test.id,
                question_type="multiple_choice",
                question_text=f"Question {n}",
                options=["1", "2", "3", "4"],
                correct_answer=str((n % 4) + 1),
                explanation=f"Because {n}",
                order_number=n,
            ))
        db.session.commit()
        return test
    return _make_test


@pytest.fixture
def scenario(make_test, make_user):
    """Test 32 with questions 101-105; student 7 holds attempt 45 on questions 102 and 104."""
    student = make_user("student", username="student7", user_id=7)
    teacher = make_user("teacher", username="teacher1")
    test = make_test(question_count=5, test_id=32, first_question_id=101, max_attempts=3)
    attempt = TestAttempt(
        id=45,
        test_id=test.id,
        student_id=student.id,
        selected_questions=[102, 104],
        active_key=TestAttempt.make_active_key(test.id, student.id),
    )
    db.session.add(attempt)
    db.session.commit()
    return {"test": test, "student": student, "teacher": teacher, "attempt": attempt}
