"""Role- and attempt-scoped question listing.

Students only ever see the questions frozen on their attempt, and never the
authoring fields (correct answer, test cases, explanation). Teachers and
admins see the whole pool with every field.
"""
import logging
from dataclasses import asdict, dataclass
from typing import Any, FrozenSet, List, Optional

from classes.errors import NotFoundError, ValidationError
from classes.question_store import QuestionStore
from classes.validators import parse_int
from models import db
from models.attempts import TestAttempt
from models.tests import Test
from models.users import ROLES

logger = logging.getLogger(__name__)

STAFF_ROLES = ("teacher", "admin")


class QuestionScope:
    """Which questions of a test an attempt covers."""

    def includes(self, question_id) -> bool:
        raise NotImplementedError


class _AllQuestions(QuestionScope):
    def includes(self, question_id) -> bool:
        return True

    def __repr__(self):
        return "ALL_QUESTIONS"


ALL_QUESTIONS = _AllQuestions()


@dataclass(frozen=True)
class QuestionSubset(QuestionScope):
    question_ids: FrozenSet[int]

    def includes(self, question_id) -> bool:
        return question_id in self.question_ids


def scope_from_selection(selected) -> QuestionScope:
    """Map the stored ``selected_questions`` column to a scope; ``None`` means all, ``[]`` means none."""
    if selected is None:
        return ALL_QUESTIONS
    ids = set()
    for value in selected:
        try:
            ids.add(int(value))
        except (TypeError, ValueError):
            logger.warning("Ignoring non-integer question id %r in selected_questions", value)
    return QuestionSubset(frozenset(ids))


@dataclass(frozen=True)
class Requester:
    user_id: Optional[int]
    role: str

    @classmethod
    def from_token(cls, payload):
        payload = payload or {}
        return cls(user_id=payload.get("user_id"), role=payload.get("role") or "student")

    @property
    def is_student(self):
        return self.role == "student"

    @property
    def is_staff(self):
        return self.role in STAFF_ROLES


@dataclass(frozen=True)
class QuestionPublic:
    id: int
    test_id: int
    question_type: str
    question_text: str
    code_language: Optional[str]
    options: Any
    points: int
    order_number: int

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class QuestionFull:
    id: int
    test_id: int
    question_type: str
    question_text: str
    code_language: Optional[str]
    options: Any
    points: int
    order_number: int
    correct_answer: str
    test_cases: Any
    explanation: Optional[str]

    def to_dict(self):
        return asdict(self)


def project_question(question, role):
    """Build the projection of ``question`` that ``role`` is allowed to see."""
    if role not in ROLES:
        raise ValidationError(f"Unknown role: {role}")
    fields = dict(
        id=question.id,
        test_id=question.test_id,
        question_type=question.question_type,
        question_text=question.question_text,
        code_language=question.code_language,
        options=question.options,
        points=question.points,
        order_number=question.order_number,
    )
    if role in STAFF_ROLES:
        return QuestionFull(
            correct_answer=question.correct_answer,
            test_cases=question.test_cases,
            explanation=question.explanation,
            **fields,
        )
    return QuestionPublic(**fields)


def find_student_attempt(test_id, student_id, attempt_id=None):
    """The given attempt if it is the student's attempt at this test, else their latest one."""
    if attempt_id is not None:
        attempt = db.session.get(TestAttempt, attempt_id)
        if not attempt or attempt.student_id != student_id or attempt.test_id != test_id:
            raise NotFoundError("Attempt not found")
        return attempt

    attempt = (
        TestAttempt.query
        .filter_by(test_id=test_id, student_id=student_id)
        .order_by(TestAttempt.started_at.desc(), TestAttempt.id.desc())
        .first()
    )
    if not attempt:
        raise NotFoundError("No attempt found for this test")
    return attempt


def attempt_questions(attempt):
    """Questions an attempt covers, intersected with what currently belongs to its test."""
    scope = attempt.question_scope
    if scope is ALL_QUESTIONS:
        return QuestionStore.list_questions_by_test(attempt.test_id)

    questions = QuestionStore.get_questions_by_ids(attempt.test_id, scope.question_ids)
    if len(questions) != len(scope.question_ids):
        found = {q.id for q in questions}
        logger.warning(
            "Attempt %s references questions %s that no longer belong to test %s",
            attempt.id, sorted(scope.question_ids - found), attempt.test_id,
        )
    return questions


def select_questions(test_id, requester, attempt_id=None) -> List[Any]:
    test_id = parse_int(test_id, "test_id")
    attempt_id = parse_int(attempt_id, "attempt_id", required=False)
    if requester.role not in ROLES:
        raise ValidationError(f"Unknown role: {requester.role}")

    if not db.session.get(Test, test_id):
        raise NotFoundError("Test not found")

    if requester.is_student:
        attempt = find_student_attempt(test_id, requester.user_id, attempt_id)
        questions = attempt_questions(attempt)
    else:
        questions = QuestionStore.list_questions_by_test(test_id)

    return [project_question(q, requester.role) for q in questions]
