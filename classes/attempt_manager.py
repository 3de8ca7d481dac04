import logging
import random
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from classes.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from classes.grader import grade
from classes.question_selector import attempt_questions
from classes.question_store import QuestionStore
from models import db
from models.attempts import (
    STATUS_GRADED, STATUS_IN_PROGRESS, STATUS_SUBMITTED, TERMINAL_STATUSES, TestAttempt,
)
from models.tests import Test

logger = logging.getLogger(__name__)

VIOLATION_COUNTERS = {
    "window_switch": "window_switch_count",
    "screenshot_attempt": "screenshot_attempt_count",
    "phone_call": "phone_call_count",
}

MANUAL_REVIEW_TYPES = ("code",)


def sample_question_ids(questions, questions_to_ask, rng=None):
    """Pick the frozen subset for a new attempt.

    Returns None ("every question") when no target is set or the pool is not
    larger than the target, otherwise ``questions_to_ask`` distinct ids in
    display order.
    """
    if not questions_to_ask or questions_to_ask < 1 or questions_to_ask >= len(questions):
        return None
    rng = rng or random
    chosen = rng.sample(list(questions), questions_to_ask)
    chosen.sort(key=lambda q: (q.order_number, q.id))
    return [q.id for q in chosen]


class AttemptManager:
    @staticmethod
    def get_attempt(attempt_id):
        attempt = db.session.get(TestAttempt, attempt_id)
        if not attempt:
            raise NotFoundError("Attempt not found")
        return attempt

    @staticmethod
    def get_student_attempt(attempt_id, student_id):
        attempt = AttemptManager.get_attempt(attempt_id)
        if attempt.student_id != student_id:
            raise NotFoundError("Attempt not found")
        return attempt

    @staticmethod
    def _active_attempt(test_id, student_id):
        return TestAttempt.query.filter_by(
            active_key=TestAttempt.make_active_key(test_id, student_id)
        ).first()

    @staticmethod
    def start_attempt(test_id, student_id, rng=None, now=None):
        """Create the student's attempt at a test, or return the one already in progress.

        Returns ``(attempt, created, warnings)``.
        """
        test = db.session.get(Test, test_id)
        if not test or not test.is_active:
            raise NotFoundError("Test not found")

        existing = AttemptManager._active_attempt(test_id, student_id)
        if existing:
            return existing, False, []

        if not test.is_open(now):
            raise ForbiddenError("Test is not open")

        attempts_used = TestAttempt.query.filter_by(test_id=test_id, student_id=student_id).count()
        if test.max_attempts and attempts_used >= test.max_attempts:
            raise ForbiddenError("No attempts left")

        warnings = []
        pool = QuestionStore.list_questions_by_test(test_id)
        if not pool:
            logger.warning("Test %s has no questions; attempt for student %s will be empty", test_id, student_id)
            warnings.append("This test has no questions")
        elif test.questions_to_ask and test.questions_to_ask > len(pool):
            logger.warning(
                "Test %s asks for %s questions but only has %s; using all of them",
                test_id, test.questions_to_ask, len(pool),
            )

        attempt = TestAttempt(
            test_id=test_id,
            student_id=student_id,
            selected_questions=sample_question_ids(pool, test.questions_to_ask, rng),
            status=STATUS_IN_PROGRESS,
            started_at=now or datetime.utcnow(),
            active_key=TestAttempt.make_active_key(test_id, student_id),
        )
        db.session.add(attempt)
        try:
            db.session.commit()
        except IntegrityError:
            # a concurrent request created the active attempt first
            db.session.rollback()
            existing = AttemptManager._active_attempt(test_id, student_id)
            if not existing:
                raise
            return existing, False, []

        logger.info("Student %s started attempt %s on test %s", student_id, attempt.id, test_id)
        return attempt, True, warnings

    @staticmethod
    def record_violation(attempt_id, student_id, kind, count=1):
        column_name = VIOLATION_COUNTERS.get(kind)
        if not column_name:
            raise ValidationError(f"Unknown violation type: {kind}")
        if count < 1:
            raise ValidationError("count must be at least 1")

        AttemptManager.get_student_attempt(attempt_id, student_id)
        column = getattr(TestAttempt, column_name)
        updated = (
            TestAttempt.query
            .filter(TestAttempt.id == attempt_id, TestAttempt.status == STATUS_IN_PROGRESS)
            .update(
                {column: column + count, TestAttempt.total_violations: TestAttempt.total_violations + count},
                synchronize_session=False,
            )
        )
        db.session.commit()
        if not updated:
            raise ConflictError("Attempt is no longer in progress")

        attempt = AttemptManager.get_attempt(attempt_id)
        db.session.refresh(attempt)
        logger.info("Attempt %s: %s violation recorded (total %s)", attempt_id, kind, attempt.total_violations)
        return attempt

    @staticmethod
    def finalize_attempt(attempt_id, answers, result, passing_score=None, needs_review=False, now=None):
        """Store a grade on an attempt exactly once; a second call raises ConflictError."""
        percentage = result.percentage
        values = {
            TestAttempt.status: STATUS_SUBMITTED if needs_review else STATUS_GRADED,
            TestAttempt.submitted_at: now or datetime.utcnow(),
            TestAttempt.answers: answers,
            TestAttempt.results: result.to_dict(),
            TestAttempt.correct_count: result.correct,
            TestAttempt.total_questions: result.total,
            TestAttempt.score: percentage,
            TestAttempt.pass_status: percentage >= passing_score if passing_score is not None else None,
            TestAttempt.needs_review: needs_review,
            TestAttempt.active_key: None,
        }
        updated = (
            TestAttempt.query
            .filter(TestAttempt.id == attempt_id, ~TestAttempt.status.in_(TERMINAL_STATUSES))
            .update(values, synchronize_session=False)
        )
        db.session.commit()
        if not updated:
            if not db.session.get(TestAttempt, attempt_id):
                raise NotFoundError("Attempt not found")
            raise ConflictError("Attempt has already been submitted")

        attempt = AttemptManager.get_attempt(attempt_id)
        db.session.refresh(attempt)
        return attempt

    @staticmethod
    def submit_attempt(attempt_id, student_id, answers):
        attempt = AttemptManager.get_student_attempt(attempt_id, student_id)
        if attempt.is_finalized:
            raise ConflictError("Attempt has already been submitted")
        if answers is not None and not isinstance(answers, dict):
            raise ValidationError("answers must be an object keyed by question id")

        questions = attempt_questions(attempt)
        auto_graded = [q for q in questions if q.question_type not in MANUAL_REVIEW_TYPES]
        result = grade(auto_graded, answers)
        needs_review = len(auto_graded) != len(questions)

        logger.info(
            "Attempt %s graded: %s/%s correct%s",
            attempt_id, result.correct, result.total, " (needs review)" if needs_review else "",
        )
        return AttemptManager.finalize_attempt(
            attempt_id,
            answers or {},
            result,
            passing_score=attempt.test.passing_score,
            needs_review=needs_review,
        )
