import random
from datetime import datetime, timedelta

import pytest

from classes.attempt_manager import AttemptManager, sample_question_ids
from classes.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from classes.grader import grade
from models import db
from models.attempts import STATUS_GRADED, STATUS_IN_PROGRESS, STATUS_SUBMITTED, TestAttempt
from models.questions import Question


def test_sampling_picks_exactly_questions_to_ask(make_test, make_user):
    test = make_test(question_count=10, questions_to_ask=3)
    student = make_user("student")

    attempt, created, warnings = AttemptManager.start_attempt(test.id, student.id, rng=random.Random(4))

    assert created is True
    assert warnings == []
    selected = attempt.selected_questions
    assert len(selected) == 3
    assert len(set(selected)) == 3
    pool = {q.id: q.order_number for q in test.questions}
    assert set(selected) <= set(pool)
    assert [pool[i] for i in selected] == sorted(pool[i] for i in selected)


@pytest.mark.parametrize("questions_to_ask", [None, 0, 5, 8])
def test_sampling_falls_back_to_all_questions(make_test, questions_to_ask):
    test = make_test(question_count=5)
    assert sample_question_ids(test.questions, questions_to_ask) is None


def test_zero_question_test_still_creates_an_attempt_with_a_warning(make_test, make_user):
    test = make_test(question_count=0, questions_to_ask=3)
    student = make_user("student")

    attempt, created, warnings = AttemptManager.start_attempt(test.id, student.id)

    assert created is True
    assert attempt.selected_questions is None
    assert warnings == ["This test has no questions"]


def test_in_progress_attempt_is_resumed_not_duplicated(make_test, make_user):
    test = make_test(question_count=6, questions_to_ask=2, max_attempts=5)
    student = make_user("student")

    first, created, _ = AttemptManager.start_attempt(test.id, student.id)
    again, created_again, _ = AttemptManager.start_attempt(test.id, student.id)

    assert created is True
    assert created_again is False
    assert again.id == first.id
    assert again.selected_questions == first.selected_questions
    assert TestAttempt.query.filter_by(test_id=test.id, student_id=student.id).count() == 1


def test_start_rules(make_test, make_user):
    student = make_user("student")
    with pytest.raises(NotFoundError):
        AttemptManager.start_attempt(999, student.id)

    inactive = make_test(question_count=1, is_active=False)
    with pytest.raises(NotFoundError):
        AttemptManager.start_attempt(inactive.id, student.id)

    closed = make_test(question_count=1, end_time=datetime.utcnow() - timedelta(days=1))
    with pytest.raises(ForbiddenError):
        AttemptManager.start_attempt(closed.id, student.id)


def test_max_attempts_is_enforced(make_test, make_user):
    test = make_test(question_count=2, max_attempts=1)
    student = make_user("student")

    attempt, _, _ = AttemptManager.start_attempt(test.id, student.id)
    AttemptManager.submit_attempt(attempt.id, student.id, {})

    with pytest.raises(ForbiddenError):
        AttemptManager.start_attempt(test.id, student.id)


def test_violations_increment_counters(scenario):
    attempt = AttemptManager.record_violation(45, 7, "window_switch")
    attempt = AttemptManager.record_violation(45, 7, "phone_call", count=2)

    assert attempt.window_switch_count == 1
    assert attempt.phone_call_count == 2
    assert attempt.screenshot_attempt_count == 0
    assert attempt.total_violations == 3


def test_violation_validation(scenario, make_user):
    with pytest.raises(ValidationError):
        AttemptManager.record_violation(45, 7, "sneezing")
    intruder = make_user("student", username="intruder")
    with pytest.raises(NotFoundError):
        AttemptManager.record_violation(45, intruder.id, "window_switch")


def test_submit_grades_only_selected_questions(scenario):
    # question 102 expects "3", question 104 expects "1"
    attempt = AttemptManager.submit_attempt(45, 7, {"102": "3", "104": "2", "101": "2"})

    assert attempt.status == STATUS_GRADED
    assert attempt.correct_count == 1
    assert attempt.total_questions == 2
    assert attempt.score == 50.0
    assert attempt.pass_status is True
    assert attempt.active_key is None
    assert [d["qn"] for d in attempt.results["details"]] == [102, 104]


def test_attempt_is_finalized_exactly_once(scenario):
    AttemptManager.submit_attempt(45, 7, {"102": "3"})

    with pytest.raises(ConflictError):
        AttemptManager.submit_attempt(45, 7, {"102": "3", "104": "1"})
    with pytest.raises(ConflictError):
        AttemptManager.finalize_attempt(45, {}, grade([], {}))
    with pytest.raises(ConflictError):
        AttemptManager.record_violation(45, 7, "window_switch")

    attempt = db.session.get(TestAttempt, 45)
    assert attempt.correct_count == 1


def test_finalize_unknown_attempt_is_not_found(app):
    with pytest.raises(NotFoundError):
        AttemptManager.finalize_attempt(12345, {}, grade([], {}))


def test_code_questions_leave_attempt_for_review(make_test, make_user):
    test = make_test(question_count=1)
    choice_id = test.questions[0].id
    db.session.add(Question(test_id=test.id, question_type="code", question_text="Write add()",
                            code_language="python", correct_answer="def add(a, b): return a + b",
                            test_cases=[{"input": "1 2", "output": "3"}], order_number=2))
    db.session.commit()
    student = make_user("student")
    attempt, _, _ = AttemptManager.start_attempt(test.id, student.id)

    attempt = AttemptManager.submit_attempt(attempt.id, student.id, {str(choice_id): "2"})

    assert attempt.status == STATUS_SUBMITTED
    assert attempt.needs_review is True
    assert attempt.total_questions == 1
    assert attempt.correct_count == 1


def test_selection_is_frozen_after_creation(make_test, make_user):
    test = make_test(question_count=4, questions_to_ask=2)
    student = make_user("student")
    attempt, _, _ = AttemptManager.start_attempt(test.id, student.id)
    frozen = list(attempt.selected_questions)

    db.session.add(Question(test_id=test.id, question_type="short_answer", question_text="New",
                            correct_answer="x", order_number=5))
    db.session.commit()

    assert db.session.get(TestAttempt, attempt.id).selected_questions == frozen
    assert db.session.get(TestAttempt, attempt.id).status == STATUS_IN_PROGRESS
