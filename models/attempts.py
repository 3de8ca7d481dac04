from datetime import datetime
from models import db

STATUS_IN_PROGRESS = "in_progress"
STATUS_SUBMITTED = "submitted"
STATUS_GRADED = "graded"
TERMINAL_STATUSES = (STATUS_SUBMITTED, STATUS_GRADED)

class TestAttempt(db.Model):
    __tablename__ = "test_attempts"
    __test__ = False  # not a pytest test class

    id = db.Column(db.Integer, primary_key=True)
    test_id = db.Column(db.Integer, db.ForeignKey("tests.id"), nullable=False, index=True)
    student_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    # null means every question of the test
    selected_questions = db.Column(db.JSON, nullable=True)
    status = db.Column(db.String(20), nullable=False, default=STATUS_IN_PROGRESS)
    started_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    submitted_at = db.Column(db.DateTime, nullable=True)

    window_switch_count = db.Column(db.Integer, nullable=False, default=0)
    screenshot_attempt_count = db.Column(db.Integer, nullable=False, default=0)
    phone_call_count = db.Column(db.Integer, nullable=False, default=0)
    total_violations = db.Column(db.Integer, nullable=False, default=0)

    answers = db.Column(db.JSON, nullable=True)
    results = db.Column(db.JSON, nullable=True)
    correct_count = db.Column(db.Integer, nullable=True)
    total_questions = db.Column(db.Integer, nullable=True)
    score = db.Column(db.Float, nullable=True)
    pass_status = db.Column(db.Boolean, nullable=True)
    needs_review = db.Column(db.Boolean, nullable=False, default=False)

    # "<test_id>:<student_id>" while in progress, NULL afterwards; one active attempt per pair
    active_key = db.Column(db.String(64), nullable=True, unique=True)

    test = db.relationship("Test", back_populates="attempts")
    student = db.relationship("User", back_populates="attempts")

    @staticmethod
    def make_active_key(test_id, student_id):
        return f"{test_id}:{student_id}"

    @property
    def question_scope(self):
        from classes.question_selector import scope_from_selection
        return scope_from_selection(self.selected_questions)

    @property
    def is_finalized(self):
        return self.status in TERMINAL_STATUSES

    def to_dict(self):
        return {
            "id": self.id,
            "test_id": self.test_id,
            "student_id": self.student_id,
            "selected_questions": self.selected_questions,
            "status": self.status,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "submitted_at": self.submitted_at.isoformat() if self.submitted_at else None,
            "window_switch_count": self.window_switch_count,
            "screenshot_attempt_count": self.screenshot_attempt_count,
            "phone_call_count": self.phone_call_count,
            "total_violations": self.total_violations,
            "correct_count": self.correct_count,
            "total_questions": self.total_questions,
            "score": self.score,
            "pass_status": self.pass_status,
            "needs_review": self.needs_review,
            "results": self.results,
        }
