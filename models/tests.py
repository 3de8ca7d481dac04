from datetime import datetime
from models import db
from sqlalchemy.orm import relationship

class Test(db.Model):
    __tablename__ = "tests"
    __test__ = False  # not a pytest test class

    id = db.Column(db.Integer, primary_key=True)
    course_id = db.Column(db.Integer, db.ForeignKey("courses.id"), nullable=True)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    quiz_type = db.Column(db.String(50), nullable=False, default="mcq")
    test_type = db.Column(db.String(50), nullable=False, default="practice")
    duration_minutes = db.Column(db.Integer, nullable=False, default=30)
    start_time = db.Column(db.DateTime, nullable=True)
    end_time = db.Column(db.DateTime, nullable=True)
    passing_score = db.Column(db.Float, nullable=True, default=50.0)
    max_attempts = db.Column(db.Integer, nullable=True, default=1)
    questions_to_ask = db.Column(db.Integer, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    detect_window_switch = db.Column(db.Boolean, nullable=False, default=False)
    prevent_screenshot = db.Column(db.Boolean, nullable=False, default=False)
    detect_phone_call = db.Column(db.Boolean, nullable=False, default=False)

    created_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, default=db.func.now(), onupdate=db.func.now(), nullable=False)

    course = relationship("Course", back_populates="tests")
    questions = relationship("Question", back_populates="test", cascade="all, delete-orphan", lazy=True)
    attempts = relationship("TestAttempt", back_populates="test", cascade="all, delete-orphan", lazy=True)

    @property
    def question_count(self):
        """Dynamically count questions without storing in the database"""
        return len(self.questions)

    def is_open(self, now=None):
        now = now or datetime.utcnow()
        if self.start_time and now < self.start_time:
            return False
        if self.end_time and now > self.end_time:
            return False
        return True

    def __repr__(self):
        return f"<Test {self.title}>"

    def to_dict(self):
        return {
            "id": self.id,
            "course_id": self.course_id,
            "course_title": self.course.title if self.course else None,
            "title": self.title,
            "description": self.description,
            "quiz_type": self.quiz_type,
            "test_type": self.test_type,
            "duration_minutes": self.duration_minutes,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "passing_score": self.passing_score,
            "max_attempts": self.max_attempts,
            "questions_to_ask": self.questions_to_ask,
            "is_active": self.is_active,
            "detect_window_switch": self.detect_window_switch,
            "prevent_screenshot": self.prevent_screenshot,
            "detect_phone_call": self.detect_phone_call,
            "created_by": self.created_by,
            "question_count": self.question_count,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
