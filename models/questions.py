from models import db

QUESTION_TYPES = ("multiple_choice", "true_false", "short_answer", "code")

class Question(db.Model):
    __tablename__ = "questions"

    id = db.Column(db.Integer, primary_key=True)
    test_id = db.Column(db.Integer, db.ForeignKey("tests.id"), nullable=False, index=True)
    question_type = db.Column(db.String(20), nullable=False)
    question_text = db.Column(db.Text, nullable=False)
    code_language = db.Column(db.String(30), nullable=True)
    options = db.Column(db.JSON, nullable=True)
    correct_answer = db.Column(db.Text, nullable=False)
    test_cases = db.Column(db.JSON, nullable=True)
    explanation = db.Column(db.Text, nullable=True)
    points = db.Column(db.Integer, nullable=False, default=1)
    order_number = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime, default=db.func.now(), nullable=False)
    updated_at = db.Column(db.DateTime, default=db.func.now(), onupdate=db.func.now(), nullable=False)

    test = db.relationship("Test", back_populates="questions")

    def __repr__(self):
        return f"<Question {self.id} (Test ID {self.test_id})>"
