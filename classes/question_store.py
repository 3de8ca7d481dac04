from models import db
from models.questions import Question


class QuestionStore:
    """Read access to persisted questions, always scoped by ``test_id``."""

    @staticmethod
    def _ordered(query):
        return query.order_by(Question.order_number.asc(), Question.id.asc())

    @staticmethod
    def list_questions_by_test(test_id):
        return QuestionStore._ordered(Question.query.filter(Question.test_id == test_id)).all()

    @staticmethod
    def get_questions_by_ids(test_id, ids):
        ids = list(ids)
        if not ids:
            return []
        query = Question.query.filter(Question.test_id == test_id, Question.id.in_(ids))
        return QuestionStore._ordered(query).all()

    @staticmethod
    def next_order_number(test_id):
        current = db.session.query(db.func.max(Question.order_number)).filter(Question.test_id == test_id).scalar()
        return (current or 0) + 1
