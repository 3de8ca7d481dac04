"""Scoring of submitted answers against an answer key.

Works on both shapes of question definition the application has:
generator quizzes (``{"questionNumber": 1, "answer": 2, ...}``) and
question rows (``question.id`` / ``question.correct_answer``).
"""
from dataclasses import dataclass, field
from typing import Any, List


@dataclass(frozen=True)
class QuestionResult:
    question_number: Any
    correct_answer: Any
    given_answer: Any
    is_correct: bool
    answered: bool

    def to_dict(self):
        result = {
            "qn": self.question_number,
            "correctAnswer": self.correct_answer,
            "isCorrect": self.is_correct,
        }
        if self.answered:
            result["given"] = self.given_answer
        return result


@dataclass(frozen=True)
class GradeResult:
    correct: int
    total: int
    details: List[QuestionResult] = field(default_factory=list)

    @property
    def percentage(self):
        return (self.correct / self.total) * 100 if self.total > 0 else 0.0

    def to_dict(self):
        return {
            "correct": self.correct,
            "total": self.total,
            "details": [d.to_dict() for d in self.details],
        }


def _question_number(question):
    if isinstance(question, dict):
        return question.get("questionNumber", question.get("id"))
    return question.id

def _correct_answer(question):
    if isinstance(question, dict):
        return question.get("answer", question.get("correct_answer"))
    return question.correct_answer

def _answer_key(value):
    # 1, 1.0 and "1" all address question 1
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()

def _as_number(value):
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None

def answers_match(given, correct):
    if given is None or correct is None:
        return False
    given_number, correct_number = _as_number(given), _as_number(correct)
    if given_number is not None and correct_number is not None:
        return given_number == correct_number
    return str(given) == str(correct)

def grade(questions, answers) -> GradeResult:
    """Grade ``answers`` (question number -> submitted value) against ``questions``.

    A question without an entry in ``answers`` is wrong, never an error.
    Pure: the same inputs always produce an equal result.
    """
    submitted = {_answer_key(k): v for k, v in (answers or {}).items()}
    details = []
    correct = 0
    for question in questions or []:
        number = _question_number(question)
        expected = _correct_answer(question)
        key = _answer_key(number)
        answered = key in submitted
        given = submitted.get(key)
        is_correct = answered and answers_match(given, expected)
        if is_correct:
            correct += 1
        details.append(QuestionResult(
            question_number=number,
            correct_answer=expected,
            given_answer=given,
            is_correct=is_correct,
            answered=answered,
        ))
    return GradeResult(correct=correct, total=len(details), details=details)
