from datetime import datetime

from classes.errors import ValidationError
from models.questions import QUESTION_TYPES

INVALID_INPUT_MESSAGE = "Please, Enter a Valid Input."
GENERATOR_INPUT_TYPES = ("topic", "paragraph")


def validate_length(field_name, value, max_length):
    if value is not None and len(value) > max_length:
        raise ValidationError(f"{field_name} must be {max_length} characters or fewer.")

def require_fields(data, fields):
    missing = [f for f in fields if data.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

def parse_int(value, field_name, required=True, minimum=None):
    """Coerce a query/body value to int, raising ValidationError on anything else."""
    if value is None or value == "":
        if required:
            raise ValidationError(f"{field_name} is required")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")
    if isinstance(value, float) and value != number:
        raise ValidationError(f"{field_name} must be an integer")
    if minimum is not None and number < minimum:
        raise ValidationError(f"{field_name} must be at least {minimum}")
    return number

def parse_datetime(value, field_name):
    # empty strings from the frontend mean "no value"
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        raise ValidationError(f"{field_name} must be an ISO 8601 datetime")

def validate_test_payload(data, partial=False):
    if not partial:
        require_fields(data, ("title", "quiz_type", "test_type", "duration_minutes"))
    if "title" in data:
        validate_length("title", data.get("title"), 255)
    cleaned = dict(data)
    for field in ("duration_minutes", "max_attempts", "questions_to_ask"):
        if field in data:
            cleaned[field] = parse_int(data.get(field), field, required=False, minimum=1)
    for field in ("start_time", "end_time"):
        if field in data:
            cleaned[field] = parse_datetime(data.get(field), field)
    if "course_id" in data:
        cleaned["course_id"] = parse_int(data.get("course_id"), "course_id", required=False)
    start, end = cleaned.get("start_time"), cleaned.get("end_time")
    if start and end and end <= start:
        raise ValidationError("end_time must be after start_time")
    return cleaned

def validate_question_payload(data, partial=False):
    if not partial:
        require_fields(data, ("test_id", "question_type", "question_text", "correct_answer"))
    cleaned = dict(data)
    if "test_id" in data:
        cleaned["test_id"] = parse_int(data.get("test_id"), "test_id")
    question_type = data.get("question_type")
    if question_type is not None and question_type not in QUESTION_TYPES:
        raise ValidationError(f"question_type must be one of: {', '.join(QUESTION_TYPES)}")
    if "options" in data or question_type == "multiple_choice":
        options = data.get("options")
        if question_type == "multiple_choice" and (not isinstance(options, list) or len(options) < 2):
            raise ValidationError("Multiple-choice questions need at least two options")
        if options is not None and not isinstance(options, list):
            raise ValidationError("'options' must be a list.")
    if "test_cases" in data and data.get("test_cases") is not None and not isinstance(data.get("test_cases"), list):
        raise ValidationError("'test_cases' must be a list.")
    if "order_number" in data:
        cleaned["order_number"] = parse_int(data.get("order_number"), "order_number", required=False, minimum=1)
    if "points" in data:
        cleaned["points"] = parse_int(data.get("points"), "points", required=False, minimum=1) or 1
    if "correct_answer" in data and data.get("correct_answer") is not None:
        cleaned["correct_answer"] = str(data["correct_answer"])
    return cleaned

def validate_generation_input(topic, number, input_type):
    """Input check for the quiz generator; every failure carries the same user-facing message."""
    if not isinstance(topic, str) or not topic.strip():
        raise ValidationError(INVALID_INPUT_MESSAGE)
    if not isinstance(input_type, str) or input_type.strip() not in GENERATOR_INPUT_TYPES:
        raise ValidationError(INVALID_INPUT_MESSAGE)
    if isinstance(number, bool) or number is None:
        raise ValidationError(INVALID_INPUT_MESSAGE)
    if isinstance(number, str) and number.strip().isdigit():
        number = int(number.strip())
    if isinstance(number, float) and number.is_integer():
        number = int(number)
    if not isinstance(number, int) or number < 1:
        raise ValidationError(INVALID_INPUT_MESSAGE)
    return topic.strip(), number, input_type.strip()

def validate_quiz_payload(data):
    require_fields(data, ("title",))
    validate_length("title", data.get("title"), 255)
    questions = data.get("questions")
    if not isinstance(questions, list) or not questions:
        raise ValidationError("A quiz needs at least one question")
    for question in questions:
        if not isinstance(question, dict) or question.get("questionNumber") is None or question.get("answer") is None:
            raise ValidationError("Each question must have 'questionNumber' and 'answer'.")
        if not isinstance(question.get("choices", []), list):
            raise ValidationError("'choices' must be a list.")
    cleaned = dict(data)
    if "attemptLimit" in data:
        cleaned["attemptLimit"] = parse_int(data.get("attemptLimit"), "attemptLimit", required=False, minimum=0) or 0
    return cleaned
