import json
import logging
import re
import time

import requests
from flask import current_app

from classes.errors import MalformedResponseError, UpstreamUnavailableError
from classes.validators import validate_generation_input

logger = logging.getLogger(__name__)

BUSY_MESSAGE = "The AI is busy right now. Please try again in a moment."
FAILURE_MESSAGE = "An error occurred. Please try again later."

DIFFICULTIES = ("easy", "medium", "hard")

RESPONSE_SCHEMA = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "questionNumber": {"type": "number"},
            "questionText": {"type": "string"},
            "explanation": {"type": "string"},
            "choices": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "id": {"type": "number"},
                        "text": {"type": "string"},
                    },
                    "propertyOrdering": ["id", "text"],
                },
            },
            "answer": {"type": "integer"},
            "difficulty": {"type": "string", "enum": list(DIFFICULTIES)},
        },
        "propertyOrdering": ["questionNumber", "questionText", "explanation", "difficulty"],
    },
}

FENCE_RE = re.compile(r"^```(?:json)?\s*\n([\s\S]*?)\n```$", re.IGNORECASE)


def build_prompt(topic, number, input_type):
    instructions = f"""Based on the following {input_type}, generate exactly {number} multiple-choice questions with:
 - A numbered question (questionNumber)
 - Clear question text (questionText)
 - 4-5 choices each as {{id, text}}
 - An integer 'answer' matching the correct choice id
 - A difficulty of 'easy' | 'medium' | 'hard' (30% easy, 50% medium, 20% hard)
 - An explanation string explaining the correct answer

Return strict JSON matching the provided schema, not markdown or code fences."""
    return f'{instructions}\n\n{input_type}:\n"{topic}"'

def retry_with_backoff(fn, retries=3, delay=1.0, sleep=time.sleep):
    """Call ``fn``; on UpstreamUnavailableError wait and retry, doubling the delay each time."""
    attempt = 0
    while True:
        try:
            return fn()
        except UpstreamUnavailableError:
            if attempt >= retries:
                raise
            attempt += 1
            logger.warning(
                "AI provider overloaded. Retrying in %.1fs... (%s attempts left)",
                delay, retries - attempt + 1,
            )
            sleep(delay)
            delay *= 2

def strip_code_fence(text):
    text = (text or "").strip()
    match = FENCE_RE.match(text)
    if match:
        return match.group(1).strip()
    return text

def parse_questions(text):
    """Parse the provider's text into a list of question dicts."""
    try:
        data = json.loads(strip_code_fence(text))
    except ValueError:
        logger.error("Failed to parse JSON from provider response: %r", text)
        raise MalformedResponseError()

    if not isinstance(data, list):
        raise MalformedResponseError("AI provider did not return a list of questions")
    for item in data:
        if not isinstance(item, dict):
            raise MalformedResponseError("AI provider returned a malformed question")
        if "questionText" not in item or "answer" not in item or not isinstance(item.get("choices"), list):
            raise MalformedResponseError("AI provider returned a question missing required fields")
    return data

def _response_text(payload):
    parts = []
    for candidate in payload.get("candidates") or []:
        for part in (candidate.get("content") or {}).get("parts") or []:
            if part.get("text"):
                parts.append(part["text"])
        if parts:
            break
    return "".join(parts)

def _generate_content(prompt):
    config = current_app.config
    if not config.get("GEMINI_API_KEY"):
        raise RuntimeError("GEMINI_API_KEY is not set.")

    url = f"{config['GEMINI_API_URL']}/models/{config['GEMINI_MODEL']}:generateContent"
    response = requests.post(
        url,
        params={"key": config["GEMINI_API_KEY"]},
        json={
            "contents": [{"role": "user", "parts": [{"text": prompt}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": RESPONSE_SCHEMA,
            },
        },
        timeout=config.get("GEMINI_TIMEOUT", 90),
    )

    if response.status_code == 503:
        raise UpstreamUnavailableError()
    if not response.ok:
        try:
            status = (response.json().get("error") or {}).get("status")
        except ValueError:
            status = None
        if status == "UNAVAILABLE":
            raise UpstreamUnavailableError()
    response.raise_for_status()
    return response.json()

def fetch_content(prompt):
    """Send ``prompt`` to the model and return the parsed question array."""
    config = current_app.config
    payload = retry_with_backoff(
        lambda: _generate_content(prompt),
        retries=config.get("GEMINI_MAX_RETRIES", 3),
        delay=config.get("GEMINI_RETRY_DELAY", 1.0),
    )
    text = _response_text(payload)
    if not text:
        raise MalformedResponseError("No text was returned from generateContent")
    return parse_questions(text)

def generate_questions(topic, number, input_type="topic"):
    topic, number, input_type = validate_generation_input(topic, number, input_type)
    logger.info("Generating %s questions from a %s", number, input_type)
    return fetch_content(build_prompt(topic, number, input_type))
