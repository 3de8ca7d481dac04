"""Persistence for the quiz generator.

Quizzes, attempts and attempt limits live behind a small keyed storage port
(``get``/``set``/``remove``/``update``). One store is built at startup:
backed by a remote quiz API when ``QUIZGEN_API_BASE_URL`` is set, otherwise
by local JSON persistence.
"""
import copy
import json
import logging
import os
import tempfile
import threading
import time
from urllib.parse import quote

import requests

from classes.errors import ForbiddenError

logger = logging.getLogger(__name__)

QUIZ_STORAGE_KEY = "quizgen.quizzes.v1"
ATTEMPT_STORAGE_KEY = "quizgen.attempts.v1"
ATTEMPT_LIMITS_KEY = "quizgen.attemptLimits.v1"  # {quiz_id: limit}

ATTEMPT_LIMIT_MESSAGE = "Attempt limit reached for this quiz."


def _now_ms():
    return int(time.time() * 1000)

def _new_id(prefix, items):
    taken = {item.get("id") for item in items}
    stamp = _now_ms()
    while f"{prefix}_{stamp}" in taken:
        stamp += 1
    return f"{prefix}_{stamp}"

def _upsert(items, saved):
    for idx, existing in enumerate(items):
        if existing.get("id") == saved["id"]:
            items[idx] = saved
            return items
    items.append(saved)
    return items

def _parse_limit(value):
    try:
        return max(int(value or 0), 0)
    except (TypeError, ValueError):
        return 0


class MemoryStorage:
    def __init__(self):
        self._data = {}
        self._lock = threading.Lock()

    def get(self, key, default=None):
        with self._lock:
            return copy.deepcopy(self._data.get(key, default))

    def set(self, key, value):
        with self._lock:
            self._data[key] = copy.deepcopy(value)

    def remove(self, key):
        with self._lock:
            self._data.pop(key, None)

    def update(self, key, fn, default=None):
        """Replace the value under ``key`` with ``fn(current)`` while holding the lock."""
        with self._lock:
            value = fn(copy.deepcopy(self._data.get(key, default)))
            self._data[key] = copy.deepcopy(value)
            return value


class JsonFileStorage:
    """Keyed storage persisted as one JSON document on disk."""

    def __init__(self, path):
        self.path = path
        self._lock = threading.Lock()

    def _read_all(self):
        if not os.path.exists(self.path):
            return {}
        with open(self.path, encoding="utf-8") as fh:
            try:
                return json.load(fh)
            except ValueError:
                logger.warning("Quiz storage file %s is not valid JSON; starting empty", self.path)
                return {}

    def _write_all(self, data):
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        # a private temp file per write, then an atomic rename over the real file
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=directory, prefix=".quizgen-", suffix=".tmp", delete=False
        ) as fh:
            json.dump(data, fh)
            tmp_path = fh.name
        try:
            os.replace(tmp_path, self.path)
        except OSError:
            os.unlink(tmp_path)
            raise

    def get(self, key, default=None):
        with self._lock:
            return self._read_all().get(key, default)

    def set(self, key, value):
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def remove(self, key):
        with self._lock:
            data = self._read_all()
            if key in data:
                del data[key]
                self._write_all(data)

    def update(self, key, fn, default=None):
        with self._lock:
            data = self._read_all()
            value = fn(data.get(key, default))
            data[key] = value
            self._write_all(data)
            return value


class QuizApiClient:
    """Remote quiz/attempt API used instead of local storage when configured."""

    def __init__(self, base_url, token=None, timeout=30, session=None):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def _http(self, method, path, **kwargs):
        headers = {"content-type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        response = self.session.request(
            method, f"{self.base_url}{path}", headers=headers, timeout=self.timeout, **kwargs
        )
        if "application/json" in response.headers.get("content-type", ""):
            data = response.json()
        else:
            data = response.text
        if not response.ok:
            raise requests.HTTPError(f"API {response.status_code}: {json.dumps(data)}", response=response)
        return data

    def list_quizzes(self):
        return self._http("GET", "/quizzes")

    def get_quiz(self, quiz_id):
        """The quiz, or None when the API does not know it."""
        try:
            return self._http("GET", f"/quizzes/{quote(str(quiz_id), safe='')}")
        except requests.HTTPError as e:
            if e.response is not None and e.response.status_code == 404:
                return None
            raise

    def save_quiz(self, quiz):
        return self._http("POST", "/quizzes", json=quiz)

    def remove_quiz(self, quiz_id):
        return self._http("DELETE", f"/quizzes/{quote(str(quiz_id), safe='')}")

    def list_attempts_for_quiz(self, quiz_id):
        return self._http("GET", f"/attempts/{quote(str(quiz_id), safe='')}")

    def save_attempt(self, attempt, user=""):
        return self._http("POST", "/attempts", json={**attempt, "user": user})


class QuizStore:
    def __init__(self, storage, api=None):
        self.storage = storage
        self.api = api

    # quizzes

    def list_quizzes(self):
        if self.api:
            return self.api.list_quizzes()
        return list(self.storage.get(QUIZ_STORAGE_KEY, []) or [])

    def get_quiz(self, quiz_id):
        if self.api:
            return self.api.get_quiz(quiz_id)
        return next((q for q in self.list_quizzes() if q.get("id") == quiz_id), None)

    def save_quiz(self, quiz):
        if self.api:
            return self.api.save_quiz(quiz)
        saved = {}

        def _save(quizzes):
            quizzes = list(quizzes or [])
            saved.update(quiz)
            saved["id"] = quiz.get("id") or _new_id("q", quizzes)
            saved["createdAt"] = quiz.get("createdAt") or _now_ms()
            return _upsert(quizzes, dict(saved))

        self.storage.update(QUIZ_STORAGE_KEY, _save, [])
        return saved

    def remove_quiz(self, quiz_id):
        if self.api:
            return self.api.remove_quiz(quiz_id)
        self.storage.update(
            QUIZ_STORAGE_KEY, lambda quizzes: [q for q in quizzes or [] if q.get("id") != quiz_id], []
        )

    # attempts

    def list_attempts_for_quiz(self, quiz_id):
        if self.api:
            return self.api.list_attempts_for_quiz(quiz_id)
        attempts = self.storage.get(ATTEMPT_STORAGE_KEY, []) or []
        return [a for a in attempts if a.get("quizId") == quiz_id]

    def count_user_attempts_for_quiz(self, quiz_id, user):
        if not user:
            return 0
        return len([a for a in self.list_attempts_for_quiz(quiz_id) if a.get("user") == user])

    def record_attempt(self, attempt, user="", limit=0):
        """Save ``attempt`` for ``user`` unless they already used ``limit`` attempts (0 = unlimited).

        Returns ``(saved_attempt, attempts_used)``, the count including this one.
        Raises ForbiddenError once the limit is reached.
        """
        quiz_id = attempt.get("quizId")
        if self.api:
            # the remote API offers no atomic check-and-save
            used = self.count_user_attempts_for_quiz(quiz_id, user) if limit else 0
            if limit and used >= limit:
                raise ForbiddenError(ATTEMPT_LIMIT_MESSAGE)
            return self.api.save_attempt(attempt, user), used + 1

        saved = {}
        used = []

        def _record(attempts):
            attempts = list(attempts or [])
            mine = [a for a in attempts if a.get("quizId") == quiz_id and user and a.get("user") == user]
            if limit and len(mine) >= limit:
                raise ForbiddenError(ATTEMPT_LIMIT_MESSAGE)
            saved.update(attempt)
            saved["id"] = attempt.get("id") or _new_id("a", attempts)
            saved["user"] = user
            saved["createdAt"] = attempt.get("createdAt") or _now_ms()
            used.append(len(mine) + 1)
            return _upsert(attempts, dict(saved))

        self.storage.update(ATTEMPT_STORAGE_KEY, _record, [])
        return saved, used[0]

    def save_attempt(self, attempt, user=""):
        return self.record_attempt(attempt, user)[0]

    # attempt limits, 0 means unlimited

    def get_attempt_limit(self, quiz_id):
        limits = self.storage.get(ATTEMPT_LIMITS_KEY, {}) or {}
        return _parse_limit(limits.get(quiz_id))

    def set_attempt_limit(self, quiz_id, limit):
        limit = _parse_limit(limit)

        def _set(limits):
            limits = dict(limits or {})
            limits[quiz_id] = limit
            return limits

        self.storage.update(ATTEMPT_LIMITS_KEY, _set, {})
        return limit

    def remove_attempt_limit(self, quiz_id):
        def _remove(limits):
            limits = dict(limits or {})
            limits.pop(quiz_id, None)
            return limits

        self.storage.update(ATTEMPT_LIMITS_KEY, _remove, {})


def build_quiz_store(config):
    """Choose the process-wide quiz store from configuration."""
    base_url = config.get("QUIZGEN_API_BASE_URL")
    path = config.get("QUIZGEN_STORAGE_PATH")
    storage = JsonFileStorage(path) if path else MemoryStorage()
    if base_url:
        logger.info("Quiz generator store: remote API at %s", base_url)
        return QuizStore(storage, api=QuizApiClient(base_url))
    logger.info("Quiz generator store: %s", f"local file {path}" if path else "in-memory")
    return QuizStore(storage)
