class QuizPortalError(Exception):
    """Base class for errors the API reports to its caller as ``{"error": message}``."""

    status_code = 500
    message = "An unexpected error occurred"

    def __init__(self, message=None, status_code=None):
        super().__init__(message or self.message)
        if message is not None:
            self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {"error": self.message}


class ValidationError(QuizPortalError):
    status_code = 400
    message = "Invalid request"


class ForbiddenError(QuizPortalError):
    status_code = 403
    message = "Forbidden"


class NotFoundError(QuizPortalError):
    status_code = 404
    message = "Not found"


class ConflictError(QuizPortalError):
    status_code = 409
    message = "Conflict"


class MalformedResponseError(QuizPortalError):
    """The generative-AI provider answered with something that is not the expected JSON."""

    status_code = 502
    message = "Invalid JSON returned from the AI provider"


class UpstreamUnavailableError(QuizPortalError):
    """The generative-AI provider is overloaded; safe to retry."""

    status_code = 503
    message = "The AI provider is unavailable"
