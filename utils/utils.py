import logging
from functools import wraps

from flask import g, jsonify, request

from utils.tokens import decode_jwt

logger = logging.getLogger(__name__)


def get_request_token():
    token = request.cookies.get("access_token")
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip()
    return None

def load_user():
    """Decode the request's token into ``g.user`` (None when absent or invalid)."""
    token = get_request_token()
    g.user = decode_jwt(token) if token else None
    return g.user

def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not get_request_token():
            logger.debug("No access token on request to %s", request.path)
            return jsonify({"error": "Unauthorized"}), 401

        if not load_user():
            return jsonify({"error": "Invalid token"}), 401

        return f(*args, **kwargs)

    return decorated_function

def role_required(*roles):
    def decorator(f):
        @wraps(f)
        @login_required
        def decorated_function(*args, **kwargs):
            if g.user.get("role") not in roles:
                return jsonify({"error": "Forbidden"}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator
