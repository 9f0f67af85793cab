from functools import wraps

from flask import g, jsonify, request
from itsdangerous import BadSignature, TimestampSigner

from .services.users import get_user, is_admin_role


def sign_user_token(user_id, secret_key):
    return TimestampSigner(secret_key).sign(str(user_id).encode()).decode()


def unsign_user_token(token, secret_key, max_age_seconds):
    try:
        return TimestampSigner(secret_key).unsign(token, max_age=max_age_seconds).decode()
    except BadSignature:
        return None


def _unauthorized(message):
    return jsonify({"success": False, "message": message}), 401


def make_authenticate(*, get_db_connection, get_settings):
    """Decorator loading the bearer's active user into ``g.user``."""

    def authenticate(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            header = request.headers.get("Authorization", "")
            token = header[len("Bearer "):].strip() if header.startswith("Bearer ") else ""
            if not token:
                return _unauthorized("No token provided, authorization denied")

            settings = get_settings()
            max_age = int(settings["session max age hours"]) * 3600
            user_id = unsign_user_token(token, settings["secret key"], max_age)
            if not user_id:
                return _unauthorized("Token is not valid")

            conn = get_db_connection()
            try:
                user = get_user(conn, user_id)
            finally:
                conn.close()
            if not user or not user["is_active"]:
                return _unauthorized("User not found or inactive")

            g.user = user
            return f(*args, **kwargs)

        return decorated

    return authenticate


def require_admin(f):
    @wraps(f)
    def decorated(*args, **kwargs):
        user = g.get("user")
        if not user or not is_admin_role(user["role"]):
            return jsonify({
                "success": False,
                "message": "Access denied. Insufficient permissions.",
            }), 403
        return f(*args, **kwargs)

    return decorated
