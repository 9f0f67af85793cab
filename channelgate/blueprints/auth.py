from flask import Blueprint, jsonify, request
from werkzeug.security import check_password_hash

from ..security import sign_user_token
from ..services.users import find_user_by_email


def create_auth_blueprint(state):
    bp = Blueprint("auth", __name__, url_prefix="/api/auth")
    logger = state.logger

    @bp.route("/token", methods=["POST"])
    def issue_token():
        payload = request.get_json(silent=True) or {}
        email = (payload.get("email") or "").strip().lower()
        password = payload.get("password") or ""
        if not (email and password):
            return jsonify({"success": False, "message": "email and password required"}), 400

        conn = state.get_db_connection()
        try:
            user = find_user_by_email(conn, email)
        finally:
            conn.close()

        if (
            not user
            or not user["is_active"]
            or not user.get("password_hash")
            or not check_password_hash(user["password_hash"], password)
        ):
            logger.info(f"Rejected login for {email}")
            return jsonify({"success": False, "message": "Invalid credentials"}), 401

        token = sign_user_token(user["id"], state.getSettings()["secret key"])
        return jsonify({
            "success": True,
            "data": {
                "token": token,
                "tokenType": "bearer",
                "user": {"id": user["id"], "email": user["email"], "role": user["role"]},
            },
        })

    return bp
