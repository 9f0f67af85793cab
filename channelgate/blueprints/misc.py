from datetime import datetime, timezone

from flask import Blueprint, jsonify


def create_misc_blueprint():
    bp = Blueprint("misc", __name__)

    @bp.route("/health", methods=["GET"])
    def health():
        return jsonify({
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })

    return bp
