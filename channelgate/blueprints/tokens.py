from flask import Blueprint, g, jsonify, request

from ..db import to_iso
from ..errors import ExportError
from ..responses import determine_base_url
from ..services.access import authorize_user_device
from ..services.tokens import build_token_urls, get_or_create_token, rotate_token


def create_tokens_blueprint(state):
    """Self-service playlist token endpoints for an authenticated user."""
    bp = Blueprint("tokens", __name__, url_prefix="/api/exports")
    logger = state.logger
    authenticate = state.authenticate

    @bp.errorhandler(ExportError)
    def handle_export_error(error):
        return jsonify({"success": False, "message": error.message}), error.status_code

    def _requested_mac():
        payload = request.get_json(silent=True) or {}
        return request.args.get("mac") or payload.get("mac")

    def _token_payload(record, device, **extra):
        playlist_url, epg_url = build_token_urls(
            determine_base_url(state.getSettings()["public base url"]),
            record["token"],
            device["mac_address"],
        )
        return jsonify({
            "success": True,
            "data": {
                "token": record["token"],
                "playlistUrl": playlist_url,
                "epgUrl": epg_url,
                "expiresAt": to_iso(record["expires_at"]),
                **extra,
            },
        })

    @bp.route("/playlist-token", methods=["GET"])
    @authenticate
    def get_playlist_token():
        now = state.clock()
        conn = state.get_db_connection()
        try:
            granted = authorize_user_device(conn, g.user, _requested_mac(), now)
            record = get_or_create_token(
                conn, granted.device, g.user["id"], now,
                state.getSettings()["playlist token ttl days"],
            )
        except ExportError:
            raise
        except Exception as e:
            logger.error(f"Get playlist token error: {e}")
            return jsonify({"success": False, "message": "Server error"}), 500
        finally:
            conn.close()
        return _token_payload(record, granted.device)

    @bp.route("/playlist-token", methods=["POST"])
    @authenticate
    def rotate_playlist_token():
        now = state.clock()
        conn = state.get_db_connection()
        try:
            granted = authorize_user_device(conn, g.user, _requested_mac(), now)
            record = rotate_token(
                conn, granted.device, g.user["id"], now,
                state.getSettings()["playlist token ttl days"],
            )
        except ExportError:
            raise
        except Exception as e:
            logger.error(f"Rotate playlist token error: {e}")
            return jsonify({"success": False, "message": "Server error"}), 500
        finally:
            conn.close()
        return _token_payload(record, granted.device, rotated=True)

    return bp
