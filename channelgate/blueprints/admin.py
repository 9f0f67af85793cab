from flask import Blueprint, jsonify, request

from ..errors import ExportError, ValidationError
from ..security import require_admin
from ..services.devices import activate_device, list_all_devices, set_device_status
from ..services.users import get_user
from .devices import serialize_device, validate_name, validate_status


def create_admin_blueprint(state):
    bp = Blueprint("admin", __name__, url_prefix="/api/admin")
    logger = state.logger
    authenticate = state.authenticate

    @bp.errorhandler(ExportError)
    def handle_export_error(error):
        return jsonify({"success": False, "message": error.message}), error.status_code

    @bp.route("/devices", methods=["GET"])
    @authenticate
    @require_admin
    def admin_list_devices():
        status = validate_status(request.args.get("status"))
        conn = state.get_db_connection()
        try:
            devices = list_all_devices(conn, status=status)
        finally:
            conn.close()
        return jsonify({
            "success": True,
            "data": {"devices": [serialize_device(d) for d in devices]},
        })

    @bp.route("/devices", methods=["POST"])
    @authenticate
    @require_admin
    def admin_activate_device():
        payload = request.get_json(silent=True) or {}
        mac = payload.get("macAddress")
        if not mac:
            raise ValidationError("MAC address is required")

        user_id = payload.get("userId") or None
        conn = state.get_db_connection()
        try:
            if user_id and not get_user(conn, user_id):
                raise ValidationError("User not found")
            device = activate_device(
                conn,
                mac,
                state.clock(),
                user_id=user_id,
                name=validate_name(payload.get("name")),
            )
        finally:
            conn.close()
        logger.info(f"Device {device['mac_address']} activated by administrator")
        return jsonify({"success": True, "data": {"device": serialize_device(device)}}), 201

    @bp.route("/devices/<device_id>", methods=["PATCH"])
    @authenticate
    @require_admin
    def admin_update_device(device_id):
        payload = request.get_json(silent=True) or {}
        status = payload.get("status")
        if not status:
            raise ValidationError("status is required")
        validate_status(status)

        conn = state.get_db_connection()
        try:
            device = set_device_status(conn, device_id, status, state.clock())
        finally:
            conn.close()
        if device is None:
            return jsonify({"success": False, "message": "Device not found"}), 404
        return jsonify({"success": True, "data": {"device": serialize_device(device)}})

    return bp
