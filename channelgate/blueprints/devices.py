from flask import Blueprint, g, jsonify, request

from ..db import to_iso
from ..errors import ExportError, ValidationError
from ..services.devices import DEVICE_STATUSES, list_devices, register_device

MAX_NAME_LENGTH = 100


def serialize_device(device):
    return {
        "id": device["id"],
        "userId": device["user_id"],
        "macAddress": device["mac_address"],
        "name": device["name"],
        "status": device["status"],
        "createdAt": to_iso(device.get("created_at")),
        "updatedAt": to_iso(device.get("updated_at")),
    }


def validate_status(status):
    if status and status not in DEVICE_STATUSES:
        raise ValidationError(f"status must be one of {', '.join(DEVICE_STATUSES)}")
    return status


def validate_name(name):
    if name is None:
        return None
    name = str(name).strip()
    if len(name) > MAX_NAME_LENGTH:
        raise ValidationError(f"name must be at most {MAX_NAME_LENGTH} characters")
    return name or None


def create_devices_blueprint(state):
    bp = Blueprint("devices", __name__, url_prefix="/api/devices")
    logger = state.logger
    authenticate = state.authenticate

    @bp.errorhandler(ExportError)
    def handle_export_error(error):
        return jsonify({"success": False, "message": error.message}), error.status_code

    @bp.route("", methods=["GET"])
    @authenticate
    def list_own_devices():
        status = validate_status(request.args.get("status"))
        search = (request.args.get("search") or "").strip()
        if len(search) > MAX_NAME_LENGTH:
            raise ValidationError(f"search must be at most {MAX_NAME_LENGTH} characters")

        conn = state.get_db_connection()
        try:
            devices = list_devices(conn, g.user["id"], status=status, search=search or None)
        finally:
            conn.close()
        return jsonify({
            "success": True,
            "data": {"devices": [serialize_device(d) for d in devices]},
        })

    @bp.route("", methods=["POST"])
    @authenticate
    def register_own_device():
        payload = request.get_json(silent=True) or {}
        mac = payload.get("macAddress")
        if not mac:
            raise ValidationError("MAC address is required")
        name = validate_name(payload.get("name"))

        conn = state.get_db_connection()
        try:
            device = register_device(conn, g.user["id"], mac, state.clock(), name=name)
        finally:
            conn.close()
        logger.info(f"Device {device['mac_address']} registered for user {g.user['id']}")
        return jsonify({"success": True, "data": {"device": serialize_device(device)}}), 201

    return bp
