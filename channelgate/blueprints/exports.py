from urllib.parse import quote

from flask import Blueprint, Response, jsonify, redirect, request
from werkzeug.exceptions import HTTPException

from ..db import to_iso
from ..errors import AuthorizationError, ExportError, InternalError
from ..mac import normalize_mac
from ..responses import M3U_MIMETYPE, XML_MIMETYPE, determine_base_url, export_response
from ..services.access import INVALID_TOKEN_MESSAGE, authorize_export, find_device_with_access
from ..services.catalog import fetch_epg_entries, get_accessible_channels
from ..services.m3u import build_error_m3u, build_m3u
from ..services.tokens import build_token_urls, get_or_create_token, touch_token_usage
from ..services.xmltv import build_error_xmltv, build_xmltv, parse_epg_window


def create_exports_blueprint(state):
    bp = Blueprint("exports", __name__, url_prefix="/api/exports")
    logger = state.logger
    playlist_cache = state.playlist_cache
    epg_cache = state.epg_cache

    @bp.errorhandler(ExportError)
    def handle_export_error(error):
        return Response(error.message, status=error.status_code, mimetype="text/plain")

    @bp.errorhandler(Exception)
    def handle_unexpected(error):
        if isinstance(error, HTTPException):
            return error
        logger.exception(f"Export error on {request.path}: {error}")
        internal = InternalError()
        return Response(internal.message, status=internal.status_code, mimetype="text/plain")

    def _ttl(cache):
        return cache.ttl_seconds if cache.enabled else 0

    def _render_playlist(conn, access, epg_url):
        cache_key = f"{access.cache_key}|{epg_url}"
        cached = playlist_cache.get(cache_key)
        if cached is not None:
            return cached
        logger.debug(f"Rendering playlist for {access.cache_key}")
        channels = get_accessible_channels(conn, access)
        body = build_m3u(channels, epg_url)
        playlist_cache.set(cache_key, body)
        return body

    def _render_epg(conn, access, window):
        cache_key = f"{access.cache_key}|{window.key}"
        cached = epg_cache.get(cache_key)
        if cached is not None:
            return cached
        logger.debug(f"Rendering EPG for {access.cache_key} ({window.key})")
        channels = get_accessible_channels(conn, access)
        entries = fetch_epg_entries(
            conn, [channel["id"] for channel in channels], window.start, window.end
        )
        body = build_xmltv(channels, entries)
        epg_cache.set(cache_key, body)
        return body

    def _requested_window(now):
        settings = state.getSettings()
        return parse_epg_window(
            request.args.get("start"),
            request.args.get("end"),
            request.args.get("days"),
            now=now,
            default_days=int(settings["epg default days"]),
            max_days=int(settings["epg max days"]),
        )

    def _base_url():
        return determine_base_url(state.getSettings()["public base url"])

    @bp.route("/m3u", methods=["GET"])
    def export_m3u():
        token = (request.args.get("token") or "").strip()
        mac = request.args.get("mac")
        now = state.clock()
        conn = state.get_db_connection()
        try:
            granted = authorize_export(conn, token, mac, now)
            _, epg_url = build_token_urls(_base_url(), token, granted.device["mac_address"])
            body = _render_playlist(conn, granted.access, epg_url)
            touch_token_usage(conn, granted.token["id"], now)
        finally:
            conn.close()

        return export_response(
            body,
            content_type=M3U_MIMETYPE,
            filename="playlist.m3u",
            ttl_seconds=_ttl(playlist_cache),
            enable_gzip=state.getSettings()["enable gzip"],
        )

    @bp.route("/epg.xml", methods=["GET"])
    def export_epg():
        token = (request.args.get("token") or "").strip()
        mac = request.args.get("mac")
        now = state.clock()
        conn = state.get_db_connection()
        try:
            granted = authorize_export(conn, token, mac, now)
            window = _requested_window(now)
            body = _render_epg(conn, granted.access, window)
            touch_token_usage(conn, granted.token["id"], now)
        finally:
            conn.close()

        return export_response(
            body,
            content_type=XML_MIMETYPE,
            filename="epg.xml",
            ttl_seconds=_ttl(epg_cache),
            enable_gzip=state.getSettings()["enable gzip"],
        )

    @bp.route("/health", methods=["GET"])
    def export_health():
        token = (request.args.get("token") or "").strip()
        mac = request.args.get("mac")
        now = state.clock()
        conn = state.get_db_connection()
        try:
            granted = authorize_export(conn, token, mac, now)
            channels = get_accessible_channels(conn, granted.access)
        except ExportError as e:
            return jsonify({"success": False, "status": "denied", "message": e.message}), e.status_code
        finally:
            conn.close()

        record = granted.token
        return jsonify({
            "success": True,
            "status": "ok",
            "data": {
                "access": granted.access.cache_key,
                "role": granted.user["role"],
                "device": {
                    "id": granted.device["id"],
                    "macAddress": granted.device["mac_address"],
                    "name": granted.device["name"],
                },
                "channelCount": len(channels),
                "token": {
                    "expiresAt": to_iso(record["expires_at"]),
                    "lastUsedAt": to_iso(record["last_used_at"]),
                },
                "serverTime": now.isoformat(),
            },
        })

    def _token_urls_for_mac(mac):
        now = state.clock()
        settings = state.getSettings()
        conn = state.get_db_connection()
        try:
            found = find_device_with_access(
                conn, mac, now, settings["auto activate device email"]
            )
            if not found:
                raise AuthorizationError(INVALID_TOKEN_MESSAGE, 401)
            record = get_or_create_token(
                conn, found.device, found.device["user_id"], now,
                settings["playlist token ttl days"],
            )
        finally:
            conn.close()
        return build_token_urls(_base_url(), record["token"], found.device["mac_address"])

    @bp.route("/mac/<mac>/m3u", methods=["GET"])
    def redirect_m3u(mac):
        playlist_url, _ = _token_urls_for_mac(mac)
        return redirect(playlist_url, code=302)

    @bp.route("/mac/<mac>/epg.xml", methods=["GET"])
    def redirect_epg(mac):
        _, epg_url = _token_urls_for_mac(mac)
        query = request.query_string.decode()
        if query:
            epg_url = f"{epg_url}&{query}"
        return redirect(epg_url, code=302)

    # Smart-TV clients: no redirects, permissive CORS, inline bodies and a
    # 200 placeholder document instead of an HTTP error status.

    def _direct_access(mac, now):
        settings = state.getSettings()
        conn = state.get_db_connection()
        try:
            return find_device_with_access(conn, mac, now, settings["auto activate device email"])
        finally:
            conn.close()

    @bp.route("/direct/<mac>/playlist.m3u", methods=["GET"])
    def direct_m3u(mac):
        now = state.clock()
        base_url = _base_url()
        found = _direct_access(mac, now)
        if not found:
            logger.info(f"Direct playlist denied for {normalize_mac(mac) or 'invalid MAC'}")
            body = build_error_m3u("Device not authorized", f"{base_url}/health")
            ttl = 0
        else:
            mac_path = quote(found.device["mac_address"], safe="")
            epg_url = f"{base_url}/api/exports/direct/{mac_path}/epg.xml"
            conn = state.get_db_connection()
            try:
                body = _render_playlist(conn, found.access, epg_url)
            finally:
                conn.close()
            ttl = _ttl(playlist_cache)

        return export_response(
            body,
            content_type=M3U_MIMETYPE,
            filename="playlist.m3u",
            ttl_seconds=ttl,
            inline=True,
            cors=True,
            enable_gzip=state.getSettings()["enable gzip"],
        )

    @bp.route("/direct/<mac>/epg.xml", methods=["GET"])
    def direct_epg(mac):
        now = state.clock()
        found = _direct_access(mac, now)
        if not found:
            logger.info(f"Direct EPG denied for {normalize_mac(mac) or 'invalid MAC'}")
            body = build_error_xmltv("Device not authorized", now)
            ttl = 0
        else:
            window = _requested_window(now)
            conn = state.get_db_connection()
            try:
                body = _render_epg(conn, found.access, window)
            finally:
                conn.close()
            ttl = _ttl(epg_cache)

        return export_response(
            body,
            content_type=XML_MIMETYPE,
            filename="epg.xml",
            ttl_seconds=ttl,
            inline=True,
            cors=True,
            enable_gzip=state.getSettings()["enable gzip"],
        )

    return bp
