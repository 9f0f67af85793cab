import gzip
import logging
import re

from flask import Response, request

logger = logging.getLogger("ChannelGate")

M3U_MIMETYPE = "application/x-mpegURL; charset=utf-8"
XML_MIMETYPE = "application/xml; charset=utf-8"

_HOST_RE = re.compile(r"^[A-Za-z0-9.\-]+(:\d+)?$|^\[[0-9A-Fa-f:.]+\](:\d+)?$")
_SCHEMES = ("http", "https")


def _first_value(header):
    value = request.headers.get(header)
    return value.split(",")[0].strip() if value else ""


def determine_base_url(public_base_url=""):
    """Configured base URL, else the forwarded or request scheme and host.

    Forwarded values that do not look like a scheme or host are ignored.
    """
    if public_base_url:
        return public_base_url.rstrip("/")

    scheme = _first_value("X-Forwarded-Proto").lower()
    if scheme not in _SCHEMES:
        scheme = request.scheme

    host = _first_value("X-Forwarded-Host")
    if not _HOST_RE.match(host):
        if host:
            logger.warning(f"Ignoring malformed X-Forwarded-Host: {host!r}")
        host = request.host
    return f"{scheme}://{host}"


def cache_control_value(ttl_seconds):
    if ttl_seconds and ttl_seconds > 0:
        return f"private, max-age={int(ttl_seconds)}"
    return "no-cache"


def accepts_gzip():
    accept = request.headers.get("Accept-Encoding", "")
    return any(
        part.split(";")[0].strip().lower() == "gzip"
        for part in accept.split(",")
    )


def export_response(body, *, content_type, filename, ttl_seconds,
                    inline=False, enable_gzip=True, cors=False):
    payload = body.encode("utf-8")
    headers = {
        "Content-Disposition": f'{"inline" if inline else "attachment"}; filename="{filename}"',
        "Cache-Control": cache_control_value(ttl_seconds),
        "Vary": "Accept-Encoding",
    }
    if cors:
        headers["Access-Control-Allow-Origin"] = "*"

    if enable_gzip and accepts_gzip():
        try:
            payload = gzip.compress(payload)
            headers["Content-Encoding"] = "gzip"
        except Exception as e:
            logger.warning(f"Gzip compression failed, sending identity body: {e}")
            payload = body.encode("utf-8")

    return Response(payload, status=200, headers=headers, content_type=content_type)
