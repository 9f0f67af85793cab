from collections import namedtuple
from datetime import datetime, timedelta, timezone

from ..errors import ValidationError

GENERATOR_NAME = "ChannelGate"
DEFAULT_EPG_DAYS = 7
MAX_EPG_DAYS = 14

EpgWindow = namedtuple("EpgWindow", ["start", "end", "key"])

_XML_ESCAPES = (
    ("&", "&amp;"),
    ("<", "&lt;"),
    (">", "&gt;"),
    ('"', "&quot;"),
    ("'", "&apos;"),
)


def escape_xml(value):
    text = str(value)
    for char, entity in _XML_ESCAPES:
        text = text.replace(char, entity)
    return text


def format_xmltv_date(value):
    """``YYYYMMDDHHMMSS +0000`` for an epoch/datetime, "" if it cannot be read."""
    if value is None or isinstance(value, bool):
        return ""
    try:
        if isinstance(value, datetime):
            dt = value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        else:
            dt = datetime.fromtimestamp(float(value), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError, OSError):
        return ""
    return dt.astimezone(timezone.utc).strftime("%Y%m%d%H%M%S") + " +0000"


def parse_datetime(value):
    text = str(value).strip()
    if not text:
        return None
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_epg_window(start=None, end=None, days=None, *, now,
                     default_days=DEFAULT_EPG_DAYS, max_days=MAX_EPG_DAYS):
    """Resolve the requested guide window.

    ``days`` is clamped to [1, max_days]; an unreadable ``end`` falls back to
    ``start + days``. An unreadable ``start`` or an empty window is rejected.
    """
    try:
        days = min(max(int(days), 1), max_days)
    except (TypeError, ValueError):
        days = default_days

    explicit = bool(start) or bool(end)

    if start:
        start_dt = parse_datetime(start)
        if start_dt is None:
            raise ValidationError("Invalid EPG time range")
    else:
        start_dt = now

    end_dt = parse_datetime(end) if end else None
    if end_dt is None:
        try:
            end_dt = start_dt + timedelta(days=days)
        except OverflowError:
            raise ValidationError("Invalid EPG time range")

    if end_dt <= start_dt:
        raise ValidationError("Invalid EPG time range")

    if explicit:
        key = f"{start_dt.isoformat()}/{end_dt.isoformat()}"
    else:
        key = f"next:{days}d"
    return EpgWindow(start_dt, end_dt, key)


def _channel_xml_id(channel):
    return channel.get("epg_id") or channel.get("id")


def build_xmltv(channels, entries):
    lines = [
        '<?xml version="1.0" encoding="UTF-8"?>',
        f'<tv generator-info-name="{GENERATOR_NAME}">',
    ]

    seen = set()
    for channel in channels:
        xml_id = _channel_xml_id(channel)
        if not xml_id or xml_id in seen:
            continue
        seen.add(xml_id)
        lines.append(f'  <channel id="{escape_xml(xml_id)}">')
        lines.append(f"    <display-name>{escape_xml(channel.get('name') or 'Channel')}</display-name>")
        if channel.get("logo"):
            lines.append(f'    <icon src="{escape_xml(channel["logo"])}" />')
        lines.append("  </channel>")

    for entry in entries:
        xml_id = entry.get("channel_epg_id") or entry.get("channel_id")
        if not xml_id:
            continue
        start = format_xmltv_date(entry.get("start_ts"))
        stop = format_xmltv_date(entry.get("stop_ts"))
        if not start or not stop:
            continue
        lines.append(f'  <programme start="{start}" stop="{stop}" channel="{escape_xml(xml_id)}">')
        lines.append(f"    <title>{escape_xml(entry.get('title') or 'Program')}</title>")
        if entry.get("description"):
            lines.append(f"    <desc>{escape_xml(entry['description'])}</desc>")
        if entry.get("category"):
            lines.append(f"    <category>{escape_xml(entry['category'])}</category>")
        if entry.get("image"):
            lines.append(f'    <icon src="{escape_xml(entry["image"])}" />')
        lines.append("  </programme>")

    lines.append("</tv>")
    return "\n".join(lines)


def build_error_xmltv(message, now):
    """Single-channel guide carrying ``message``, for clients that choke on HTTP errors."""
    channel = {"id": "error", "name": message}
    entry = {
        "channel_id": "error",
        "start_ts": now.timestamp(),
        "stop_ts": (now + timedelta(days=1)).timestamp(),
        "title": message,
    }
    return build_xmltv([channel], [entry])
