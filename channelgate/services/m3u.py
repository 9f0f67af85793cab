import re

_NEWLINES = re.compile(r"\r\n|\r|\n")


def sanitize_m3u_value(value):
    """Make a value safe inside a quoted, single-line EXTINF attribute."""
    if not value:
        return ""
    text = str(value).replace('"', "'")
    return _NEWLINES.sub(" ", text).strip()


def build_m3u(channels, epg_url=None):
    epg_url = sanitize_m3u_value(epg_url)
    if epg_url:
        header = f'#EXTM3U url-tvg="{epg_url}" x-tvg-url="{epg_url}"'
    else:
        header = "#EXTM3U"
    lines = [header]

    for channel in channels:
        stream_url = channel.get("stream_url")
        if not stream_url or not str(stream_url).strip():
            continue

        name = sanitize_m3u_value(channel.get("name") or "Channel")
        attrs = [
            ("tvg-id", sanitize_m3u_value(channel.get("epg_id") or channel.get("id"))),
            ("tvg-name", name),
            ("tvg-logo", sanitize_m3u_value(channel.get("logo"))),
            ("group-title", sanitize_m3u_value(channel.get("category") or "Uncategorized")),
            ("tvg-country", sanitize_m3u_value(channel.get("country"))),
            ("tvg-language", sanitize_m3u_value(channel.get("language"))),
        ]
        attr_text = "".join(f' {key}="{value}"' for key, value in attrs if value)

        lines.append(f"#EXTINF:-1{attr_text},{name}")
        lines.append(str(stream_url))

    return "\n".join(lines)


def build_error_m3u(message, url):
    """One placeholder entry carrying ``message``, for clients that choke on HTTP errors."""
    channel = {"id": "error", "name": message, "category": "Error", "stream_url": url}
    return build_m3u([channel])
