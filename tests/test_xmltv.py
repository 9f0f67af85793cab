from datetime import datetime, timedelta, timezone

import pytest

from channelgate.errors import ValidationError
from channelgate.services.xmltv import (
    build_error_xmltv,
    build_xmltv,
    escape_xml,
    format_xmltv_date,
    parse_epg_window,
)

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


def test_format_xmltv_date():
    assert format_xmltv_date(NOW) == "20260115120000 +0000"
    assert format_xmltv_date(NOW.timestamp()) == "20260115120000 +0000"
    cet = timezone(timedelta(hours=1))
    assert format_xmltv_date(datetime(2026, 1, 15, 13, 0, tzinfo=cet)) == "20260115120000 +0000"


@pytest.mark.parametrize("value", [None, "not-a-time", float("nan")])
def test_format_xmltv_date_unreadable(value):
    assert format_xmltv_date(value) == ""


def test_escape_xml():
    assert escape_xml("""Tom & Jerry's <"Show">""") == (
        "Tom &amp; Jerry&apos;s &lt;&quot;Show&quot;&gt;"
    )


def test_build_document():
    channels = [{"id": "c1", "name": "One", "logo": "http://img/1.png", "epg_id": "one.tv"}]
    entries = [{
        "channel_id": "c1",
        "channel_epg_id": "one.tv",
        "start_ts": NOW.timestamp(),
        "stop_ts": (NOW + timedelta(hours=1)).timestamp(),
        "title": "News & Weather",
        "description": "Daily <live> update",
        "category": "News",
        "image": "http://img/show.png",
    }]
    assert build_xmltv(channels, entries) == "\n".join([
        '<?xml version="1.0" encoding="UTF-8"?>',
        '<tv generator-info-name="ChannelGate">',
        '  <channel id="one.tv">',
        "    <display-name>One</display-name>",
        '    <icon src="http://img/1.png" />',
        "  </channel>",
        '  <programme start="20260115120000 +0000" stop="20260115130000 +0000" channel="one.tv">',
        "    <title>News &amp; Weather</title>",
        "    <desc>Daily &lt;live&gt; update</desc>",
        "    <category>News</category>",
        '    <icon src="http://img/show.png" />',
        "  </programme>",
        "</tv>",
    ])


def test_channels_deduplicated_by_external_id_first_wins():
    channels = [
        {"id": "c1", "name": "First", "epg_id": "shared"},
        {"id": "c2", "name": "Second", "epg_id": "shared"},
        {"id": "c3", "name": "Third"},
    ]
    entries = [{
        "channel_id": "c2",
        "channel_epg_id": "shared",
        "start_ts": NOW.timestamp(),
        "stop_ts": NOW.timestamp() + 60,
        "title": "From second",
    }]
    body = build_xmltv(channels, entries)
    assert body.count('<channel id="shared">') == 1
    assert "<display-name>First</display-name>" in body
    assert "Second" not in body.split("<programme")[0]
    assert '<channel id="c3">' in body
    assert 'channel="shared"' in body


def test_entries_with_unreadable_times_or_no_channel_are_dropped():
    entries = [
        {"channel_id": "c1", "start_ts": None, "stop_ts": NOW.timestamp(), "title": "no start"},
        {"channel_id": "c1", "start_ts": NOW.timestamp(), "stop_ts": "garbage", "title": "bad stop"},
        {"channel_id": None, "start_ts": NOW.timestamp(), "stop_ts": NOW.timestamp() + 1, "title": "orphan"},
        {"channel_id": "c1", "start_ts": NOW.timestamp(), "stop_ts": NOW.timestamp() + 1},
    ]
    body = build_xmltv([{"id": "c1", "name": "One"}], entries)
    assert body.count("<programme") == 1
    assert "<title>Program</title>" in body


def test_error_guide():
    body = build_error_xmltv("Device not authorized", NOW)
    assert '<channel id="error">' in body
    assert "<title>Device not authorized</title>" in body


def test_default_window():
    window = parse_epg_window(now=NOW)
    assert window.start == NOW
    assert window.end == NOW + timedelta(days=7)
    assert window.key == "next:7d"


@pytest.mark.parametrize("days,expected", [("0", 1), ("-3", 1), ("3", 3), ("30", 14), ("abc", 7)])
def test_days_are_clamped(days, expected):
    window = parse_epg_window(days=days, now=NOW)
    assert window.end - window.start == timedelta(days=expected)


def test_explicit_window():
    window = parse_epg_window("2026-01-15T00:00:00Z", "2026-01-16T00:00:00Z", now=NOW)
    assert window.start == datetime(2026, 1, 15, tzinfo=timezone.utc)
    assert window.end == datetime(2026, 1, 16, tzinfo=timezone.utc)
    assert window.key == "2026-01-15T00:00:00+00:00/2026-01-16T00:00:00+00:00"


def test_unreadable_end_falls_back_to_days():
    window = parse_epg_window("2026-01-15T00:00:00Z", "whenever", "2", now=NOW)
    assert window.end == datetime(2026, 1, 17, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "start,end",
    [
        ("yesterday-ish", None),
        ("2026-01-16T00:00:00Z", "2026-01-15T00:00:00Z"),
        ("2026-01-15T00:00:00Z", "2026-01-15T00:00:00Z"),
        ("9999-12-30T00:00:00Z", None),
    ],
)
def test_invalid_windows_raise(start, end):
    with pytest.raises(ValidationError):
        parse_epg_window(start, end, now=NOW)
