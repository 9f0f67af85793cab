import logging
import secrets
import uuid
from datetime import timedelta
from urllib.parse import quote

from ..db import to_ts

logger = logging.getLogger("ChannelGate")

TOKEN_BYTES = 32

_TOKEN_COLUMNS = "id, user_id, device_id, token, expires_at, last_used_at, created_at, updated_at"


def new_token_value():
    return secrets.token_hex(TOKEN_BYTES)


def _expiry_ts(now, ttl_days):
    if not ttl_days or ttl_days <= 0:
        return None
    return to_ts(now + timedelta(days=ttl_days))


def get_token_for_device(conn, device_id):
    row = conn.execute(
        f"SELECT {_TOKEN_COLUMNS} FROM playlist_tokens WHERE device_id = ?",
        (device_id,),
    ).fetchone()
    return dict(row) if row else None


def find_token(conn, token):
    row = conn.execute(
        f"SELECT {_TOKEN_COLUMNS} FROM playlist_tokens WHERE token = ?",
        (token,),
    ).fetchone()
    return dict(row) if row else None


def get_or_create_token(conn, device, user_id, now, ttl_days=0):
    """Existing token for the device, or a freshly minted one."""
    record = get_token_for_device(conn, device["id"])
    if record:
        return record

    ts = to_ts(now)
    # Two first requests may race here; the device_id constraint keeps one.
    conn.execute(
        """
        INSERT INTO playlist_tokens (id, user_id, device_id, token, expires_at, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(device_id) DO NOTHING
        """,
        (uuid.uuid4().hex, user_id, device["id"], new_token_value(),
         _expiry_ts(now, ttl_days), ts, ts),
    )
    conn.commit()
    return get_token_for_device(conn, device["id"])


def rotate_token(conn, device, user_id, now, ttl_days=0):
    """Replace the device's token; the old value stops working at once."""
    ts = to_ts(now)
    conn.execute(
        """
        INSERT INTO playlist_tokens (id, user_id, device_id, token, expires_at, created_at, updated_at)
        VALUES (?, ?, ?, ?, ?, ?, ?)
        ON CONFLICT(device_id) DO UPDATE SET
            token = excluded.token,
            user_id = excluded.user_id,
            expires_at = excluded.expires_at,
            last_used_at = NULL,
            updated_at = excluded.updated_at
        """,
        (uuid.uuid4().hex, user_id, device["id"], new_token_value(),
         _expiry_ts(now, ttl_days), ts, ts),
    )
    conn.commit()
    logger.info(f"Playlist token rotated for device {device['mac_address']}")
    return get_token_for_device(conn, device["id"])


def touch_token_usage(conn, token_id, now):
    try:
        conn.execute(
            "UPDATE playlist_tokens SET last_used_at = ? WHERE id = ?",
            (to_ts(now), token_id),
        )
        conn.commit()
    except Exception as e:
        logger.warning(f"Failed to update playlist token usage: {e}")


def backfill_token_expiry(conn, ttl_days, now):
    """Stamp an expiry on tokens issued before the expiry policy existed."""
    expires_at = _expiry_ts(now, ttl_days)
    if expires_at is None:
        return 0
    cursor = conn.execute(
        "UPDATE playlist_tokens SET expires_at = ?, updated_at = ? WHERE expires_at IS NULL",
        (expires_at, to_ts(now)),
    )
    conn.commit()
    if cursor.rowcount:
        logger.info(f"Stamped a {ttl_days} day expiry on {cursor.rowcount} playlist token(s)")
    return cursor.rowcount


def build_token_urls(base_url, token, mac):
    encoded_mac = quote(mac, safe="")
    playlist_url = f"{base_url}/api/exports/m3u?token={token}&mac={encoded_mac}"
    epg_url = f"{base_url}/api/exports/epg.xml?token={token}&mac={encoded_mac}"
    return playlist_url, epg_url
