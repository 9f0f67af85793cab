import logging
import uuid

from ..db import to_ts
from ..errors import ValidationError
from ..mac import normalize_mac
from .users import find_active_admin

logger = logging.getLogger("ChannelGate")

DEVICE_STATUSES = ("PENDING", "ACTIVE", "REVOKED")

_DEVICE_COLUMNS = "id, user_id, mac_address, name, status, created_at, updated_at"


def _require_mac(mac):
    normalized = normalize_mac(mac)
    if not normalized:
        raise ValidationError("Invalid MAC address format")
    return normalized


def get_device(conn, device_id):
    row = conn.execute(
        f"SELECT {_DEVICE_COLUMNS} FROM devices WHERE id = ?", (device_id,)
    ).fetchone()
    return dict(row) if row else None


def _get_by_owner(conn, user_id, normalized_mac):
    row = conn.execute(
        f"SELECT {_DEVICE_COLUMNS} FROM devices WHERE user_id = ? AND mac_address = ?",
        (user_id, normalized_mac),
    ).fetchone()
    return dict(row) if row else None


def _upsert(conn, user_id, normalized_mac, now, *, name, update_name):
    ts = to_ts(now)
    on_conflict = "status = 'ACTIVE', updated_at = excluded.updated_at"
    if update_name:
        on_conflict = "name = excluded.name, " + on_conflict
    conn.execute(
        f"""
        INSERT INTO devices (id, user_id, mac_address, name, status, created_at, updated_at)
        VALUES (?, ?, ?, ?, 'ACTIVE', ?, ?)
        ON CONFLICT(user_id, mac_address) DO UPDATE SET {on_conflict}
        """,
        (uuid.uuid4().hex, user_id, normalized_mac, name, ts, ts),
    )
    conn.commit()
    return _get_by_owner(conn, user_id, normalized_mac)


def register_device(conn, user_id, mac, now, name=None):
    """Create or re-activate the (user, MAC) device."""
    normalized = _require_mac(mac)
    name = name.strip() if name else None
    return _upsert(conn, user_id, normalized, now, name=name, update_name=True)


def list_devices(conn, user_id, status=None, search=None):
    query = f"SELECT {_DEVICE_COLUMNS} FROM devices WHERE user_id = ?"
    params = [user_id]
    if status:
        query += " AND status = ?"
        params.append(status)
    if search:
        query += " AND (LOWER(mac_address) LIKE ? OR LOWER(COALESCE(name, '')) LIKE ?)"
        needle = f"%{search.strip().lower()}%"
        params.extend([needle, needle])
    query += " ORDER BY created_at DESC"
    return [dict(row) for row in conn.execute(query, params).fetchall()]


def list_all_devices(conn, status=None):
    query = f"SELECT {_DEVICE_COLUMNS} FROM devices"
    params = []
    if status:
        query += " WHERE status = ?"
        params.append(status)
    query += " ORDER BY created_at DESC"
    return [dict(row) for row in conn.execute(query, params).fetchall()]


def find_active_device(conn, user_id, mac):
    normalized = normalize_mac(mac)
    if not normalized:
        return None
    device = _get_by_owner(conn, user_id, normalized)
    if device and device["status"] == "ACTIVE":
        return device
    return None


def find_active_device_by_mac(conn, mac):
    """ACTIVE device on this MAC whose owner is active, any owner."""
    normalized = normalize_mac(mac)
    if not normalized:
        return None
    row = conn.execute(
        """
        SELECT d.id, d.user_id, d.mac_address, d.name, d.status, d.created_at, d.updated_at
        FROM devices d
        JOIN users u ON u.id = d.user_id
        WHERE d.mac_address = ? AND d.status = 'ACTIVE' AND u.is_active = 1
        ORDER BY d.updated_at DESC
        LIMIT 1
        """,
        (normalized,),
    ).fetchone()
    return dict(row) if row else None


def ensure_auto_activated_device(conn, mac, email, now):
    """Bind an unknown MAC to the trusted admin account, if one is configured."""
    normalized = normalize_mac(mac)
    if not email or not normalized:
        return None

    admin = find_active_admin(conn, email)
    if not admin:
        logger.warning(f"Auto-activation skipped: no active admin account for {email}")
        return None

    device = _upsert(
        conn,
        admin["id"],
        normalized,
        now,
        name=f"Auto-activated {normalized}",
        update_name=False,
    )
    logger.info(f"Auto-activated device {normalized} for {email}")
    return device


def activate_device(conn, mac, now, user_id=None, name=None):
    """Administrative activation.

    With an explicit owner this is a plain registration. Without one, an
    existing row for the MAC is re-activated for its current owner, or a new
    device is created under the oldest active ADMIN.
    """
    normalized = _require_mac(mac)
    name = name.strip() if name else None

    if user_id:
        return _upsert(
            conn, user_id, normalized, now,
            name=name or f"Smart TV {normalized}", update_name=True,
        )

    row = conn.execute(
        f"""
        SELECT {_DEVICE_COLUMNS} FROM devices WHERE mac_address = ?
        ORDER BY updated_at DESC LIMIT 1
        """,
        (normalized,),
    ).fetchone()
    if row:
        existing = dict(row)
        return _upsert(
            conn, existing["user_id"], normalized, now,
            name=name or existing["name"] or f"Smart TV {normalized}",
            update_name=True,
        )

    admin = find_active_admin(conn)
    if not admin:
        raise ValidationError("No admin user found")
    return _upsert(
        conn, admin["id"], normalized, now,
        name=name or f"Smart TV {normalized}", update_name=True,
    )


def set_device_status(conn, device_id, status, now):
    if status not in DEVICE_STATUSES:
        raise ValidationError(f"Invalid device status: {status}")
    cursor = conn.execute(
        "UPDATE devices SET status = ?, updated_at = ? WHERE id = ?",
        (status, to_ts(now), device_id),
    )
    conn.commit()
    if cursor.rowcount == 0:
        return None
    logger.info(f"Device {device_id} status set to {status}")
    return get_device(conn, device_id)
