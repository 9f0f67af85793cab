"""Token/MAC -> device -> user -> authorization class.

Every export request is classified exactly once into an
:class:`AuthorizationClass`; the catalog view and the render caches consume
that value and never look at roles themselves.
"""
from dataclasses import dataclass
from typing import Optional

from ..db import to_ts
from ..errors import AuthorizationError, ValidationError
from ..mac import normalize_mac
from .devices import ensure_auto_activated_device, find_active_device, find_active_device_by_mac
from .tokens import find_token
from .users import get_user, is_admin_role

INVALID_TOKEN_MESSAGE = "Invalid playlist token or device"
SUBSCRIPTION_REQUIRED_MESSAGE = "Active subscription required"


@dataclass(frozen=True)
class AuthorizationClass:
    kind: str
    plan_id: Optional[str] = None

    @property
    def is_admin(self):
        return self.kind == "admin"

    @property
    def is_denied(self):
        return self.kind == "denied"

    @property
    def cache_key(self):
        if self.kind == "subscriber":
            return f"plan:{self.plan_id}"
        return self.kind


ADMINISTRATIVE = AuthorizationClass("admin")
DENIED = AuthorizationClass("denied")


def subscriber(plan_id):
    return AuthorizationClass("subscriber", plan_id)


@dataclass
class TokenAccess:
    token: dict
    device: dict
    user: dict
    access: AuthorizationClass


@dataclass
class DeviceAccess:
    device: dict
    user: dict
    access: AuthorizationClass


def classify_user(conn, user, now):
    if is_admin_role(user["role"]):
        return ADMINISTRATIVE
    row = conn.execute(
        """
        SELECT plan_id FROM subscriptions
        WHERE user_id = ? AND status = 'ACTIVE' AND end_date >= ?
        ORDER BY end_date DESC
        LIMIT 1
        """,
        (user["id"], to_ts(now)),
    ).fetchone()
    if row is None:
        return DENIED
    return subscriber(row["plan_id"])


def resolve_token(conn, token, mac, now):
    """The token row with its device and user, or None if it may not be used."""
    if not token:
        return None
    normalized = normalize_mac(mac)
    if not normalized:
        return None

    record = find_token(conn, token)
    if not record:
        return None

    device = conn.execute(
        "SELECT id, user_id, mac_address, name, status FROM devices WHERE id = ?",
        (record["device_id"],),
    ).fetchone()
    if device is None or device["status"] != "ACTIVE":
        return None
    if device["mac_address"] != normalized:
        return None

    user = get_user(conn, device["user_id"])
    if not user or not user["is_active"]:
        return None

    if record["expires_at"] is not None and record["expires_at"] <= to_ts(now):
        return None

    return record, dict(device), user


def authorize_export(conn, token, mac, now):
    if not mac:
        raise ValidationError("MAC address is required")

    resolved = resolve_token(conn, (token or "").strip(), mac, now)
    if resolved is None:
        raise AuthorizationError(INVALID_TOKEN_MESSAGE, 401)
    record, device, user = resolved

    access = classify_user(conn, user, now)
    if access.is_denied:
        raise AuthorizationError(SUBSCRIPTION_REQUIRED_MESSAGE, 403)
    return TokenAccess(token=record, device=device, user=user, access=access)


def authorize_user_device(conn, user, mac, now):
    """Self-service path: an authenticated user managing one of their devices."""
    if not mac:
        raise ValidationError("MAC address is required")

    access = classify_user(conn, user, now)
    if access.is_denied:
        raise AuthorizationError(SUBSCRIPTION_REQUIRED_MESSAGE, 403)

    device = find_active_device(conn, user["id"], mac)
    if not device:
        raise AuthorizationError("Device not registered or inactive", 403)
    return DeviceAccess(device=device, user=user, access=access)


def find_device_with_access(conn, mac, now, auto_activate_email=None):
    """MAC-only lookup used by the redirect and direct endpoints."""
    if not normalize_mac(mac):
        return None

    device = find_active_device_by_mac(conn, mac)
    if not device:
        device = ensure_auto_activated_device(conn, mac, auto_activate_email, now)
    if not device:
        return None

    user = get_user(conn, device["user_id"])
    if not user or not user["is_active"]:
        return None

    access = classify_user(conn, user, now)
    if access.is_denied:
        return None
    return DeviceAccess(device=device, user=user, access=access)
