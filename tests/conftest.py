import logging
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from werkzeug.security import generate_password_hash

from channelgate.db import get_db_connection, init_db, to_ts
from channelgate.security import sign_user_token
from channelgate.server import create_app

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)
SECRET = "test-secret"

TEST_SETTINGS = {
    "secret key": SECRET,
    "public base url": "http://tv.example",
    "playlist cache ttl seconds": 300,
    "epg cache ttl seconds": 900,
}


class FakeClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now = self.now + timedelta(**kwargs)


class Seeder:
    """Writes catalog/subscription rows the way the external stores would."""

    def __init__(self, conn, clock):
        self.conn = conn
        self.clock = clock

    def _insert(self, table, **values):
        columns = ", ".join(values)
        placeholders = ", ".join("?" for _ in values)
        self.conn.execute(
            f"INSERT INTO {table} ({columns}) VALUES ({placeholders})",
            list(values.values()),
        )
        self.conn.commit()

    def user(self, role="USER", email=None, active=True, password=None):
        user_id = uuid.uuid4().hex
        self._insert(
            "users",
            id=user_id,
            email=email or f"{user_id[:8]}@example.com",
            username=user_id[:8],
            password_hash=generate_password_hash(password) if password else None,
            role=role,
            is_active=1 if active else 0,
            created_at=to_ts(self.clock()),
        )
        return user_id

    def plan(self, name="Basic"):
        plan_id = uuid.uuid4().hex
        self._insert("plans", id=plan_id, name=name)
        return plan_id

    def channel(self, channel_id, name=None, **fields):
        values = {
            "id": channel_id,
            "name": name or channel_id,
            "stream_url": f"http://streams.example/{channel_id}.m3u8",
            "is_active": 1,
            "is_live": 1,
            "sort_order": 0,
        }
        values.update(fields)
        self._insert("channels", **values)
        return channel_id

    def grant(self, plan_id, *channel_ids):
        for channel_id in channel_ids:
            self._insert("channel_access", plan_id=plan_id, channel_id=channel_id)

    def subscription(self, user_id, plan_id, status="ACTIVE", end=None):
        end = end or self.clock() + timedelta(days=30)
        self._insert(
            "subscriptions",
            id=uuid.uuid4().hex,
            user_id=user_id,
            plan_id=plan_id,
            status=status,
            start_date=to_ts(self.clock() - timedelta(days=1)),
            end_date=to_ts(end),
        )

    def device(self, user_id, mac, status="ACTIVE", name=None):
        device_id = uuid.uuid4().hex
        ts = to_ts(self.clock())
        self._insert(
            "devices",
            id=device_id,
            user_id=user_id,
            mac_address=mac,
            name=name,
            status=status,
            created_at=ts,
            updated_at=ts,
        )
        row = self.conn.execute("SELECT * FROM devices WHERE id = ?", (device_id,)).fetchone()
        return dict(row)

    def token(self, device, value=None, expires_at=None):
        value = value or uuid.uuid4().hex * 2
        ts = to_ts(self.clock())
        self._insert(
            "playlist_tokens",
            id=uuid.uuid4().hex,
            user_id=device["user_id"],
            device_id=device["id"],
            token=value,
            expires_at=to_ts(expires_at) if expires_at else None,
            created_at=ts,
            updated_at=ts,
        )
        return value

    def epg(self, channel_id, start, stop, title="Show", **fields):
        self._insert(
            "epg_entries",
            id=uuid.uuid4().hex,
            channel_id=channel_id,
            start_ts=to_ts(start),
            stop_ts=to_ts(stop),
            title=title,
            **fields,
        )


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def db_path(tmp_path):
    path = str(tmp_path / "channelgate.db")
    init_db(path, logging.getLogger("ChannelGate"))
    return path


@pytest.fixture()
def conn(db_path):
    connection = get_db_connection(db_path)
    yield connection
    connection.close()


@pytest.fixture()
def seed(conn, clock):
    return Seeder(conn, clock)


@pytest.fixture()
def make_app(db_path, clock):
    def _make(**overrides):
        settings = dict(TEST_SETTINGS)
        settings.update(overrides)
        return create_app(settings=settings, db_path=db_path, clock=clock)

    return _make


@pytest.fixture()
def app(make_app):
    return make_app()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def bearer():
    def _bearer(user_id):
        return {"Authorization": f"Bearer {sign_user_token(user_id, SECRET)}"}

    return _bearer
