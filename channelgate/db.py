import os
import sqlite3
from datetime import datetime, timezone

from .config import DB_PATH


def get_db_connection(db_path=None):
    """Get a database connection."""
    db_path = db_path or os.getenv("DB_PATH", DB_PATH)
    if db_path.startswith("file:"):
        conn = sqlite3.connect(db_path, uri=True)
    else:
        conn = sqlite3.connect(db_path)
    conn.execute("PRAGMA busy_timeout = 5000;")
    conn.execute("PRAGMA journal_mode = WAL;")
    conn.execute("PRAGMA foreign_keys = ON;")
    conn.row_factory = sqlite3.Row
    return conn


def to_ts(value):
    """Epoch seconds for an aware datetime (naive values are taken as UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def from_ts(value):
    if value is None:
        return None
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


def to_iso(value):
    """ISO-8601 string for a stored timestamp, None when unset."""
    dt = from_ts(value)
    return dt.isoformat() if dt else None


def init_db(db_path, logger):
    """Initialize the database and create tables if they don't exist."""
    conn = get_db_connection(db_path)
    cursor = conn.cursor()

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS users (
            id TEXT PRIMARY KEY,
            email TEXT NOT NULL UNIQUE,
            username TEXT,
            password_hash TEXT,
            role TEXT NOT NULL DEFAULT 'USER',
            is_active INTEGER NOT NULL DEFAULT 1,
            created_at REAL
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS devices (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            mac_address TEXT NOT NULL,
            name TEXT,
            status TEXT NOT NULL DEFAULT 'PENDING',
            created_at REAL,
            updated_at REAL,
            UNIQUE (user_id, mac_address)
        )
    ''')

    cursor.execute('''
        CREATE INDEX IF NOT EXISTS idx_devices_mac_address
        ON devices(mac_address)
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS playlist_tokens (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            device_id TEXT NOT NULL UNIQUE REFERENCES devices(id) ON DELETE CASCADE,
            token TEXT NOT NULL UNIQUE,
            expires_at REAL,
            last_used_at REAL,
            created_at REAL,
            updated_at REAL
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS plans (
            id TEXT PRIMARY KEY,
            name TEXT
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS subscriptions (
            id TEXT PRIMARY KEY,
            user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            plan_id TEXT NOT NULL REFERENCES plans(id),
            status TEXT NOT NULL DEFAULT 'PENDING',
            start_date REAL,
            end_date REAL
        )
    ''')

    cursor.execute('''
        CREATE INDEX IF NOT EXISTS idx_subscriptions_user_status
        ON subscriptions(user_id, status)
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS channels (
            id TEXT PRIMARY KEY,
            name TEXT,
            stream_url TEXT,
            logo TEXT,
            category TEXT,
            country TEXT,
            language TEXT,
            epg_id TEXT,
            is_active INTEGER NOT NULL DEFAULT 1,
            is_live INTEGER NOT NULL DEFAULT 1,
            sort_order INTEGER NOT NULL DEFAULT 0
        )
    ''')

    cursor.execute('''
        CREATE INDEX IF NOT EXISTS idx_channels_active_live
        ON channels(is_active, is_live)
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS channel_access (
            plan_id TEXT NOT NULL REFERENCES plans(id) ON DELETE CASCADE,
            channel_id TEXT NOT NULL REFERENCES channels(id) ON DELETE CASCADE,
            PRIMARY KEY (plan_id, channel_id)
        )
    ''')

    cursor.execute('''
        CREATE TABLE IF NOT EXISTS epg_entries (
            id TEXT PRIMARY KEY,
            channel_id TEXT NOT NULL REFERENCES channels(id) ON DELETE CASCADE,
            start_ts REAL,
            stop_ts REAL,
            title TEXT,
            description TEXT,
            category TEXT,
            image TEXT
        )
    ''')

    cursor.execute('''
        CREATE INDEX IF NOT EXISTS idx_epg_entries_channel_start
        ON epg_entries(channel_id, start_ts)
    ''')

    conn.commit()
    conn.close()
    logger.info(f"Database initialized at {db_path}")
