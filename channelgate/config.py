import json
import os
import secrets
import tempfile
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
try:
    import fcntl  # Unix-only file locking
except ImportError:  # pragma: no cover - non-Unix platforms
    fcntl = None

DATA_DIR = os.getenv("DATA_DIR", "/app/data")
LOG_DIR = os.getenv("LOG_DIR", "/app/logs")

CONFIG_PATH = os.getenv("CONFIG", os.path.join(DATA_DIR, "ChannelGate.json"))

DB_PATH = os.getenv("DB_PATH", os.path.join(DATA_DIR, "channelgate.db"))

# Settings that may be forced from the environment (env wins over the file)
ENV_OVERRIDES = {
    "public base url": "PUBLIC_BASE_URL",
    "auto activate device email": "AUTO_ACTIVATE_DEVICE_EMAIL",
    "playlist token ttl days": "PLAYLIST_TOKEN_TTL_DAYS",
    "secret key": "APP_SECRET",
}

config = {}
_config_lock = threading.Lock()
_lock_path = CONFIG_PATH + ".lock"


def ensure_dirs():
    os.makedirs(os.path.dirname(CONFIG_PATH), exist_ok=True)
    os.makedirs(DATA_DIR, exist_ok=True)
    os.makedirs(LOG_DIR, exist_ok=True)


def is_true(value):
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        return value != 0
    return str(value).lower() == "true"


def _coerce_value(default, value):
    if value is None:
        return default
    if isinstance(default, bool):
        return is_true(value)
    if isinstance(default, int) and not isinstance(default, bool):
        try:
            return int(value)
        except (TypeError, ValueError):
            return default
    if isinstance(default, float):
        try:
            return float(value)
        except (TypeError, ValueError):
            return default
    if isinstance(default, str):
        return str(value)
    return value


def coerce_settings(settings):
    """Return a complete settings dict, every key typed like its default."""
    settings = settings or {}
    settings_out = {}
    for setting, default in defaultSettings.items():
        settings_out[setting] = _coerce_value(default, settings.get(setting))
    return settings_out


def apply_env_overrides(settings):
    for setting, env_name in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is not None and value.strip() != "":
            settings[setting] = _coerce_value(defaultSettings[setting], value.strip())
    settings["auto activate device email"] = (
        settings["auto activate device email"].strip().lower()
    )
    return settings


@contextmanager
def _file_lock():
    """Best-effort cross-process lock using fcntl on Unix."""
    if fcntl is None:
        yield
        return
    os.makedirs(os.path.dirname(_lock_path), exist_ok=True)
    with open(_lock_path, "w", encoding="utf-8") as lock_file:
        fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)


defaultSettings = {
    "public base url": "",
    "auto activate device email": "",
    "playlist token ttl days": 0,
    "playlist cache ttl seconds": 300,
    "playlist cache max entries": 200,
    "epg cache ttl seconds": 900,
    "epg cache max entries": 50,
    "epg default days": 7,
    "epg max days": 14,
    "enable gzip": True,
    "secret key": secrets.token_urlsafe(32),
    "session max age hours": 720,
}


def _write_config(data):
    config_dir = os.path.dirname(CONFIG_PATH)
    os.makedirs(config_dir, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w", delete=False, dir=config_dir, encoding="utf-8"
    ) as tmp:
        json.dump(data, tmp, indent=4)
        tmp_path = tmp.name
    os.replace(tmp_path, CONFIG_PATH)


def loadConfig():
    global config
    ensure_dirs()
    with _config_lock, _file_lock():
        try:
            with open(CONFIG_PATH, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            data = {}
        except (OSError, ValueError):
            # keep the unreadable file next to the fresh one
            ts = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S")
            backup_path = f"{CONFIG_PATH}.corrupt.{ts}"
            try:
                os.replace(CONFIG_PATH, backup_path)
            except OSError:
                pass
            data = {}

    data.setdefault("settings", {})
    data["settings"] = coerce_settings(data["settings"])

    with _file_lock():
        _write_config(data)

    # Env overrides are applied in memory only, never persisted
    data["settings"] = apply_env_overrides(dict(data["settings"]))
    config = data
    return data


def getSettings():
    return config["settings"]

