import logging
from datetime import datetime, timezone
from functools import partial

from flask import Flask

from .blueprints.admin import create_admin_blueprint
from .blueprints.auth import create_auth_blueprint
from .blueprints.devices import create_devices_blueprint
from .blueprints.exports import create_exports_blueprint
from .blueprints.misc import create_misc_blueprint
from .blueprints.tokens import create_tokens_blueprint
from .config import DB_PATH, coerce_settings, getSettings
from .db import get_db_connection, init_db
from .runtime_state import AuthState, ExportState, ManagementState, RuntimeState
from .security import make_authenticate
from .services.render_cache import RenderCache
from .services.tokens import backfill_token_expiry


def utc_now():
    return datetime.now(timezone.utc)


def create_app(settings=None, db_path=None, clock=None):
    """Build the Flask app.

    ``settings`` defaults to the loaded config file; ``clock`` returns an
    aware UTC datetime and drives token expiry, subscriptions and caches.
    """
    logger = logging.getLogger("ChannelGate")
    settings = coerce_settings(settings) if settings is not None else getSettings()
    db_path = db_path or DB_PATH
    clock = clock or utc_now

    init_db(db_path, logger)

    ttl_days = settings["playlist token ttl days"]
    if ttl_days > 0:
        conn = get_db_connection(db_path)
        try:
            backfill_token_expiry(conn, ttl_days, clock())
        finally:
            conn.close()

    def get_settings():
        return settings

    def cache_clock():
        return clock().timestamp()

    db_connection = partial(get_db_connection, db_path)
    authenticate = make_authenticate(
        get_db_connection=db_connection, get_settings=get_settings
    )

    state = RuntimeState(
        logger=logger,
        exports=ExportState(
            logger=logger,
            get_db_connection=db_connection,
            getSettings=get_settings,
            clock=clock,
            playlist_cache=RenderCache(
                max_entries=settings["playlist cache max entries"],
                ttl_seconds=settings["playlist cache ttl seconds"],
                clock=cache_clock,
            ),
            epg_cache=RenderCache(
                max_entries=settings["epg cache max entries"],
                ttl_seconds=settings["epg cache ttl seconds"],
                clock=cache_clock,
            ),
        ),
        management=ManagementState(
            logger=logger,
            get_db_connection=db_connection,
            getSettings=get_settings,
            clock=clock,
            authenticate=authenticate,
        ),
        auth=AuthState(
            logger=logger,
            get_db_connection=db_connection,
            getSettings=get_settings,
        ),
    )

    app = Flask(__name__)
    app.register_blueprint(create_exports_blueprint(state.exports))
    app.register_blueprint(create_tokens_blueprint(state.management))
    app.register_blueprint(create_devices_blueprint(state.management))
    app.register_blueprint(create_admin_blueprint(state.management))
    app.register_blueprint(create_auth_blueprint(state.auth))
    app.register_blueprint(create_misc_blueprint())

    logger.info(
        "Caches: playlist ttl=%ss max=%s, epg ttl=%ss max=%s",
        settings["playlist cache ttl seconds"],
        settings["playlist cache max entries"],
        settings["epg cache ttl seconds"],
        settings["epg cache max entries"],
    )
    return app
