#!/usr/bin/env python3
import os
import logging

import waitress

from channelgate.config import (
    LOG_DIR,
    CONFIG_PATH,
    DB_PATH,
    loadConfig,
    getSettings,
)
from channelgate.server import create_app

logger = logging.getLogger("ChannelGate")
logger.setLevel(logging.INFO)
logFormat = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")

# Bind settings (container internal)
BIND_HOST = os.getenv("BIND_HOST", "0.0.0.0")
PORT = int(os.getenv("PORT", "8001"))
THREADS = int(os.getenv("THREADS", "16"))


def setup_logging():
    log_file_path = os.path.join(LOG_DIR, "ChannelGate.log")

    # File logging
    fileHandler = logging.FileHandler(log_file_path)
    fileHandler.setFormatter(logFormat)
    logger.addHandler(fileHandler)

    # Console logging (docker logs)
    consoleFormat = logging.Formatter("[%(levelname)s] %(message)s")
    consoleHandler = logging.StreamHandler()
    consoleHandler.setFormatter(consoleFormat)
    logger.addHandler(consoleHandler)


if __name__ == "__main__":
    loadConfig()
    setup_logging()

    settings = getSettings()
    logger.info(f"Using config file: {CONFIG_PATH}")
    logger.info(f"Using database file: {DB_PATH}")
    if settings["public base url"]:
        logger.info(f"Public BaseURL: {settings['public base url']}")
    if settings["auto activate device email"]:
        logger.warning(
            f"Auto-activation enabled: unknown MACs will be bound to {settings['auto activate device email']}"
        )

    app = create_app(settings)

    # Start the server
    if os.environ.get("TERM_PROGRAM") == "vscode":
        app.run(host=BIND_HOST, port=PORT, debug=True)
    else:
        waitress.serve(app, host=BIND_HOST, port=PORT, _quiet=True, threads=THREADS)
