"""Root logger setup for the shelfsync entrypoint."""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Optional

from .config import Settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_MAX_BYTES = 2 * 1024 * 1024
LOG_BACKUPS = 3

_configured = False


def setup_logging(settings: Optional[Settings] = None) -> None:
    global _configured
    if _configured:
        return

    settings = settings or Settings()
    level = getattr(logging, settings.log_level, logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT)

    # Avoid duplicate handlers
    if not root.handlers:
        stream_handler = logging.StreamHandler(sys.stdout)
        stream_handler.setFormatter(formatter)
        root.addHandler(stream_handler)

        if settings.log_file is not None:
            try:
                settings.log_file.parent.mkdir(parents=True, exist_ok=True)
                file_handler = RotatingFileHandler(
                    settings.log_file,
                    maxBytes=LOG_MAX_BYTES,
                    backupCount=LOG_BACKUPS,
                    encoding="utf-8",
                )
            except OSError as exc:
                root.warning("Failed to initialize file logging: %s", exc)
            else:
                file_handler.setFormatter(formatter)
                root.addHandler(file_handler)

    _configured = True
