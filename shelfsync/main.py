"""Entrypoint for running the service."""
from __future__ import annotations

from .app import create_app
from .config import get_settings
from .logger import setup_logging


def run() -> None:
    """Convenience wrapper used by ``python -m shelfsync`` and the console script."""

    settings = get_settings()
    setup_logging(settings)
    app = create_app(settings)
    app.run(
        host=settings.host,
        port=settings.port,
        debug=settings.environment == "development",
    )


if __name__ == "__main__":
    run()
