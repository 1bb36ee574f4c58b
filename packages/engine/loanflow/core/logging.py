# This project was developed with assistance from AI tools.
"""Root logging setup for entry points (scripts, workers)."""

import logging

from .config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: int | None = None) -> None:
    """Configure the root logger once. DEBUG setting lowers the default level."""
    if level is None:
        level = logging.DEBUG if settings.DEBUG else logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
