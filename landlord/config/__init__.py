"""Landlord configuration -- environment settings and logging setup."""

import logging

from .settings import Settings, settings


def configure_logging(level: str | None = None) -> None:
    """Set the level of the ``landlord`` logger.

    Handlers are left to the host application.
    """
    logging.getLogger("landlord").setLevel(level or settings.LANDLORD_LOG_LEVEL)


__all__ = [
    "Settings",
    "configure_logging",
    "settings",
]
