"""Logging setup"""
import logging

from app.core.config import settings

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once at startup; level defaults to LOG_LEVEL."""
    logging.basicConfig(level=(level or settings.LOG_LEVEL).upper(), format=_FORMAT)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
