import logging
import sys

from app.core.config import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging() -> logging.Logger:
    """
    Configure the "app" logger hierarchy.

    Module loggers are named "app.<area>" and propagate here, so a single
    stdout handler covers the whole service.
    """
    level = logging.getLevelName(str(settings.LOG_LEVEL or "INFO").strip().upper())
    if not isinstance(level, int):
        level = logging.INFO

    logger = logging.getLogger("app")
    logger.setLevel(level)

    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)

    return logger


def mask_phone(phone: str | None) -> str:
    value = str(phone or "")
    if len(value) < 4:
        return value
    head = "".join("*" if ch.isdigit() else ch for ch in value[:-4])
    return head + value[-4:]
