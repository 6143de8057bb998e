import logging

from reelpipe.core.config import settings

_FORMAT = "%(asctime)s %(levelname)s:%(name)s:%(message)s"


def configure_logging(level: str | None = None) -> logging.Logger:
    """
    Attach one stream handler to the package logger.
    Safe to call from both the API and the Celery worker.
    """
    logger = logging.getLogger("reelpipe")
    logger.setLevel((level or settings.log_level or "INFO").upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        logger.addHandler(handler)
    return logger
