"""Logging setup.

Textual captures stdout/stderr while the app runs, so debug output goes to a
file (``TUIGRAM_LOG_FILE``) and only when ``TUIGRAM_DEBUG`` is enabled.
"""
import logging

from .config import Settings

LOGGER_NAME = "tuigram"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(settings: Settings) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    if getattr(logger, "_tuigram_configured", False):
        return logger

    if settings.debug:
        logger.setLevel(logging.DEBUG)
        try:
            settings.log_file.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(str(settings.log_file), encoding="utf-8")
            fh.setLevel(logging.DEBUG)
            fh.setFormatter(logging.Formatter(LOG_FORMAT))
            logger.addHandler(fh)
        except OSError:
            logger.warning("could not open debug log file %s", settings.log_file)
    else:
        logger.setLevel(logging.WARNING)

    logger._tuigram_configured = True
    return logger
