import logging
from logging.handlers import RotatingFileHandler

from .config import LOG_LEVEL, LOG_PATH


def setup_logger():
    logger = logging.getLogger("traceit")
    logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))

    # Prevent duplicate handlers when the module is imported twice
    if logger.handlers:
        return logger

    # Rotating file log: ~2MB per file, keep 5 backups
    handler = RotatingFileHandler(
        LOG_PATH,
        maxBytes=2_000_000,
        backupCount=5,
        encoding="utf-8"
    )

    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(message)s"
    )
    handler.setFormatter(formatter)

    logger.addHandler(handler)
    logger.propagate = False

    logger.info("Logger initialized at level %s", logging.getLevelName(logger.level))

    return logger


logger = setup_logger()
