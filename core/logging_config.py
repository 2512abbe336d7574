# core/logging_config.py
import logging
import os

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOGGER_NAME = "sakan"


def setup_logger(level: str = None) -> logging.Logger:
    """
    The app-wide "sakan" logger. Level comes from LOG_LEVEL
    (read from the environment so this module stays import-light).
    """
    logger = logging.getLogger(LOGGER_NAME)

    # uvicorn --reload imports main twice
    if logger.handlers:
        return logger

    level = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logger.setLevel(getattr(logging, level, logging.INFO))

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)

    return logger


logger = setup_logger()
