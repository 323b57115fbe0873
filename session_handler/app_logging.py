"""JSON log output for services using the session handler."""

from typing import Optional

import logging

from pythonjsonlogger import jsonlogger

from . import config


def setup_logger(level: Optional[int] = None) -> logging.Logger:
    """
    Send structured log records from all loggers to stderr.

    If ``level`` is not given, ``LOGLEVEL`` from the environment is used.
    """
    log_handler = logging.StreamHandler()
    formatter = jsonlogger.JsonFormatter(
        '%(asctime)s %(levelname)s %(name)s %(message)s',
        rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
    )
    log_handler.setFormatter(formatter)
    logger = logging.getLogger()
    logger.addHandler(log_handler)
    logger.setLevel(config.LOGLEVEL if level is None else level)
    return logger
