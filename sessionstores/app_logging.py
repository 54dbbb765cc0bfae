"""Structured (JSON) logging for services that use the session store."""

import logging
from typing import Union

from pythonjsonlogger.json import JsonFormatter


def setup_logger(level: Union[int, str] = logging.DEBUG) -> logging.Logger:
    """Attach a JSON stream handler to the root logger."""
    handler = logging.StreamHandler()
    formatter = JsonFormatter(
        '%(asctime)s %(levelname)s %(name)s %(message)s',
        rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
    )
    handler.setFormatter(formatter)
    logger = logging.getLogger()
    logger.addHandler(handler)
    logger.setLevel(level)
    return logger
