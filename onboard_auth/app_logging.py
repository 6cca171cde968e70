import logging
from typing import Optional

from pythonjsonlogger import jsonlogger

from . import config


def _is_json_handler(handler: logging.Handler) -> bool:
    return isinstance(handler.formatter, jsonlogger.JsonFormatter)


def setup_logger(level: Optional[str] = None) -> logging.Logger:
    logger = logging.getLogger()
    # Repeated app factory calls share the root logger.
    if not any(_is_json_handler(handler) for handler in logger.handlers):
        logHandler = logging.StreamHandler()
        formatter = jsonlogger.JsonFormatter('%(asctime)s %(levelname)s %(name)s %(message)s',
                                             rename_fields={'levelname': 'level', 'asctime': 'timestamp'})
        logHandler.setFormatter(formatter)
        logger.addHandler(logHandler)
    if config.ONBOARD_AUTH_DEBUG:
        level = 'DEBUG'
    logger.setLevel(level or config.LOG_LEVEL)
    return logger
