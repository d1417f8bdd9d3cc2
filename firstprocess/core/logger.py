"""
Application logger.

All modules log through ``firstprocess_logger`` and pass structured context
with ``extra={...}`` so log handlers can pick those fields up.
"""

import logging
import os
import sys

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()
LOG_FORMAT = '%(asctime)s - %(name)s:%(levelname)s: %(filename)s:%(lineno)s - %(message)s'


def get_logger(name: str = 'firstprocess') -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(LOG_LEVEL)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(handler)
    logger.propagate = False
    return logger


firstprocess_logger = get_logger()
