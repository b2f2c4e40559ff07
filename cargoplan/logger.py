import logging
import os
from logging.handlers import TimedRotatingFileHandler

logger = logging.getLogger("cargoplan")
logger.setLevel(os.getenv("CARGOPLAN_LOG_LEVEL", "INFO").upper())

formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

LOG_FILE = os.getenv("CARGOPLAN_LOG_FILE")

if not logger.handlers:
    if LOG_FILE:
        handler: logging.Handler = TimedRotatingFileHandler(
            filename=LOG_FILE,
            when='midnight',
            interval=1,
            backupCount=7,
            encoding='utf-8'
        )
    else:
        handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    logger.addHandler(handler)
