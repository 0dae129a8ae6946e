# learner_analytics/utils/logger.py
import logging
import sys
from learner_analytics.utils.config import settings

# Get the logger instance for the engine.
logger = logging.getLogger("learner_analytics")

# Set the level from the settings file, defaulting to INFO if the level is invalid.
log_level = getattr(logging, settings.log_level, logging.INFO)
logger.setLevel(log_level)

# Clear any existing handlers to prevent duplicate logs on re-import.
if logger.hasHandlers():
    logger.handlers.clear()

handler = logging.StreamHandler(sys.stdout)
formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
handler.setFormatter(formatter)
logger.addHandler(handler)

# Keep engine logs out of the root logger of the host application.
logger.propagate = False
