import logging
from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

def setup_logging(level: str = None):
    """Configure root logging once for the API process."""
    level_name = (level or settings.log_level).upper()
    logging.basicConfig(level=getattr(logging, level_name, logging.INFO), format=LOG_FORMAT)
    # Motor/pymongo are chatty at DEBUG
    logging.getLogger("pymongo").setLevel(logging.WARNING)
