import logging
import sys
from typing import Optional

from pythonjsonlogger import jsonlogger

from core.environment import get_log_level

# Infrastructure loggers that only matter when something goes wrong
QUIET_LOGGERS = ("sqlalchemy", "sqlalchemy.engine", "asyncpg", "aiosqlite", "httpx")


def setup_logging(level: Optional[str] = None):
    """
    Configures JSON logging on stdout for the API, the seed script and the
    periodic maintenance job.

    Structured ``extra`` fields (chassis_id, engine_id, counts, ...) are
    emitted as top-level JSON keys so log queries can filter on them.
    """
    level = (level or get_log_level()).upper()

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Re-running setup (tests, scripts) must not duplicate lines
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    log_handler = logging.StreamHandler(sys.stdout)
    log_handler.setFormatter(
        jsonlogger.JsonFormatter(
            fmt='%(asctime)s %(levelname)s %(name)s %(message)s',
            datefmt='%Y-%m-%dT%H:%M:%SZ'
        )
    )
    root_logger.addHandler(log_handler)

    logging.getLogger("services").setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root_logger.info("Logging initialized", extra={"level": level})
