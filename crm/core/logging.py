"""
Logging setup.
"""

import logging

from crm.core.config import settings


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Configure the root logger once for the whole process."""
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )
    # SQL echo is controlled by the engine, keep the driver quiet
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
