"""
Logging configuration for Danbooru Explorer.
"""

import logging
from typing import Optional
from danbooru_explorer.config.constants import LOG_FORMAT, LOG_LEVEL


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger once for the whole application.

    Args:
        level: Log level name (DEBUG / INFO / WARNING / ERROR), defaults to
            DANBOORU_EXPLORER_LOG_LEVEL from the environment
    """
    logging.basicConfig(
        level=(level or LOG_LEVEL).upper(),
        format=LOG_FORMAT,
    )
    # urllib3 logs every pooled connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)
