"""
Process logging setup.

Call `setup_logging()` once at startup; modules log through
`logging.getLogger(__name__)`.
"""

import logging
import os
import sys
from typing import Optional

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """
    Configure the root logger to write to stderr.

    Args:
        level: Log level name. Falls back to the LOG_LEVEL env var, then INFO.
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    # ibapi logs every wire message at INFO
    logging.getLogger("ibapi").setLevel(max(numeric_level, logging.WARNING))
