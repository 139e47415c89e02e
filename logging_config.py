"""Logging configuration for the sync client."""

import logging
import sys

# Third-party loggers that are noisy at INFO
QUIET_LOGGERS = ("httpx", "httpcore", "socketio.client", "engineio.client")


def setup_logging(level: str = "INFO") -> None:
    """
    Configure client logging.

    Args:
        level: Logging level (default: INFO)
    """
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
