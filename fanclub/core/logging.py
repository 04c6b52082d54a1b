import logging
import os
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s :: %(message)s"

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("stripe", "httpx", "httpcore", "multipart")


def setup_logging(level: str | None = None) -> None:
    """Root logger to stdout; LOG_LEVEL picks the level (default INFO)."""
    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        stream=sys.stdout,
        level=getattr(logging, name, logging.INFO),
        format=LOG_FORMAT,
    )
    for noisy in QUIET_LOGGERS:
        logging.getLogger(noisy).setLevel(logging.WARNING)
