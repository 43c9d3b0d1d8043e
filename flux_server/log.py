# ============================================================
# Logging
# ============================================================
# stdout is the MCP transport, so everything goes to stderr.

import json
import logging
import sys

LOG_FORMAT = "%(asctime)s [flux] %(levelname)s %(name)s: %(message)s"


def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
    root.addHandler(handler)
    root.setLevel(level.upper())


def log_event(logger: logging.Logger, level: int, message: str, **context) -> None:
    """Log a message followed by its context as compact JSON."""
    if context:
        message = f"{message} {json.dumps(context, separators=(',', ':'), default=str)}"
    logger.log(level, message)
