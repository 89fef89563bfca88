"""
Logging setup for the ReLive API.

Every module logs through ``logging.getLogger(__name__)``; this module only
installs the handler and level once at startup.
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def setup_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Avoid stacking handlers when the app is built more than once (tests).
    for handler in root.handlers:
        if getattr(handler, "_relive", False):
            return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._relive = True  # type: ignore[attr-defined]
    root.addHandler(handler)

    # SQL echo is controlled through the engine, not the root level.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
