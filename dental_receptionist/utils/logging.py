"""
Logging setup shared by the whole service.
"""

import logging
import sys

_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Install a single stream handler on the ``receptionist`` logger tree."""
    global _configured
    root = logging.getLogger("receptionist")
    root.setLevel(level.upper())
    if _configured:
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``receptionist`` namespace."""
    if not name.startswith("receptionist"):
        name = f"receptionist.{name}"
    return logging.getLogger(name)
