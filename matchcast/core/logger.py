import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

# Third-party loggers re-routed through the root handler.
_ROUTED = ("uvicorn", "uvicorn.error", "uvicorn.access", "apscheduler")
_QUIET = ("sqlalchemy.engine", "httpx", "httpcore")


def _level(env_name: str, default: int) -> int:
    name = (os.getenv(env_name) or "").strip().upper()
    return getattr(logging, name, default) if name else default


def configure_logging(level: Optional[int] = None) -> None:
    """One stream handler on the root logger; ``LOG_LEVEL`` / ``SQL_LOG_LEVEL`` from the environment."""
    level = level if level is not None else _level("LOG_LEVEL", logging.INFO)

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    for name in _ROUTED:
        lg = logging.getLogger(name)
        lg.handlers.clear()
        lg.propagate = True
        lg.setLevel(level)

    quiet_level = _level("SQL_LOG_LEVEL", logging.WARNING)
    for name in _QUIET:
        lg = logging.getLogger(name)
        lg.handlers.clear()
        lg.propagate = True
        lg.setLevel(quiet_level)


configure_logging()


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Logger under the ``matchcast`` namespace, e.g. ``get_logger("services.engine")``."""
    if not name:
        return logging.getLogger("matchcast")
    return logging.getLogger(name if name.startswith("matchcast") else f"matchcast.{name}")
