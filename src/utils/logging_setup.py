from __future__ import annotations

import logging
import os
from typing import Iterable


_DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_DEFAULT_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty below WARNING.
_QUIET_LOGGERS = ("urllib3", "sqlalchemy.engine")


def _level_from_env(default_level: str) -> int:
    raw = (os.getenv("LOG_LEVEL") or default_level).strip().upper()
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else logging.INFO


def _force_from_env() -> bool:
    return (os.getenv("LOG_FORCE") or "1").strip().lower() not in {"0", "false", "no"}


def configure_logging(
    *,
    default_level: str = "INFO",
    fmt: str = _DEFAULT_FORMAT,
    datefmt: str = _DEFAULT_DATEFMT,
    force: bool = True,
    quiet_loggers: Iterable[str] = _QUIET_LOGGERS,
) -> int:
    """Set up root logging for the planner CLI and the Flask server.

    LOG_LEVEL overrides `default_level`; LOG_FORCE=0 keeps an existing
    configuration (e.g. one installed by a test runner). Returns the level used.
    """

    level = _level_from_env(default_level)
    logging.basicConfig(level=level, format=fmt, datefmt=datefmt, force=(force and _force_from_env()))

    # Werkzeug request logs follow the app level.
    logging.getLogger("werkzeug").setLevel(level)
    for name in quiet_loggers:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
    return level
