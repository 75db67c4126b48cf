from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

LOGGER_NAMES = ("renderer", "generation", "ui")


def setup_logging(debug: bool = False, log_dir: Optional[Path] = None) -> logging.Logger:
    """Configure console + rotating file output for every project package.

    Safe to call more than once; handlers are only attached the first time.
    """
    log = logging.getLogger("bbn")
    if getattr(log, "_configured", False):
        return log

    level = logging.DEBUG if debug else logging.INFO
    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    handlers: list[logging.Handler] = []

    ch = logging.StreamHandler()
    ch.setLevel(level)
    ch.setFormatter(fmt)
    handlers.append(ch)

    log_dir = log_dir or (Path.cwd() / "logs")
    log_dir.mkdir(parents=True, exist_ok=True)
    fh = RotatingFileHandler(log_dir / "app.log", maxBytes=1_000_000, backupCount=3, encoding="utf-8")
    fh.setLevel(level)
    fh.setFormatter(fmt)
    handlers.append(fh)

    for name in ("bbn", *LOGGER_NAMES):
        target = logging.getLogger(name)
        target.setLevel(level)
        for handler in handlers:
            target.addHandler(handler)
        target.propagate = False

    setattr(log, "_configured", True)
    log.debug("Logging initialized. Debug=%s", debug)
    return log
