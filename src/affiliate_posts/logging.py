import logging
import os
import sys
from typing import Optional, Union


ROOT_LOGGER_NAME = "affiliate_posts"

_LEVELS = {
    "CRITICAL": logging.CRITICAL,
    "ERROR": logging.ERROR,
    "WARN": logging.WARNING,
    "WARNING": logging.WARNING,
    "INFO": logging.INFO,
    "DEBUG": logging.DEBUG,
}


def _coerce_level(value: Union[str, int, None]) -> int:
    if isinstance(value, str):
        return _LEVELS.get(value.upper().strip(), logging.INFO)
    if isinstance(value, int):
        return value
    return logging.INFO


def _package_logger() -> logging.Logger:
    """Configure the `affiliate_posts` logger once; every module logger hangs below it.

    - LOG_LEVEL (default INFO) sets the level, LOG_FILE adds an appending file handler.
    - Output goes to stdout so uvicorn's own stderr access log stays separate.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if getattr(root, "_affiliate_configured", False):
        return root

    level = _coerce_level(os.environ.get("LOG_LEVEL", "INFO"))
    root.setLevel(level)
    formatter = logging.Formatter(
        fmt="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    sh = logging.StreamHandler(sys.stdout)
    sh.setFormatter(formatter)
    root.addHandler(sh)

    log_file = os.environ.get("LOG_FILE")
    if log_file:
        try:
            fh = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as exc:
            root.warning("LOG_FILE %s could not be opened (%s); logging to stdout only", log_file, exc)
        else:
            fh.setFormatter(formatter)
            root.addHandler(fh)

    root.propagate = False
    setattr(root, "_affiliate_configured", True)
    return root


def get_logger(name: str) -> logging.Logger:
    """Return the module logger `affiliate_posts.<name>` (e.g. `store-db`, `api`)."""
    _package_logger()
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


def set_level(level: Union[str, int, None]) -> int:
    """Change the level of every project logger at once; returns the numeric level."""
    numeric = _coerce_level(level)
    _package_logger().setLevel(numeric)
    return numeric
