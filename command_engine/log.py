import logging
import os

from rich.logging import RichHandler

ROOT_LOGGER = "command_engine"


def setup_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
        handler = RichHandler(rich_tracebacks=True, show_time=True)
        fmt = logging.Formatter("%(name)s - %(message)s")
        handler.setFormatter(fmt)
        logger.addHandler(handler)
    return logger


def set_level(level: str) -> None:
    """Apply `level` to every logger already created under the package."""
    level = level.upper()
    for name in list(logging.root.manager.loggerDict):
        if name == ROOT_LOGGER or name.startswith(ROOT_LOGGER + "."):
            logging.getLogger(name).setLevel(level)
