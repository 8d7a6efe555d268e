"""
Logging configuration for the bridge.

One stdout handler on the root logger; modules grab their own logger
through get_logger(__name__).
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(verbose: bool = False) -> None:
    """
    Configure the root logger.

    Args:
        verbose: Enable DEBUG level logging (default: INFO)
    """
    level = logging.DEBUG if verbose else logging.INFO
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    root_logger.addHandler(console_handler)

    # werkzeug logs every request at INFO; keep it for --verbose only
    logging.getLogger("werkzeug").setLevel(level if verbose else logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
