"""
Logging configuration for the command-line tools.
"""

import logging
from pathlib import Path
from typing import Optional, Union

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def configure_logging(
    verbose: bool = False,
    log_file: Optional[Union[str, Path]] = None,
    fmt: str = DEFAULT_FORMAT
) -> None:
    """
    Configure the root logger.

    Args:
        verbose: Log at DEBUG instead of INFO
        log_file: Optional file that receives the same records as the console
        fmt: Record format
    """
    level = logging.DEBUG if verbose else logging.INFO

    formatter = logging.Formatter(fmt)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)

    handlers = [console_handler]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    # numba logs its compiler passes at DEBUG
    logging.getLogger("numba").setLevel(logging.WARNING)
