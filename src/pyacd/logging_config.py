"""
Logging configuration for PyACD.

All package loggers live under the ``pyacd`` namespace so that applications
can tune them with a single ``logging.getLogger('pyacd')`` call.
"""
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

ROOT_LOGGER_NAME = 'pyacd'
DEFAULT_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def get_logger(name: str) -> logging.Logger:
    """Get a logger inside the pyacd namespace.

    Args:
        name: Usually ``__name__`` of the calling module

    Returns:
        Logger instance
    """
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + '.'):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def setup_logging(level: Union[int, str] = logging.INFO,
                  log_file: Optional[Union[str, Path]] = None,
                  fmt: str = DEFAULT_FORMAT) -> logging.Logger:
    """Configure handlers for the package root logger.

    Calling this more than once replaces the previously installed handlers.

    Args:
        level: Logging level (name or number)
        log_file: Optional path of a file to log to in addition to stderr
        fmt: Log record format

    Returns:
        The configured package root logger
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)

    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(fmt)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    logger.addHandler(console)

    if log_file is not None:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path, encoding='utf-8')
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def log_growth_summary(logger: logging.Logger, year: int, metrics: Dict[str, Any]) -> None:
    """Log a one-line summary of the stand after an annual growth step."""
    if not logger.isEnabledFor(logging.DEBUG):
        return
    logger.debug(
        "Year %d: tph=%.1f ba=%.2f qmd=%.2f topht=%.2f ccf=%.1f records=%d",
        year,
        metrics.get('tph', 0.0),
        metrics.get('ba', 0.0),
        metrics.get('qmd', 0.0),
        metrics.get('top_height', 0.0),
        metrics.get('ccf', 0.0),
        metrics.get('records', 0),
    )
