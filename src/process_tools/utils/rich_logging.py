"""Console logging with worker context and colored levels."""

import logging
import sys
from datetime import datetime
from typing import Optional, TextIO


class WorkerLogFormatter(logging.Formatter):
    """Formatter that prefixes records with their worker context."""

    LEVEL_COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[35m",   # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with context."""
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        # Worker context if the record came from a TerminableWorker
        worker_context = ""
        if hasattr(record, "worker"):
            generation = getattr(record, "generation", None)
            suffix = f"#{generation}" if generation is not None else ""
            worker_context = f"[{record.worker}{suffix}] "

        if self.use_colors:
            level_color = self.LEVEL_COLORS.get(record.levelname, "")
            reset = self.RESET
        else:
            level_color = ""
            reset = ""

        message = (
            f"{timestamp} {level_color}{record.levelname:8s}{reset} "
            f"{record.name}: {worker_context}{record.getMessage()}"
        )
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def setup_logging(
    log_level: str = "INFO",
    use_colors: Optional[bool] = None,
    stream: Optional[TextIO] = None,
) -> logging.Logger:
    """
    Configure the ``process_tools`` logger hierarchy.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        use_colors: Force colors on/off; defaults to whether the stream is a tty
        stream: Output stream (defaults to stderr)

    Returns:
        The configured package logger
    """
    stream = stream or sys.stderr
    if use_colors is None:
        use_colors = stream.isatty() if hasattr(stream, "isatty") else False

    logger = logging.getLogger("process_tools")
    logger.setLevel(getattr(logging, log_level.upper()))

    # Close existing handlers before replacing them (prevents descriptor leaks)
    for handler in logger.handlers[:]:
        handler.close()
        logger.removeHandler(handler)

    handler = logging.StreamHandler(stream)
    handler.setFormatter(WorkerLogFormatter(use_colors=use_colors))
    logger.addHandler(handler)

    return logger
