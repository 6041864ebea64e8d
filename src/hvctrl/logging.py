"""
Structured logging for hvctrl using structlog.
"""

import logging
import sys
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Sequence

import structlog

# Flags whose following argument is a secret.
SECRET_FLAGS = frozenset({"--password", "-gp", "-vp", "--passwordfile"})


def configure_logging(
    level: str = "WARNING",
    json_output: bool = False,
    log_file: Optional[Path] = None,
    console_output: bool = True,
) -> None:
    """
    Configure structured logging for hvctrl.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: If True, output JSON format (good for log aggregation)
        log_file: Optional file path for log output
        console_output: If True, also output to console
    """

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=sys.stderr.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )

    structlog.configure(
        processors=shared_processors
        + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers = []

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=renderer,
                foreign_pre_chain=shared_processors,
            )
        )
        handlers.append(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            structlog.stdlib.ProcessorFormatter(
                processor=structlog.processors.JSONRenderer(),  # Always JSON for files
                foreign_pre_chain=shared_processors,
            )
        )
        handlers.append(file_handler)

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper()),
        handlers=handlers,
        force=True,
    )


def get_logger(name: str = "hvctrl") -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def mask_args(args: Sequence[str]) -> List[str]:
    """Copy of a command line with secret flag values replaced by ``***``."""
    masked = []
    hide_next = False
    for arg in args:
        masked.append("***" if hide_next else arg)
        hide_next = arg in SECRET_FLAGS
    return masked


@contextmanager
def log_operation(logger: structlog.stdlib.BoundLogger, operation: str, **kwargs):
    """
    Context manager for logging operation start/end.

    Usage:
        with log_operation(log, "stop", vm="win10"):
            # do stuff
    """
    log = logger.bind(operation=operation, **kwargs)
    start_time = datetime.now()
    log.info(f"{operation}.started")

    try:
        yield log
        duration_ms = (datetime.now() - start_time).total_seconds() * 1000
        log.info(f"{operation}.completed", duration_ms=round(duration_ms, 2))
    except Exception as e:
        duration_ms = (datetime.now() - start_time).total_seconds() * 1000
        log.error(
            f"{operation}.failed",
            error=str(e),
            error_type=type(e).__name__,
            duration_ms=round(duration_ms, 2),
        )
        raise
