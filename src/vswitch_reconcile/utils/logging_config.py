"""Logging configuration for the reconciliation engine.

Provides configurable logging with:
- File-based logging with rotation
- Console output for real-time debugging
- Performance timing for platform calls and reconcile phases

Environment Variables:
    VSWITCH_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    VSWITCH_LOG_FILE: Path to log file (default: ~/.vswitch-reconcile/vswitch.log)
    VSWITCH_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    VSWITCH_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from vswitch_reconcile.utils.logging_config import setup_logging, timed_section

    setup_logging()  # Call once at startup

    async with timed_section("reconfigure", switch="dvs-12"):
        ...
"""
import logging
import os
import time
from contextlib import asynccontextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("vswitch.perf")
main_logger = logging.getLogger("vswitch")


def get_log_level() -> int:
    """Get log level from environment."""
    level_str = os.environ.get("VSWITCH_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".vswitch-reconcile" / "vswitch.log"
    path_str = os.environ.get("VSWITCH_LOG_FILE", str(default_path))
    return Path(path_str)


def setup_logging() -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (respects VSWITCH_LOG_LEVEL)
    - File handler with rotation at DEBUG level
    - Performance log in a sibling file
    """
    log_level = get_log_level()
    log_file = get_log_file()
    max_size_mb = int(os.environ.get("VSWITCH_LOG_MAX_SIZE", "10"))
    backup_count = int(os.environ.get("VSWITCH_LOG_BACKUPS", "5"))

    log_file.parent.mkdir(parents=True, exist_ok=True)

    main_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(name)-32s | %(levelname)-7s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    perf_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | PERF | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(main_format)

    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(main_format)

    perf_log_file = log_file.parent / "vswitch-perf.log"
    perf_handler = RotatingFileHandler(
        perf_log_file,
        maxBytes=max_size_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8"
    )
    perf_handler.setLevel(logging.DEBUG)
    perf_handler.setFormatter(perf_format)

    # Module loggers live under the package name, engine-wide loggers under "vswitch"
    for name in ("vswitch", "vswitch_reconcile"):
        logger = logging.getLogger(name)
        logger.setLevel(logging.DEBUG)
        logger.addHandler(console_handler)
        logger.addHandler(file_handler)

    perf_logger.setLevel(logging.DEBUG)
    perf_logger.addHandler(perf_handler)
    perf_logger.propagate = False

    main_logger.info(f"Logging initialized: level={logging.getLevelName(log_level)}, file={log_file}")
    perf_logger.info(f"Performance logging to: {perf_log_file}")


def _perf_line(operation: str, switch: Optional[str], elapsed: float, status: str) -> str:
    return f"{operation:20s} | {switch or 'N/A':24s} | {elapsed:8.2f}ms | {status}"


@asynccontextmanager
async def timed_section(operation: str, switch: Optional[str] = None, **extra):
    """Async context manager for timing code sections.

    Args:
        operation: Name of the operation
        switch: Encoded switch identity
        **extra: Additional context to log

    Usage:
        async with timed_section("add_host", switch="dvs-12", host="host-3"):
            await platform.add_dvs_host(...)
    """
    start = time.perf_counter()
    extra_str = " | ".join(f"{k}={v}" for k, v in extra.items()) if extra else ""

    try:
        yield
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        msg = _perf_line(operation, switch, elapsed, f"FAIL: {e}")
        if extra_str:
            msg += f" | {extra_str}"
        perf_logger.warning(msg)
        raise
    elapsed = (time.perf_counter() - start) * 1000
    msg = _perf_line(operation, switch, elapsed, "OK")
    if extra_str:
        msg += f" | {extra_str}"
    perf_logger.info(msg)
