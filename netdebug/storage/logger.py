"""
Logging configuration using loguru.
"""

import sys
from pathlib import Path

from loguru import logger

FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}"


def setup_logging(output_dir: Path, verbose: bool = False) -> logger:
    """
    Replace loguru's default sink with a console sink and two files in ``output_dir``.

    Args:
        output_dir: Directory for netdebug.log and netdebug_errors.log
        verbose: Console at DEBUG instead of INFO (per-tick runner details)
    """
    logger.remove()

    logger.add(
        sys.stderr,
        level="DEBUG" if verbose else "INFO",
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <level>{message}</level>",
    )

    log_file = output_dir / "netdebug.log"
    logger.add(log_file, rotation="10 MB", retention="30 days", level="DEBUG", format=FILE_FORMAT)

    error_log = output_dir / "netdebug_errors.log"
    logger.add(error_log, rotation="10 MB", retention="90 days", level="ERROR", format=FILE_FORMAT)

    logger.debug(f"Log files: {log_file}, {error_log}")
    return logger


def attach_run_log(run_dir: Path) -> int:
    """Mirror DEBUG logging into ``run_dir/run.log``; returns the sink id for ``detach_run_log``."""
    return logger.add(run_dir / "run.log", level="DEBUG", format=FILE_FORMAT)


def detach_run_log(sink_id: int) -> None:
    logger.remove(sink_id)
