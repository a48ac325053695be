"""
Storage and logging components.
"""

from netdebug.storage.logger import attach_run_log, detach_run_log, setup_logging
from netdebug.storage.csv_handler import CSVHandler

__all__ = [
    "setup_logging",
    "attach_run_log",
    "detach_run_log",
    "CSVHandler",
]
