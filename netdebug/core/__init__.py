"""
Core functionality components.
"""

from netdebug.core.config import AppConfig
from netdebug.core.detector import SystemDetector, SystemInfo
from netdebug.core.executor import CommandExecutor, CommandResult
from netdebug.core.runner import (
    BoundedProcessRunner,
    CancellationToken,
    ProgressBar,
    RunOutcome,
    SampleWindow,
)

__all__ = [
    "AppConfig",
    "SystemDetector",
    "SystemInfo",
    "CommandExecutor",
    "CommandResult",
    "BoundedProcessRunner",
    "CancellationToken",
    "ProgressBar",
    "RunOutcome",
    "SampleWindow",
]
