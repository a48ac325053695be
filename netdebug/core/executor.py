"""
Short, synchronous command execution (kubectl queries, systemctl).

Long-running streaming commands go through ``netdebug.core.runner`` instead.
"""

import subprocess
import time
from typing import List

from loguru import logger
from pydantic import BaseModel

from netdebug.core.detector import SystemInfo


class CommandResult(BaseModel):
    """Result of a command execution."""

    command: str
    return_code: int
    stdout: str
    stderr: str
    duration: float
    success: bool


class CommandExecutor:
    """Run a command to completion and capture its output."""

    def __init__(self, system_info: SystemInfo, app_logger: logger):
        self.system_info = system_info
        self.logger = app_logger

    def run_command(
        self,
        command: List[str],
        timeout: int = 30,
        capture_output: bool = True,
    ) -> CommandResult:
        """
        Run ``command`` and wait for it.

        A command that cannot be started, or that exceeds ``timeout``, comes back
        as a failed CommandResult with return code -1 rather than raising.
        """
        cmd_str = " ".join(command)
        started = time.monotonic()
        self.logger.info(f"Executing command: {cmd_str}")

        try:
            completed = subprocess.run(
                command,
                capture_output=capture_output,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired:
            self.logger.error(f"Command timed out after {timeout}s: {cmd_str}")
            return self._failed(cmd_str, started, f"Command timed out after {timeout} seconds")
        except OSError as e:
            self.logger.error(f"Command could not be started: {cmd_str} - {e}")
            return self._failed(cmd_str, started, str(e))

        result = CommandResult(
            command=cmd_str,
            return_code=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
            duration=time.monotonic() - started,
            success=completed.returncode == 0,
        )
        self.logger.info(
            f"Command completed: {cmd_str} "
            f"(return code: {result.return_code}, duration: {result.duration:.2f}s)"
        )
        if not result.success and result.stderr:
            self.logger.debug(f"stderr from {command[0]}: {result.stderr.strip()[:500]}")
        return result

    @staticmethod
    def _failed(cmd_str: str, started: float, message: str) -> CommandResult:
        return CommandResult(
            command=cmd_str,
            return_code=-1,
            stdout="",
            stderr=message,
            duration=time.monotonic() - started,
            success=False,
        )
