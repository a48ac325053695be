"""
K3s NodePort range update.

Backs up the K3s systemd unit, rewrites its ExecStart line with the configured
``--service-node-port-range`` and restarts K3s through systemctl.
"""

import re
import shutil
from datetime import datetime
from pathlib import Path
from typing import Tuple

from netdebug.modules.base import BaseOperation, OperationResult

K3S_BINARY = "/usr/local/bin/k3s"

# ExecStart plus any backslash-continued lines that follow it
EXEC_START_PATTERN = re.compile(r"^ExecStart=(?:[^\n]*\\\n)*[^\n]*$", re.MULTILINE)


def backup_path(unit_file: Path) -> Path:
    return unit_file.with_name(unit_file.name + ".bak")


def rewrite_exec_start(unit_text: str, nodeport_range: str) -> Tuple[str, int]:
    """
    Replace every ``ExecStart=`` directive of a unit file, including its
    continuation lines, with a single k3s server line.

    Returns:
        (new_text, number_of_lines_replaced)
    """
    replacement = f"ExecStart={K3S_BINARY} server --service-node-port-range={nodeport_range}"
    return EXEC_START_PATTERN.subn(lambda _match: replacement, unit_text)


class NodePortUpdate(BaseOperation):
    """Update the K3s NodePort range and restart K3s."""

    name = "NodePort Update"

    def run(self) -> OperationResult:
        start_time = datetime.now()
        unit_file = Path(self.config.k3s_config_file)
        nodeport_range = self.config.nodeport_range
        logger = self.executor.logger

        logger.info(f"Updating K3s NodePort range to {nodeport_range} in {unit_file}")

        backup = backup_path(unit_file)
        try:
            shutil.copy2(unit_file, backup)
        except OSError as e:
            logger.error(f"Failed to back up {unit_file}: {e}")
            return self._result(
                str(unit_file), "failure", start_time,
                summary="Failed to back up the K3s service file.",
                error=str(e),
            )

        try:
            unit_text = unit_file.read_text(encoding="utf-8")
            new_text, replaced = rewrite_exec_start(unit_text, nodeport_range)
            if replaced == 0:
                return self._result(
                    str(unit_file), "failure", start_time,
                    summary="Failed to update the K3s service file: no ExecStart line found.",
                    metrics={"backup": str(backup)},
                    error="no ExecStart line",
                )
            unit_file.write_text(new_text, encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to update {unit_file}: {e}")
            return self._result(
                str(unit_file), "failure", start_time,
                summary="Failed to update the K3s service file.",
                metrics={"backup": str(backup)},
                error=str(e),
            )

        for command in (
            ["systemctl", "daemon-reload"],
            ["systemctl", "restart", self.config.k3s_service],
        ):
            result = self.executor.run_command(command, timeout=self.config.timeout)
            if not result.success:
                return self._result(
                    str(unit_file), "failure", start_time,
                    summary=f"Failed to restart K3s service ({result.command}).",
                    metrics={"backup": str(backup), "nodeport_range": nodeport_range},
                    raw_output=result.stdout,
                    error=result.stderr or f"exit code {result.return_code}",
                )

        return self._result(
            str(unit_file), "success", start_time,
            summary=f"NodePort range updated to {nodeport_range} and K3s restarted successfully.",
            metrics={
                "nodeport_range": nodeport_range,
                "exec_start_lines": replaced,
                "backup": str(backup),
            },
        )
