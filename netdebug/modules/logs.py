"""
Debug log collection from the monitored container.
"""

import shlex
from datetime import datetime
from typing import List, Optional

from netdebug.core.runner import ProgressBar
from netdebug.modules.base import BaseOperation, OperationResult
from netdebug.modules.health import ClusterQuery


def enable_verbose_command(pod: str, container: str, value: str, config_path: str) -> List[str]:
    """kubectl exec that appends ``value`` to the container's config file."""
    script = f"echo {shlex.quote(value)} >> {shlex.quote(config_path)}"
    return ["kubectl", "exec", pod, "-c", container, "--", "sh", "-c", script]


def follow_logs_command(pod: str, container: str) -> List[str]:
    return ["kubectl", "logs", "-f", pod, "-c", container]


class LogCollection(BaseOperation):
    """Enable verbose logging in the container, then stream its logs to a file."""

    name = "Log Collection"

    def run(self, progress: Optional[ProgressBar] = None) -> OperationResult:
        start_time = datetime.now()
        config = self.config
        query = ClusterQuery(self.executor, timeout=config.timeout)
        logger = self.executor.logger

        logger.info(f"Enabling debug logs in pod {config.pod_name}")
        labelled_pod = query.find_pod_by_label(config.pod_name)
        if labelled_pod is None:
            return self._result(
                config.pod_name, "failure", start_time,
                summary=f"Failed to enable debug logs: no pod labelled app={config.pod_name}",
                error="pod not found",
            )

        result = self.executor.run_command(
            enable_verbose_command(
                labelled_pod,
                config.container_name,
                config.verbose_config_value,
                config.verbose_config_path,
            ),
            timeout=config.timeout,
        )
        if not result.success:
            return self._result(
                labelled_pod, "failure", start_time,
                summary="Failed to enable debug logs",
                raw_output=result.stdout or None,
                error=result.stderr or f"exit code {result.return_code}",
            )

        pod = query.find_pod_name(config.pod_name)
        if pod is None:
            return self._result(
                config.pod_name, "failure", start_time,
                summary=f"Failed to start log collection: no pod name starts with {config.pod_name}",
                error="pod not found",
            )

        destination = config.resolve_artifact(config.log_file, self.run_dir)
        outcome = self.runner.drain_to_file(
            follow_logs_command(pod, config.container_name),
            destination,
            duration=config.log_seconds,
            progress=progress,
        )

        if not outcome.success:
            return self._result(
                pod, "failure", start_time,
                summary=f"Failed to start log collection: {outcome.error}",
                error=outcome.error,
            )

        size = destination.stat().st_size if destination.exists() else 0
        metrics = {
            "log_file": str(destination),
            "bytes": size,
            "stop_reason": outcome.stop_reason,
            "verbose_config": config.verbose_config_path,
        }
        if outcome.stop_reason == "exited" and outcome.return_code not in (0, None):
            return self._result(
                pod, "failure", start_time,
                summary=f"kubectl logs exited early with code {outcome.return_code}",
                metrics=metrics,
                raw_output=outcome.stderr or None,
                error=outcome.stderr or f"exit code {outcome.return_code}",
            )

        return self._result(
            pod, "success", start_time,
            summary=f"Logs collected successfully. Please check {destination}",
            metrics=metrics,
            raw_output=outcome.stderr or None,
        )
