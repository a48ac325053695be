"""
Pod and service health checks backed by kubectl.
"""

import json
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel

from netdebug.modules.base import BaseOperation, OperationResult

HEALTHY_PHASES = {"Running", "Succeeded"}


class ResourceStatus(BaseModel):
    """Name and (for pods) phase of a cluster resource."""

    name: str
    phase: Optional[str] = None


class ClusterQueryError(Exception):
    """kubectl failed or returned output that could not be decoded."""


class ClusterQuery:
    """Thin wrapper over the kubectl queries the health checks need."""

    def __init__(self, executor, timeout: int = 30):
        self.executor = executor
        self.timeout = timeout

    def list_resources(self, kind: str) -> List[ResourceStatus]:
        """Run ``kubectl get <kind> -o json`` and decode its items."""
        result = self.executor.run_command(
            ["kubectl", "get", kind, "-o", "json"],
            timeout=self.timeout,
        )
        if not result.success:
            raise ClusterQueryError(result.stderr.strip() or f"kubectl get {kind} failed")

        try:
            payload = json.loads(result.stdout)
        except json.JSONDecodeError as e:
            raise ClusterQueryError(f"Could not decode kubectl output for {kind}: {e}") from e

        resources = []
        for item in payload.get("items", []):
            resources.append(ResourceStatus(
                name=item.get("metadata", {}).get("name", ""),
                phase=item.get("status", {}).get("phase"),
            ))
        return resources

    def find_pod_name(self, prefix: str) -> Optional[str]:
        """Return the first pod whose name starts with ``prefix``."""
        result = self.executor.run_command(
            ["kubectl", "get", "pods", "-o", "jsonpath={.items[*].metadata.name}"],
            timeout=self.timeout,
        )
        if not result.success:
            return None
        for name in result.stdout.split():
            if name.startswith(prefix):
                return name
        return None

    def find_pod_by_label(self, app: str) -> Optional[str]:
        """Return the first pod labelled ``app=<app>``."""
        result = self.executor.run_command(
            ["kubectl", "get", "pod", "-l", f"app={app}", "-o", "jsonpath={.items[0].metadata.name}"],
            timeout=self.timeout,
        )
        name = result.stdout.strip()
        if not result.success or not name:
            return None
        return name


class PodCheck(BaseOperation):
    """Report the phase of the first pod whose name contains the given string."""

    name = "Pod Status"

    def run(self, pod_name: Optional[str] = None) -> OperationResult:
        pod_name = pod_name or self.config.pod_name
        start_time = datetime.now()
        query = ClusterQuery(self.executor, timeout=self.config.timeout)

        try:
            pods = query.list_resources("pods")
        except ClusterQueryError as e:
            return self._result(
                pod_name, "failure", start_time,
                summary=f"Error getting pods: {e}",
                error=str(e),
            )

        for pod in pods:
            if pod_name in pod.name:
                status = "success" if pod.phase in HEALTHY_PHASES else "warning"
                return self._result(
                    pod_name, status, start_time,
                    summary=f"Pod {pod_name} is in status: {pod.phase}",
                    metrics={"pod": pod.name, "phase": pod.phase or "Unknown"},
                )

        return self._result(
            pod_name, "warning", start_time,
            summary=f"Pod {pod_name} not found!",
            metrics={"found": False},
        )


class ServiceCheck(BaseOperation):
    """Check that a service with exactly the given name exists."""

    name = "Service Status"

    def run(self, service_name: Optional[str] = None) -> OperationResult:
        service_name = service_name or self.config.service_name
        start_time = datetime.now()
        query = ClusterQuery(self.executor, timeout=self.config.timeout)

        try:
            services = query.list_resources("services")
        except ClusterQueryError as e:
            return self._result(
                service_name, "failure", start_time,
                summary=f"Error getting services: {e}",
                error=str(e),
            )

        if any(service.name == service_name for service in services):
            return self._result(
                service_name, "success", start_time,
                summary=f"Service {service_name} is running",
                metrics={"found": True},
            )

        return self._result(
            service_name, "warning", start_time,
            summary=f"Service {service_name} not found!",
            metrics={"found": False},
        )


class HealthCheck(BaseOperation):
    """Main pod, then service, then every dependent pod."""

    name = "Health Check"

    def run(self) -> List[OperationResult]:
        pod_check = PodCheck(self.config, self.executor, self.csv_handler, self.runner, self.run_dir)
        service_check = ServiceCheck(self.config, self.executor, self.csv_handler, self.runner, self.run_dir)

        results = [
            pod_check.run(self.config.pod_name),
            service_check.run(self.config.service_name),
        ]
        for pod in self.config.dependent_pods:
            results.append(pod_check.run(pod))
        return results
