"""
Traffic operations built on tcpdump: IP sampling and pcap capture.
"""

from datetime import datetime
from typing import List, Optional

from netdebug.core.runner import ProgressBar
from netdebug.modules.base import BaseOperation, OperationResult


def sample_command(interface: str, tcpdump_filter: str) -> List[str]:
    """Line-buffered tcpdump printing numeric addresses."""
    return ["tcpdump", "-i", interface, "-nn", "-l", tcpdump_filter]


def capture_command(interface: str, tcpdump_filter: str) -> List[str]:
    """tcpdump writing packet-buffered pcap data to stdout."""
    return ["tcpdump", "-i", interface, "-nn", "-U", "-w", "-", tcpdump_filter]


class TrafficSample(BaseOperation):
    """Collect the distinct IPv4 addresses seen in a short tcpdump sample."""

    name = "Traffic Sample"

    def run(self) -> OperationResult:
        start_time = datetime.now()
        command = sample_command(self.config.interface, self.config.tcpdump_filter)

        outcome = self.runner.scan_and_extract(
            command,
            early_stop=self.config.sample_seconds,
        )

        if outcome.status == "start_failure":
            return self._result(
                self.config.interface, "failure", start_time,
                summary=f"Error starting tcpdump: {outcome.error}",
                error=outcome.error,
            )

        addresses = sorted(outcome.addresses)
        metrics = {
            "addresses": addresses,
            "address_count": len(addresses),
            "stop_reason": outcome.stop_reason,
        }

        if outcome.status == "stream_failure":
            status = "warning"
            summary = f"tcpdump output ended unexpectedly; {len(addresses)} address(es) collected"
        elif addresses:
            status = "success"
            summary = f"Discovered {len(addresses)} distinct IP address(es) in {outcome.duration:.1f}s"
        else:
            status = "warning"
            summary = "No packets received during sampling period"

        return self._result(
            self.config.interface, status, start_time,
            summary=summary,
            metrics=metrics,
            raw_output=outcome.stderr or None,
            error=outcome.error,
        )


class PacketCapture(BaseOperation):
    """Write a pcap of the configured filter for a fixed window."""

    name = "Packet Capture"

    def run(self, progress: Optional[ProgressBar] = None) -> OperationResult:
        start_time = datetime.now()
        destination = self.config.resolve_artifact(self.config.capture_file, self.run_dir)
        command = capture_command(self.config.interface, self.config.tcpdump_filter)

        outcome = self.runner.drain_to_file(
            command,
            destination,
            duration=self.config.capture_seconds,
            progress=progress,
        )

        if not outcome.success:
            if outcome.status == "start_failure":
                summary = f"Error starting tcpdump: {outcome.error}"
            else:
                summary = f"Cannot write capture file: {outcome.error}"
            return self._result(
                str(destination), "failure", start_time,
                summary=summary,
                error=outcome.error,
            )

        size = destination.stat().st_size if destination.exists() else 0
        metrics = {
            "capture_file": str(destination),
            "bytes": size,
            "stop_reason": outcome.stop_reason,
        }
        if outcome.stop_reason == "exited" and outcome.return_code not in (0, None):
            return self._result(
                str(destination), "failure", start_time,
                summary=f"tcpdump exited early with code {outcome.return_code}",
                metrics=metrics,
                raw_output=outcome.stderr or None,
                error=outcome.stderr or None,
            )

        return self._result(
            str(destination), "success", start_time,
            summary=f"Packet capture completed and saved to {destination}",
            metrics=metrics,
            raw_output=outcome.stderr or None,
        )
