"""
Rich formatting utilities for CLI output.
"""

from typing import Sequence, Union

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from netdebug import __version__
from netdebug.core.config import AppConfig
from netdebug.modules.base import OperationResult


def print_header(console: Console) -> None:
    """Print application header."""
    console.print(
        f"\n[bold cyan]Network Monitoring Debug Tool v{__version__}[/bold cyan]"
    )
    console.print(
        "This tool helps you troubleshoot network monitoring and packet collection issues"
    )


def print_config_summary(config: AppConfig, console: Console) -> None:
    """Print the pod/container/service being debugged and where results go."""
    table = Table(title="Monitoring Target", show_header=False, box=None)
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="white")

    table.add_row("Pod", config.pod_name)
    table.add_row("Container", config.container_name)
    table.add_row("Service", config.service_name)
    if config.dependent_pods:
        table.add_row("Dependent pods", ", ".join(config.dependent_pods))
    table.add_row("tcpdump filter", f"{config.tcpdump_filter} (interface {config.interface})")
    table.add_row("Output directory", str(config.output_dir))

    console.print()
    console.print(table)
    console.print()


def _status_icon_and_color(status: str) -> tuple[str, str]:
    """Map a status value to icon and color."""
    if status == "success":
        return "✓", "green"
    if status == "warning":
        return "⚠", "yellow"
    return "✗", "red"


def format_operation_result(result: OperationResult, console: Console) -> None:
    """Format and display a single operation result."""
    status_icon, status_color = _status_icon_and_color(result.status)

    content: list[str] = []
    content.append(f"[bold]Target:[/bold] {result.target}")
    content.append(f"[bold]Status:[/bold] [{status_color}]{result.status.upper()}[/{status_color}]")
    content.append(f"[bold]Duration:[/bold] {result.duration:.2f}s")
    if result.summary:
        content.append(f"\n[bold]Summary:[/bold]\n{result.summary}")
    if result.error and result.error != result.summary:
        content.append(f"\n[bold]Error:[/bold] {result.error}")

    console.print()
    console.print(
        Panel(
            "\n".join(content),
            title=f"{status_icon} {result.operation} Results",
            border_style=status_color,
            expand=False,
        )
    )

    if result.metrics:
        metrics_table = Table(show_header=True, box=None, padding=(0, 2))
        metrics_table.add_column("Metric", style="cyan")
        metrics_table.add_column("Value", style="white")
        for key, value in result.metrics.items():
            if isinstance(value, (list, dict, set)):
                continue
            metrics_table.add_row(key.replace("_", " ").title(), str(value))
        if metrics_table.row_count > 0:
            console.print(metrics_table)

    addresses = (result.metrics or {}).get("addresses")
    if addresses:
        print_addresses(addresses, console)

    if result.raw_output and result.status != "success":
        console.print("\n[bold cyan]Tool Output:[/bold cyan]")
        console.print(Panel(result.raw_output[:500], border_style="dim"))

    interpretation = get_interpretation(result)
    if interpretation:
        console.print()
        console.print(Panel(interpretation, title="💡 What this means", border_style="dim"))


def print_addresses(addresses: Sequence[str], console: Console) -> None:
    console.print("\n[bold green]Discovered IPs:[/bold green]")
    for ip in addresses:
        console.print(f"  - {ip}")


def format_health_summary(results: Sequence[OperationResult], console: Console) -> None:
    """
    Display a compact table for a health check: one row per pod or service.
    """
    if not results:
        return

    table = Table(title="Pod & Service Status", show_header=True, box=None)
    table.add_column("Check", style="cyan")
    table.add_column("Target", style="white")
    table.add_column("Status", style="white")
    table.add_column("Details", style="white")

    for result in results:
        status_icon, status_color = _status_icon_and_color(result.status)
        table.add_row(
            result.operation,
            result.target,
            f"[{status_color}]{status_icon} {result.status.upper()}[/{status_color}]",
            result.summary or "-",
        )

    console.print()
    console.print(table)


def get_interpretation(result: OperationResult) -> str:
    """
    Short, plain-language reading of a result. Empty string when there is nothing to add.
    """
    metrics = result.metrics or {}

    if result.operation == "Traffic Sample":
        if result.status == "failure":
            return (
                "tcpdump could not be started. It needs to be installed and usually "
                "requires root (run this tool with sudo)."
            )
        if not metrics.get("address_count"):
            return (
                "No matching packets arrived during the sample. Check that exporters are "
                "sending to this node and that the tcpdump filter matches their ports."
            )
        return (
            "These addresses sent or received matching traffic. Compare them with the "
            "devices you expect to export flows to the collector."
        )

    if result.operation == "Packet Capture" and result.status == "success":
        if metrics.get("bytes", 0) <= 24:
            return (
                "The capture file holds no packets (a pcap header is 24 bytes). "
                "Nothing matched the filter during the window."
            )
        return "Open the capture with Wireshark or `tcpdump -r` to inspect the packets."

    if result.operation == "NodePort Update" and result.status == "failure":
        return (
            "Editing the K3s unit and restarting K3s requires root. A backup is kept "
            "next to the unit file as .bak if the edit started."
        )

    return ""


def get_error_guidance(error: Union[Exception, str], operation: str = "") -> list[str]:
    """
    Return actionable suggestions for common failures.
    Used to display a "What to try" panel after an error.
    """
    msg = str(error).lower()
    lines: list[str] = []
    if "no such file" in msg or "not found" in msg:
        lines.append("• A required tool may be missing: kubectl, tcpdump or systemctl.")
        lines.append("• Check that it is installed and on PATH.")
    elif "permission" in msg or "denied" in msg or "operation not permitted" in msg:
        lines.append("• Packet capture and K3s changes need root. Re-run with sudo.")
    elif "timed out" in msg or "timeout" in msg:
        lines.append("• The cluster API may be unreachable. Check your kubeconfig and cluster health.")
    else:
        lines.append("• Run with [cyan]-v[/cyan] for detailed logs.")
    if operation:
        lines.append(f"• The {operation} run directory holds run.log; netdebug.log in the output directory covers every run.")
    return lines
