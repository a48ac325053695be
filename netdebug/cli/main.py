"""
Main CLI application using Typer.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, List, Optional

import questionary
import typer
from pydantic import ValidationError
from questionary import Choice
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.spinner import Spinner

from netdebug.cli.formatters import (
    format_health_summary,
    format_operation_result,
    get_error_guidance,
    print_config_summary,
    print_header,
)
from netdebug.core.config import AppConfig, load_config_file
from netdebug.core.detector import SystemDetector, SystemInfo
from netdebug.core.executor import CommandExecutor
from netdebug.core.runner import BoundedProcessRunner, ProgressBar
from netdebug.modules.base import OperationResult
from netdebug.modules.health import HealthCheck
from netdebug.modules.logs import LogCollection
from netdebug.modules.nodeport import NodePortUpdate
from netdebug.modules.traffic import PacketCapture, TrafficSample
from netdebug.storage.csv_handler import CSVHandler
from netdebug.storage.logger import attach_run_log, detach_run_log, setup_logging

app = typer.Typer(
    name="netdebug",
    help="Network Monitoring Debug Tool",
    add_completion=False,
)

console = Console()

OPERATION_LABELS = {
    "status": "Pod & Service Status",
    "nodeport": "NodePort Update",
    "sample-ips": "Traffic Sample",
    "capture": "Packet Capture",
    "collect-logs": "Log Collection",
}


@dataclass
class Session:
    """Everything an operation needs, built once per invocation."""

    config: AppConfig
    logger: Any
    detector: SystemDetector
    system_info: SystemInfo


def _build_config(values: dict[str, Any]) -> AppConfig:
    """CLI values override the config file, which overrides NETDEBUG_* environment variables."""
    file_cfg = load_config_file()
    overrides = {key: value for key, value in values.items() if value is not None}
    return AppConfig(**{**file_cfg, **overrides})


def _new_runner(session: Session) -> BoundedProcessRunner:
    return BoundedProcessRunner(
        app_logger=session.logger,
        tick=session.config.tick_seconds,
    )


def _progress(session: Session, prefix: str) -> ProgressBar:
    return ProgressBar(prefix=prefix, width=session.config.progress_width, stream=console.file)


def _with_spinner(text: str, func):
    """Run ``func`` in a worker thread while a spinner animates; return its result."""
    holder: list = []
    errors: list = []

    def _run() -> None:
        try:
            holder.append(func())
        except Exception as e:
            errors.append(e)

    t = threading.Thread(target=_run)
    t.start()
    with Live(Spinner("dots", text=text), console=console, refresh_per_second=8, transient=True):
        while t.is_alive():
            t.join(timeout=0.05)
    if errors:
        raise errors[0]
    return holder[0]


def _dispatch(session: Session, operation: str, run_dir: Path) -> List[OperationResult]:
    config = session.config
    csv_handler = CSVHandler(run_dir / "results.csv")
    executor = CommandExecutor(session.system_info, session.logger)
    args = (config, executor, csv_handler, _new_runner(session), run_dir)

    if operation == "status":
        console.print("\n[bold cyan]Checking pod and service status...[/bold cyan]")
        results = _with_spinner("Querying cluster…", HealthCheck(*args).run)
        format_health_summary(results, console)
        return results

    if operation == "nodeport":
        console.print(f"\n[bold cyan]Updating K3s NodePort range to {config.nodeport_range}...[/bold cyan]")
        result = NodePortUpdate(*args).run()
    elif operation == "sample-ips":
        console.print(
            f"\n[bold cyan]Collecting unique IPs ({config.sample_seconds:g} second sample)...[/bold cyan]"
        )
        result = _with_spinner("Analyzing network traffic", TrafficSample(*args).run)
    elif operation == "capture":
        console.print(
            f"\n[bold cyan]Starting packet capture for {config.capture_seconds:g} seconds...[/bold cyan]"
        )
        result = PacketCapture(*args).run(progress=_progress(session, "Capturing packets:"))
    elif operation == "collect-logs":
        console.print(
            f"\n[bold cyan]Collecting logs from {config.pod_name}/{config.container_name} "
            f"for {config.log_seconds:g} seconds...[/bold cyan]"
        )
        result = LogCollection(*args).run(progress=_progress(session, "Collecting logs:"))
    else:
        raise ValueError(f"Unknown operation: {operation}")

    format_operation_result(result, console)
    return [result]


def execute_operation(session: Session, operation: str) -> List[OperationResult]:
    """
    Run one operation in a fresh run directory, display its results and save metadata.
    """
    config = session.config
    run_dir = config.create_run_dir(operation.replace("-", "_"))
    session.logger.info(f"Created run directory: {run_dir}")

    sink_id = attach_run_log(run_dir)
    try:
        results = _dispatch(session, operation, run_dir)
    finally:
        detach_run_log(sink_id)

    config.save_metadata(
        run_dir,
        {
            "operation": OPERATION_LABELS[operation],
            "statuses": [r.status for r in results],
            "pod": config.pod_name,
            "service": config.service_name,
            "system_info": session.system_info.model_dump(mode="json"),
        },
    )
    console.print(f"\n[bold green]✓ Results saved to:[/bold green] {run_dir}")
    return results


def _execute_safely(session: Session, operation: str) -> List[OperationResult]:
    """Run an operation; any exception is reported and an empty list returned."""
    try:
        return execute_operation(session, operation)
    except Exception as e:
        session.logger.error(f"{OPERATION_LABELS.get(operation, operation)} failed: {e}")
        console.print(f"\n[bold red]❌ Operation failed: {e}[/bold red]")
        guidance = get_error_guidance(e, OPERATION_LABELS.get(operation, ""))
        if guidance:
            console.print(Panel("\n".join(guidance), title="What to try", border_style="dim"))
        return []


def _finish_command(session: Session, operation: str) -> None:
    """Subcommand wrapper: exit 1 when the operation raised or reported a failure."""
    results = _execute_safely(session, operation)
    if not results or any(r.status == "failure" for r in results):
        raise typer.Exit(1)


def show_main_menu() -> Optional[str]:
    """Display main menu and return the chosen operation key (None on Ctrl+C)."""
    console.print("\n[bold cyan]Network Monitoring Debug Tool - Available Options[/bold cyan]")
    console.print("------------------------------------------------")

    choices = [
        Choice("Check pod and service status", value="status"),
        Choice("Update node port range and restart k3s", value="nodeport"),
        Choice("View network packets source IP addresses", value="sample-ips"),
        Choice("Capture network packets to file", value="capture"),
        Choice("Collect debug logs", value="collect-logs"),
        Choice("Exit", value="exit"),
    ]

    return questionary.select("Enter your choice:", choices=choices).ask()


def _goodbye(session: Session) -> None:
    console.print("\n[bold cyan]Thank you for using Network Monitoring Debug Tool. Goodbye![/bold cyan]")
    session.logger.info("netdebug exited normally")


def _run_interactive(session: Session) -> None:
    """Run the interactive menu (default `netdebug` / `netdebug menu`)."""
    print_header(console)
    print_config_summary(session.config, console)

    console.print("[bold cyan]Checking for required tools...[/bold cyan]")
    missing_tools = session.detector.check_required_tools()
    if missing_tools:
        console.print("\n[bold yellow]⚠️  Missing Tools:[/bold yellow]")
        for tool in missing_tools:
            console.print(f"  • {tool.name}: {tool.suggestion}")
            if tool.needed_by:
                console.print(f"    [dim]needed by: {', '.join(tool.needed_by)}[/dim]")

        if not questionary.confirm("Continue anyway?", default=False).ask():
            session.logger.warning("User cancelled due to missing tools")
            raise typer.Exit(1)
    else:
        console.print("[bold green]✓ All required tools available[/bold green]")

    if not session.system_info.privileged:
        console.print(
            "[yellow]⚠ Not running as root: packet capture and NodePort updates will likely fail.[/yellow]"
        )

    while True:
        choice = show_main_menu()

        if choice is None or choice == "exit":
            _goodbye(session)
            break

        if choice == "nodeport":
            question = (
                f"This edits {session.config.k3s_config_file} and restarts "
                f"{session.config.k3s_service}. Continue?"
            )
            if not questionary.confirm(question, default=True).ask():
                continue

        _execute_safely(session, choice)

        if not questionary.confirm("\nReturn to the main menu?", default=True).ask():
            _goodbye(session)
            break


def _session(ctx: typer.Context) -> Session:
    return ctx.obj


@app.callback(invoke_without_command=True)
def _default(
    ctx: typer.Context,
    pod: Optional[str] = typer.Option(None, "--pod", help="Name of the main pod to monitor"),
    container: Optional[str] = typer.Option(None, "--container", help="Name of the container within the pod"),
    service: Optional[str] = typer.Option(None, "--service", help="Name of the service to monitor"),
    dependent_pods: Optional[str] = typer.Option(
        None, "--dependent-pods", help="Comma-separated list of dependent pods"
    ),
    k3s_config: Optional[Path] = typer.Option(None, "--k3s-config", help="Path to K3s config file"),
    nodeport_range: Optional[str] = typer.Option(None, "--nodeport-range", help="NodePort range, e.g. 1000-32000"),
    tcpdump_filter: Optional[str] = typer.Option(None, "--tcpdump-filter", help="tcpdump filter string"),
    interface: Optional[str] = typer.Option(None, "--interface", "-i", help="Capture interface"),
    capture_file: Optional[Path] = typer.Option(None, "--capture-file", help="Packet capture file name"),
    log_file: Optional[Path] = typer.Option(None, "--log-file", help="Log file name"),
    verbose_config_path: Optional[str] = typer.Option(
        None, "--verbose-config-path", help="Path to verbose config file"
    ),
    verbose_config_value: Optional[str] = typer.Option(
        None, "--verbose-config-value", help="Value to add to verbose config"
    ),
    output_dir: Optional[Path] = typer.Option(None, "--output", "-o", help="Output directory for results"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
    version: bool = typer.Option(False, "--version", "-V", help="Show version and exit"),
):
    """
    Network Monitoring Debug Tool.
    Run with no command for the interactive menu, or use a subcommand for a single operation.
    """
    if version:
        from netdebug import __version__
        console.print(f"netdebug {__version__}")
        raise typer.Exit(0)

    try:
        config = _build_config({
            "pod_name": pod,
            "container_name": container,
            "service_name": service,
            "dependent_pods": dependent_pods,
            "k3s_config_file": k3s_config,
            "nodeport_range": nodeport_range,
            "tcpdump_filter": tcpdump_filter,
            "interface": interface,
            "capture_file": capture_file,
            "log_file": log_file,
            "verbose_config_path": verbose_config_path,
            "verbose_config_value": verbose_config_value,
            "output_dir": output_dir,
            "verbose": True if verbose else None,
        })
    except ValidationError as e:
        console.print("[bold red]Error: invalid configuration[/bold red]")
        for err in e.errors():
            field = ".".join(str(part) for part in err["loc"]) or "config"
            console.print(f"  • {field}: {err['msg']}")
        console.print("\n[dim]Required: --pod, --container and --service (or NETDEBUG_* / .netdebug.yaml)[/dim]")
        console.print(ctx.get_help())
        raise typer.Exit(1)

    logger = setup_logging(config.output_dir, config.verbose)
    detector = SystemDetector()
    ctx.obj = Session(
        config=config,
        logger=logger,
        detector=detector,
        system_info=detector.detect_system(),
    )

    if ctx.invoked_subcommand is None:
        _run_interactive(ctx.obj)


@app.command("menu")
def menu_cmd(ctx: typer.Context):
    """
    Interactive menu (same as running netdebug with no command).
    """
    _run_interactive(_session(ctx))


@app.command()
def status(ctx: typer.Context):
    """
    Check the main pod, the service and every dependent pod.
    """
    _finish_command(_session(ctx), "status")


@app.command()
def nodeport(ctx: typer.Context):
    """
    Update the K3s NodePort range and restart K3s (requires root).
    """
    _finish_command(_session(ctx), "nodeport")


@app.command(name="sample-ips")
def sample_ips(ctx: typer.Context):
    """
    Sample tcpdump output briefly and list the distinct IPv4 addresses seen.
    """
    _finish_command(_session(ctx), "sample-ips")


@app.command()
def capture(ctx: typer.Context):
    """
    Capture packets matching the tcpdump filter into a pcap file.
    """
    _finish_command(_session(ctx), "capture")


@app.command(name="collect-logs")
def collect_logs(ctx: typer.Context):
    """
    Enable verbose logging in the container and collect its logs to a file.
    """
    _finish_command(_session(ctx), "collect-logs")
