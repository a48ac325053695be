"""Tests for debug log collection."""
from unittest.mock import MagicMock

import pytest

from netdebug.core.runner import RunOutcome
from netdebug.modules.logs import LogCollection, enable_verbose_command, follow_logs_command


@pytest.fixture
def kubectl(executor, make_result):
    """Label lookup, exec and name lookup all succeed."""

    def _run(command, timeout=30):
        if "-l" in command:
            return make_result(stdout="flow-collector-abc")
        if command[1] == "exec":
            return make_result(command=" ".join(command))
        if command[:3] == ["kubectl", "get", "pods"]:
            return make_result(stdout="kafka-0 flow-collector-abc")
        return make_result(return_code=1, stderr="unexpected")

    executor.run_command.side_effect = _run
    return executor


@pytest.fixture
def runner():
    mock = MagicMock()

    def _drain(command, destination, duration=None, progress=None, early_stop=None):
        destination.write_text("level=debug msg=flow received\n")
        return RunOutcome(
            command=" ".join(command),
            mode="drain-to-file",
            status="success",
            stop_reason="timeout",
            duration=duration,
            artifact=destination,
        )

    mock.drain_to_file.side_effect = _drain
    return mock


def test_enable_verbose_command_quotes_arguments():
    command = enable_verbose_command("p", "c", "verbose: enabled", "/etc/config/config.conf")
    assert command[:7] == ["kubectl", "exec", "p", "-c", "c", "--", "sh"]
    assert command[-1] == "echo 'verbose: enabled' >> /etc/config/config.conf"


def test_follow_logs_command():
    assert follow_logs_command("p", "c") == ["kubectl", "logs", "-f", "p", "-c", "c"]


def test_collects_logs(config, kubectl, csv_handler, run_dir, runner):
    result = LogCollection(config, kubectl, csv_handler, runner, run_dir).run()

    assert result.status == "success"
    assert "debug.log" in result.summary
    assert (run_dir / "debug.log").read_text().startswith("level=debug")

    args, kwargs = runner.drain_to_file.call_args
    assert args[0] == follow_logs_command("flow-collector-abc", "collector")
    assert kwargs["duration"] == 300.0

    exec_calls = [c.args[0] for c in kubectl.run_command.call_args_list if c.args[0][1] == "exec"]
    assert exec_calls == [enable_verbose_command(
        "flow-collector-abc", "collector", "verbose: enabled", "/etc/config/config.conf",
    )]


def test_no_labelled_pod(config, executor, make_result, csv_handler, run_dir, runner):
    executor.run_command.return_value = make_result(stdout="")

    result = LogCollection(config, executor, csv_handler, runner, run_dir).run()

    assert result.status == "failure"
    assert "app=flow-collector" in result.summary
    runner.drain_to_file.assert_not_called()


def test_exec_failure_stops_collection(config, kubectl, make_result, csv_handler, run_dir, runner):
    route = kubectl.run_command.side_effect

    def _run(command, timeout=30):
        if command[1] == "exec":
            return make_result(return_code=1, stderr="container not found")
        return route(command, timeout=timeout)

    kubectl.run_command.side_effect = _run

    result = LogCollection(config, kubectl, csv_handler, runner, run_dir).run()

    assert result.status == "failure"
    assert result.summary == "Failed to enable debug logs"
    assert result.error == "container not found"
    runner.drain_to_file.assert_not_called()


def test_runner_start_failure(config, kubectl, csv_handler, run_dir):
    runner = MagicMock()
    runner.drain_to_file.return_value = RunOutcome(
        command="kubectl logs", mode="drain-to-file", status="start_failure", error="kubectl missing",
    )

    result = LogCollection(config, kubectl, csv_handler, runner, run_dir).run()

    assert result.status == "failure"
    assert "kubectl missing" in result.summary


def test_log_stream_ending_with_error(config, kubectl, csv_handler, run_dir):
    runner = MagicMock()
    runner.drain_to_file.return_value = RunOutcome(
        command="kubectl logs -f flow-collector-abc -c collector",
        mode="drain-to-file",
        status="success",
        stop_reason="exited",
        return_code=1,
        stderr='Error from server (NotFound): pods "flow-collector-abc" not found',
    )

    result = LogCollection(config, kubectl, csv_handler, runner, run_dir).run()

    assert result.status == "failure"
    assert "exited early with code 1" in result.summary
    assert "NotFound" in result.error


def test_log_stream_ending_cleanly_is_success(config, kubectl, csv_handler, run_dir):
    runner = MagicMock()
    runner.drain_to_file.return_value = RunOutcome(
        command="kubectl logs -f flow-collector-abc -c collector",
        mode="drain-to-file",
        status="success",
        stop_reason="exited",
        return_code=0,
    )

    result = LogCollection(config, kubectl, csv_handler, runner, run_dir).run()

    assert result.status == "success"
