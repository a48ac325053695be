"""Tests for the command executor (with mocked subprocess)."""
import subprocess
from unittest.mock import MagicMock, patch

import pytest

from netdebug.core.detector import SystemInfo
from netdebug.core.executor import CommandExecutor, CommandResult


@pytest.fixture
def mock_logger():
    return MagicMock()


@pytest.fixture
def system_info():
    return SystemInfo(
        os_type="Linux",
        platform="Linux-6.1-x86_64",
        python_version="3.11.0",
        hostname="k3s-node",
    )


@pytest.fixture
def command_executor(system_info, mock_logger):
    return CommandExecutor(system_info, mock_logger)


def test_run_command_success(command_executor):
    """run_command returns CommandResult with success=True when process returns 0."""
    with patch("netdebug.core.executor.subprocess.run") as m_run:
        m_run.return_value = MagicMock(
            returncode=0,
            stdout='{"items": []}',
            stderr="",
        )
        result = command_executor.run_command(["kubectl", "get", "pods", "-o", "json"])
    assert isinstance(result, CommandResult)
    assert result.success is True
    assert result.return_code == 0
    assert result.command == "kubectl get pods -o json"
    assert result.stdout == '{"items": []}'


def test_run_command_failure(command_executor):
    """run_command returns success=False when process returns non-zero."""
    with patch("netdebug.core.executor.subprocess.run") as m_run:
        m_run.return_value = MagicMock(
            returncode=1,
            stdout="",
            stderr="The connection to the server localhost:8080 was refused",
        )
        result = command_executor.run_command(["kubectl", "get", "services", "-o", "json"])
    assert result.success is False
    assert result.return_code == 1
    assert "refused" in result.stderr


def test_run_command_missing_binary(command_executor, mock_logger):
    with patch("netdebug.core.executor.subprocess.run", side_effect=FileNotFoundError("No such file: 'kubectl'")):
        result = command_executor.run_command(["kubectl", "version"])
    assert result.success is False
    assert result.return_code == -1
    assert "kubectl" in result.stderr
    mock_logger.error.assert_called_once()


def test_run_command_timeout(command_executor):
    with patch(
        "netdebug.core.executor.subprocess.run",
        side_effect=subprocess.TimeoutExpired(cmd="systemctl restart k3s", timeout=5),
    ):
        result = command_executor.run_command(["systemctl", "restart", "k3s"], timeout=5)
    assert result.success is False
    assert "timed out after 5 seconds" in result.stderr
