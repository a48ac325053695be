"""Shared fixtures."""
import os
from unittest.mock import MagicMock

import pytest

from netdebug.core.config import AppConfig
from netdebug.core.executor import CommandResult
from netdebug.storage.csv_handler import CSVHandler


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Keep NETDEBUG_* variables and ~/.netdebug.yaml from leaking into tests."""
    for key in list(os.environ):
        if key.startswith("NETDEBUG_"):
            monkeypatch.delenv(key, raising=False)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))


@pytest.fixture
def config(tmp_path):
    return AppConfig(
        pod_name="flow-collector",
        container_name="collector",
        service_name="flow-collector-svc",
        dependent_pods=["kafka", "clickhouse"],
        k3s_config_file=tmp_path / "k3s.service",
        output_dir=tmp_path / "output",
        tick_seconds=0.01,
    )


@pytest.fixture
def run_dir(tmp_path):
    path = tmp_path / "run"
    path.mkdir()
    return path


@pytest.fixture
def csv_handler(run_dir):
    return CSVHandler(run_dir / "results.csv")


@pytest.fixture
def executor():
    mock = MagicMock()
    mock.logger = MagicMock()
    return mock


@pytest.fixture
def make_result():
    """Factory for CommandResult objects shaped like CommandExecutor output."""

    def _make(stdout="", stderr="", return_code=0, command="kubectl"):
        return CommandResult(
            command=command,
            return_code=return_code,
            stdout=stdout,
            stderr=stderr,
            duration=0.01,
            success=(return_code == 0),
        )

    return _make
