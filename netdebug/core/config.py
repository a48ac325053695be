"""
Configuration management.
"""

import json
import re
from datetime import datetime
from pathlib import Path
from typing import Annotated, Any, List

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


CONFIG_FILE_NAME = ".netdebug.yaml"

NODEPORT_RANGE_PATTERN = re.compile(r"^(\d+)-(\d+)$")


def load_config_file() -> dict[str, Any]:
    """
    Load optional config from ~/.netdebug.yaml or ./.netdebug.yaml.

    The first file found wins. Only keys that are AppConfig fields are returned
    so callers can overlay CLI values on top.
    """
    candidates = [
        Path.home() / CONFIG_FILE_NAME,
        Path.cwd() / CONFIG_FILE_NAME,
    ]
    raw: dict[str, Any] = {}
    for path in candidates:
        if path.exists():
            import yaml

            with open(path, "r", encoding="utf-8") as f:
                raw = yaml.safe_load(f) or {}
            break
    if not isinstance(raw, dict):
        return {}
    return {key: value for key, value in raw.items() if key in AppConfig.model_fields}


class AppConfig(BaseSettings):
    """Immutable application configuration, built once before any operation runs."""

    model_config = SettingsConfigDict(
        env_prefix="NETDEBUG_",
        frozen=True,
        extra="ignore",
    )

    pod_name: str = Field(min_length=1)
    container_name: str = Field(min_length=1)
    service_name: str = Field(min_length=1)
    dependent_pods: Annotated[List[str], NoDecode] = Field(default_factory=list)

    k3s_config_file: Path = Path("/etc/systemd/system/k3s.service")
    k3s_service: str = "k3s"
    nodeport_range: str = "1000-32000"

    tcpdump_filter: str = "udp"
    interface: str = "any"
    capture_file: Path = Path("packets.pcap")

    log_file: Path = Path("debug.log")
    verbose_config_path: str = "/etc/config/config.conf"
    verbose_config_value: str = "verbose: enabled"

    output_dir: Path = Path("output")
    verbose: bool = False
    timeout: int = 30

    sample_seconds: float = Field(default=10.0, gt=0)
    capture_seconds: float = Field(default=60.0, gt=0)
    log_seconds: float = Field(default=300.0, gt=0)
    progress_width: int = Field(default=40, gt=0)
    tick_seconds: float = Field(default=1.0, gt=0)

    @field_validator("dependent_pods", mode="before")
    @classmethod
    def split_dependent_pods(cls, v):
        """Accept a comma-separated string as well as a list."""
        if v is None:
            return []
        if isinstance(v, str):
            return [pod.strip() for pod in v.split(",") if pod.strip()]
        return v

    @field_validator("nodeport_range")
    @classmethod
    def validate_nodeport_range(cls, v: str) -> str:
        match = NODEPORT_RANGE_PATTERN.match(v.strip())
        if not match:
            raise ValueError(f"NodePort range must look like '<low>-<high>', got {v!r}")
        low, high = int(match.group(1)), int(match.group(2))
        if not 1 <= low < high <= 65535:
            raise ValueError(f"NodePort range {v!r} must satisfy 1 <= low < high <= 65535")
        return f"{low}-{high}"

    @field_validator("output_dir", mode="before")
    @classmethod
    def validate_output_dir(cls, v):
        """Validate and convert output_dir to an absolute Path."""
        if v is None or v == "":
            v = "output"
        return Path(v).expanduser().resolve()

    @model_validator(mode="after")
    def ensure_output_dir(self):
        """Ensure the output directory exists."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        return self

    def create_run_dir(self, operation_name: str) -> Path:
        """Create a timestamped directory for one operation run."""
        timestamp = datetime.now().strftime("%Y-%m-%d_%H%M%S")
        run_dir = self.output_dir / f"{timestamp}_{operation_name}"
        run_dir.mkdir(parents=True, exist_ok=True)
        return run_dir

    def resolve_artifact(self, path: Path, run_dir: Path) -> Path:
        """Place relative artifact paths inside the run directory."""
        path = Path(path).expanduser()
        if path.is_absolute():
            return path
        return run_dir / path

    def save_metadata(self, run_dir: Path, metadata: dict):
        """Save run metadata to JSON file."""
        metadata_file = run_dir / "metadata.json"

        metadata["timestamp"] = datetime.now().isoformat()

        with open(metadata_file, "w") as f:
            json.dump(metadata, f, indent=2, default=str)
