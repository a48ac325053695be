"""
Host and tool detection for the K3s node the tool runs on.
"""

import os
import platform
import shutil
import socket
import sys
from typing import Dict, List, Optional

from pydantic import BaseModel


class SystemInfo(BaseModel):
    """Facts about the host, recorded in every run's metadata."""

    os_type: str  # 'Linux', 'Darwin'
    platform: str
    python_version: str
    hostname: str
    privileged: bool = False


class MissingTool(BaseModel):
    """A required binary that is not on PATH and the operations that need it."""

    name: str
    suggestion: str
    needed_by: List[str] = []


# binary -> operations that shell out to it
TOOL_OPERATIONS: Dict[str, List[str]] = {
    "kubectl": ["Pod & Service Status", "Log Collection"],
    "tcpdump": ["Traffic Sample", "Packet Capture"],
    "systemctl": ["NodePort Update"],
}

INSTALL_HINTS = {
    "Linux": {
        "kubectl": "Install kubectl or run on a K3s node (k3s ships 'k3s kubectl')",
        "tcpdump": "sudo apt-get install tcpdump (or yum install tcpdump)",
        "systemctl": "Requires a systemd-based host",
    },
    "Darwin": {
        "kubectl": "brew install kubectl",
        "tcpdump": "Pre-installed",
        "systemctl": "Not available on macOS; run NodePort updates on the K3s node",
    },
}


def _is_privileged() -> bool:
    geteuid = getattr(os, "geteuid", None)
    return geteuid is not None and geteuid() == 0


class SystemDetector:
    """Detect host information and which of kubectl/tcpdump/systemctl are installed."""

    def detect_system(self) -> SystemInfo:
        return SystemInfo(
            os_type=platform.system(),
            platform=platform.platform(),
            python_version=sys.version.split()[0],
            hostname=socket.gethostname(),
            privileged=_is_privileged(),
        )

    def check_required_tools(self, tools: Optional[List[str]] = None) -> List[MissingTool]:
        """Return the tools (default: all of TOOL_OPERATIONS) that are not on PATH."""
        os_type = platform.system()
        missing = []
        for tool in tools or list(TOOL_OPERATIONS):
            if shutil.which(tool) is not None:
                continue
            missing.append(MissingTool(
                name=tool,
                suggestion=INSTALL_HINTS.get(os_type, {}).get(tool, f"Please install {tool} manually"),
                needed_by=TOOL_OPERATIONS.get(tool, []),
            ))
        return missing
