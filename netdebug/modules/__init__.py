"""
Troubleshooting operations.
"""

from netdebug.modules.base import BaseOperation, OperationResult
from netdebug.modules.health import ClusterQuery, HealthCheck, PodCheck, ServiceCheck
from netdebug.modules.logs import LogCollection
from netdebug.modules.nodeport import NodePortUpdate
from netdebug.modules.traffic import PacketCapture, TrafficSample

__all__ = [
    "BaseOperation",
    "OperationResult",
    "ClusterQuery",
    "HealthCheck",
    "PodCheck",
    "ServiceCheck",
    "LogCollection",
    "NodePortUpdate",
    "PacketCapture",
    "TrafficSample",
]
