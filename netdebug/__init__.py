"""
NetDebug - Network Monitoring Debug Tool
"""

from netdebug.__version__ import __version__

__all__ = [
    "__version__",
]
