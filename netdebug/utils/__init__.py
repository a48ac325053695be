"""
Utility functions.
"""

from netdebug.utils.network import IPV4_PATTERN, extract_ipv4

__all__ = [
    "IPV4_PATTERN",
    "extract_ipv4",
]
