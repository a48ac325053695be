"""
Network utility functions.
"""

import re
from typing import List

# No octet bounds check: "999.999.999.999" is extracted as-is.
IPV4_PATTERN = re.compile(r"\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3}")


def extract_ipv4(line: str) -> List[str]:
    """
    Return every non-overlapping IPv4 literal found in a line of text.

    Args:
        line: A line of tool output (e.g. tcpdump)

    Returns:
        Matches in order of appearance, duplicates included
    """
    return IPV4_PATTERN.findall(line)
