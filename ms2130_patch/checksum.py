"""16-bit byte-sum checksums used by the MS2130 bootloader.

Both are plain byte sums truncated to 16 bits. The device re-checks the code
checksum at boot, so these must match its arithmetic exactly.
"""

from typing import Optional

from .container import HEADER_RESERVED_END, HEADER_RESERVED_START


def sum16_bytes(d) -> int:
    return sum(d) & 0xFFFF


def header_checksum(data, length: Optional[int] = None) -> int:
    """Sum of bytes 0x02..length, skipping the reserved field at 0x0c..0x0f."""
    if length is None:
        length = len(data)
    head = bytes(data[:length])
    return (sum16_bytes(head[2:HEADER_RESERVED_START])
            + sum16_bytes(head[HEADER_RESERVED_END:])) & 0xFFFF


def code_checksum(data, length: Optional[int] = None) -> int:
    if length is None:
        length = len(data)
    return sum16_bytes(data[:length])
