"""
MS2130 firmware container layout.

    0x00 .. 0x30            header (code length as BE u16 at 0x02)
    0x30 .. 0x30+code_len   code region
    +0 .. +2                header checksum (BE u16)
    +2 .. +4                code checksum (BE u16)

Anything after the code checksum is carried through untouched.
"""

from collections import namedtuple

from .errors import FirmwareFormatError

CODE_OFFSET = 0x30
CODE_LEN_OFFSET = 0x02

# header checksum skips this range
HEADER_RESERVED_START = 0x0C
HEADER_RESERVED_END = 0x10

CHECKSUM_TRAILER_SIZE = 4


FirmwareLayout = namedtuple('FirmwareLayout', [
    'file_len',
    'code_len',
    'code_start',
    'code_end',
    'header_checksum_offset',
    'code_checksum_offset',
    'stored_header_checksum',
    'stored_code_checksum',
])


def read_u16_be(buf, off: int) -> int:
    return (buf[off] << 8) | buf[off + 1]


def write_u16_be(buf, off: int, val: int) -> None:
    buf[off] = (val >> 8) & 0xFF
    buf[off + 1] = val & 0xFF


def read_code_length(data) -> int:
    if len(data) < CODE_OFFSET:
        raise FirmwareFormatError(
            f"image too small for header: {len(data)} bytes, need at least {CODE_OFFSET:#x}")
    return read_u16_be(data, CODE_LEN_OFFSET)


def parse_layout(data) -> FirmwareLayout:
    """Locate the code region and both checksum fields.

    Raises FirmwareFormatError if the image is shorter than the header plus
    the code length it declares plus the checksum trailer.
    """
    code_len = read_code_length(data)
    code_end = CODE_OFFSET + code_len
    needed = code_end + CHECKSUM_TRAILER_SIZE
    if len(data) < needed:
        raise FirmwareFormatError(
            f"image truncated: code length {code_len:#x} needs {needed:#x} bytes, "
            f"file has {len(data):#x}")

    return FirmwareLayout(
        file_len=len(data),
        code_len=code_len,
        code_start=CODE_OFFSET,
        code_end=code_end,
        header_checksum_offset=code_end,
        code_checksum_offset=code_end + 2,
        stored_header_checksum=read_u16_be(data, code_end),
        stored_code_checksum=read_u16_be(data, code_end + 2),
    )


def code_region(data: bytearray, layout: FirmwareLayout) -> memoryview:
    """Writable view of the code region. Edits land in `data`."""
    return memoryview(data)[layout.code_start:layout.code_end]


def write_code_checksum(data: bytearray, layout: FirmwareLayout, value: int) -> None:
    write_u16_be(data, layout.code_checksum_offset, value & 0xFFFF)
