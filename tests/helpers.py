"""Synthetic MS2130 images for tests."""

from ms2130_patch.checksum import code_checksum, header_checksum
from ms2130_patch.container import CODE_OFFSET

CODE_LEN = 0xC000

# nine 0xff bytes + 0xe4 sum to 0x09db
STOCK_PREFIX = b"\xFF" * 9 + b"\xE4"

# 0x09db plus the bytes the MS2130 patch set writes over zeroes
PATCHED_CODE_CHECKSUM = 0x0D83


def stock_code(code_len=CODE_LEN) -> bytearray:
    code = bytearray(code_len)
    code[:len(STOCK_PREFIX)] = STOCK_PREFIX
    return code


def build_image(code=None, header_csum=None, code_csum=None, tail=b"") -> bytearray:
    """Header + code + both checksums (+ optional trailing bytes).

    Checksums default to the correct values for the given contents.
    """
    if code is None:
        code = stock_code()
    header = bytearray(CODE_OFFSET)
    header[0:2] = b"\xA5\x5A"
    header[2] = (len(code) >> 8) & 0xFF
    header[3] = len(code) & 0xFF
    header[4:12] = b"MS2130\x00\x01"
    header[0x0C:0x10] = b"\xDE\xAD\xBE\xEF"
    header[0x10:0x14] = b"\x12\x34\x56\x78"

    if header_csum is None:
        header_csum = header_checksum(header, CODE_OFFSET)
    if code_csum is None:
        code_csum = code_checksum(code)

    return (header + code
            + bytes([(header_csum >> 8) & 0xFF, header_csum & 0xFF])
            + bytes([(code_csum >> 8) & 0xFF, code_csum & 0xFF])
            + tail)
