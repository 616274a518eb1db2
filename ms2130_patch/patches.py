"""
Patch tables and patch application.

Offsets are relative to the start of the code region. A patch set is only
valid for the build whose code checksum it names; the pipeline enforces that
gate before calling apply_patches().
"""

import json
from collections import namedtuple
from pathlib import Path
from typing import Dict, List, Sequence

from .errors import FirmwareFormatError, PatchTableError

CODE_CHECKSUM = 0x09DB

Patch = namedtuple('Patch', ['offset', 'data', 'description'])
PatchSet = namedtuple('PatchSet', ['name', 'code_checksum', 'patches'])


# Disable sharpening and the scaler, see also
# https://github.com/steve-m/hsdaoh/blob/21a4b470b4c079792034258304f6044bddc8abad/src/libhsdaoh.c#L205
MS2130_PATCHES = PatchSet(
    name="ms2130-4k2-no-scaler",
    code_checksum=CODE_CHECKSUM,
    patches=(
        Patch(0x9604, b"\xBF\x44", "clear_extmem_mask() -> set_extmem_mask(0xf6be, 0x11)"),
        Patch(0x960D, b"\xBF\x44", "clear_extmem_mask() -> set_extmem_mask(0xf6bf, 0x11)"),
        Patch(0xBE90, b"\x00\x06", "FUN_CODE_b8ad() -> clear_extmem_mask(0xf6b0, 0x01)"),
        Patch(0xBEE8, b"\x80", "set_extmem_mask(0xf600, 0x80), set bit 7"),
        # NOP ; MOV R6,#0x10 instead of calling the scaler calculation
        Patch(0x937E, b"\x00\x7E\x10", "horizontal scaler forced off"),
        Patch(0x9399, b"\x00\x7E\x10", "vertical scaler forced off"),
    ),
)


def hexb(b: bytes) -> str:
    return ' '.join(f'{x:02x}' for x in b)


def parse_int(x) -> int:
    return int(str(x), 0)


def check_patch_bounds(code_len: int, patches: Sequence[Patch]) -> None:
    for p in patches:
        if p.offset < 0 or p.offset + len(p.data) > code_len:
            raise FirmwareFormatError(
                f"patch @ {p.offset:#06x} (+{len(p.data)}) outside code region of {code_len:#x} bytes")


def apply_patches(code, patches: Sequence[Patch]) -> List[Dict[str, str]]:
    """Overwrite each patch's bytes in `code` in place.

    Bounds are checked for every patch before the first write, so either all
    patches land or none do. Returns one record per patch with the bytes that
    were replaced.
    """
    check_patch_bounds(len(code), patches)

    written = []
    for p in patches:
        end = p.offset + len(p.data)
        before = bytes(code[p.offset:end])
        code[p.offset:end] = p.data
        written.append({
            "offset": f"0x{p.offset:04x}",
            "before": hexb(before),
            "after": hexb(p.data),
            "description": p.description,
        })
    return written


def is_already_patched(code, patches: Sequence[Patch]) -> bool:
    for p in patches:
        end = p.offset + len(p.data)
        if end > len(code) or bytes(code[p.offset:end]) != p.data:
            return False
    return bool(patches)


def load_patch_set(path) -> PatchSet:
    """Read a patch table from JSON.

    {
      "name": "ms2130-4k2-no-scaler",
      "code_checksum": "0x09db",
      "patches": [{"offset": "0x9604", "bytes": "bf44", "description": "..."}]
    }
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise PatchTableError(f"cannot read patch table {path}: {e}") from e
    except ValueError as e:
        raise PatchTableError(f"patch table {path} is not valid JSON: {e}") from e

    try:
        patches = tuple(
            Patch(parse_int(e["offset"]),
                  bytes.fromhex(str(e["bytes"])),
                  e.get("description", ""))
            for e in raw["patches"]
        )
        patch_set = PatchSet(
            name=raw.get("name", path.stem),
            code_checksum=parse_int(raw["code_checksum"]) & 0xFFFF,
            patches=patches,
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise PatchTableError(f"patch table {path} is malformed: {e!r}") from e

    if not patches:
        raise PatchTableError(f"patch table {path} has no patches")
    for p in patches:
        if p.offset < 0 or not p.data:
            raise PatchTableError(f"patch table {path}: bad entry at {p.offset:#x}")
    return patch_set


def dump_patch_set(patch_set: PatchSet) -> Dict:
    return {
        "name": patch_set.name,
        "code_checksum": f"0x{patch_set.code_checksum:04x}",
        "patches": [
            {"offset": f"0x{p.offset:04x}", "bytes": p.data.hex(), "description": p.description}
            for p in patch_set.patches
        ],
    }
