"""
Read -> verify -> gate -> patch -> re-checksum -> write.

Checksum mismatches on the input are reported as warnings only. The one hard
gate is the code checksum identifying the build the patch set was made for;
if it does not match, the buffer is left alone and nothing is written.

The header checksum field is never rewritten: it does not cover the code
region and the device does not re-check it after this kind of patch.
"""

from pathlib import Path
from typing import Any, Dict, Optional

from .checksum import code_checksum, header_checksum
from .container import (CODE_OFFSET, code_region, parse_layout,
                        write_code_checksum)
from .errors import FirmwareWriteError, PatcherError, UnsupportedBuildError
from .image import load_image, sha256_bytes, write_image, write_json
from .patches import MS2130_PATCHES, PatchSet, apply_patches, is_already_patched

STATE_LOADED = "loaded"
STATE_HEADER_VERIFIED = "header_verified"
STATE_CODE_VERIFIED = "code_verified"
STATE_PATCH_GATE_CHECKED = "patch_gate_checked"
STATE_PATCHED = "patched"
STATE_RECHECKSUMMED = "rechecksummed"
STATE_WRITTEN = "written"
STATE_FAILED = "failed"

MODE_PATCH = "patch"
MODE_VERIFY = "verify"
MODE_RECALC = "recalc"

DEFAULT_INPUT = Path("./4k2.bin")
DEFAULT_OUTPUT = Path("./patched.bin")


def _say(verbose: bool, msg: str) -> None:
    if verbose:
        print(msg)


def _advance(summary: Dict[str, Any], state: str) -> None:
    summary["state"] = state
    summary["states"].append(state)


def new_summary(data) -> Dict[str, Any]:
    return {
        "size_bytes": len(data),
        "layout": {},
        "checksum": {},
        "bytes_written": [],
        "hashes": {"sha256_before": sha256_bytes(data)},
        "warnings": [],
        "state": STATE_LOADED,
        "states": [STATE_LOADED],
    }


def verify_firmware(data, summary: Optional[Dict[str, Any]] = None,
                    verbose: bool = True) -> Dict[str, Any]:
    """Parse the layout and compare both stored checksums to computed ones.

    Mismatches are added to summary["warnings"]; nothing in `data` changes.
    """
    if summary is None:
        summary = new_summary(data)

    _say(verbose, f"Length of file: {len(data)}")
    layout = parse_layout(data)
    _say(verbose, f"Code length: {layout.code_len}")

    summary["layout"] = {
        "code_len": layout.code_len,
        "code_start": f"0x{layout.code_start:04x}",
        "code_end": f"0x{layout.code_end:05x}",
        "header_checksum_at": f"0x{layout.header_checksum_offset:05x}",
        "code_checksum_at": f"0x{layout.code_checksum_offset:05x}",
    }

    calc_header = header_checksum(data, CODE_OFFSET)
    stored_header = layout.stored_header_checksum
    summary["checksum"].update({
        "header_stored": stored_header,
        "header_calc": calc_header,
        "header_ok": calc_header == stored_header,
    })
    if calc_header != stored_header:
        msg = f"Original header checksum mismatch: {stored_header:04x} != {calc_header:04x}"
        summary["warnings"].append(msg)
        _say(verbose, f"[WARN] {msg}")
    else:
        _say(verbose, f"[OK] Original header checksum matches: {stored_header:04x}")
    _advance(summary, STATE_HEADER_VERIFIED)

    code = code_region(data, layout)
    try:
        calc_code = code_checksum(code)
    finally:
        code.release()
    stored_code = layout.stored_code_checksum
    summary["checksum"].update({
        "code_stored": stored_code,
        "code_calc": calc_code,
        "code_ok": calc_code == stored_code,
    })
    if calc_code != stored_code:
        msg = f"Original code checksum mismatch: {stored_code:04x} != {calc_code:04x}"
        summary["warnings"].append(msg)
        _say(verbose, f"[WARN] {msg}")
    else:
        _say(verbose, f"[OK] Original code checksum matches: {stored_code:04x}")
    _advance(summary, STATE_CODE_VERIFIED)

    return summary


def rechecksum(data: bytearray, summary: Dict[str, Any], verbose: bool = True) -> int:
    layout = parse_layout(data)
    code = code_region(data, layout)
    try:
        new_csum = code_checksum(code)
    finally:
        code.release()
    write_code_checksum(data, layout, new_csum)
    summary["checksum"]["code_after"] = new_csum
    _say(verbose, f"[OK] Code checksum updated: {layout.stored_code_checksum:04x} -> {new_csum:04x}")
    _advance(summary, STATE_RECHECKSUMMED)
    return new_csum


def patch_firmware(data: bytearray, patch_set: PatchSet = MS2130_PATCHES,
                   summary: Optional[Dict[str, Any]] = None,
                   verbose: bool = True) -> Dict[str, Any]:
    """Verify, gate, patch and re-checksum `data` in place.

    Raises UnsupportedBuildError without touching `data` when the code
    checksum is not the one `patch_set` was built against.
    """
    if summary is None:
        summary = new_summary(data)
    summary["patch_set"] = patch_set.name

    try:
        verify_firmware(data, summary, verbose)

        calc_code = summary["checksum"]["code_calc"]
        summary["checksum"]["code_expected"] = patch_set.code_checksum
        layout = parse_layout(data)
        code = code_region(data, layout)
        try:
            if calc_code != patch_set.code_checksum:
                msg = (f"The code checksum {calc_code:04x} does not match the firmware "
                       f"this patch set was written for ({patch_set.code_checksum:04x}), "
                       f"patch not applied!")
                if is_already_patched(code, patch_set.patches):
                    msg += " The image already contains these patches."
                raise UnsupportedBuildError(msg, found=calc_code,
                                            expected=patch_set.code_checksum)
            _advance(summary, STATE_PATCH_GATE_CHECKED)

            summary["bytes_written"] = apply_patches(code, patch_set.patches)
        finally:
            code.release()
        for rec in summary["bytes_written"]:
            _say(verbose, f"[patch] {rec['offset']}: {rec['before']} -> {rec['after']}  ({rec['description']})")
        _advance(summary, STATE_PATCHED)

        rechecksum(data, summary, verbose)
    except PatcherError as e:
        if e.state is None:
            e.state = summary["state"]
        summary["state"] = STATE_FAILED
        raise

    summary["hashes"]["sha256_after"] = sha256_bytes(data)
    return summary


def recalc_firmware(data: bytearray, summary: Optional[Dict[str, Any]] = None,
                    verbose: bool = True) -> Dict[str, Any]:
    """Recompute and store the code checksum without applying any patch."""
    if summary is None:
        summary = new_summary(data)
    try:
        verify_firmware(data, summary, verbose)
        rechecksum(data, summary, verbose)
    except PatcherError as e:
        if e.state is None:
            e.state = summary["state"]
        summary["state"] = STATE_FAILED
        raise
    summary["hashes"]["sha256_after"] = sha256_bytes(data)
    return summary


def report_path_for(output_path) -> Path:
    output_path = Path(output_path)
    return output_path.with_name(output_path.name + ".json")


def run(input_path=DEFAULT_INPUT, output_path=DEFAULT_OUTPUT,
        patch_set: PatchSet = MS2130_PATCHES, mode: str = MODE_PATCH,
        dry_run: bool = False, report: bool = True,
        verbose: bool = True) -> Dict[str, Any]:
    """Load `input_path`, process it according to `mode` and write the result.

    MODE_VERIFY never writes anything. With `dry_run` the image is processed
    in memory but neither the output nor its report is written.
    """
    input_path = Path(input_path)
    output_path = Path(output_path)

    data = load_image(input_path)
    summary = new_summary(data)
    summary["input"] = str(input_path)
    summary["output"] = None if mode == MODE_VERIFY else str(output_path)
    summary["mode"] = mode

    if mode == MODE_VERIFY:
        try:
            return verify_firmware(data, summary, verbose)
        except PatcherError as e:
            if e.state is None:
                e.state = summary["state"]
            summary["state"] = STATE_FAILED
            raise

    if mode == MODE_RECALC:
        recalc_firmware(data, summary, verbose)
    elif mode == MODE_PATCH:
        patch_firmware(data, patch_set, summary, verbose)
    else:
        raise ValueError(f"unknown mode: {mode}")

    if dry_run:
        _say(verbose, f"[dry-run] not writing {output_path}")
        return summary

    try:
        write_image(output_path, data)
    except PatcherError as e:
        e.state = summary["state"]
        summary["state"] = STATE_FAILED
        raise
    _advance(summary, STATE_WRITTEN)
    _say(verbose, f"[OK] Wrote {output_path}")

    if report:
        rp = report_path_for(output_path)
        try:
            write_json(rp, summary)
        except FirmwareWriteError as e:
            e.state = summary["state"]
            summary["state"] = STATE_FAILED
            raise FirmwareWriteError(
                f"{output_path} was written but its report could not be: {e}",
                state=e.state) from e
        _say(verbose, f"[OK] Wrote {rp}")

    return summary
