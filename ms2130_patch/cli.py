#!/usr/bin/env python3
"""
MS2130 firmware patcher: disables sharpening, scaling etc.

Usage:
  ms2130-patch                          # ./4k2.bin -> ./patched.bin
  ms2130-patch in.bin out.bin [--dry-run]
  ms2130-patch in.bin --verify-only
  ms2130-patch in.bin out.bin --recalc-only
  ms2130-patch in.bin out.bin --patch-table other_build.json

Exit codes: 0 ok, 2 read error, 3 bad image layout, 4 unsupported firmware
build (patch not applied), 5 write error, 6 bad patch table.
"""

import argparse
import json
import sys

from .errors import PatcherError
from .patches import MS2130_PATCHES, dump_patch_set, load_patch_set
from .pipeline import (DEFAULT_INPUT, DEFAULT_OUTPUT, MODE_PATCH, MODE_RECALC,
                       MODE_VERIFY, STATE_FAILED, run)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="ms2130-patch",
        description="Patch MS2130 capture-card firmware to disable sharpening and scaling")
    ap.add_argument("input", nargs="?", default=str(DEFAULT_INPUT),
                    help=f"vendor firmware image (default: {DEFAULT_INPUT})")
    ap.add_argument("output", nargs="?", default=str(DEFAULT_OUTPUT),
                    help=f"patched image to write (default: {DEFAULT_OUTPUT})")
    ap.add_argument("--patch-table", metavar="JSON",
                    help="load the patch set from a JSON table instead of the built-in one")
    mode = ap.add_mutually_exclusive_group()
    mode.add_argument("--verify-only", action="store_true",
                      help="only report layout and checksums, write nothing")
    mode.add_argument("--recalc-only", action="store_true",
                      help="only recompute and store the code checksum")
    mode.add_argument("--dump-patch-table", action="store_true",
                      help="print the active patch set as JSON and exit")
    ap.add_argument("--dry-run", action="store_true", help="process in memory, write nothing")
    ap.add_argument("--no-report", action="store_true", help="do not write <output>.json")
    ap.add_argument("--json", action="store_true", help="print the run summary as JSON")
    ap.add_argument("-q", "--quiet", action="store_true", help="only print errors")
    return ap


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    verbose = not args.quiet and not args.json

    try:
        patch_set = load_patch_set(args.patch_table) if args.patch_table else MS2130_PATCHES

        if args.dump_patch_table:
            print(json.dumps(dump_patch_set(patch_set), indent=2))
            return 0

        if args.verify_only:
            mode = MODE_VERIFY
        elif args.recalc_only:
            mode = MODE_RECALC
        else:
            mode = MODE_PATCH

        summary = run(args.input, args.output, patch_set=patch_set, mode=mode,
                      dry_run=args.dry_run, report=not args.no_report, verbose=verbose)
    except PatcherError as e:
        state = e.state or "start"
        print(f"[FAIL] {e}", file=sys.stderr)
        print(f"[FAIL] stopped after state '{state}' -> {STATE_FAILED}", file=sys.stderr)
        return e.exit_code

    if args.json:
        print(json.dumps(summary, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
