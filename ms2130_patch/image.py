"""Reading and writing firmware images."""

import contextlib
import hashlib
import json
from pathlib import Path
from typing import Any

from .errors import FirmwareIOError, FirmwareWriteError


def load_image(path) -> bytearray:
    path = Path(path)
    try:
        return bytearray(path.read_bytes())
    except OSError as e:
        raise FirmwareIOError(f"cannot read firmware {path}: {e.strerror or e}") from e


def write_image(path, data) -> None:
    """Write `data` to `path`.

    If the file cannot be opened it is left as it was. If the write fails
    after opening, the partial file is removed.
    """
    path = Path(path)
    try:
        f = path.open("wb")
    except OSError as e:
        raise FirmwareWriteError(f"cannot open {path}: {e.strerror or e}") from e
    try:
        with f:
            f.write(data)
    except OSError as e:
        with contextlib.suppress(OSError):
            path.unlink()
        raise FirmwareWriteError(f"cannot write {path}: {e.strerror or e}") from e


def write_json(path, obj: Any) -> None:
    path = Path(path)
    try:
        with path.open("w", encoding="utf-8") as f:
            json.dump(obj, f, indent=2)
            f.write("\n")
    except OSError as e:
        raise FirmwareWriteError(f"cannot write report {path}: {e.strerror or e}") from e


def sha256_bytes(data) -> str:
    return hashlib.sha256(data).hexdigest()
