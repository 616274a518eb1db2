"""Exceptions raised by the patcher. Each one maps to a process exit code."""

from typing import Optional


class PatcherError(Exception):
    """Base class. `state` is the last pipeline state reached before failing."""

    exit_code = 1

    def __init__(self, message: str, state: Optional[str] = None):
        super().__init__(message)
        self.state = state


class FirmwareIOError(PatcherError):
    """Input image could not be opened or read."""

    exit_code = 2


class FirmwareFormatError(PatcherError):
    """Image is truncated or its layout does not add up."""

    exit_code = 3


class UnsupportedBuildError(PatcherError):
    """Code checksum does not identify the build the patch table was made for."""

    exit_code = 4

    def __init__(self, message: str, found: int, expected: int, state: Optional[str] = None):
        super().__init__(message, state)
        self.found = found
        self.expected = expected


class FirmwareWriteError(PatcherError):
    """Output image could not be written."""

    exit_code = 5


class PatchTableError(PatcherError):
    """A patch table file is malformed."""

    exit_code = 6
