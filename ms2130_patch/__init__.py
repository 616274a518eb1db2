"""MS2130 capture-card firmware patcher (sharpening / scaler disable)."""

from .checksum import code_checksum, header_checksum
from .container import CODE_OFFSET, FirmwareLayout, parse_layout
from .errors import (FirmwareFormatError, FirmwareIOError, FirmwareWriteError,
                     PatcherError, PatchTableError, UnsupportedBuildError)
from .patches import (CODE_CHECKSUM, MS2130_PATCHES, Patch, PatchSet,
                      apply_patches, load_patch_set)
from .pipeline import patch_firmware, recalc_firmware, run, verify_firmware

__version__ = "1.0.0"
