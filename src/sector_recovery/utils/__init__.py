"""Shared utility helpers."""

from sector_recovery.utils.paths import (
    atomic_temp_path,
    expand_output_dir,
    write_json_atomically,
    write_text_atomically,
)
from sector_recovery.utils.time_utils import format_elapsed

__all__ = [
    "atomic_temp_path",
    "expand_output_dir",
    "write_json_atomically",
    "write_text_atomically",
    "format_elapsed",
]
