"""Shared utility helpers."""

from sitewrap.utils.paths import copy_file_verified, sha256_file, write_json_atomically
from sitewrap.utils.time_utils import now_utc

__all__ = [
    "copy_file_verified",
    "sha256_file",
    "write_json_atomically",
    "now_utc",
]
