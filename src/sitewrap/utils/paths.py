"""Path and filesystem helper functions."""

from __future__ import annotations

import hashlib
import json
import os
import shutil
from pathlib import Path
from typing import Any
from uuid import uuid4

_HASH_CHUNK_BYTES = 1024 * 1024


def _atomic_temp_path(target_path: Path) -> Path:
    """Create a unique temp path next to the target for atomic replacement."""

    return target_path.parent / f".{target_path.name}.{uuid4().hex}.tmp"


def write_json_atomically(payload: dict[str, Any], output_path: Path) -> Path:
    """Write JSON atomically via temporary file then os.replace."""

    output_path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = _atomic_temp_path(output_path)
    try:
        temp_path.write_text(json.dumps(payload, indent=2, default=str) + "\n", encoding="utf-8")
        os.replace(temp_path, output_path)
    finally:
        if temp_path.exists():
            temp_path.unlink()
    return output_path


def sha256_file(path: Path) -> str:
    """Return the hex SHA-256 digest of a file, read in chunks."""

    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(_HASH_CHUNK_BYTES), b""):
            digest.update(chunk)
    return digest.hexdigest()


def copy_file_verified(source: Path, destination: Path) -> str:
    """Copy a regular file and confirm the copy by checksum.

    Symlinks are followed so the destination always holds real file content.
    Returns the digest shared by both files; raises ``OSError`` on mismatch.
    """

    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, destination, follow_symlinks=True)
    expected = sha256_file(source)
    actual = sha256_file(destination)
    if expected != actual:
        raise OSError(f"checksum mismatch copying {source} -> {destination}")
    return actual
