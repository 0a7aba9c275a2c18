"""Exception taxonomy for the build pipeline.

Each error names the pipeline stage that raised it and the process exit code
the CLI reports for it.
"""

from __future__ import annotations

from pathlib import Path
from typing import Sequence


class SitewrapError(Exception):
    """Base class for all fatal pipeline errors."""

    stage = "pipeline"
    exit_code = 1
    # Set when the staging tree could not be removed after this error.
    leftover_path: Path | None = None


class ValidationError(SitewrapError):
    """Raised when a build option is malformed or references a missing file."""

    stage = "options"
    exit_code = 2

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class ConfigError(SitewrapError):
    """Raised when configuration documents cannot be read or are incomplete after merge."""

    stage = "compose"
    exit_code = 3


class StagingError(SitewrapError):
    """Raised on filesystem failures while building the staging tree."""

    stage = "staging"
    exit_code = 4


class ToolchainError(SitewrapError):
    """Raised when the external build toolchain fails or cannot be started."""

    stage = "toolchain"
    exit_code = 5

    def __init__(self, message: str, *, exit_code: int | None = None, stderr_tail: Sequence[str] = ()) -> None:
        self.toolchain_exit_code = exit_code
        self.stderr_tail = tuple(stderr_tail)
        detail = message
        if self.stderr_tail:
            detail = f"{message}\n--- toolchain stderr (tail) ---\n" + "\n".join(self.stderr_tail)
        super().__init__(detail)


class ArtifactNotFoundError(SitewrapError):
    """Raised when the toolchain reported success but produced no matching artifact."""

    stage = "collect"
    exit_code = 6

    def __init__(self, search_dirs: Sequence[Path], patterns: Sequence[str]) -> None:
        self.search_dirs = tuple(search_dirs)
        self.patterns = tuple(patterns)
        rendered_dirs = ", ".join(str(path) for path in self.search_dirs)
        rendered_patterns = ", ".join(self.patterns)
        super().__init__(
            f"toolchain reported success but no artifact matched [{rendered_patterns}] in: {rendered_dirs}"
        )


class ArtifactRelocationError(SitewrapError):
    """Raised when a produced artifact cannot be moved into the output directory."""

    stage = "collect"
    exit_code = 7
