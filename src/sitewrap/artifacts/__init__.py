"""Locate and relocate toolchain output bundles."""

from sitewrap.artifacts.collector import (
    ArtifactCollection,
    BuildArtifact,
    bundle_root,
    collect_artifacts,
    find_artifacts,
)

__all__ = [
    "ArtifactCollection",
    "BuildArtifact",
    "bundle_root",
    "collect_artifacts",
    "find_artifacts",
]
