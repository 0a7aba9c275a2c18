"""Find the toolchain's bundles in the staging tree and move them to the output directory."""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

from sitewrap.errors import ArtifactNotFoundError, ArtifactRelocationError
from sitewrap.options import BuildOptions
from sitewrap.platforms import ArtifactKind
from sitewrap.staging.tree import StagingTree, remove_staging_tree

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BuildArtifact:
    """One relocated bundle file (or bundle directory for ``.app``)."""

    kind: str
    source_path: Path
    path: Path


@dataclass(frozen=True, slots=True)
class ArtifactCollection:
    """Relocated artifacts and whether the staging tree was removed afterwards."""

    artifacts: tuple[BuildArtifact, ...]
    staging_removed: bool


def bundle_root(tree: StagingTree, options: BuildOptions) -> Path:
    """Directory holding per-format bundle folders for this build's profile and target."""

    profile = "debug" if options.debug else "release"
    root = tree.target_dir
    triple = options.descriptor.multi_arch_triple
    if options.multi_arch and triple:
        root = root / triple
    return root / profile / "bundle"


def find_artifacts(tree: StagingTree, options: BuildOptions) -> list[tuple[ArtifactKind, list[Path]]]:
    """Return matches per requested bundle target, sorted by name for stable ordering."""

    root = bundle_root(tree, options)
    found: list[tuple[ArtifactKind, list[Path]]] = []
    for target in options.targets:
        kind = options.descriptor.artifact_kind(target)
        search_dir = root / kind.bundle_subdir
        matches = sorted(search_dir.glob(kind.pattern)) if search_dir.is_dir() else []
        found.append((kind, matches))
    return found


def _discard(path: Path, logger: logging.Logger) -> None:
    try:
        if path.is_dir() and not path.is_symlink():
            shutil.rmtree(path)
        elif path.exists() or path.is_symlink():
            path.unlink()
    except OSError as exc:
        logger.warning("collect.cleanup_failed path=%s error=%s", path, exc)


def _move_into_place(source: Path, destination: Path, logger: logging.Logger) -> None:
    """Move ``source`` next to ``destination`` first, then swap it in.

    An existing bundle at ``destination`` is only removed once the new one
    is fully inside the output directory.
    """

    token = uuid4().hex[:8]
    partial = destination.with_name(f".{destination.name}.{token}.partial")
    try:
        shutil.move(str(source), str(partial))
    except OSError:
        _discard(partial, logger)
        raise

    replaces_dir = destination.is_dir() and not destination.is_symlink()
    if replaces_dir or (partial.is_dir() and destination.exists()):
        previous = destination.with_name(f".{destination.name}.{token}.previous")
        os.replace(destination, previous)
        os.replace(partial, destination)
        _discard(previous, logger)
    else:
        os.replace(partial, destination)


def _relocate(
    found: list[tuple[ArtifactKind, list[Path]]],
    options: BuildOptions,
    output_dir: Path,
    logger: logging.Logger,
) -> tuple[BuildArtifact, ...]:
    try:
        output_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ArtifactRelocationError(f"cannot create output directory {output_dir}: {exc}") from exc

    artifacts: list[BuildArtifact] = []
    for kind, matches in found:
        for source in matches:
            name = f"{options.artifact_stem}{kind.suffix}" if len(matches) == 1 else source.name
            destination = output_dir / name
            try:
                _move_into_place(source, destination, logger)
            except OSError as exc:
                raise ArtifactRelocationError(f"cannot move {source} to {destination}: {exc}") from exc
            logger.info("collect.moved kind=%s source=%s destination=%s", kind.target, source, destination)
            artifacts.append(BuildArtifact(kind=kind.target, source_path=source, path=destination))
    return tuple(artifacts)


def collect_artifacts(
    tree: StagingTree,
    options: BuildOptions,
    output_dir: Path,
    logger: logging.Logger | None = None,
) -> ArtifactCollection:
    """Move every produced bundle into ``output_dir``, then remove the staging tree.

    Finding nothing after a successful toolchain run raises
    :class:`ArtifactNotFoundError`. The staging tree is removed on every exit
    path.
    """

    effective_logger = logger or LOGGER
    try:
        found = find_artifacts(tree, options)
        if not any(matches for _, matches in found):
            root = bundle_root(tree, options)
            raise ArtifactNotFoundError(
                search_dirs=[root / kind.bundle_subdir for kind, _ in found],
                patterns=[kind.pattern for kind, _ in found],
            )
        missing = [kind.target for kind, matches in found if not matches]
        if missing:
            effective_logger.warning("collect.targets_without_output targets=%s", ",".join(missing))
        artifacts = _relocate(found, options, output_dir, effective_logger)
    finally:
        staging_removed = remove_staging_tree(tree, logger=effective_logger)
    return ArtifactCollection(artifacts=artifacts, staging_removed=staging_removed)
