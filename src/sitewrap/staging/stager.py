"""Populate a staging tree with the template, composed configs, icon, and injection files."""

from __future__ import annotations

import fnmatch
import logging
import os
import shutil
from pathlib import Path
from typing import Callable, Sequence

from sitewrap.compose.composer import ComposedConfig, icon_slot_relpath
from sitewrap.compose.documents import platform_fragment_names
from sitewrap.errors import StagingError
from sitewrap.icons.strategies import ResolvedIcon
from sitewrap.options import BuildOptions
from sitewrap.staging.tree import StagingTree, remove_staging_tree
from sitewrap.utils.paths import copy_file_verified, write_json_atomically

LOGGER = logging.getLogger(__name__)

# Build outputs and dependency folders from a template checkout are never staged.
TEMPLATE_IGNORE_DIRS: tuple[str, ...] = ("node_modules", "target", ".git")


def _template_ignore(directory: str, names: list[str]) -> set[str]:
    fragments = platform_fragment_names()
    ignored = {name for name in names if name in fragments}
    ignored.update(name for name in names if name in TEMPLATE_IGNORE_DIRS)
    return ignored


def _copy_tree_verified(
    source_dir: Path,
    destination_dir: Path,
    *,
    skip_dirs: Sequence[Path] = (),
    skip_top_level: Callable[[str], bool] | None = None,
) -> int:
    """Copy a directory file by file with checksum verification; returns files copied.

    Directories in ``skip_dirs`` and names in ``TEMPLATE_IGNORE_DIRS`` are
    pruned. ``skip_top_level`` filters entries directly under ``source_dir``.
    """

    source_dir = source_dir.resolve()
    pruned = [path.resolve() for path in skip_dirs]
    copied = 0
    for current, dir_names, file_names in os.walk(source_dir):
        current_dir = Path(current)
        at_top = current_dir == source_dir
        dir_names[:] = sorted(
            name
            for name in dir_names
            if name not in TEMPLATE_IGNORE_DIRS
            and (current_dir / name).resolve() not in pruned
            and not (at_top and skip_top_level is not None and skip_top_level(name))
        )
        for name in sorted(file_names):
            if at_top and skip_top_level is not None and skip_top_level(name):
                continue
            source = current_dir / name
            copy_file_verified(source, destination_dir / source.relative_to(source_dir))
            copied += 1
    return copied


def _previous_artifact_filter(options: BuildOptions) -> Callable[[str], bool]:
    patterns = [kind.pattern for kind in options.descriptor.artifact_kinds]
    return lambda name: any(fnmatch.fnmatch(name, pattern) for pattern in patterns)


def _stage_local_entry(tree: StagingTree, options: BuildOptions, skip_dirs: Sequence[Path]) -> int:
    entry = Path(options.url)
    tree.dist_dir.mkdir(parents=True, exist_ok=True)
    if not options.use_local_file:
        copy_file_verified(entry, tree.dist_dir / entry.name)
        return 1

    entry_dir = entry.parent.resolve()
    output_dir = options.output_dir.resolve()
    excluded = [tree.root, *skip_dirs]
    skip_top_level = None
    if output_dir == entry_dir:
        # Bundles from earlier runs sit beside the page; only those are left out.
        skip_top_level = _previous_artifact_filter(options)
    else:
        excluded.append(output_dir)
    # Only directories strictly below the entry folder are pruned.
    excluded = [path for path in excluded if path.resolve() != entry_dir and path.resolve().is_relative_to(entry_dir)]
    return _copy_tree_verified(entry_dir, tree.dist_dir, skip_dirs=excluded, skip_top_level=skip_top_level)


def stage(
    tree: StagingTree,
    template_root: Path,
    composed: ComposedConfig,
    icon: ResolvedIcon,
    options: BuildOptions,
    logger: logging.Logger | None = None,
    skip_dirs: Sequence[Path] = (),
) -> StagingTree:
    """Fill ``tree`` so the toolchain can build it in isolation.

    When a whole local folder is bundled, the staging tree, the output
    directory and ``skip_dirs`` are left out of it. Any filesystem failure
    removes the whole tree before ``StagingError`` propagates.
    """

    effective_logger = logger or LOGGER
    try:
        shutil.copytree(template_root, tree.app_dir, ignore=_template_ignore, symlinks=False)
        write_json_atomically(composed.runtime, tree.runtime_config_path)
        write_json_atomically(composed.build, tree.build_config_path)

        icon_destination = tree.config_dir / icon_slot_relpath(options.descriptor)
        copy_file_verified(icon.path, icon_destination)

        tree.inject_dir.mkdir(parents=True, exist_ok=True)
        for inject_file in options.inject:
            copy_file_verified(inject_file, tree.inject_dir / inject_file.name)

        local_files = _stage_local_entry(tree, options, skip_dirs) if options.is_local else 0
    except OSError as exc:
        cleaned = remove_staging_tree(tree, logger=effective_logger)
        message = f"failed to stage build tree at {tree.root}: {exc}"
        if not cleaned:
            message += f" (remove {tree.root} manually)"
        raise StagingError(message) from exc

    effective_logger.info(
        "staging.complete root=%s icon=%s inject_files=%s local_files=%s",
        tree.root,
        icon_destination,
        len(options.inject),
        local_files,
    )
    return tree
