"""Staging tree handle: one unique directory per build invocation."""

from __future__ import annotations

import logging
import shutil
import tempfile
from dataclasses import dataclass
from pathlib import Path

from sitewrap.compose.documents import BUILD_CONFIG_NAME, CONFIG_DIR, RUNTIME_CONFIG_NAME
from sitewrap.errors import StagingError

LOGGER = logging.getLogger(__name__)

STAGING_PREFIX = "sitewrap-"


@dataclass(frozen=True, slots=True)
class StagingTree:
    """Paths inside one build's staging directory."""

    root: Path

    @property
    def icon_work_dir(self) -> Path:
        return self.root / "icon"

    @property
    def app_dir(self) -> Path:
        return self.root / "app"

    @property
    def config_dir(self) -> Path:
        return self.app_dir / CONFIG_DIR

    @property
    def runtime_config_path(self) -> Path:
        return self.config_dir / RUNTIME_CONFIG_NAME

    @property
    def build_config_path(self) -> Path:
        return self.config_dir / BUILD_CONFIG_NAME

    @property
    def inject_dir(self) -> Path:
        return self.config_dir / "inject"

    @property
    def dist_dir(self) -> Path:
        return self.app_dir / "dist"

    @property
    def target_dir(self) -> Path:
        return self.config_dir / "target"

    def exists(self) -> bool:
        return self.root.exists()


def allocate_staging_tree(staging_root: Path | None, run_id: str) -> StagingTree:
    """Create a fresh, uniquely named staging directory."""

    try:
        if staging_root is not None:
            staging_root.mkdir(parents=True, exist_ok=True)
        root = Path(tempfile.mkdtemp(prefix=f"{STAGING_PREFIX}{run_id}-", dir=staging_root))
    except OSError as exc:
        raise StagingError(f"cannot create staging directory under {staging_root or tempfile.gettempdir()}: {exc}") from exc
    return StagingTree(root=root)


def remove_staging_tree(tree: StagingTree, logger: logging.Logger | None = None) -> bool:
    """Recursively delete the tree; safe to call repeatedly.

    Returns False (after logging the path) when removal fails so the caller can
    tell the user what to clean up by hand.
    """

    effective_logger = logger or LOGGER
    if not tree.root.exists():
        return True
    try:
        shutil.rmtree(tree.root)
    except OSError as exc:
        effective_logger.error("staging.cleanup_failed path=%s error=%s", tree.root, exc)
        return False
    effective_logger.debug("staging.removed path=%s", tree.root)
    return True
