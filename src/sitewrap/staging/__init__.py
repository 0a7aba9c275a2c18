"""Ephemeral per-build staging trees."""

from sitewrap.staging.stager import stage
from sitewrap.staging.tree import StagingTree, allocate_staging_tree, remove_staging_tree

__all__ = [
    "StagingTree",
    "allocate_staging_tree",
    "remove_staging_tree",
    "stage",
]
