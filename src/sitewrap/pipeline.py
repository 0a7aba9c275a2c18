"""End-to-end build orchestration for one invocation."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from uuid import uuid4

from sitewrap.artifacts.collector import BuildArtifact, collect_artifacts
from sitewrap.compose.composer import compose_config
from sitewrap.compose.documents import load_template_documents
from sitewrap.config import AppSettings
from sitewrap.errors import SitewrapError
from sitewrap.icons.pipeline import resolve_icon
from sitewrap.icons.strategies import ResolvedIcon
from sitewrap.options import BuildOptions
from sitewrap.platforms import PlatformName, detect_host_platform
from sitewrap.resources import resolve_template_root
from sitewrap.staging.stager import stage
from sitewrap.staging.tree import allocate_staging_tree, remove_staging_tree
from sitewrap.toolchain.command import render_build_command, render_install_command
from sitewrap.toolchain.invoker import ExitOutcome, OutputCallback, invoke_toolchain
from sitewrap.utils.paths import write_json_atomically
from sitewrap.utils.time_utils import now_utc

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BuildRunResult:
    """Return object for a completed build."""

    run_id: str
    platform: PlatformName
    artifacts: tuple[BuildArtifact, ...]
    icon: ResolvedIcon
    outcome: ExitOutcome
    staging_root: Path
    staging_removed: bool
    summary: dict[str, Any]
    summary_path: Path | None


def _write_summary(
    summary: dict[str, Any],
    summaries_root: Path,
    run_id: str,
    logger: logging.Logger,
) -> Path | None:
    summary_path = summaries_root / f"{run_id}_build_summary.json"
    try:
        return write_json_atomically(summary, summary_path)
    except OSError as exc:
        logger.warning("build.summary_write_failed path=%s error=%s", summary_path, exc)
        return None


def run_build(
    settings: AppSettings,
    options: BuildOptions,
    *,
    logger: logging.Logger | None = None,
    on_output: OutputCallback | None = None,
    session: Any | None = None,
) -> BuildRunResult:
    """Turn validated options into relocated bundle artifacts.

    Configuration is composed and validated before anything touches the
    filesystem. From the moment the staging tree exists, every exit path
    removes it; if removal fails the path is attached to the raised error.
    """

    effective_logger = logger or LOGGER
    descriptor = options.descriptor
    run_id = f"build-{uuid4().hex[:12]}"
    started_ts = now_utc()
    started_mono = time.monotonic()

    host_platform = detect_host_platform()
    if host_platform != descriptor.name:
        effective_logger.warning(
            "build.cross_platform host=%s target=%s; the toolchain may not support this",
            host_platform,
            descriptor.name,
        )

    template_root = resolve_template_root(settings.paths.template_root)
    documents = load_template_documents(template_root, descriptor, logger=effective_logger)
    composed = compose_config(documents.base, documents.platform_override, options)

    tree = allocate_staging_tree(settings.paths.staging_root, run_id)
    effective_logger.info(
        "build.start run_id=%s platform=%s url=%s name=%s targets=%s staging=%s",
        run_id,
        descriptor.name,
        options.url,
        options.name,
        ",".join(options.targets),
        tree.root,
    )

    try:
        icon = resolve_icon(
            options.icon,
            options.url,
            descriptor,
            tree.icon_work_dir,
            settings=settings.icon,
            session=session,
            logger=effective_logger,
        )
        paths = settings.paths
        stage(
            tree,
            template_root,
            composed,
            icon,
            options,
            logger=effective_logger,
            skip_dirs=[path for path in (paths.staging_root, paths.run_summaries_root, paths.logs_root) if path is not None],
        )

        toolchain = settings.toolchain
        install_command = render_install_command(toolchain, tree, options)
        if install_command is not None:
            invoke_toolchain(
                tree,
                install_command,
                env=toolchain.env,
                stderr_tail_lines=toolchain.stderr_tail_lines,
                on_output=on_output,
                logger=effective_logger,
            )
        outcome = invoke_toolchain(
            tree,
            render_build_command(toolchain, tree, options),
            env=toolchain.env,
            output_marker=toolchain.output_marker,
            stderr_tail_lines=toolchain.stderr_tail_lines,
            on_output=on_output,
            logger=effective_logger,
        )
        if toolchain.output_marker and not outcome.saw_output_marker:
            effective_logger.warning("build.output_marker_missing marker=%r", toolchain.output_marker)

        collection = collect_artifacts(tree, options, options.output_dir, logger=effective_logger)
    except BaseException as exc:
        if isinstance(exc, KeyboardInterrupt):
            effective_logger.warning("build.interrupted run_id=%s staging=%s", run_id, tree.root)
        if not remove_staging_tree(tree, logger=effective_logger):
            effective_logger.error("build.staging_left_behind run_id=%s path=%s", run_id, tree.root)
            if isinstance(exc, SitewrapError):
                exc.leftover_path = tree.root
        raise

    if not collection.staging_removed:
        effective_logger.error("build.staging_left_behind run_id=%s path=%s", run_id, tree.root)

    finished_ts = now_utc()
    duration_sec = time.monotonic() - started_mono
    summary: dict[str, Any] = {
        "run_id": run_id,
        "started_ts": started_ts.isoformat(),
        "finished_ts": finished_ts.isoformat(),
        "duration_sec": round(duration_sec, 3),
        "platform": descriptor.name,
        "url": options.url,
        "name": options.name,
        "identifier": options.identifier,
        "targets": list(options.targets),
        "icon": {
            "source_kind": icon.source_kind,
            "source": icon.source,
            "warnings": list(icon.warnings),
        },
        "toolchain": {
            "exit_code": outcome.exit_code,
            "saw_output_marker": outcome.saw_output_marker,
            "duration_sec": round(outcome.duration_sec, 3),
        },
        "artifacts": [
            {"kind": artifact.kind, "path": str(artifact.path)} for artifact in collection.artifacts
        ],
        "staging_root": str(tree.root),
        "staging_removed": collection.staging_removed,
    }
    summary_path = _write_summary(summary, settings.paths.run_summaries_root, run_id, effective_logger)

    effective_logger.info(
        "build.complete run_id=%s artifacts=%s duration_sec=%.2f summary_path=%s",
        run_id,
        len(collection.artifacts),
        duration_sec,
        summary_path,
    )

    return BuildRunResult(
        run_id=run_id,
        platform=descriptor.name,
        artifacts=collection.artifacts,
        icon=icon,
        outcome=outcome,
        staging_root=tree.root,
        staging_removed=collection.staging_removed,
        summary=summary,
        summary_path=summary_path,
    )
