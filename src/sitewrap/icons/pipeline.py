"""Best-effort icon resolution over an ordered chain of strategies."""

from __future__ import annotations

import logging
import time
from dataclasses import replace
from pathlib import Path
from typing import Any, Iterator

import requests

from sitewrap.config import IconConfig
from sitewrap.errors import StagingError
from sitewrap.icons.strategies import (
    IconRequest,
    IconStrategy,
    ResolvedIcon,
    default_icon_strategy,
    favicon_strategy,
    local_icon_strategy,
    remote_icon_strategy,
)
from sitewrap.platforms import PlatformDescriptor

LOGGER = logging.getLogger(__name__)

_STRATEGY_LABELS: dict[IconStrategy, str] = {
    local_icon_strategy: "local icon",
    remote_icon_strategy: "remote icon",
    favicon_strategy: "favicon discovery",
}


def iter_icon_strategies() -> Iterator[IconStrategy]:
    """Yield the fallible strategies in priority order."""

    yield local_icon_strategy
    yield remote_icon_strategy
    yield favicon_strategy


def resolve_icon(
    icon_option: str | None,
    target_url: str,
    descriptor: PlatformDescriptor,
    work_dir: Path,
    *,
    settings: IconConfig | None = None,
    session: Any | None = None,
    logger: logging.Logger | None = None,
) -> ResolvedIcon:
    """Resolve an icon for the target platform without ever failing the build.

    Strategy errors become warnings and the chain moves on; the bundled
    default is the last resort. Only an unwritable staging tree raises
    (as :class:`StagingError`).
    """

    effective_logger = logger or LOGGER
    icon_settings = settings or IconConfig()
    owns_session = session is None
    http_session = session if session is not None else requests.Session()
    warnings: list[str] = []
    request = IconRequest(
        icon_option=icon_option,
        target_url=target_url,
        descriptor=descriptor,
        work_dir=work_dir,
        settings=icon_settings,
        session=http_session,
        deadline=time.monotonic() + icon_settings.total_budget_sec,
        logger=effective_logger,
    )
    try:
        try:
            work_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StagingError(f"cannot create icon work directory {work_dir}: {exc}") from exc

        for strategy in iter_icon_strategies():
            label = _STRATEGY_LABELS[strategy]
            try:
                resolved = strategy(request)
            except Exception as exc:
                warnings.append(f"{label} failed: {exc}")
                effective_logger.warning("icon.strategy_failed strategy=%s error=%s", label, exc)
                continue
            if resolved is None:
                continue
            effective_logger.info(
                "icon.resolved kind=%s source=%s path=%s",
                resolved.source_kind,
                resolved.source,
                resolved.path,
            )
            return replace(resolved, warnings=tuple(warnings))

        warnings.append("no icon could be resolved; using the bundled default icon")
        effective_logger.warning("icon.fallback_default platform=%s target=%s", descriptor.name, target_url)
        try:
            resolved = default_icon_strategy(request)
        except OSError as exc:
            raise StagingError(f"cannot write fallback icon into {work_dir}: {exc}") from exc
        return replace(resolved, warnings=tuple(warnings))
    finally:
        if owns_session:
            http_session.close()
