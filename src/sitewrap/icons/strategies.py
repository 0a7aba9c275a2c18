"""Ordered icon strategies; each returns a ResolvedIcon or None to try the next one."""

from __future__ import annotations

import logging
import socket
import threading
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Literal
from urllib.parse import urljoin, urlparse

import requests

from sitewrap.config import IconConfig
from sitewrap.icons.formats import convert_icon, detect_format, render_placeholder_icon
from sitewrap.options import is_web_url
from sitewrap.platforms import PlatformDescriptor
from sitewrap.resources import bundled_default_icon
from sitewrap.utils.paths import copy_file_verified

LOGGER = logging.getLogger(__name__)

IconSourceKind = Literal["explicit-local", "explicit-remote", "auto-favicon", "fallback-default"]

_CHUNK_BYTES = 64 * 1024
_MIN_REQUEST_TIMEOUT_SEC = 0.1


@dataclass(frozen=True, slots=True)
class ResolvedIcon:
    """Platform-native icon file placed inside the staging tree."""

    path: Path
    source_kind: IconSourceKind
    source: str
    warnings: tuple[str, ...] = ()


@dataclass(slots=True)
class IconRequest:
    """Inputs and shared state for one icon resolution."""

    icon_option: str | None
    target_url: str
    descriptor: PlatformDescriptor
    work_dir: Path
    settings: IconConfig
    session: Any
    deadline: float
    logger: logging.Logger = field(default=LOGGER)

    @property
    def slot_path(self) -> Path:
        return self.work_dir / f"icon{self.descriptor.icon_suffix}"

    @property
    def download_dir(self) -> Path:
        return self.work_dir / "download"

    def remaining_sec(self) -> float:
        return self.deadline - time.monotonic()


IconStrategy = Callable[[IconRequest], "ResolvedIcon | None"]


def place_icon(source: Path, request: IconRequest) -> Path:
    """Copy an icon into the slot when its format already fits, otherwise convert it.

    Only ``request.slot_path`` is written; the source file is never modified.
    """

    detected = detect_format(source)
    if detected is None:
        raise ValueError(f"not a recognizable image: {source}")
    if detected == request.descriptor.icon_format:
        copy_file_verified(source, request.slot_path)
        return request.slot_path
    request.logger.info(
        "icon.convert source=%s from=%s to=%s",
        source,
        detected,
        request.descriptor.icon_format,
    )
    return convert_icon(source, request.slot_path, request.descriptor)


def _abort_connection(response: Any, logger: logging.Logger) -> None:
    """Shut down the socket under a streaming response so a blocked read returns."""

    connection = getattr(getattr(response, "raw", None), "connection", None)
    sock = getattr(connection, "sock", None)
    if sock is None:
        return
    try:
        sock.shutdown(socket.SHUT_RDWR)
    except OSError as exc:
        logger.debug("icon.abort_connection_failed error=%s", exc)


def fetch_to_file(url: str, destination: Path, request: IconRequest) -> Path:
    """Download ``url`` within the request's timeout and size limits.

    The total budget bounds the whole download, not just each socket read:
    a watchdog shuts the connection down when the budget runs out.
    """

    remaining = request.remaining_sec()
    if remaining <= 0:
        raise TimeoutError("icon time budget exhausted")
    timeout = max(min(request.settings.fetch_timeout_sec, remaining), _MIN_REQUEST_TIMEOUT_SEC)
    destination.parent.mkdir(parents=True, exist_ok=True)
    response = request.session.get(
        url,
        timeout=timeout,
        stream=True,
        headers={"User-Agent": request.settings.user_agent},
    )
    expired = threading.Event()

    def _expire() -> None:
        expired.set()
        _abort_connection(response, request.logger)

    watchdog = threading.Timer(max(request.remaining_sec(), 0.0), _expire)
    watchdog.daemon = True
    watchdog.start()
    written = 0
    try:
        response.raise_for_status()
        with destination.open("wb") as handle:
            for chunk in response.iter_content(chunk_size=_CHUNK_BYTES):
                if expired.is_set() or request.remaining_sec() <= 0:
                    raise TimeoutError("icon time budget exhausted")
                if not chunk:
                    continue
                written += len(chunk)
                if written > request.settings.max_bytes:
                    raise ValueError(f"icon at {url} exceeds {request.settings.max_bytes} bytes")
                handle.write(chunk)
    except requests.RequestException as exc:
        if expired.is_set():
            raise TimeoutError("icon time budget exhausted") from exc
        raise
    finally:
        watchdog.cancel()
        response.close()
    if expired.is_set():
        raise TimeoutError("icon time budget exhausted")
    if written == 0:
        raise ValueError(f"empty response body from {url}")
    return destination


def local_icon_strategy(request: IconRequest) -> ResolvedIcon | None:
    """Use an explicitly supplied local icon file."""

    if request.icon_option is None or is_web_url(request.icon_option):
        return None
    source = Path(request.icon_option)
    return ResolvedIcon(path=place_icon(source, request), source_kind="explicit-local", source=str(source))


def remote_icon_strategy(request: IconRequest) -> ResolvedIcon | None:
    """Fetch an explicitly supplied icon URL."""

    if request.icon_option is None or not is_web_url(request.icon_option):
        return None
    download = fetch_to_file(request.icon_option, request.download_dir / "remote_icon", request)
    return ResolvedIcon(
        path=place_icon(download, request),
        source_kind="explicit-remote",
        source=request.icon_option,
    )


def favicon_strategy(request: IconRequest) -> ResolvedIcon | None:
    """Probe well-known favicon paths on the target origin."""

    if not is_web_url(request.target_url):
        return None
    parsed = urlparse(request.target_url)
    origin = f"{parsed.scheme}://{parsed.netloc}/"
    for index, probe in enumerate(request.settings.favicon_paths):
        if request.remaining_sec() <= 0:
            request.logger.warning("icon.favicon_budget_exhausted origin=%s probed=%s", origin, index)
            return None
        url = urljoin(origin, probe.lstrip("/"))
        try:
            download = fetch_to_file(url, request.download_dir / f"favicon_{index}", request)
            path = place_icon(download, request)
        except Exception as exc:
            request.logger.debug("icon.favicon_probe_failed url=%s error=%s", url, exc)
            continue
        return ResolvedIcon(path=path, source_kind="auto-favicon", source=url)
    return None


def default_icon_strategy(request: IconRequest) -> ResolvedIcon:
    """Use the bundled icon; always produces a file unless the staging tree is unwritable."""

    asset = bundled_default_icon()
    try:
        path = place_icon(asset, request)
    except Exception as exc:
        request.logger.warning("icon.default_asset_unusable asset=%s error=%s", asset, exc)
        path = render_placeholder_icon(request.slot_path, request.descriptor)
    return ResolvedIcon(path=path, source_kind="fallback-default", source=str(asset))
