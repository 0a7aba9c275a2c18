"""Platform descriptors for the three supported bundle families."""

from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Literal, get_args

PlatformName = Literal["macos", "windows", "linux"]
PLATFORM_NAMES: tuple[PlatformName, ...] = get_args(PlatformName)

CAP_SYSTEM_TRAY = "system_tray"
CAP_MULTI_ARCH = "multi_arch"
CAP_INSTALLER_LANGUAGE = "installer_language"
CAP_HIDE_TITLE_BAR = "hide_title_bar"


@dataclass(frozen=True, slots=True)
class ArtifactKind:
    """One bundle format the toolchain can emit for a platform."""

    target: str
    bundle_subdir: str
    pattern: str
    suffix: str


@dataclass(frozen=True, slots=True)
class PlatformDescriptor:
    """Platform-specific constants consumed by the build pipeline."""

    name: PlatformName
    label: str
    icon_format: str
    icon_suffix: str
    icon_sizes: tuple[int, ...]
    artifact_kinds: tuple[ArtifactKind, ...]
    default_targets: tuple[str, ...]
    capabilities: frozenset[str]
    slug_names: bool = False
    multi_arch_triple: str | None = None

    @property
    def icon_size(self) -> int:
        return max(self.icon_sizes)

    @property
    def targets(self) -> tuple[str, ...]:
        return tuple(kind.target for kind in self.artifact_kinds)

    @property
    def runtime_override_name(self) -> str:
        return f"sitewrap.{self.name}.json"

    @property
    def build_override_name(self) -> str:
        return f"tauri.{self.name}.conf.json"

    def supports(self, capability: str) -> bool:
        return capability in self.capabilities

    def artifact_kind(self, target: str) -> ArtifactKind:
        """Return the artifact kind for a bundle target name."""

        for kind in self.artifact_kinds:
            if kind.target == target:
                return kind
        raise ValueError(f"{self.label} cannot produce bundle target {target!r}; expected one of: {', '.join(self.targets)}")


MACOS = PlatformDescriptor(
    name="macos",
    label="macOS",
    icon_format="ICNS",
    icon_suffix=".icns",
    icon_sizes=(1024,),
    artifact_kinds=(
        ArtifactKind(target="dmg", bundle_subdir="dmg", pattern="*.dmg", suffix=".dmg"),
        ArtifactKind(target="app", bundle_subdir="macos", pattern="*.app", suffix=".app"),
    ),
    default_targets=("dmg",),
    capabilities=frozenset({CAP_SYSTEM_TRAY, CAP_MULTI_ARCH, CAP_HIDE_TITLE_BAR}),
    multi_arch_triple="universal-apple-darwin",
)

WINDOWS = PlatformDescriptor(
    name="windows",
    label="Windows",
    icon_format="ICO",
    icon_suffix=".ico",
    icon_sizes=(16, 24, 32, 48, 64, 128, 256),
    artifact_kinds=(
        ArtifactKind(target="msi", bundle_subdir="msi", pattern="*.msi", suffix=".msi"),
        ArtifactKind(target="nsis", bundle_subdir="nsis", pattern="*-setup.exe", suffix="-setup.exe"),
    ),
    default_targets=("msi",),
    capabilities=frozenset({CAP_SYSTEM_TRAY, CAP_INSTALLER_LANGUAGE}),
)

LINUX = PlatformDescriptor(
    name="linux",
    label="Linux",
    icon_format="PNG",
    icon_suffix=".png",
    icon_sizes=(512,),
    artifact_kinds=(
        ArtifactKind(target="deb", bundle_subdir="deb", pattern="*.deb", suffix=".deb"),
        ArtifactKind(target="appimage", bundle_subdir="appimage", pattern="*.AppImage", suffix=".AppImage"),
        ArtifactKind(target="rpm", bundle_subdir="rpm", pattern="*.rpm", suffix=".rpm"),
    ),
    default_targets=("deb",),
    capabilities=frozenset({CAP_SYSTEM_TRAY}),
    slug_names=True,
)

PLATFORMS: dict[PlatformName, PlatformDescriptor] = {
    descriptor.name: descriptor for descriptor in (MACOS, WINDOWS, LINUX)
}


def get_platform(name: str) -> PlatformDescriptor:
    """Return the descriptor for a platform name (case-insensitive)."""

    normalized = name.strip().lower()
    try:
        return PLATFORMS[normalized]  # type: ignore[index]
    except KeyError as exc:
        raise ValueError(f"unknown platform {name!r}; expected one of: {', '.join(PLATFORM_NAMES)}") from exc


def detect_host_platform() -> PlatformName:
    """Map ``sys.platform`` onto a supported platform name."""

    if sys.platform == "darwin":
        return "macos"
    if sys.platform.startswith("win") or sys.platform == "cygwin":
        return "windows"
    return "linux"
