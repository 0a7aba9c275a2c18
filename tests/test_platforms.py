from __future__ import annotations

import sys

import pytest

from sitewrap.platforms import PLATFORM_NAMES, PLATFORMS, detect_host_platform, get_platform


def test_every_platform_has_a_default_target_it_can_produce() -> None:
    for name in PLATFORM_NAMES:
        descriptor = PLATFORMS[name]
        assert descriptor.default_targets
        for target in descriptor.default_targets:
            assert descriptor.artifact_kind(target).target == target


def test_icon_formats_per_platform() -> None:
    assert (get_platform("macos").icon_format, get_platform("macos").icon_suffix) == ("ICNS", ".icns")
    assert (get_platform("windows").icon_format, get_platform("windows").icon_suffix) == ("ICO", ".ico")
    assert (get_platform("linux").icon_format, get_platform("linux").icon_suffix) == ("PNG", ".png")
    assert get_platform("windows").icon_size == 256


def test_get_platform_is_case_insensitive_and_rejects_unknown() -> None:
    assert get_platform(" MacOS ").name == "macos"
    with pytest.raises(ValueError, match="unknown platform"):
        get_platform("beos")


def test_unknown_target_lists_alternatives() -> None:
    with pytest.raises(ValueError, match="deb, appimage, rpm"):
        get_platform("linux").artifact_kind("dmg")


def test_fragment_names() -> None:
    descriptor = get_platform("windows")
    assert descriptor.runtime_override_name == "sitewrap.windows.json"
    assert descriptor.build_override_name == "tauri.windows.conf.json"


def test_detect_host_platform(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(sys, "platform", "darwin")
    assert detect_host_platform() == "macos"
    monkeypatch.setattr(sys, "platform", "win32")
    assert detect_host_platform() == "windows"
    monkeypatch.setattr(sys, "platform", "linux")
    assert detect_host_platform() == "linux"
