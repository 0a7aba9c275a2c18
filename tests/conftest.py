from __future__ import annotations

import io
import os
import sys
from pathlib import Path
from typing import Any

import pytest
import requests
import yaml
from PIL import Image

from sitewrap.config import AppSettings, load_settings

# Stand-in for the real bundler: reads the staged configs and writes one file per
# requested target where the real toolchain would. Behaviour is driven by env.
FAKE_TOOLCHAIN_SOURCE = '''
import json
import os
import sys
from pathlib import Path

SUBDIRS = {"deb": ("deb", "_amd64.deb"), "appimage": ("appimage", "_amd64.AppImage"),
           "rpm": ("rpm", ".x86_64.rpm"), "dmg": ("dmg", "_universal.dmg"),
           "msi": ("msi", "_x64_en-US.msi"), "nsis": ("nsis", "_x64-setup.exe")}

app_dir = Path(sys.argv[1])
mode = os.environ.get("FAKE_TOOLCHAIN_MODE", "ok")
config_dir = app_dir / "src-tauri"
build = json.loads((config_dir / "tauri.conf.json").read_text(encoding="utf-8"))
runtime = json.loads((config_dir / "sitewrap.json").read_text(encoding="utf-8"))

print("Compiling sitewrap-app v" + build["version"])
if mode == "fail":
    for index in range(60):
        print("warning line " + str(index), file=sys.stderr)
    print("error: boom", file=sys.stderr)
    sys.exit(3)

files = sorted(str(path.relative_to(app_dir)).replace(os.sep, "/") for path in app_dir.rglob("*") if path.is_file())
payload = json.dumps({"runtime": runtime, "build": build, "files": files}, indent=2)
if mode != "none":
    for target in build["bundle"]["targets"]:
        subdir, suffix = SUBDIRS[target]
        out_dir = config_dir / "target" / "release" / "bundle" / subdir
        out_dir.mkdir(parents=True, exist_ok=True)
        (out_dir / (build["productName"] + "_" + build["version"] + suffix)).write_text(payload, encoding="utf-8")
print("    Finished release bundle")
'''


@pytest.fixture()
def fake_toolchain(tmp_path: Path) -> Path:
    script = tmp_path / "fake_toolchain.py"
    script.write_text(FAKE_TOOLCHAIN_SOURCE, encoding="utf-8")
    return script


@pytest.fixture()
def settings(tmp_path: Path, fake_toolchain: Path, monkeypatch: pytest.MonkeyPatch) -> AppSettings:
    """Settings loaded from a throwaway project root with every path under tmp_path."""

    for name in list(os.environ):
        if name.startswith("SITEWRAP_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)

    config_dir = tmp_path / "configs"
    config_dir.mkdir()
    payload = {
        "paths": {
            "staging_root": "./staging",
            "run_summaries_root": "./summaries",
            "logs_root": "./logs",
        },
        "icon": {"fetch_timeout_sec": 1.0, "total_budget_sec": 2.0},
        "toolchain": {
            "build_command": [sys.executable, str(fake_toolchain), "{app_dir}"],
            "install_command": None,
            "platform_args": False,
            "env": {"FAKE_TOOLCHAIN_MODE": "ok"},
        },
    }
    settings_file = config_dir / "settings.yaml"
    settings_file.write_text(yaml.safe_dump(payload, sort_keys=False), encoding="utf-8")
    return load_settings(config_file=settings_file)


def with_toolchain_mode(settings: AppSettings, mode: str) -> AppSettings:
    toolchain = settings.toolchain.model_copy(update={"env": {"FAKE_TOOLCHAIN_MODE": mode}})
    return settings.model_copy(update={"toolchain": toolchain})


def png_bytes(size: tuple[int, int] = (64, 64), color: tuple[int, int, int, int] = (200, 30, 30, 255)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeResponse:
    def __init__(self, url: str, status_code: int, body: bytes) -> None:
        self.url = url
        self.status_code = status_code
        self.body = body
        self.closed = False

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} for {self.url}")

    def iter_content(self, chunk_size: int = 1024):
        for start in range(0, len(self.body), chunk_size):
            yield self.body[start : start + chunk_size]

    def close(self) -> None:
        self.closed = True


class FakeSession:
    """Serves canned bodies by URL; unknown URLs behave like an unreachable host."""

    def __init__(self, routes: dict[str, Any] | None = None) -> None:
        self.routes = dict(routes or {})
        self.calls: list[tuple[str, float]] = []
        self.closed = False

    def get(self, url: str, *, timeout: float, stream: bool = False, headers: dict[str, str] | None = None):
        self.calls.append((url, timeout))
        route = self.routes.get(url)
        if route is None:
            raise requests.ConnectionError(f"cannot connect to {url}")
        if isinstance(route, int):
            return FakeResponse(url, route, b"")
        return FakeResponse(url, 200, route)

    def close(self) -> None:
        self.closed = True


@pytest.fixture()
def offline_session() -> FakeSession:
    return FakeSession()
