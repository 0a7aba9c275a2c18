from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from sitewrap.config import AppSettings, load_settings


def test_settings_resolve_paths_against_project_root(settings: AppSettings, tmp_path: Path) -> None:
    assert settings.paths.staging_root == (tmp_path / "staging").resolve()
    assert settings.paths.run_summaries_root == (tmp_path / "summaries").resolve()
    assert settings.paths.template_root is None
    assert settings.toolchain.platform_args is False
    assert settings.icon.total_budget_sec == 2.0


def test_env_overrides_yaml(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    settings_file = tmp_path / "configs" / "settings.yaml"
    settings_file.parent.mkdir()
    settings_file.write_text(yaml.safe_dump({"defaults": {"width": 900, "height": 700}}), encoding="utf-8")
    monkeypatch.setenv("SITEWRAP_DEFAULTS__WIDTH", "1440")

    settings = load_settings(config_file=settings_file)

    assert settings.defaults.width == 1440
    assert settings.defaults.height == 700


def test_missing_settings_file_falls_back_to_defaults(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.chdir(tmp_path)
    settings = load_settings(config_file=tmp_path / "configs" / "absent.yaml")

    assert settings.toolchain.build_command[:3] == ["npx", "--no-install", "tauri"]
    assert settings.toolchain.output_marker == "Finished"
    assert settings.paths.logs_root == (tmp_path / ".sitewrap" / "logs").resolve()


def test_as_dict_is_plain_data(settings: AppSettings) -> None:
    rendered = settings.as_dict()
    assert isinstance(rendered["paths"]["staging_root"], str)
    assert yaml.safe_load(yaml.safe_dump(rendered)) == rendered
