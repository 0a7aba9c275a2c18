from __future__ import annotations

import errno
from pathlib import Path

import pytest

from sitewrap.artifacts import bundle_root, collect_artifacts
from sitewrap.artifacts import collector as collector_module
from sitewrap.errors import ArtifactNotFoundError, ArtifactRelocationError
from sitewrap.options import build_options
from sitewrap.staging import allocate_staging_tree


def _produce(root: Path, subdir: str, name: str, content: str = "bundle") -> Path:
    path = root / subdir / name
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")
    return path


def test_single_match_is_renamed_and_tree_removed(tmp_path: Path) -> None:
    options = build_options(url="https://example.com", name="My App", platform="linux", output_dir=tmp_path / "out")
    tree = allocate_staging_tree(tmp_path / "staging", "run")
    _produce(bundle_root(tree, options), "deb", "my-app_1.0.0_amd64.deb")

    collection = collect_artifacts(tree, options, options.output_dir)

    assert [artifact.path for artifact in collection.artifacts] == [tmp_path / "out" / "my-app.deb"]
    assert collection.artifacts[0].kind == "deb"
    assert (tmp_path / "out" / "my-app.deb").read_text(encoding="utf-8") == "bundle"
    assert collection.staging_removed
    assert not tree.exists()


def test_zero_matches_raise_and_still_remove_tree(tmp_path: Path) -> None:
    options = build_options(url="https://example.com", platform="windows", targets=("msi", "nsis"), output_dir=tmp_path / "out")
    tree = allocate_staging_tree(tmp_path / "staging", "run")
    _produce(bundle_root(tree, options), "msi", "notes.txt")

    with pytest.raises(ArtifactNotFoundError) as excinfo:
        collect_artifacts(tree, options, options.output_dir)

    assert excinfo.value.patterns == ("*.msi", "*-setup.exe")
    assert len(excinfo.value.search_dirs) == 2
    assert not tree.exists()
    assert not (tmp_path / "out").exists()


def test_multiple_matches_keep_their_names(tmp_path: Path) -> None:
    options = build_options(url="https://example.com", platform="linux", targets=("deb", "rpm"), output_dir=tmp_path / "out")
    tree = allocate_staging_tree(tmp_path / "staging", "run")
    root = bundle_root(tree, options)
    _produce(root, "deb", "example_1.0.0_arm64.deb")
    _produce(root, "deb", "example_1.0.0_amd64.deb")

    collection = collect_artifacts(tree, options, options.output_dir)

    assert [artifact.path.name for artifact in collection.artifacts] == [
        "example_1.0.0_amd64.deb",
        "example_1.0.0_arm64.deb",
    ]


def test_existing_output_is_replaced(tmp_path: Path) -> None:
    out = tmp_path / "out"
    out.mkdir()
    (out / "Example.dmg").write_text("old", encoding="utf-8")
    options = build_options(url="https://example.com", platform="macos", output_dir=out)
    tree = allocate_staging_tree(tmp_path / "staging", "run")
    _produce(bundle_root(tree, options), "dmg", "Example_1.0.0_aarch64.dmg", content="new")

    collect_artifacts(tree, options, out)

    assert (out / "Example.dmg").read_text(encoding="utf-8") == "new"


def test_app_bundle_directories_and_multi_arch_layout(tmp_path: Path) -> None:
    options = build_options(
        url="https://example.com",
        platform="macos",
        targets=("app",),
        multi_arch=True,
        debug=True,
        output_dir=tmp_path / "out",
    )
    tree = allocate_staging_tree(tmp_path / "staging", "run")
    root = bundle_root(tree, options)
    assert root == tree.target_dir / "universal-apple-darwin" / "debug" / "bundle"
    _produce(root, "macos/Example.app/Contents", "Info.plist")

    collection = collect_artifacts(tree, options, options.output_dir)

    assert (tmp_path / "out" / "Example.app" / "Contents" / "Info.plist").is_file()
    assert collection.artifacts[0].kind == "app"


def test_failed_move_keeps_previous_bundle(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    out = tmp_path / "out"
    out.mkdir()
    (out / "example.deb").write_text("old", encoding="utf-8")
    options = build_options(url="https://example.com", platform="linux", output_dir=out)
    tree = allocate_staging_tree(tmp_path / "staging", "run")
    _produce(bundle_root(tree, options), "deb", "example_1.0.0_amd64.deb", content="new")

    def cross_device(src: str, dst: str) -> str:
        raise OSError(errno.EXDEV, "Invalid cross-device link", dst)

    monkeypatch.setattr(collector_module.shutil, "move", cross_device)

    with pytest.raises(ArtifactRelocationError, match="cross-device"):
        collect_artifacts(tree, options, out)

    assert [path.name for path in out.iterdir()] == ["example.deb"]
    assert (out / "example.deb").read_text(encoding="utf-8") == "old"
    assert not tree.exists()


def test_existing_app_bundle_directory_is_swapped(tmp_path: Path) -> None:
    out = tmp_path / "out"
    (out / "Example.app" / "Contents").mkdir(parents=True)
    (out / "Example.app" / "Contents" / "stale.txt").write_text("old", encoding="utf-8")
    options = build_options(url="https://example.com", platform="macos", targets=("app",), output_dir=out)
    tree = allocate_staging_tree(tmp_path / "staging", "run")
    _produce(bundle_root(tree, options), "macos/Example.app/Contents", "Info.plist")

    collect_artifacts(tree, options, out)

    assert sorted(path.name for path in (out / "Example.app" / "Contents").iterdir()) == ["Info.plist"]
    assert [path.name for path in out.iterdir()] == ["Example.app"]
