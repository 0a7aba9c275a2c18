from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

from sitewrap.config import ToolchainConfig
from sitewrap.errors import ToolchainError
from sitewrap.options import build_options
from sitewrap.staging.tree import StagingTree
from sitewrap.toolchain import invoke_toolchain, render_build_command, render_install_command
from sitewrap.toolchain import invoker as invoker_module


@pytest.fixture()
def tree(tmp_path: Path) -> StagingTree:
    staged = StagingTree(root=tmp_path / "stage")
    staged.app_dir.mkdir(parents=True)
    return staged


def _python(code: str) -> list[str]:
    return [sys.executable, "-c", code]


def test_output_is_relayed_line_by_line(tree: StagingTree) -> None:
    lines: list[tuple[str, str]] = []
    code = "import os, sys; print(os.getcwd()); print('warn', file=sys.stderr); print('    Finished release')"

    outcome = invoke_toolchain(tree, _python(code), output_marker="Finished", on_output=lambda stream, line: lines.append((stream, line)))

    assert outcome.success and outcome.exit_code == 0
    assert outcome.saw_output_marker
    assert ("stdout", str(tree.app_dir.resolve())) in lines or ("stdout", str(tree.app_dir)) in lines
    assert ("stderr", "warn") in lines
    assert ("stdout", "    Finished release") in lines


def test_missing_marker_is_reported_not_fatal(tree: StagingTree) -> None:
    outcome = invoke_toolchain(tree, _python("print('done')"), output_marker="Finished", on_output=lambda stream, line: None)
    assert outcome.success
    assert not outcome.saw_output_marker


def test_nonzero_exit_raises_with_stderr_tail(tree: StagingTree) -> None:
    code = "import sys\nfor i in range(100): print('line', i, file=sys.stderr)\nsys.exit(7)"

    with pytest.raises(ToolchainError) as excinfo:
        invoke_toolchain(tree, _python(code), stderr_tail_lines=5, on_output=lambda stream, line: None)

    error = excinfo.value
    assert error.toolchain_exit_code == 7
    assert error.stderr_tail == ("line 95", "line 96", "line 97", "line 98", "line 99")
    assert "exited with code 7" in str(error)
    assert str(error).endswith("line 99")
    assert error.exit_code == 5


def test_env_is_passed_through(tree: StagingTree) -> None:
    lines: list[str] = []
    invoke_toolchain(
        tree,
        _python("import os; print(os.environ['SITEWRAP_TEST_VALUE'])"),
        env={"SITEWRAP_TEST_VALUE": "hello"},
        on_output=lambda stream, line: lines.append(line),
    )
    assert lines == ["hello"]


def test_failing_output_callback_does_not_block_the_child(tree: StagingTree) -> None:
    def explode(stream: str, line: str) -> None:
        raise RuntimeError("callback broke")

    outcome = invoke_toolchain(tree, _python("for i in range(5000): print('x' * 80)"), on_output=explode)
    assert outcome.exit_code == 0


def test_missing_executable_raises_toolchain_error(tree: StagingTree) -> None:
    with pytest.raises(ToolchainError, match="executable not found"):
        invoke_toolchain(tree, ["definitely-not-a-real-toolchain-binary", "build"])


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals")
def test_signal_exit_raises_toolchain_error(tree: StagingTree) -> None:
    code = "import os, signal; os.kill(os.getpid(), signal.SIGKILL)"
    with pytest.raises(ToolchainError, match="terminated by signal 9"):
        invoke_toolchain(tree, _python(code), on_output=lambda stream, line: None)


def test_render_build_command_substitutes_and_appends_platform_args(tmp_path: Path) -> None:
    tree = StagingTree(root=tmp_path)
    options = build_options(url="https://example.com", platform="macos", targets=("dmg", "app"), multi_arch=True, debug=True)

    command = render_build_command(ToolchainConfig(), tree, options)

    assert command[:6] == ["npx", "--no-install", "tauri", "build", "--config", str(tree.build_config_path)]
    assert command[6:] == ["--bundles", "dmg,app", "--debug", "--target", "universal-apple-darwin"]


def test_render_commands_without_platform_args(tmp_path: Path) -> None:
    tree = StagingTree(root=tmp_path)
    options = build_options(url="https://example.com", platform="linux")
    toolchain = ToolchainConfig(build_command=["make", "{platform}", "-C", "{app_dir}"], platform_args=False)

    assert render_build_command(toolchain, tree, options) == ["make", "linux", "-C", str(tree.app_dir)]
    assert render_install_command(toolchain, tree, options) is None
    with_install = toolchain.model_copy(update={"install_command": ["npm", "ci"]})
    assert render_install_command(with_install, tree, options) == ["npm", "ci"]


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX fork semantics")
def test_lingering_pipe_holder_is_reported(
    tree: StagingTree, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    code = (
        "import subprocess, sys\n"
        "subprocess.Popen([sys.executable, '-c', 'import time; time.sleep(3)'])\n"
        "print('parent done')\n"
    )
    monkeypatch.setattr(invoker_module, "RELAY_JOIN_TIMEOUT_SEC", 0.2)

    with caplog.at_level(logging.WARNING, logger="sitewrap.toolchain.invoker"):
        outcome = invoke_toolchain(tree, _python(code), on_output=lambda stream, line: None)

    assert outcome.exit_code == 0
    assert "toolchain.relay_still_running stream=stdout" in caplog.text
