"""Render toolchain command lines for a staged build."""

from __future__ import annotations

from sitewrap.config import ToolchainConfig
from sitewrap.options import BuildOptions
from sitewrap.staging.tree import StagingTree


def _substitute(parts: list[str], tree: StagingTree, options: BuildOptions) -> list[str]:
    substitutions = {
        "{build_config}": str(tree.build_config_path),
        "{app_dir}": str(tree.app_dir),
        "{platform}": options.platform,
    }
    rendered: list[str] = []
    for part in parts:
        for placeholder, value in substitutions.items():
            part = part.replace(placeholder, value)
        rendered.append(part)
    return rendered


def render_build_command(toolchain: ToolchainConfig, tree: StagingTree, options: BuildOptions) -> list[str]:
    """Return the build command with placeholders filled and platform flags appended."""

    command = _substitute(list(toolchain.build_command), tree, options)
    if toolchain.platform_args:
        command.extend(["--bundles", ",".join(options.targets)])
        if options.debug:
            command.append("--debug")
        triple = options.descriptor.multi_arch_triple
        if options.multi_arch and triple:
            command.extend(["--target", triple])
    return command


def render_install_command(toolchain: ToolchainConfig, tree: StagingTree, options: BuildOptions) -> list[str] | None:
    """Return the dependency install command, or None when none is configured."""

    if not toolchain.install_command:
        return None
    return _substitute(list(toolchain.install_command), tree, options)
