"""External build toolchain invocation."""

from sitewrap.toolchain.command import render_build_command, render_install_command
from sitewrap.toolchain.invoker import ExitOutcome, echo_output, invoke_toolchain

__all__ = [
    "ExitOutcome",
    "echo_output",
    "invoke_toolchain",
    "render_build_command",
    "render_install_command",
]
