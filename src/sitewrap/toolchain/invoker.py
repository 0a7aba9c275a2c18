"""Run the external toolchain as a subprocess with live output relay."""

from __future__ import annotations

import logging
import os
import shutil
import subprocess
import sys
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import IO, Callable, Literal, Mapping, Sequence

from sitewrap.errors import ToolchainError
from sitewrap.staging.tree import StagingTree

LOGGER = logging.getLogger(__name__)

StreamName = Literal["stdout", "stderr"]
OutputCallback = Callable[[StreamName, str], None]

TERMINATE_GRACE_SEC = 10.0
RELAY_JOIN_TIMEOUT_SEC = 5.0


@dataclass(frozen=True, slots=True)
class ExitOutcome:
    """Terminal state of a toolchain run that exited successfully."""

    success: bool
    exit_code: int
    saw_output_marker: bool
    duration_sec: float


def echo_output(stream: StreamName, line: str) -> None:
    """Default relay: write each line to the matching console stream immediately."""

    target = sys.stderr if stream == "stderr" else sys.stdout
    target.write(line + "\n")
    target.flush()


class _StreamRelay(threading.Thread):
    """Drain one pipe line by line, forwarding as lines arrive."""

    def __init__(
        self,
        pipe: IO[str],
        stream: StreamName,
        on_output: OutputCallback,
        marker: str | None,
        tail: deque[str] | None,
        logger: logging.Logger,
    ) -> None:
        super().__init__(name=f"toolchain-{stream}", daemon=True)
        self.pipe = pipe
        self.stream = stream
        self.on_output = on_output
        self.marker = marker
        self.tail = tail
        self.logger = logger
        self.saw_marker = False

    def run(self) -> None:
        callback_failed = False
        try:
            for raw_line in iter(self.pipe.readline, ""):
                line = raw_line.rstrip("\r\n")
                if self.tail is not None:
                    self.tail.append(line)
                if self.marker and self.marker in line:
                    self.saw_marker = True
                if callback_failed:
                    continue
                try:
                    self.on_output(self.stream, line)
                except Exception:
                    # Keep draining so the child never blocks on a full pipe.
                    callback_failed = True
                    self.logger.exception("toolchain.output_callback_failed stream=%s", self.stream)
        finally:
            self.pipe.close()


def _resolve_executable(command: Sequence[str]) -> list[str]:
    if not command:
        raise ToolchainError("toolchain command is empty")
    executable = shutil.which(command[0])
    if executable is None:
        raise ToolchainError(f"toolchain executable not found: {command[0]}")
    return [executable, *command[1:]]


def _stop_process(process: subprocess.Popen[str], logger: logging.Logger) -> None:
    if process.poll() is not None:
        return
    process.terminate()
    try:
        process.wait(timeout=TERMINATE_GRACE_SEC)
    except subprocess.TimeoutExpired:
        logger.warning("toolchain.kill pid=%s", process.pid)
        process.kill()
        process.wait()


def invoke_toolchain(
    tree: StagingTree,
    command: Sequence[str],
    *,
    env: Mapping[str, str] | None = None,
    output_marker: str | None = None,
    stderr_tail_lines: int = 40,
    on_output: OutputCallback | None = None,
    logger: logging.Logger | None = None,
) -> ExitOutcome:
    """Run ``command`` inside the staged app directory and block until it exits.

    Output is relayed line by line through ``on_output`` while the process
    runs; only the last ``stderr_tail_lines`` stderr lines are retained. A
    non-zero or signal exit raises :class:`ToolchainError`. An interrupt while
    waiting stops the child before re-raising.
    """

    effective_logger = logger or LOGGER
    relay = on_output or echo_output
    argv = _resolve_executable(command)
    process_env = {**os.environ, **(env or {})}

    effective_logger.info("toolchain.start cwd=%s command=%s", tree.app_dir, " ".join(command))
    started_mono = time.monotonic()
    try:
        process = subprocess.Popen(
            argv,
            cwd=tree.app_dir,
            env=process_env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            encoding="utf-8",
            errors="replace",
            bufsize=1,
        )
    except OSError as exc:
        raise ToolchainError(f"cannot start toolchain {argv[0]}: {exc}") from exc

    stderr_tail: deque[str] = deque(maxlen=max(1, stderr_tail_lines))
    assert process.stdout is not None and process.stderr is not None
    relays = (
        _StreamRelay(process.stdout, "stdout", relay, output_marker, None, effective_logger),
        _StreamRelay(process.stderr, "stderr", relay, output_marker, stderr_tail, effective_logger),
    )
    for thread in relays:
        thread.start()

    try:
        exit_code = process.wait()
    except BaseException:
        effective_logger.warning("toolchain.interrupted pid=%s", process.pid)
        _stop_process(process, effective_logger)
        raise
    finally:
        for thread in relays:
            thread.join(timeout=RELAY_JOIN_TIMEOUT_SEC)
            if thread.is_alive():
                # A process spawned by the toolchain still holds the pipe open.
                effective_logger.warning(
                    "toolchain.relay_still_running stream=%s pid=%s; output may continue after the build returns",
                    thread.stream,
                    process.pid,
                )

    duration_sec = time.monotonic() - started_mono
    saw_marker = any(thread.saw_marker for thread in relays)
    effective_logger.info(
        "toolchain.exit code=%s duration_sec=%.2f saw_output_marker=%s",
        exit_code,
        duration_sec,
        saw_marker,
    )

    if exit_code < 0:
        raise ToolchainError(
            f"toolchain was terminated by signal {-exit_code}",
            exit_code=exit_code,
            stderr_tail=list(stderr_tail),
        )
    if exit_code != 0:
        raise ToolchainError(
            f"toolchain exited with code {exit_code}",
            exit_code=exit_code,
            stderr_tail=list(stderr_tail),
        )
    return ExitOutcome(success=True, exit_code=exit_code, saw_output_marker=saw_marker, duration_sec=duration_sec)
