"""External command execution with Result-based error handling.

Every stage (cargo, docker, logger, git) goes through a ``ProcessRunner``.
The runner blocks until the command exits, always echoes both output
channels for diagnosability, and turns a non-zero exit into
``Err(ProcessError)``. It never retries; retry policy belongs to callers.

Usage:
    runner = SubprocessRunner(cwd=repo_root, console=console)
    result = runner.run(["docker", "network", "create", "squiflog-test"])
    if isinstance(result, Err):
        console.error(str(result.error))
"""

from __future__ import annotations

import os
import shlex
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from shipline.core.result import Err, Ok, Result

if TYPE_CHECKING:
    from shipline.output.console import ConsoleProtocol

__all__ = [
    "MockProcessRunner",
    "ProcessError",
    "ProcessOutput",
    "ProcessRunner",
    "SubprocessRunner",
    "run",
]


@dataclass(frozen=True, slots=True)
class ProcessOutput:
    """Captured output of a command that exited with status 0."""

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str


@dataclass(frozen=True, slots=True)
class ProcessError:
    """A command that exited non-zero, timed out or could not be spawned.

    Attributes:
        command: The command that was executed.
        returncode: Exit code, or -1 if the process never completed.
        stdout: Standard output (may be empty).
        stderr: Standard error (contains error details).
    """

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    def __str__(self) -> str:
        cmd_str = " ".join(self.command[:3])
        if len(self.command) > 3:
            cmd_str += " ..."
        return f"{cmd_str} failed (exit {self.returncode})"

    def mentions(self, *markers: str) -> bool:
        """Return True if any marker appears in the output (case-insensitive)."""
        text = f"{self.stderr}\n{self.stdout}".lower()
        return any(m.lower() in text for m in markers)


def run(
    cmd: Sequence[str],
    cwd: Path,
    env: dict[str, str] | None = None,
    *,
    input_text: str | None = None,
    timeout: float | None = None,
) -> Result[ProcessOutput, ProcessError]:
    """Execute a command, capturing stdout and stderr.

    Args:
        cmd: Command and arguments to execute.
        cwd: Working directory for the command.
        env: Environment variables (uses current env if None).
        input_text: Text written to the command's stdin.
        timeout: Maximum seconds to wait (None for no limit).

    Returns:
        Ok(ProcessOutput) on exit status 0, Err(ProcessError) otherwise.
    """
    command = tuple(cmd)
    try:
        proc = subprocess.run(
            list(command),
            cwd=str(cwd),
            env=env,
            input=input_text,
            capture_output=True,
            text=True,
            timeout=timeout,
            check=False,
        )
    except subprocess.TimeoutExpired as e:
        stdout = e.stdout if isinstance(e.stdout, str) else ""
        return Err(
            ProcessError(
                command=command,
                returncode=-1,
                stdout=stdout,
                stderr=f"Command timed out after {timeout}s",
            )
        )
    except OSError as e:
        return Err(ProcessError(command=command, returncode=-1, stdout="", stderr=str(e)))

    if proc.returncode != 0:
        return Err(
            ProcessError(
                command=command,
                returncode=proc.returncode,
                stdout=proc.stdout,
                stderr=proc.stderr,
            )
        )

    return Ok(
        ProcessOutput(
            command=command,
            returncode=proc.returncode,
            stdout=proc.stdout,
            stderr=proc.stderr,
        )
    )


class ProcessRunner(Protocol):
    """Injectable command execution capability."""

    def run(
        self,
        cmd: Sequence[str],
        *,
        input_text: str | None = None,
        timeout: float | None = None,
        extra_env: Mapping[str, str] | None = None,
    ) -> Result[ProcessOutput, ProcessError]: ...


class SubprocessRunner:
    """Runs real commands in a fixed working directory.

    The command line and both output channels are echoed to the console
    (when one is given) whatever the outcome. Neither ``input_text`` nor
    ``extra_env`` is echoed; both carry secrets. ``extra_env`` is layered over
    the runner's environment (the process environment when none was given).
    """

    def __init__(
        self,
        cwd: Path,
        console: ConsoleProtocol | None = None,
        env: dict[str, str] | None = None,
    ) -> None:
        self.cwd = cwd
        self.console = console
        self.env = env

    def run(
        self,
        cmd: Sequence[str],
        *,
        input_text: str | None = None,
        timeout: float | None = None,
        extra_env: Mapping[str, str] | None = None,
    ) -> Result[ProcessOutput, ProcessError]:
        from shipline.output.console import Style

        if self.console is not None:
            self.console.print(f"$ {shlex.join(cmd)}", Style.DIM)

        env = self.env
        if extra_env:
            env = {**(self.env if self.env is not None else os.environ), **extra_env}

        result = run(cmd, self.cwd, env, input_text=input_text, timeout=timeout)

        if self.console is not None:
            out = result.value if isinstance(result, Ok) else result.error
            for channel in (out.stdout, out.stderr):
                for line in channel.splitlines():
                    self.console.print(f"  {line}", Style.DIM)
        return result


@dataclass(frozen=True, slots=True)
class _Scripted:
    prefix: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str


def _empty_scripts() -> list[_Scripted]:
    return []


def _empty_calls() -> list[tuple[str, ...]]:
    return []


def _empty_inputs() -> list[str | None]:
    return []


def _empty_envs() -> list[dict[str, str]]:
    return []


@dataclass
class MockProcessRunner:
    """Scripted runner for tests.

    Responses are matched on the longest command prefix. One-shot responses
    added with ``queue`` are consumed in order before the standing responses
    set with ``set_result``. Unmatched commands succeed with empty output.

    Usage:
        runner = MockProcessRunner()
        runner.queue(["docker", "network", "create"], returncode=1, stderr="boom")
        runner.set_result(["curl"], stdout="[]")
    """

    calls: list[tuple[str, ...]] = field(default_factory=_empty_calls)
    inputs: list[str | None] = field(default_factory=_empty_inputs)
    envs: list[dict[str, str]] = field(default_factory=_empty_envs)
    _queued: list[_Scripted] = field(default_factory=_empty_scripts)
    _standing: list[_Scripted] = field(default_factory=_empty_scripts)

    def queue(
        self,
        prefix: Sequence[str],
        *,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        self._queued.append(_Scripted(tuple(prefix), returncode, stdout, stderr))

    def set_result(
        self,
        prefix: Sequence[str],
        *,
        returncode: int = 0,
        stdout: str = "",
        stderr: str = "",
    ) -> None:
        self._standing.append(_Scripted(tuple(prefix), returncode, stdout, stderr))

    def run(
        self,
        cmd: Sequence[str],
        *,
        input_text: str | None = None,
        timeout: float | None = None,
        extra_env: Mapping[str, str] | None = None,
    ) -> Result[ProcessOutput, ProcessError]:
        del timeout
        command = tuple(cmd)
        self.calls.append(command)
        self.inputs.append(input_text)
        self.envs.append(dict(extra_env or {}))

        scripted = self._match(command)
        if scripted is None or scripted.returncode == 0:
            stdout = scripted.stdout if scripted else ""
            stderr = scripted.stderr if scripted else ""
            return Ok(ProcessOutput(command, 0, stdout, stderr))
        return Err(ProcessError(command, scripted.returncode, scripted.stdout, scripted.stderr))

    def _match(self, command: tuple[str, ...]) -> _Scripted | None:
        for i, s in enumerate(self._queued):
            if command[: len(s.prefix)] == s.prefix:
                return self._queued.pop(i)

        best: _Scripted | None = None
        for s in self._standing:
            if command[: len(s.prefix)] != s.prefix:
                continue
            if best is None or len(s.prefix) > len(best.prefix):
                best = s
        return best

    # Test helpers

    def calls_starting_with(self, *prefix: str) -> list[tuple[str, ...]]:
        return [c for c in self.calls if c[: len(prefix)] == prefix]
