from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

import typer

from shipline.core.ci import CIContext, detect_ci
from shipline.core.config import CONFIG_FILE_NAME, PipelineConfig, load_config_or_default
from shipline.core.errors import ErrorCode
from shipline.core.result import Err
from shipline.output.console import ConsoleProtocol, RichConsole
from shipline.platform.process import ProcessRunner, SubprocessRunner
from shipline.services.version import detect_branch


@dataclass(frozen=True, slots=True)
class CLIContext:
    root: Path
    config: PipelineConfig
    ci: CIContext
    console: ConsoleProtocol
    runner: ProcessRunner


def build_context(config_path: Path | None = None) -> CLIContext:
    """Read config and CI signals once; every stage receives them from here."""
    root = Path.cwd()
    console = RichConsole()

    path = config_path or root / CONFIG_FILE_NAME
    config_result = load_config_or_default(path)
    if isinstance(config_result, Err):
        typer.echo(f"error: {config_result.error.message}", err=True)
        raise typer.Exit(code=int(ErrorCode.USER_ERROR))

    runner = SubprocessRunner(cwd=root, console=console)

    ci = detect_ci(os.environ)
    if ci.branch is None:
        ci = ci.with_branch(detect_branch(runner))

    return CLIContext(
        root=root,
        config=config_result.value,
        ci=ci,
        console=console,
        runner=runner,
    )
