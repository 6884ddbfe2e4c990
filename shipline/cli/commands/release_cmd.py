from __future__ import annotations

from pathlib import Path
from typing import NoReturn

import typer

from shipline.cli.confirm import select_gate
from shipline.cli.context import CLIContext, build_context
from shipline.core.result import Err
from shipline.output.console import Style
from shipline.output.errors import pipeline_error_exit_code, print_pipeline_error
from shipline.services.build import image_ref
from shipline.services.errors import PipelineError
from shipline.services.pipeline import Pipeline, PipelineRun, prepare_run
from shipline.services.publish import show_plan
from shipline.services.seq import RealSeqClient

_CONFIG_OPTION = typer.Option(None, "--config", help="Path to shipline.toml")


def _fail(error: PipelineError, ctx: CLIContext) -> NoReturn:
    print_pipeline_error(error, ctx.console)
    raise typer.Exit(code=pipeline_error_exit_code(error))


def _pipeline(ctx: CLIContext, *, yes: bool = False, skip_build: bool = False) -> Pipeline:
    smoke = ctx.config.smoke
    return Pipeline(
        config=ctx.config,
        runner=ctx.runner,
        console=ctx.console,
        seq=RealSeqClient(timeout=smoke.verify_timeout, api_key=smoke.api_key),
        gate=select_gate(yes=yes),
        skip_build=skip_build,
    )


def _prepare(ctx: CLIContext, version: str) -> PipelineRun:
    run = prepare_run(version, ci=ctx.ci, config=ctx.config)
    if isinstance(run, Err):
        _fail(run.error, ctx)
    return run.value


def release(
    version: str = typer.Argument(..., help="Short version, e.g. 1.2.3"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Publish without asking."),
    skip_build: bool = typer.Option(
        False, "--skip-build", help="Smoke test and publish an already built image."
    ),
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Build, smoke test and publish a release."""
    ctx = build_context(config)
    run = _prepare(ctx, version)

    result = _pipeline(ctx, yes=yes, skip_build=skip_build).run(run)
    if isinstance(result, Err):
        _fail(result.error, ctx)

    summary = result.value
    if summary.publish is not None and summary.publish.published:
        ctx.console.success(f"released {run.version} ({len(summary.publish.pushed)} tags)")
    else:
        ctx.console.success(f"verified {run.version}; nothing published")


def version(
    version: str = typer.Argument(..., help="Short version, e.g. 1.2.3"),
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Print the version a release from this branch would get."""
    ctx = build_context(config)
    run = _prepare(ctx, version)
    typer.echo(run.version)


def plan(
    version: str = typer.Argument(..., help="Short version, e.g. 1.2.3"),
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Show the publish plan without touching any registry."""
    ctx = build_context(config)
    run = _prepare(ctx, version)
    image = image_ref(ctx.config.build, run.version)
    show_plan(_pipeline(ctx).plan(run, image), ctx.console)

    policy = run.ci.should_publish(ctx.config.canonical_branch)
    ctx.console.print(f"CI publish policy: {'eligible' if policy else 'not eligible'}", Style.DIM)


def smoke(
    version: str = typer.Argument(..., help="Short version of the image to test"),
    config: Path | None = _CONFIG_OPTION,
) -> None:
    """Smoke test an already built image."""
    ctx = build_context(config)
    run = _prepare(ctx, version)

    result = _pipeline(ctx).smoke(image_ref(ctx.config.build, run.version))
    if isinstance(result, Err):
        _fail(result.error, ctx)
    ctx.console.success(f"{len(result.value.cases)} smoke case(s) passed")
