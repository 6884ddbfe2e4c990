from __future__ import annotations

from pathlib import Path

import pytest
import typer
from typer.testing import CliRunner

from shipline.cli.app import app
from shipline.cli.context import CLIContext
from shipline.core.ci import CIContext
from shipline.core.config import PipelineConfig, SmokeConfig
from shipline.core.errors import ErrorCode
from shipline.output.console import MockConsole
from shipline.platform.process import MockProcessRunner
from shipline.services.seq import MockSeqClient


def _ctx(
    tmp_path: Path,
    runner: MockProcessRunner,
    *,
    ci: CIContext | None = None,
) -> CLIContext:
    return CLIContext(
        root=tmp_path,
        config=PipelineConfig(smoke=SmokeConfig(settle_seconds=0, flush_seconds=0)),
        ci=ci or CIContext(branch="master"),
        console=MockConsole(),
        runner=runner,
    )


@pytest.fixture
def runner() -> MockProcessRunner:
    return MockProcessRunner()


@pytest.fixture
def ctx(
    tmp_path: Path, runner: MockProcessRunner, monkeypatch: pytest.MonkeyPatch
) -> CLIContext:
    import shipline.cli.commands.release_cmd as release_cmd

    context = _ctx(tmp_path, runner)
    monkeypatch.setattr(release_cmd, "build_context", lambda config=None: context)
    monkeypatch.setattr(
        release_cmd,
        "RealSeqClient",
        lambda **_: MockSeqClient(fallback=[{"Id": "event-1"}]),
    )
    return context


def test_release_with_yes_publishes(ctx: CLIContext, runner: MockProcessRunner) -> None:
    result = CliRunner().invoke(app, ["release", "3.0.0", "--yes"])

    assert result.exit_code == 0, result.output
    pushed = [c[2] for c in runner.calls_starting_with("docker", "push")]
    assert "datalust/squiflog:3.0.0" in pushed
    assert "datalust/seq-input-syslog:latest" in pushed
    assert isinstance(ctx.console, MockConsole)
    assert ctx.console.find("released 3.0.0")


def test_release_declines_when_not_interactive(ctx: CLIContext, runner: MockProcessRunner) -> None:
    result = CliRunner().invoke(app, ["release", "3.0.0"])

    assert result.exit_code == 0, result.output
    assert not runner.calls_starting_with("docker", "tag")
    assert not runner.calls_starting_with("docker", "push")


def test_invalid_version_exits_before_side_effects(
    ctx: CLIContext, runner: MockProcessRunner
) -> None:
    result = CliRunner().invoke(app, ["release", "three"])

    assert result.exit_code == int(ErrorCode.USER_ERROR)
    assert runner.calls == []


def test_build_failure_exit_code(ctx: CLIContext, runner: MockProcessRunner) -> None:
    runner.set_result(["cargo", "test"], returncode=101)

    with pytest.raises(typer.Exit) as exc:
        import shipline.cli.commands.release_cmd as release_cmd

        release_cmd.release(version="3.0.0", yes=True, skip_build=False, config=None)

    assert exc.value.exit_code == int(ErrorCode.BUILD_ERROR)


def test_version_command_prints_resolved_version(
    tmp_path: Path, runner: MockProcessRunner, monkeypatch: pytest.MonkeyPatch
) -> None:
    import shipline.cli.commands.release_cmd as release_cmd

    context = _ctx(tmp_path, runner, ci=CIContext(branch="feature/some-very-long-name"))
    monkeypatch.setattr(release_cmd, "build_context", lambda config=None: context)

    result = CliRunner().invoke(app, ["version", "1.2.3"])

    assert result.exit_code == 0
    assert result.output.strip() == "1.2.3-feature-so"


def test_plan_command_touches_no_registry(ctx: CLIContext, runner: MockProcessRunner) -> None:
    result = CliRunner().invoke(app, ["plan", "2.5.1"])

    assert result.exit_code == 0
    assert runner.calls == []
    assert isinstance(ctx.console, MockConsole)
    assert ctx.console.tables[0][2][0] == ("datalust/seq-input-syslog", "latest, 2, 2.5, 2.5.1")
