"""Top-level release orchestration.

    resolve version -> build/test -> containerize -> smoke test -> publish

Every stage is fail-fast except the smoke stage, which owns its retries.
The publish stage only runs once every smoke case has passed.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass

from shipline.core.ci import CIContext
from shipline.core.config import PipelineConfig
from shipline.core.result import Err, Ok, Result
from shipline.output.console import ConsoleProtocol, Style
from shipline.platform.process import ProcessRunner
from shipline.services.build import BuildDriver, image_ref
from shipline.services.environment import EnvironmentManager
from shipline.services.errors import ConfigurationError, PipelineError
from shipline.services.publish import (
    ConfirmGate,
    PublishOutcome,
    PublishPlan,
    accept,
    execute_plan,
    plan_publish,
)
from shipline.services.seq import SeqClient
from shipline.services.smoke import SmokeReport, SmokeTestRunner
from shipline.services.version import (
    UNKNOWN_BRANCH,
    VersionSpec,
    branch_suffix,
    parse_version,
    resolve_version,
)


@dataclass(frozen=True, slots=True)
class PipelineRun:
    """Inputs of one pipeline invocation, fixed once the version is derived."""

    short_version: str
    version: str
    spec: VersionSpec
    branch: str
    canonical: bool
    ci: CIContext


def prepare_run(
    short_version: str,
    *,
    ci: CIContext,
    config: PipelineConfig,
) -> Result[PipelineRun, ConfigurationError]:
    branch = ci.branch or UNKNOWN_BRANCH
    canonical = branch == config.canonical_branch

    short = parse_version(short_version)
    if isinstance(short, Err):
        return short

    version = resolve_version(short_version, branch, canonical=canonical)
    if isinstance(version, Err):
        return version

    # only the short version is validated; any branch name git accepts is usable
    spec = short.value if canonical else short.value.with_suffix(branch_suffix(branch))

    return Ok(
        PipelineRun(
            short_version=short_version.strip(),
            version=version.value,
            spec=spec,
            branch=branch,
            canonical=canonical,
            ci=ci,
        )
    )


@dataclass(frozen=True, slots=True)
class PipelineSummary:
    run: PipelineRun
    image: str
    smoke: SmokeReport
    # None when CI policy skipped the publish stage
    publish: PublishOutcome | None


class Pipeline:
    def __init__(
        self,
        *,
        config: PipelineConfig,
        runner: ProcessRunner,
        console: ConsoleProtocol,
        seq: SeqClient,
        gate: ConfirmGate,
        sleep: Callable[[float], None] = time.sleep,
        skip_build: bool = False,
    ) -> None:
        self._config = config
        self._runner = runner
        self._console = console
        self._seq = seq
        self._gate = gate
        self._sleep = sleep
        self._skip_build = skip_build

    def plan(self, run: PipelineRun, image: str) -> PublishPlan:
        return plan_publish(
            run.spec,
            image,
            self._config.publish.families,
            registry=self._config.publish.registry,
        )

    def run(self, run: PipelineRun) -> Result[PipelineSummary, PipelineError]:
        console = self._console
        console.header(f"Release {run.version}")
        console.print(f"branch: {run.branch} (canonical: {run.canonical})", Style.DIM)

        image = image_ref(self._config.build, run.version)
        if self._skip_build:
            console.warning(f"skipping build; using existing image {image}")
        else:
            built = BuildDriver(
                runner=self._runner, console=console, config=self._config.build
            ).run(run.version)
            if isinstance(built, Err):
                return built
            image = built.value.image

        smoke = self.smoke(image)
        if isinstance(smoke, Err):
            return smoke

        console.header("Publish")
        gate = self._publish_gate(run)
        if gate is None:
            console.info("CI build is not eligible to publish; skipping")
            return Ok(PipelineSummary(run=run, image=image, smoke=smoke.value, publish=None))

        published = execute_plan(
            self.plan(run, image),
            runner=self._runner,
            console=console,
            gate=gate,
            credentials=run.ci.credentials,
            registry=self._config.publish.registry,
        )
        if isinstance(published, Err):
            return published

        return Ok(PipelineSummary(run=run, image=image, smoke=smoke.value, publish=published.value))

    def smoke(self, image: str) -> Result[SmokeReport, PipelineError]:
        cfg = self._config.smoke
        environment = EnvironmentManager(
            runner=self._runner,
            console=self._console,
            config=cfg,
            image=image,
            sleep=self._sleep,
        )
        return SmokeTestRunner(
            environment=environment,
            runner=self._runner,
            seq=self._seq,
            console=self._console,
            config=cfg,
            sleep=self._sleep,
        ).run()

    def _publish_gate(self, run: PipelineRun) -> ConfirmGate | None:
        if not run.ci.is_ci:
            return self._gate
        if run.ci.should_publish(self._config.canonical_branch):
            return accept
        return None
