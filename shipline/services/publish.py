"""Publish fan-out of a smoke-tested image to every configured tag.

The plan is computed once from the resolved version, shown in full, and
only executed after the confirmation gate accepts it. Destinations are
tagged then pushed in order; the first failure stops the fan-out. Tags that
were already pushed stay pushed, and a re-run pushes the whole set again
(pushing an existing tag is idempotent).
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass

from shipline.core.ci import RegistryCredentials
from shipline.core.result import Err, Ok, Result
from shipline.output.console import ConsoleProtocol
from shipline.platform.process import ProcessRunner
from shipline.services.errors import LoginFailure, PartialPublishFailure
from shipline.services.version import VersionSpec

DOCKER_HUB = "docker.io"


@dataclass(frozen=True, slots=True)
class Destination:
    family: str
    tag: str

    @property
    def ref(self) -> str:
        return f"{self.family}:{self.tag}"


@dataclass(frozen=True, slots=True)
class PublishPlan:
    source: str
    version: VersionSpec
    destinations: tuple[Destination, ...]

    @property
    def families(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(d.family for d in self.destinations))

    def tags_for(self, family: str) -> tuple[str, ...]:
        return tuple(d.tag for d in self.destinations if d.family == family)


@dataclass(frozen=True, slots=True)
class PublishOutcome:
    published: bool
    pushed: tuple[str, ...] = ()


# Decides whether a plan may mutate registry state
ConfirmGate = Callable[[PublishPlan], bool]


def decline(plan: PublishPlan) -> bool:
    """Gate for non-interactive contexts."""
    del plan
    return False


def accept(plan: PublishPlan) -> bool:
    del plan
    return True


def tag_set(version: VersionSpec) -> tuple[str, ...]:
    """``latest``, major, major.minor, full version; in that order."""
    return (
        "latest",
        f"{version.major}",
        f"{version.major}.{version.minor}",
        version.full,
    )


def plan_publish(
    version: VersionSpec,
    source: str,
    families: Sequence[str],
    *,
    registry: str | None = None,
) -> PublishPlan:
    """Compute every destination; each family receives the same tag set."""
    prefix = f"{registry.rstrip('/')}/" if registry else ""
    destinations = tuple(
        Destination(family=f"{prefix}{family}", tag=tag)
        for family in families
        for tag in tag_set(version)
    )
    return PublishPlan(source=source, version=version, destinations=destinations)


def show_plan(plan: PublishPlan, console: ConsoleProtocol) -> None:
    console.table(
        f"Publish plan for {plan.source} ({plan.version.full})",
        ["family", "tags"],
        [[family, ", ".join(plan.tags_for(family))] for family in plan.families],
    )


def login(
    runner: ProcessRunner,
    credentials: RegistryCredentials,
    *,
    registry: str | None = None,
) -> Result[None, LoginFailure]:
    cmd = ["docker", "login", "--username", credentials.user, "--password-stdin"]
    if registry:
        cmd.append(registry)
    result = runner.run(cmd, input_text=credentials.token)
    if isinstance(result, Err):
        return Err(LoginFailure(registry=registry or DOCKER_HUB, error=result.error))
    return Ok(None)


def execute_plan(
    plan: PublishPlan,
    *,
    runner: ProcessRunner,
    console: ConsoleProtocol,
    gate: ConfirmGate,
    credentials: RegistryCredentials | None = None,
    registry: str | None = None,
) -> Result[PublishOutcome, LoginFailure | PartialPublishFailure]:
    show_plan(plan, console)

    if not gate(plan):
        console.info("publish declined; no tags were pushed")
        return Ok(PublishOutcome(published=False))

    if credentials is not None:
        logged_in = login(runner, credentials, registry=registry)
        if isinstance(logged_in, Err):
            return logged_in

    pushed: list[str] = []
    for dest in plan.destinations:
        for action, cmd in (
            ("tag", ["docker", "tag", plan.source, dest.ref]),
            ("push", ["docker", "push", dest.ref]),
        ):
            result = runner.run(cmd)
            if isinstance(result, Err):
                return Err(
                    PartialPublishFailure(
                        destination=dest.ref,
                        action=action,
                        error=result.error,
                        pushed=tuple(pushed),
                    )
                )
        pushed.append(dest.ref)
        console.success(f"pushed {dest.ref}")

    return Ok(PublishOutcome(published=True, pushed=tuple(pushed)))
