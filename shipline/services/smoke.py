"""Smoke test runner: bounded-retry state machine per matrix case.

Each (transport, format) case walks

    IDLE -> PROVISIONING -> EXERCISING -> VERIFYING -> {SUCCESS, FAILED}
    FAILED  -> TEARDOWN -> PROVISIONING | ABORTED
    SUCCESS -> TEARDOWN -> IDLE

Every attempt ends in TEARDOWN. ``IDLE`` after teardown and ``ABORTED`` are
terminal. Cases run strictly one after another; the first aborted case stops
the run.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field, replace
from enum import StrEnum
from typing import Protocol

from shipline.core.config import SmokeCase, SmokeConfig, Transport
from shipline.core.result import Err, Ok, Result
from shipline.output.console import ConsoleProtocol, Style
from shipline.platform.process import ProcessRunner
from shipline.services.environment import Environment
from shipline.services.errors import (
    EnvironmentSetupFailure,
    RetryExhausted,
    SmokeFailure,
    TeardownFailure,
)
from shipline.services.seq import SeqClient, verify_ingestion
from shipline.services.traffic import send_syslog


class SmokeStateError(RuntimeError):
    """The state machine reached a state its transition table does not allow."""


class SmokeState(StrEnum):
    IDLE = "idle"
    PROVISIONING = "provisioning"
    EXERCISING = "exercising"
    VERIFYING = "verifying"
    SUCCESS = "success"
    FAILED = "failed"
    TEARDOWN = "teardown"
    ABORTED = "aborted"


TRANSITIONS: Mapping[SmokeState, frozenset[SmokeState]] = {
    SmokeState.IDLE: frozenset({SmokeState.PROVISIONING}),
    # A leftover that cannot be cleared before provisioning is a teardown failure
    SmokeState.PROVISIONING: frozenset(
        {SmokeState.EXERCISING, SmokeState.FAILED, SmokeState.ABORTED}
    ),
    SmokeState.EXERCISING: frozenset({SmokeState.VERIFYING, SmokeState.FAILED}),
    SmokeState.VERIFYING: frozenset({SmokeState.SUCCESS, SmokeState.FAILED}),
    SmokeState.SUCCESS: frozenset({SmokeState.TEARDOWN}),
    SmokeState.FAILED: frozenset({SmokeState.TEARDOWN}),
    SmokeState.TEARDOWN: frozenset(
        {SmokeState.PROVISIONING, SmokeState.IDLE, SmokeState.ABORTED}
    ),
    SmokeState.ABORTED: frozenset(),
}


class EnvironmentLifecycle(Protocol):
    def start(
        self, transport: Transport
    ) -> Result[Environment, EnvironmentSetupFailure | TeardownFailure]: ...

    def stop(self) -> Result[None, TeardownFailure]: ...

    def collect_logs(self, environment: Environment) -> None: ...


@dataclass(frozen=True, slots=True)
class RetryState:
    max_attempts: int
    attempt: int = 0
    last_failure: SmokeFailure | None = None

    @property
    def exhausted(self) -> bool:
        return self.attempt >= self.max_attempts


@dataclass(frozen=True, slots=True)
class CaseSession:
    case: SmokeCase
    retry: RetryState
    state: SmokeState = SmokeState.IDLE
    environment: Environment | None = None
    passed: bool = False
    teardowns: int = 0
    fatal: TeardownFailure | None = None
    history: tuple[SmokeState, ...] = (SmokeState.IDLE,)


@dataclass(frozen=True, slots=True)
class CaseReport:
    case: SmokeCase
    attempts: int
    teardowns: int
    history: tuple[SmokeState, ...]


def _empty_reports() -> list[CaseReport]:
    return []


@dataclass
class SmokeReport:
    cases: list[CaseReport] = field(default_factory=_empty_reports)

    @property
    def total_attempts(self) -> int:
        return sum(c.attempts for c in self.cases)


StepHandler = Callable[[CaseSession], CaseSession]


class SmokeTestRunner:
    def __init__(
        self,
        *,
        environment: EnvironmentLifecycle,
        runner: ProcessRunner,
        seq: SeqClient,
        console: ConsoleProtocol,
        config: SmokeConfig,
        sleep: Callable[[float], None] = time.sleep,
        new_marker: Callable[[], str] = lambda: uuid.uuid4().hex[:12],
    ) -> None:
        self._env = environment
        self._runner = runner
        self._seq = seq
        self._console = console
        self._config = config
        self._sleep = sleep
        self._new_marker = new_marker
        self._handlers: Mapping[SmokeState, StepHandler] = {
            SmokeState.IDLE: self._start_attempt,
            SmokeState.PROVISIONING: self._provision,
            SmokeState.EXERCISING: self._exercise,
            SmokeState.VERIFYING: self._verify,
            SmokeState.SUCCESS: self._succeed,
            SmokeState.FAILED: self._fail,
            SmokeState.TEARDOWN: self._teardown,
        }

    def run(
        self, cases: Sequence[SmokeCase] | None = None
    ) -> Result[SmokeReport, RetryExhausted | TeardownFailure]:
        report = SmokeReport()
        for case in cases if cases is not None else self._config.cases:
            result = self.run_case(case)
            if isinstance(result, Err):
                return result
            report.cases.append(result.value)
        return Ok(report)

    def run_case(self, case: SmokeCase) -> Result[CaseReport, RetryExhausted | TeardownFailure]:
        self._console.header(f"Smoke test {case}")
        session = CaseSession(case=case, retry=RetryState(max_attempts=self._config.max_attempts))

        session = self._step(session)
        while session.state not in (SmokeState.IDLE, SmokeState.ABORTED):
            session = self._step(session)

        if session.fatal is not None:
            return Err(session.fatal)
        if session.state is SmokeState.ABORTED:
            failure = session.retry.last_failure
            if failure is None:
                raise SmokeStateError(f"{case} aborted without a recorded failure")
            return Err(RetryExhausted(case=case, attempts=session.retry.attempt, last_failure=failure))

        self._console.success(f"{case} passed (attempt {session.retry.attempt})")
        return Ok(
            CaseReport(
                case=case,
                attempts=session.retry.attempt,
                teardowns=session.teardowns,
                history=session.history,
            )
        )

    def _step(self, session: CaseSession) -> CaseSession:
        nxt = self._handlers[session.state](session)
        if nxt.state not in TRANSITIONS[session.state]:
            raise SmokeStateError(f"illegal smoke transition: {session.state} -> {nxt.state}")
        return replace(nxt, history=(*session.history, nxt.state))

    # State handlers

    def _start_attempt(self, s: CaseSession) -> CaseSession:
        retry = replace(s.retry, attempt=s.retry.attempt + 1)
        self._console.info(f"{s.case}: attempt {retry.attempt}/{retry.max_attempts}")
        return replace(s, state=SmokeState.PROVISIONING, retry=retry, passed=False)

    def _provision(self, s: CaseSession) -> CaseSession:
        result = self._env.start(s.case.transport)
        if isinstance(result, Ok):
            return replace(s, state=SmokeState.EXERCISING, environment=result.value)
        if isinstance(result.error, TeardownFailure):
            return replace(s, state=SmokeState.ABORTED, fatal=result.error)
        return self._record_failure(s, result.error)

    def _exercise(self, s: CaseSession) -> CaseSession:
        sent = send_syslog(
            self._runner,
            s.case,
            port=self._config.syslog_port,
            marker=self._new_marker(),
        )
        if isinstance(sent, Err):
            self._collect_logs(s)
            return self._record_failure(s, sent.error)
        self._sleep(self._config.flush_seconds)
        self._collect_logs(s)
        return replace(s, state=SmokeState.VERIFYING)

    def _verify(self, s: CaseSession) -> CaseSession:
        verified = verify_ingestion(self._seq, self._config.seq_url)
        if isinstance(verified, Err):
            return self._record_failure(s, verified.error)
        self._console.print(f"Seq returned {verified.value} event(s)", Style.DIM)
        return replace(s, state=SmokeState.SUCCESS)

    def _succeed(self, s: CaseSession) -> CaseSession:
        return replace(s, state=SmokeState.TEARDOWN, passed=True)

    def _fail(self, s: CaseSession) -> CaseSession:
        self._console.warning(f"{s.case}: attempt {s.retry.attempt} failed: {s.retry.last_failure}")
        return replace(s, state=SmokeState.TEARDOWN)

    def _teardown(self, s: CaseSession) -> CaseSession:
        stopped = self._env.stop()
        s = replace(s, environment=None, teardowns=s.teardowns + 1)
        if isinstance(stopped, Err):
            return replace(s, state=SmokeState.ABORTED, fatal=stopped.error)
        if s.passed:
            return replace(s, state=SmokeState.IDLE)
        if s.retry.exhausted:
            return replace(s, state=SmokeState.ABORTED)
        return self._start_attempt(s)

    def _collect_logs(self, s: CaseSession) -> None:
        if s.environment is not None:
            self._env.collect_logs(s.environment)

    def _record_failure(self, s: CaseSession, failure: SmokeFailure) -> CaseSession:
        return replace(s, state=SmokeState.FAILED, retry=replace(s.retry, last_failure=failure))
