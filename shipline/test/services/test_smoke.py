from __future__ import annotations

from dataclasses import dataclass, field

import pytest

from shipline.core.config import SmokeCase, SmokeConfig, Transport
from shipline.core.result import Err, Ok, Result
from shipline.output.console import MockConsole
from shipline.platform.process import MockProcessRunner, ProcessError
from shipline.services.environment import Environment
from shipline.services.errors import (
    EnvironmentSetupFailure,
    RetryExhausted,
    TeardownFailure,
    TrafficFailure,
    VerificationFailure,
)
from shipline.services.seq import MockSeqClient
from shipline.services.smoke import (
    TRANSITIONS,
    CaseSession,
    SmokeState,
    SmokeStateError,
    SmokeTestRunner,
)

UDP_5424 = SmokeCase("udp", "rfc5424")
UDP_3164 = SmokeCase("udp", "rfc3164")


def _setup_error() -> EnvironmentSetupFailure:
    return EnvironmentSetupFailure(step="seq", error=ProcessError(("docker", "run"), 125, "", "x"))


@dataclass
class FakeEnvironment:
    """Lifecycle double: scripted start outcomes, counted stops."""

    start_failures: int = 0
    stop_error: TeardownFailure | None = None
    starts: int = 0
    stops: int = 0
    logs: int = 0
    live: int = 0
    max_live: int = 0
    transports: list[Transport] = field(default_factory=list)

    def start(
        self, transport: Transport
    ) -> Result[Environment, EnvironmentSetupFailure | TeardownFailure]:
        self.starts += 1
        self.transports.append(transport)
        if self.starts <= self.start_failures:
            return Err(_setup_error())
        self.live += 1
        self.max_live = max(self.max_live, self.live)
        return Ok(Environment("n", "seq", "subject", transport, f"514:514/{transport}"))

    def stop(self) -> Result[None, TeardownFailure]:
        self.stops += 1
        self.live = 0
        if self.stop_error is not None:
            return Err(self.stop_error)
        return Ok(None)

    def collect_logs(self, environment: Environment) -> None:
        del environment
        self.logs += 1


def _runner(
    env: FakeEnvironment,
    seq: MockSeqClient,
    *,
    process: MockProcessRunner | None = None,
    max_attempts: int = 5,
    sleeps: list[float] | None = None,
) -> SmokeTestRunner:
    recorded = sleeps if sleeps is not None else []
    return SmokeTestRunner(
        environment=env,
        runner=process or MockProcessRunner(),
        seq=seq,
        console=MockConsole(),
        config=SmokeConfig(max_attempts=max_attempts),
        sleep=recorded.append,
        new_marker=lambda: "marker",
    )


def _ok_seq() -> MockSeqClient:
    return MockSeqClient(fallback=[{"Id": "event-1"}])


def test_first_attempt_success_tears_down_once() -> None:
    env = FakeEnvironment()
    sleeps: list[float] = []

    result = _runner(env, _ok_seq(), sleeps=sleeps).run_case(UDP_5424)

    assert isinstance(result, Ok)
    assert result.value.attempts == 1
    assert result.value.teardowns == 1
    assert env.stops == 1
    assert env.logs == 1
    assert sleeps == [SmokeConfig().flush_seconds]
    assert result.value.history == (
        SmokeState.IDLE,
        SmokeState.PROVISIONING,
        SmokeState.EXERCISING,
        SmokeState.VERIFYING,
        SmokeState.SUCCESS,
        SmokeState.TEARDOWN,
        SmokeState.IDLE,
    )


@pytest.mark.parametrize("k", [1, 2, 4])
def test_success_after_k_failed_verifications(k: int) -> None:
    env = FakeEnvironment()
    seq = _ok_seq()
    for _ in range(k):
        seq.queue([])

    result = _runner(env, seq).run_case(UDP_5424)

    assert isinstance(result, Ok)
    assert result.value.attempts == k + 1
    assert env.stops == k + 1
    assert result.value.teardowns == k + 1


def test_setup_failures_are_retried() -> None:
    env = FakeEnvironment(start_failures=2)

    result = _runner(env, _ok_seq()).run_case(UDP_3164)

    assert isinstance(result, Ok)
    assert env.starts == 3
    assert env.stops == 3


def test_traffic_failure_is_retried() -> None:
    env = FakeEnvironment()
    process = MockProcessRunner()
    process.queue(["logger"], returncode=1, stderr="connection refused")

    result = _runner(env, _ok_seq(), process=process).run_case(SmokeCase("tcp", "rfc5424"))

    assert isinstance(result, Ok)
    assert result.value.attempts == 2
    assert env.transports == ["tcp", "tcp"]


def test_exhausted_retries_abort_with_last_failure() -> None:
    env = FakeEnvironment()

    result = _runner(env, MockSeqClient(), max_attempts=5).run_case(UDP_5424)

    assert isinstance(result, Err)
    assert isinstance(result.error, RetryExhausted)
    assert result.error.attempts == 5
    assert isinstance(result.error.last_failure, VerificationFailure)
    assert env.starts == 5
    assert env.stops == 5


def test_single_attempt_configuration() -> None:
    env = FakeEnvironment(start_failures=1)

    result = _runner(env, _ok_seq(), max_attempts=1).run_case(UDP_5424)

    assert isinstance(result, Err)
    assert env.starts == 1
    assert env.stops == 1


def test_teardown_failure_is_fatal_and_not_retried() -> None:
    failure = TeardownFailure(
        resource="squiflog-test",
        error=ProcessError(("docker", "network", "rm"), 1, "", "active endpoints"),
    )
    env = FakeEnvironment(stop_error=failure)

    result = _runner(env, MockSeqClient()).run_case(UDP_5424)

    assert result == Err(failure)
    assert env.starts == 1
    assert env.stops == 1


def test_run_executes_matrix_in_order_one_environment_at_a_time() -> None:
    env = FakeEnvironment()

    result = _runner(env, _ok_seq()).run([UDP_5424, UDP_3164])

    assert isinstance(result, Ok)
    assert [c.case for c in result.value.cases] == [UDP_5424, UDP_3164]
    assert result.value.total_attempts == 2
    assert env.max_live == 1


def test_run_stops_at_first_aborted_case() -> None:
    env = FakeEnvironment()
    seq = _ok_seq()
    for _ in range(2):
        seq.queue([])

    result = _runner(env, seq, max_attempts=2).run([UDP_5424, UDP_3164])

    assert isinstance(result, Err)
    assert isinstance(result.error, RetryExhausted)
    assert result.error.case == UDP_5424
    assert env.starts == 2


def test_default_matrix_comes_from_config() -> None:
    env = FakeEnvironment()
    result = _runner(env, _ok_seq()).run()
    assert isinstance(result, Ok)
    assert [c.case for c in result.value.cases] == list(SmokeConfig().cases)


def test_retry_history_only_uses_declared_transitions() -> None:
    env = FakeEnvironment(start_failures=1)
    result = _runner(env, _ok_seq()).run_case(UDP_5424)

    assert isinstance(result, Ok)
    history = result.value.history
    for current, nxt in zip(history, history[1:]):
        assert nxt in TRANSITIONS[current]
    assert SmokeState.FAILED in history


def test_traffic_failure_type_recorded() -> None:
    env = FakeEnvironment()
    process = MockProcessRunner()
    process.set_result(["logger"], returncode=1)

    result = _runner(env, _ok_seq(), process=process, max_attempts=2).run_case(UDP_5424)

    assert isinstance(result, Err)
    assert isinstance(result.error, RetryExhausted)
    assert isinstance(result.error.last_failure, TrafficFailure)
    # logs are gathered on every attempt that got an environment
    assert env.logs == 2


def test_setup_failure_collects_no_logs() -> None:
    env = FakeEnvironment(start_failures=1)
    _runner(env, _ok_seq()).run_case(UDP_5424)
    assert env.logs == 1


def test_illegal_transition_raises_state_error() -> None:
    runner = _runner(FakeEnvironment(), _ok_seq())
    # VERIFYING never moves straight back to IDLE
    runner._handlers = {
        **runner._handlers,
        SmokeState.VERIFYING: lambda s: CaseSession(
            case=s.case, retry=s.retry, state=SmokeState.IDLE
        ),
    }

    with pytest.raises(SmokeStateError, match="illegal smoke transition"):
        runner.run_case(UDP_5424)
