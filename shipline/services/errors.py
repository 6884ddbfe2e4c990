from __future__ import annotations

from dataclasses import dataclass

from shipline.core.config import SmokeCase
from shipline.platform.process import ProcessError


@dataclass(frozen=True, slots=True)
class ConfigurationError:
    """An input cannot be used; reported before any side effect."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass(frozen=True, slots=True)
class ProcessFailure:
    stage: str
    error: ProcessError

    def __str__(self) -> str:
        return f"{self.stage}: {self.error}"


@dataclass(frozen=True, slots=True)
class EnvironmentSetupFailure:
    step: str
    error: ProcessError

    def __str__(self) -> str:
        return f"environment setup ({self.step}): {self.error}"


@dataclass(frozen=True, slots=True)
class TrafficFailure:
    case: SmokeCase
    error: ProcessError

    def __str__(self) -> str:
        return f"sending {self.case} traffic: {self.error}"


@dataclass(frozen=True, slots=True)
class VerificationFailure:
    url: str
    reason: str

    def __str__(self) -> str:
        return f"verification failed: {self.reason} ({self.url})"


@dataclass(frozen=True, slots=True)
class TeardownFailure:
    resource: str
    error: ProcessError

    def __str__(self) -> str:
        return f"could not remove {self.resource}: {self.error}"


@dataclass(frozen=True, slots=True)
class RetryExhausted:
    case: SmokeCase
    attempts: int
    last_failure: SmokeFailure

    def __str__(self) -> str:
        return f"smoke test {self.case} failed after {self.attempts} attempts: {self.last_failure}"


@dataclass(frozen=True, slots=True)
class LoginFailure:
    registry: str
    error: ProcessError

    def __str__(self) -> str:
        return f"docker login to {self.registry} failed: {self.error}"


@dataclass(frozen=True, slots=True)
class PartialPublishFailure:
    destination: str
    action: str
    error: ProcessError
    pushed: tuple[str, ...]

    def __str__(self) -> str:
        return f"{self.action} {self.destination} failed: {self.error}"


# Failures recovered by teardown-and-retry inside the smoke loop
SmokeFailure = EnvironmentSetupFailure | TrafficFailure | VerificationFailure

PipelineError = (
    ConfigurationError
    | ProcessFailure
    | EnvironmentSetupFailure
    | TrafficFailure
    | VerificationFailure
    | TeardownFailure
    | RetryExhausted
    | LoginFailure
    | PartialPublishFailure
)
