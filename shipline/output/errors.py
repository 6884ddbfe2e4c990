"""Error presentation utilities.

Centralized error formatting and exit code mapping for consistent UX.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from shipline.core.errors import ErrorCode
from shipline.output.console import Style
from shipline.services.errors import (
    ConfigurationError,
    EnvironmentSetupFailure,
    LoginFailure,
    PartialPublishFailure,
    PipelineError,
    ProcessFailure,
    RetryExhausted,
    TeardownFailure,
    TrafficFailure,
    VerificationFailure,
)

if TYPE_CHECKING:
    from shipline.output.console import ConsoleProtocol

__all__ = ["print_pipeline_error", "pipeline_error_exit_code"]


def print_pipeline_error(error: PipelineError, console: ConsoleProtocol) -> None:
    """Print a pipeline error with the hint an operator needs next."""
    console.error(str(error))
    match error:
        case ConfigurationError():
            console.print("hint: pass a version like 1.2 or 1.2.3", Style.DIM)
        case ProcessFailure(error=e) | TeardownFailure(error=e) | LoginFailure(error=e):
            if e.stderr.strip():
                console.print(e.stderr.strip(), Style.DIM)
        case RetryExhausted(case=case):
            console.print(f"hint: inspect the container logs above for {case}", Style.DIM)
        case PartialPublishFailure(pushed=pushed):
            if pushed:
                console.print(f"already pushed: {', '.join(pushed)}", Style.DIM)
            console.print("hint: re-run the release to push the complete tag set", Style.DIM)
        case EnvironmentSetupFailure() | TrafficFailure() | VerificationFailure():
            pass


def pipeline_error_exit_code(error: PipelineError) -> int:
    """Get the process exit code for a pipeline error."""
    match error:
        case ConfigurationError():
            return int(ErrorCode.USER_ERROR)
        case ProcessFailure():
            return int(ErrorCode.BUILD_ERROR)
        case TeardownFailure() | LoginFailure():
            return int(ErrorCode.ENV_ERROR)
        case RetryExhausted() | EnvironmentSetupFailure() | TrafficFailure() | VerificationFailure():
            return int(ErrorCode.SMOKE_ERROR)
        case PartialPublishFailure():
            return int(ErrorCode.PUBLISH_ERROR)
