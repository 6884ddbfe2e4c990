"""Platform abstraction layer."""

from .process import (
    MockProcessRunner,
    ProcessError,
    ProcessOutput,
    ProcessRunner,
    SubprocessRunner,
    run,
)

__all__ = [
    "MockProcessRunner",
    "ProcessError",
    "ProcessOutput",
    "ProcessRunner",
    "SubprocessRunner",
    "run",
]
