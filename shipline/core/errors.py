"""Process exit codes for the release pipeline.

The numeric values are part of the CI contract and must stay stable:
- 0: Success (including a declined publish)
- 1: User error (bad version string, invalid config)
- 2: Environment error (container runtime interference, registry login)
- 3: Build error (compile or unit tests failed, image build failed)
- 4: Smoke test error (retries exhausted)
- 5: Publish error (a tag or push failed mid fan-out)
"""

from enum import IntEnum

__all__ = ["ErrorCode"]


class ErrorCode(IntEnum):
    """Exit codes for the pipeline CLI."""

    OK = 0
    USER_ERROR = 1
    ENV_ERROR = 2
    BUILD_ERROR = 3
    SMOKE_ERROR = 4
    PUBLISH_ERROR = 5

    def __str__(self) -> str:
        return self.name.lower().replace("_", " ")

    @property
    def is_success(self) -> bool:
        return self == ErrorCode.OK
