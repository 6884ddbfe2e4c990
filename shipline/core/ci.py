"""CI context, read once from the process environment at startup.

Components receive a ``CIContext`` value; none of them consult
``os.environ`` directly.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace

__all__ = ["CIContext", "RegistryCredentials", "detect_ci"]

_TRUTHY = {"1", "true", "yes", "on"}


@dataclass(frozen=True, slots=True)
class RegistryCredentials:
    """Registry principal and secret (token or password)."""

    user: str
    token: str = field(repr=False)


@dataclass(frozen=True, slots=True)
class CIContext:
    is_ci: bool = False
    is_pull_request: bool = False
    branch: str | None = None
    credentials: RegistryCredentials | None = None

    def on_branch(self, name: str) -> bool:
        return self.branch == name

    def should_publish(self, canonical_branch: str) -> bool:
        """CI publish policy: a non-PR CI build of the canonical branch."""
        return self.is_ci and not self.is_pull_request and self.on_branch(canonical_branch)

    def with_branch(self, branch: str | None) -> CIContext:
        return replace(self, branch=branch)


def _flag(environ: Mapping[str, str], *names: str) -> bool:
    return any(environ.get(n, "").strip().lower() in _TRUTHY for n in names)


def _first(environ: Mapping[str, str], *names: str) -> str | None:
    for n in names:
        value = environ.get(n, "").strip()
        if value:
            return value
    return None


def detect_ci(environ: Mapping[str, str]) -> CIContext:
    """Build the CI context from environment variables.

    Recognised signals:
    - build indicator: ``CI`` or ``APPVEYOR``
    - pull request: ``APPVEYOR_PULL_REQUEST_NUMBER`` or ``CI_PULL_REQUEST``
    - branch: ``APPVEYOR_REPO_BRANCH`` or ``CI_BRANCH``
    - credentials: ``DOCKER_USER`` and ``DOCKER_TOKEN`` (both required)

    The branch is None when no variable names it; callers fall back to git.
    """
    user = _first(environ, "DOCKER_USER")
    token = _first(environ, "DOCKER_TOKEN")
    credentials = RegistryCredentials(user=user, token=token) if user and token else None

    return CIContext(
        is_ci=_flag(environ, "CI", "APPVEYOR"),
        is_pull_request=_first(environ, "APPVEYOR_PULL_REQUEST_NUMBER", "CI_PULL_REQUEST")
        is not None,
        branch=_first(environ, "APPVEYOR_REPO_BRANCH", "CI_BRANCH"),
        credentials=credentials,
    )
