from __future__ import annotations

import re
from dataclasses import dataclass, replace

from shipline.core.result import Err, Ok, Result
from shipline.platform.process import ProcessRunner
from shipline.services.errors import ConfigurationError

# Used as the branch name when neither CI nor git can name one (detached HEAD)
UNKNOWN_BRANCH = "detached"

SUFFIX_MAX_CHARS = 10

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)(?:\.(\d+))?(?:-([0-9A-Za-z_][0-9A-Za-z_.-]*))?$")


@dataclass(frozen=True, slots=True)
class VersionSpec:
    major: int
    minor: int
    patch: int = 0
    prerelease: str | None = None

    @property
    def full(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        if self.prerelease:
            return f"{base}-{self.prerelease}"
        return base

    @property
    def is_prerelease(self) -> bool:
        return self.prerelease is not None

    def __str__(self) -> str:
        return self.full


def parse_version(text: str) -> Result[VersionSpec, ConfigurationError]:
    """Parse ``major.minor[.patch][-prerelease]``; patch defaults to 0."""
    m = _VERSION_RE.match(text.strip())
    if m is None:
        return Err(
            ConfigurationError(f"invalid version '{text}' (expected major.minor[.patch])")
        )
    return Ok(
        VersionSpec(
            major=int(m.group(1)),
            minor=int(m.group(2)),
            patch=int(m.group(3) or 0),
            prerelease=m.group(4),
        )
    )


def branch_suffix(branch: str) -> str:
    """Prerelease suffix for a non-canonical branch.

    First 10 characters, ``/`` and ``+`` replaced with ``-``, trailing ``-``
    trimmed: ``feature/some-very-long-name`` -> ``feature-so``.
    """
    head = branch[:SUFFIX_MAX_CHARS]
    return head.replace("/", "-").replace("+", "-").rstrip("-")


def resolve_version(
    short_version: str,
    branch: str,
    *,
    canonical: bool,
) -> Result[str, ConfigurationError]:
    """Turn the short version into the version string that gets built and tagged.

    On the canonical branch the short version is returned unchanged; any
    other branch contributes a hyphen-separated suffix.
    """
    parsed = parse_version(short_version)
    if isinstance(parsed, Err):
        return parsed

    short = short_version.strip()
    if canonical:
        return Ok(short)

    suffix = branch_suffix(branch)
    if not suffix:
        return Ok(short)
    return Ok(f"{short}-{suffix}")


def detect_branch(runner: ProcessRunner) -> str | None:
    """Current git branch, or None on a detached HEAD or outside a repository."""
    result = runner.run(["git", "symbolic-ref", "--short", "-q", "HEAD"])
    if isinstance(result, Err):
        return None
    return result.value.stdout.strip() or None
