"""Typed pipeline configuration.

Defaults describe the squiflog release; an optional ``shipline.toml`` at the
repository root overrides any of them:

    canonical_branch = "master"

    [build]
    targets = ["x86_64-unknown-linux-musl"]
    image = "squiflog-ci"

    [smoke]
    max_attempts = 5
    cases = [{ transport = "udp", format = "rfc5424" }]

    [publish]
    families = ["datalust/seq-input-syslog", "datalust/squiflog"]
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from .result import Err, Ok, Result
from .structured import (
    StrDict,
    as_str_dict,
    get_bool,
    get_float,
    get_int,
    get_list,
    get_str,
    get_str_tuple,
    get_table,
)

__all__ = [
    "BuildConfig",
    "ConfigError",
    "LogFormat",
    "PipelineConfig",
    "PublishConfig",
    "SmokeCase",
    "SmokeConfig",
    "Transport",
    "load_config",
    "load_config_or_default",
    "CONFIG_FILE_NAME",
    "DEFAULT_SMOKE_CASES",
]

CONFIG_FILE_NAME = "shipline.toml"

Transport = Literal["udp", "tcp"]
LogFormat = Literal["rfc5424", "rfc3164"]

_TRANSPORTS: tuple[Transport, ...] = ("udp", "tcp")
_FORMATS: tuple[LogFormat, ...] = ("rfc5424", "rfc3164")


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class SmokeCase:
    """One (transport, format) pair of the smoke test matrix."""

    transport: Transport
    format: LogFormat

    def __str__(self) -> str:
        return f"{self.transport}/{self.format}"


DEFAULT_SMOKE_CASES: tuple[SmokeCase, ...] = (
    SmokeCase("udp", "rfc5424"),
    SmokeCase("udp", "rfc3164"),
)


@dataclass(frozen=True, slots=True)
class BuildConfig:
    """Compile, unit test and image build settings."""

    crate_dir: str = "squiflog"
    targets: tuple[str, ...] = ("x86_64-unknown-linux-musl",)
    image: str = "squiflog-ci"
    dockerfile: str = "dockerfiles/Dockerfile"
    context: str = "."


@dataclass(frozen=True, slots=True)
class SmokeConfig:
    """Container environment and retry settings for the smoke stage."""

    name_prefix: str = "squiflog-test"
    seq_image: str = "datalust/seq:latest"
    seq_host_port: int = 5341
    seq_container_port: int = 80
    syslog_port: int = 514
    api_key: str | None = None
    diagnostics: bool = False
    max_attempts: int = 5
    settle_seconds: float = 5.0
    flush_seconds: float = 3.0
    verify_timeout: float = 10.0
    cases: tuple[SmokeCase, ...] = DEFAULT_SMOKE_CASES

    @property
    def seq_url(self) -> str:
        """Seq API base URL as reached from the host."""
        return f"http://localhost:{self.seq_host_port}"


@dataclass(frozen=True, slots=True)
class PublishConfig:
    """Registry fan-out settings.

    ``families`` lists every repository that receives the same tag set. The
    second entry is the name retained from before the rename.
    """

    families: tuple[str, ...] = ("datalust/seq-input-syslog", "datalust/squiflog")
    registry: str | None = None


@dataclass(frozen=True, slots=True)
class PipelineConfig:
    """Main configuration container."""

    canonical_branch: str = "master"
    build: BuildConfig = field(default_factory=BuildConfig)
    smoke: SmokeConfig = field(default_factory=SmokeConfig)
    publish: PublishConfig = field(default_factory=PublishConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> PipelineConfig:
        """Create a config from parsed TOML.

        Raises:
            ValueError: If a value is present but out of range.
        """
        build: StrDict = get_table(data, "build") or {}
        smoke: StrDict = get_table(data, "smoke") or {}
        publish: StrDict = get_table(data, "publish") or {}

        b = BuildConfig()
        s = SmokeConfig()
        p = PublishConfig()

        max_attempts = get_int(smoke, "max_attempts")
        if max_attempts is None:
            max_attempts = s.max_attempts
        elif max_attempts < 1:
            raise ValueError(f"smoke.max_attempts must be >= 1, got {max_attempts}")

        families = _str_list(publish, "publish", "families", p.families)
        if len(set(families)) != len(families):
            raise ValueError("publish.families contains duplicates")

        return cls(
            canonical_branch=get_str(data, "canonical_branch") or "master",
            build=BuildConfig(
                crate_dir=get_str(build, "crate_dir") or b.crate_dir,
                targets=_str_list(build, "build", "targets", b.targets),
                image=get_str(build, "image") or b.image,
                dockerfile=get_str(build, "dockerfile") or b.dockerfile,
                context=get_str(build, "context") or b.context,
            ),
            smoke=SmokeConfig(
                name_prefix=get_str(smoke, "name_prefix") or s.name_prefix,
                seq_image=get_str(smoke, "seq_image") or s.seq_image,
                seq_host_port=get_int(smoke, "seq_host_port") or s.seq_host_port,
                seq_container_port=get_int(smoke, "seq_container_port") or s.seq_container_port,
                syslog_port=get_int(smoke, "syslog_port") or s.syslog_port,
                api_key=get_str(smoke, "api_key"),
                diagnostics=bool(get_bool(smoke, "diagnostics")),
                max_attempts=max_attempts,
                settle_seconds=_non_negative(smoke, "settle_seconds", s.settle_seconds),
                flush_seconds=_non_negative(smoke, "flush_seconds", s.flush_seconds),
                verify_timeout=get_float(smoke, "verify_timeout") or s.verify_timeout,
                cases=_parse_cases(smoke),
            ),
            publish=PublishConfig(
                families=families,
                registry=get_str(publish, "registry"),
            ),
        )


def _str_list(
    table: Mapping[str, object], section: str, key: str, default: tuple[str, ...]
) -> tuple[str, ...]:
    if key not in table:
        return default
    values = get_str_tuple(table, key)
    if not values:
        raise ValueError(f"{section}.{key} must be a non-empty list of non-empty strings")
    return values


def _non_negative(table: Mapping[str, object], key: str, default: float) -> float:
    value = get_float(table, key)
    if value is None:
        return default
    if value < 0:
        raise ValueError(f"smoke.{key} must be >= 0, got {value}")
    return value


def _parse_cases(smoke: Mapping[str, object]) -> tuple[SmokeCase, ...]:
    raw = get_list(smoke, "cases")
    if raw is None:
        return DEFAULT_SMOKE_CASES

    cases: list[SmokeCase] = []
    for item in raw:
        table = as_str_dict(item)
        if table is None:
            raise ValueError("smoke.cases entries must be tables")
        transport = get_str(table, "transport")
        fmt = get_str(table, "format")
        if transport not in _TRANSPORTS:
            raise ValueError(f"unknown smoke transport: {transport}")
        if fmt not in _FORMATS:
            raise ValueError(f"unknown smoke format: {fmt}")
        cases.append(SmokeCase(transport=transport, format=fmt))

    if not cases:
        raise ValueError("smoke.cases must not be empty")
    return tuple(cases)


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    import tomllib

    try:
        data_obj: object = tomllib.loads(path.read_bytes().decode("utf-8"))
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))

    data = as_str_dict(data_obj)
    if data is None:
        return Err(ConfigError("Config root must be a TOML table", path=path))
    return Ok(data)


def load_config(path: Path) -> Result[PipelineConfig, ConfigError]:
    """Load and validate pipeline configuration from a TOML file."""
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(PipelineConfig.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config: {e}", path=path))


def load_config_or_default(path: Path) -> Result[PipelineConfig, ConfigError]:
    """Load config if the file exists, otherwise return the defaults.

    A file that exists but fails to parse is still an error.
    """
    if not path.exists():
        return Ok(PipelineConfig())
    return load_config(path)
