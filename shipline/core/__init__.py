"""Core domain types and logic."""

from .ci import CIContext, RegistryCredentials, detect_ci
from .config import (
    ConfigError,
    PipelineConfig,
    SmokeCase,
    load_config,
    load_config_or_default,
)
from .errors import ErrorCode
from .result import Err, Ok, Result, is_err, is_ok

__all__ = [
    # ci
    "CIContext",
    "RegistryCredentials",
    "detect_ci",
    # config
    "ConfigError",
    "PipelineConfig",
    "SmokeCase",
    "load_config",
    "load_config_or_default",
    # errors
    "ErrorCode",
    # result
    "Err",
    "Ok",
    "Result",
    "is_err",
    "is_ok",
]
