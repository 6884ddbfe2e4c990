"""Tests for shipline.core.config module."""

from __future__ import annotations

from pathlib import Path

import pytest

from shipline.core.config import (
    DEFAULT_SMOKE_CASES,
    PipelineConfig,
    PublishConfig,
    SmokeCase,
    SmokeConfig,
    load_config,
    load_config_or_default,
)
from shipline.core.result import Err, Ok


class TestDefaults:
    def test_smoke_defaults(self) -> None:
        cfg = SmokeConfig()
        assert cfg.max_attempts == 5
        assert cfg.syslog_port == 514
        assert cfg.diagnostics is False
        assert cfg.cases == (SmokeCase("udp", "rfc5424"), SmokeCase("udp", "rfc3164"))
        assert cfg.seq_url == "http://localhost:5341"

    def test_publish_defaults(self) -> None:
        assert PublishConfig().families == ("datalust/seq-input-syslog", "datalust/squiflog")

    def test_frozen(self) -> None:
        cfg = PipelineConfig()
        with pytest.raises(AttributeError):
            cfg.canonical_branch = "main"  # type: ignore[misc]

    def test_case_str(self) -> None:
        assert str(SmokeCase("tcp", "rfc3164")) == "tcp/rfc3164"


class TestFromDict:
    def test_empty_uses_defaults(self) -> None:
        assert PipelineConfig.from_dict({}) == PipelineConfig()

    def test_overrides(self) -> None:
        cfg = PipelineConfig.from_dict(
            {
                "canonical_branch": "main",
                "build": {"targets": ["a", "b"], "image": "local/img"},
                "smoke": {
                    "max_attempts": 2,
                    "settle_seconds": 0,
                    "diagnostics": True,
                    "cases": [{"transport": "tcp", "format": "rfc5424"}],
                },
                "publish": {"families": ["acme/daemon"], "registry": "ghcr.io"},
            }
        )
        assert cfg.canonical_branch == "main"
        assert cfg.build.targets == ("a", "b")
        assert cfg.build.image == "local/img"
        assert cfg.smoke.max_attempts == 2
        assert cfg.smoke.settle_seconds == 0.0
        assert cfg.smoke.diagnostics is True
        assert cfg.smoke.cases == (SmokeCase("tcp", "rfc5424"),)
        assert cfg.publish.families == ("acme/daemon",)
        assert cfg.publish.registry == "ghcr.io"

    def test_unknown_transport_rejected(self) -> None:
        with pytest.raises(ValueError, match="transport"):
            PipelineConfig.from_dict({"smoke": {"cases": [{"transport": "sctp", "format": "rfc5424"}]}})

    def test_zero_attempts_rejected(self) -> None:
        with pytest.raises(ValueError, match="max_attempts"):
            PipelineConfig.from_dict({"smoke": {"max_attempts": 0}})

    def test_duplicate_families_rejected(self) -> None:
        with pytest.raises(ValueError, match="duplicates"):
            PipelineConfig.from_dict({"publish": {"families": ["a/b", "a/b"]}})

    @pytest.mark.parametrize(
        ("data", "key"),
        [
            ({"publish": {"families": ["acme/img", 3]}}, "publish.families"),
            ({"publish": {"families": []}}, "publish.families"),
            ({"publish": {"families": "acme/img"}}, "publish.families"),
            ({"build": {"targets": ["x86_64-unknown-linux-musl", ""]}}, "build.targets"),
        ],
    )
    def test_invalid_list_never_falls_back_to_defaults(
        self, data: dict[str, object], key: str
    ) -> None:
        with pytest.raises(ValueError, match=key):
            PipelineConfig.from_dict(data)

    def test_missing_cases_key_keeps_default_matrix(self) -> None:
        cfg = PipelineConfig.from_dict({"smoke": {"max_attempts": 3}})
        assert cfg.smoke.cases == DEFAULT_SMOKE_CASES


class TestLoadConfig:
    def test_load_valid(self, tmp_path: Path) -> None:
        path = tmp_path / "shipline.toml"
        path.write_text(
            'canonical_branch = "main"\n\n[smoke]\nmax_attempts = 3\n',
            encoding="utf-8",
        )
        result = load_config(path)
        assert isinstance(result, Ok)
        assert result.value.canonical_branch == "main"
        assert result.value.smoke.max_attempts == 3

    def test_invalid_toml(self, tmp_path: Path) -> None:
        path = tmp_path / "shipline.toml"
        path.write_text("[smoke\n", encoding="utf-8")
        result = load_config(path)
        assert isinstance(result, Err)
        assert "Invalid TOML" in result.error.message
        assert result.error.path == path

    def test_invalid_value(self, tmp_path: Path) -> None:
        path = tmp_path / "shipline.toml"
        path.write_text("[smoke]\nmax_attempts = -1\n", encoding="utf-8")
        result = load_config(path)
        assert isinstance(result, Err)
        assert "max_attempts" in result.error.message

    def test_missing_file_is_error(self, tmp_path: Path) -> None:
        result = load_config(tmp_path / "missing.toml")
        assert isinstance(result, Err)
        assert "not found" in result.error.message

    def test_or_default_when_missing(self, tmp_path: Path) -> None:
        result = load_config_or_default(tmp_path / "missing.toml")
        assert result == Ok(PipelineConfig())
