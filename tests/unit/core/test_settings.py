"""Unit tests for configuration loading."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from price_gateway.core.config import BatchSettings, Settings
from price_gateway.core.config.yaml_source import deep_merge, load_yaml_dir


if TYPE_CHECKING:
    from pathlib import Path


pytestmark = pytest.mark.unit


class TestBatchSettings:
    """Tests for batch settings validation."""

    def test_defaults(self) -> None:
        """Should default to the documented batch tuning."""
        batch = BatchSettings()
        assert batch.request_timeout == pytest.approx(2.5)
        assert batch.deadline == pytest.approx(6.5)
        assert batch.concurrency == 3
        assert batch.chunk_size == 10

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [(0, 1), (-4, 1), (1, 1), (4, 4), (5, 5), (12, 5), ("2", 2), ("many", 3), (None, 3)],
    )
    def test_concurrency_is_clamped(self, raw: object, expected: int) -> None:
        """Should clamp concurrency into 1..5 and fall back to 3 when unparseable."""
        assert BatchSettings(concurrency=raw).concurrency == expected


class TestDeepMerge:
    """Tests for deep_merge."""

    def test_nested_override(self) -> None:
        """Should merge nested mappings key by key."""
        base = {"pricing": {"batch": {"concurrency": 3, "deadline_ms": 6500}}}
        override = {"pricing": {"batch": {"concurrency": 5}}}

        merged = deep_merge(base, override)

        assert merged == {"pricing": {"batch": {"concurrency": 5, "deadline_ms": 6500}}}
        assert base["pricing"]["batch"]["concurrency"] == 3

    def test_scalar_replaces_mapping(self) -> None:
        """Should let a scalar override replace a mapping."""
        assert deep_merge({"a": {"b": 1}}, {"a": 2}) == {"a": 2}


class TestLoadYamlDir:
    """Tests for load_yaml_dir."""

    def test_merges_files_in_name_order(self, tmp_path: Path) -> None:
        """Should merge every yaml file, later names winning."""
        (tmp_path / "a.yaml").write_text("kroger:\n  scope: product.compact\n  timeout: 5\n")
        (tmp_path / "b.yaml").write_text("kroger:\n  timeout: 8\n")
        (tmp_path / "empty.yaml").write_text("")

        data = load_yaml_dir(tmp_path)

        assert data == {"kroger": {"scope": "product.compact", "timeout": 8}}

    def test_missing_directory(self, tmp_path: Path) -> None:
        """Should return an empty mapping for a missing directory."""
        assert load_yaml_dir(tmp_path / "nope") == {}


class TestSettings:
    """Tests for the top-level Settings object."""

    def test_loads_test_environment_overrides(self) -> None:
        """Should layer the test overrides on top of the base files."""
        settings = Settings()
        assert settings.is_testing is True
        assert settings.api.v1_prefix == "/api/kroger"
        assert settings.pricing.cache.enabled is False
        assert settings.pricing.cache.ttl_seconds == 900
        assert settings.pricing.token.safety_margin_seconds == 300

    def test_has_kroger_credentials(self) -> None:
        """Should require both the client id and the secret."""
        assert Settings(KROGER_CLIENT_ID="id", KROGER_CLIENT_SECRET="secret").has_kroger_credentials
        assert not Settings(KROGER_CLIENT_ID="id", KROGER_CLIENT_SECRET="").has_kroger_credentials

    @pytest.mark.parametrize(
        ("user", "password", "expected"),
        [
            (None, "", "redis://localhost:6379/0"),
            (None, "pw", "redis://:pw@localhost:6379/0"),
            ("svc", "pw", "redis://svc:pw@localhost:6379/0"),
            ("svc", "", "redis://svc@localhost:6379/0"),
        ],
    )
    def test_redis_cache_url(self, user: str | None, password: str, expected: str) -> None:
        """Should build the Redis URL with optional ACL auth."""
        settings = Settings(
            redis={"host": "localhost", "port": 6379, "user": user, "cache_db": 0},
            REDIS_PASSWORD=password,
        )
        assert settings.redis_cache_url == expected
