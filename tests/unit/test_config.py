"""Unit tests for rugby_sync.config."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from rugby_sync.config import SyncSettings, build_connector
from rugby_sync.ingest.connectors.api_sports import DEFAULT_BASE_URL, ApiSportsConnector
from rugby_sync.ingest.connectors.base import AuthenticationError
from rugby_sync.utils.credentials import FileCredentialProvider

_VARS = (
    "RUGBY_SYNC_DATA_DIR",
    "RUGBY_SYNC_BASE_URL",
    "RUGBY_SYNC_TIMEOUT",
    "RUGBY_SYNC_REQUESTS_PER_MINUTE",
    "RUGBY_SYNC_MAX_RETRIES",
)


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in _VARS:
        monkeypatch.delenv(var, raising=False)


class TestSyncSettings:
    """Tests for SyncSettings defaults and environment overrides."""

    @pytest.mark.smoke
    def test_defaults(self) -> None:
        settings = SyncSettings.from_env()
        assert settings.data_dir == Path("data/")
        assert settings.base_url == DEFAULT_BASE_URL
        assert settings.requests_per_minute == 10
        assert settings.max_retries == 3
        assert settings.timeout == 30.0

    def test_environment_overrides(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("RUGBY_SYNC_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("RUGBY_SYNC_REQUESTS_PER_MINUTE", "300")
        monkeypatch.setenv("RUGBY_SYNC_TIMEOUT", "5.5")
        settings = SyncSettings.from_env()
        assert settings.data_dir == tmp_path
        assert settings.requests_per_minute == 300
        assert settings.timeout == 5.5

    def test_explicit_overrides_win(self, monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
        monkeypatch.setenv("RUGBY_SYNC_DATA_DIR", "/somewhere/else")
        settings = SyncSettings.from_env(data_dir=tmp_path)
        assert settings.data_dir == tmp_path

    def test_none_override_ignored(self) -> None:
        assert SyncSettings.from_env(data_dir=None).data_dir == Path("data/")

    def test_invalid_value_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RUGBY_SYNC_MAX_RETRIES", "zero")
        with pytest.raises(ValidationError):
            SyncSettings.from_env()

    def test_max_retries_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            SyncSettings(max_retries=0)


class TestBuildConnector:
    """Tests for build_connector."""

    def test_missing_key_raises(self, tmp_path: Path) -> None:
        with pytest.raises(AuthenticationError, match="no API key"):
            build_connector(SyncSettings(), FileCredentialProvider(tmp_path / "key"))

    def test_builds_connector(self, tmp_path: Path) -> None:
        credentials = FileCredentialProvider(tmp_path / "key")
        credentials.set("secret")
        with build_connector(SyncSettings(requests_per_minute=0), credentials) as connector:
            assert isinstance(connector, ApiSportsConnector)
