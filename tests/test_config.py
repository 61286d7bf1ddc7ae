"""Unit tests for core/config.py -- Settings defaults, derived values, and validation."""

import pytest
from pydantic import ValidationError

from core.config import RECORD_SYSTEMS, Settings, get_settings


class TestDefaults:
    def test_defaults_construct_without_env(self):
        s = Settings()
        assert s.token_safety_margin_seconds == 7200
        assert s.credential_scope == "api_access"
        assert s.http_timeout_seconds < s.source_timeout_seconds
        assert s.capability_header == "X-Capabilities"
        assert "localhost" in s.allowed_hosts
        assert s.db_timeout_seconds < s.source_timeout_seconds

    def test_allowed_hosts_from_env(self, monkeypatch):
        monkeypatch.setenv("ALLOWED_HOSTS", '["directory.example.edu"]')
        assert Settings().allowed_hosts == ["directory.example.edu"]

    def test_unconfigured_credentials(self):
        assert not Settings(credential_api_url="", credential_password="").credentials_configured


class TestDerived:
    def test_token_url_derived_from_api_url(self):
        s = Settings(credential_api_url="https://platform.example/api/")
        assert s.credential_token_url == "https://platform.example/api/auth/token"

    def test_explicit_token_url_kept(self):
        s = Settings(
            credential_api_url="https://platform.example/api",
            credential_token_url="https://login.example/token",
        )
        assert s.credential_token_url == "https://login.example/token"

    def test_db_url_falls_back_to_records_url(self):
        s = Settings(records_db_url="sqlite:///all.db", badge_db_url="sqlite:///badges.db")
        assert s.db_url_for("badge") == "sqlite:///badges.db"
        for system in RECORD_SYSTEMS:
            if system != "badge":
                assert s.db_url_for(system) == "sqlite:///all.db"

    def test_unknown_system_rejected(self):
        with pytest.raises(ValueError, match="Unknown record system"):
            Settings().db_url_for("payroll")


class TestValidation:
    def test_http_timeout_must_be_shorter_than_source_timeout(self):
        with pytest.raises(ValidationError, match="HTTP_TIMEOUT_SECONDS"):
            Settings(http_timeout_seconds=5.0, source_timeout_seconds=5.0)

    def test_token_plus_search_must_fit_source_timeout(self):
        with pytest.raises(ValidationError, match="Two HTTP_TIMEOUT_SECONDS"):
            Settings(http_timeout_seconds=3.0, source_timeout_seconds=5.0)
        assert Settings(http_timeout_seconds=2.4, source_timeout_seconds=5.0).http_timeout_seconds == 2.4

    def test_db_timeout_must_be_shorter_than_source_timeout(self):
        with pytest.raises(ValidationError, match="DB_TIMEOUT_SECONDS"):
            Settings(db_timeout_seconds=5.0, source_timeout_seconds=5.0)

    def test_negative_margin_rejected(self):
        with pytest.raises(ValidationError):
            Settings(token_safety_margin_seconds=-1)

    def test_env_vars_are_read(self, monkeypatch):
        monkeypatch.setenv("CONTACT_DIRECTORY_URL", "https://directory.example")
        monkeypatch.setenv("SOURCE_TIMEOUT_SECONDS", "8")
        get_settings.cache_clear()
        try:
            s = get_settings()
            assert s.contact_directory_url == "https://directory.example"
            assert s.source_timeout_seconds == 8.0
        finally:
            get_settings.cache_clear()
