"""
core/config.py -- Centralized application configuration via pydantic-settings.

All environment variable reads for VetDir happen here. No module should
call os.getenv() or os.environ.get() directly -- import get_settings() instead.

Design patterns used:
  Singleton via lru_cache: get_settings() instantiates Settings once at first
      call and returns the cached instance on every subsequent call. This is
      the FastAPI dependency injection pattern for config.

  BaseSettings (pydantic-settings): Reads values from environment variables
      and an optional .env file automatically. Field names map to env var names
      (e.g. credential_password -> CREDENTIAL_PASSWORD).

  @model_validator(mode="after"): Cross-field checks that need every field
      resolved first -- the token endpoint default and the timeout ordering.

Secrets: credential_password is never logged. Leaving it empty disables the
credentialing platform adapter (it reports "unavailable" on every call).

Layer rule: core/ is the kernel. This module may not import from api/,
auth/, records/, or cache/.
"""

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger("vetdir.config")

_DEFAULT_RECORDS_DB_URL = f"sqlite:///{Path(__file__).resolve().parent.parent / 'records' / 'vetdir_records.db'}"

# Backend systems that live in a relational store. Each may point at its own
# database; an empty override falls back to records_db_url.
RECORD_SYSTEMS: tuple[str, ...] = ("person", "hr", "badge", "key", "loan")


class Settings(BaseSettings):
    """Application settings loaded from environment variables and .env file.

    All fields have defaults so Settings() can be instantiated in test
    environments without a real .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ------------------------------------------------------------------
    # Core
    # ------------------------------------------------------------------

    debug: bool = False

    # ------------------------------------------------------------------
    # Relational systems of record
    # ------------------------------------------------------------------

    records_db_url: str = _DEFAULT_RECORDS_DB_URL
    person_db_url: str = ""
    hr_db_url: str = ""
    badge_db_url: str = ""
    key_db_url: str = ""
    loan_db_url: str = ""

    # ------------------------------------------------------------------
    # HTTP sources (empty string means the source is not configured)
    # ------------------------------------------------------------------

    contact_directory_url: str = ""

    credential_api_url: str = ""
    credential_token_url: str = ""
    credential_username: str = ""
    credential_password: str = ""
    credential_scope: str = "api_access"

    # ------------------------------------------------------------------
    # Timeouts and token lifetime
    # ------------------------------------------------------------------

    # Subtracted from the server-declared token lifetime (2 hours).
    token_safety_margin_seconds: int = Field(default=7200, ge=0)
    # Upper bound on one adapter's whole fetch, queries included. Also bounds
    # identity resolution.
    source_timeout_seconds: float = Field(default=5.0, gt=0)
    # Per outbound HTTP request. A cold credential lookup makes two in a row.
    http_timeout_seconds: float = Field(default=2.0, gt=0)
    # Driver-level connect / lock / statement timeout for the relational systems.
    db_timeout_seconds: float = Field(default=3.0, gt=0)

    # ------------------------------------------------------------------
    # API
    # ------------------------------------------------------------------

    profile_rate_limit: str = "30/minute"
    # Header in which the upstream gateway forwards granted capabilities.
    capability_header: str = "X-Capabilities"
    # JSON lists in the environment, e.g. ALLOWED_HOSTS='["directory.example.edu"]'
    allowed_hosts: list[str] = ["localhost", "127.0.0.1", "*.localhost"]
    cors_origins: list[str] = ["http://localhost", "http://localhost:3000", "http://127.0.0.1"]

    # ------------------------------------------------------------------
    # Validators
    # ------------------------------------------------------------------

    @model_validator(mode="after")
    def validate_sources(self) -> "Settings":
        """Fill derived defaults and reject inconsistent timeouts.

        The token endpoint lives under the platform host at /auth/token unless
        configured explicitly.

        Outbound calls must finish inside the per-adapter bound. The credential
        adapter may request a token and then search, so two HTTP timeouts must
        fit; a database query gets one DB timeout.
        """
        if self.credential_api_url and not self.credential_token_url:
            self.credential_token_url = self.credential_api_url.rstrip("/") + "/auth/token"
        if 2 * self.http_timeout_seconds >= self.source_timeout_seconds:
            raise ValueError(
                "Two HTTP_TIMEOUT_SECONDS must be shorter than SOURCE_TIMEOUT_SECONDS "
                f"(got 2 x {self.http_timeout_seconds} >= {self.source_timeout_seconds})."
            )
        if self.db_timeout_seconds >= self.source_timeout_seconds:
            raise ValueError(
                "DB_TIMEOUT_SECONDS must be shorter than SOURCE_TIMEOUT_SECONDS "
                f"(got {self.db_timeout_seconds} >= {self.source_timeout_seconds})."
            )
        if self.credential_api_url and not self.credential_password:
            logger.warning("CREDENTIAL_API_URL is set but CREDENTIAL_PASSWORD is empty -- platform lookups disabled")
        return self

    def db_url_for(self, system: str) -> str:
        """Return the database URL for one relational backend system."""
        if system not in RECORD_SYSTEMS:
            raise ValueError(f"Unknown record system: {system!r}")
        return getattr(self, f"{system}_db_url") or self.records_db_url

    @property
    def credentials_configured(self) -> bool:
        return bool(self.credential_api_url and self.credential_username and self.credential_password)


@lru_cache
def get_settings() -> Settings:
    """Return the application Settings singleton.

    In tests: call get_settings.cache_clear() between test cases if you need
    to inject different environment variables.
    """
    return Settings()
