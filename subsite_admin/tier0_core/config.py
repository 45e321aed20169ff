"""
subsite_admin.tier0_core.config
────────────────────────────────
Typed configuration with env layering. Reads from .env → environment
variables. All fields are typed via Pydantic; an invalid value fails at
first access to get_config(), not in the middle of a request.

Minimal stack: pydantic-settings + python-dotenv
"""
from __future__ import annotations

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SubsitesConfig(BaseSettings):
    """
    Typed subsite admin configuration.
    Subsite-specific env vars are prefixed with SUBSITES_.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # ── Application ───────────────────────────────────────────────────────────
    app_name: str = Field(default="subsite-admin", alias="APP_NAME")
    environment: str = Field(default="development", alias="APP_ENV")

    # ── Logging / audit ───────────────────────────────────────────────────────
    log_level: str = Field(default="INFO", alias="SUBSITES_LOG_LEVEL")
    log_format: str = Field(default="json", alias="SUBSITES_LOG_FORMAT")
    audit_backend: str = Field(default="log", alias="SUBSITES_AUDIT_BACKEND")

    # ── Directory ─────────────────────────────────────────────────────────────
    directory_backend: str = Field(default="memory", alias="SUBSITES_DIRECTORY_BACKEND")
    main_site_title: str = Field(default="Main site", alias="SUBSITES_MAIN_SITE_TITLE")
    default_tree_title: str = Field(
        default="Site Content", alias="SUBSITES_DEFAULT_TREE_TITLE"
    )

    # ── Request / session ─────────────────────────────────────────────────────
    switch_param: str = Field(default="SubsiteID", alias="SUBSITES_SWITCH_PARAM")
    session_key: str = Field(default="SubsiteID", alias="SUBSITES_SESSION_KEY")
    admin_url_base: str = Field(default="admin", alias="SUBSITES_ADMIN_URL_BASE")
    pages_section: str = Field(default="pages", alias="SUBSITES_PAGES_SECTION")

    # ── Capabilities ──────────────────────────────────────────────────────────
    admin_capability: str = Field(default="ADMIN", alias="SUBSITES_ADMIN_CAPABILITY")
    all_sections_capability: str = Field(
        default="CMS_ACCESS_LeftAndMain", alias="SUBSITES_ALL_SECTIONS_CAPABILITY"
    )

    @field_validator("environment")
    @classmethod
    def validate_env(cls, v: str) -> str:
        allowed = {"development", "staging", "production", "test"}
        if v.lower() not in allowed:
            raise ValueError(f"environment must be one of {allowed}, got {v!r}")
        return v.lower()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        if v.lower() not in {"json", "console"}:
            raise ValueError(f"log_format must be 'json' or 'console', got {v!r}")
        return v.lower()

    @field_validator("admin_url_base")
    @classmethod
    def strip_slashes(cls, v: str) -> str:
        return v.strip("/")

    @property
    def admin_root_url(self) -> str:
        """Landing URL of the admin interface, e.g. ``/admin/``."""
        return f"/{self.admin_url_base}/" if self.admin_url_base else "/"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def is_test(self) -> bool:
        return self.environment == "test"


@lru_cache(maxsize=1)
def get_config() -> SubsitesConfig:
    """
    Return the singleton config. Cached after first call.
    Call _reset_config() in tests to pick up new env vars.
    """
    return SubsitesConfig()


def _reset_config() -> None:
    """For tests: clear the config cache."""
    get_config.cache_clear()
