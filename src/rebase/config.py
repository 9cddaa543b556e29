"""Configuration for the rebase package.

All environment-based configuration flows through this module. Settings are
read once and treated as read-only afterwards; witness flows and resolvers
take their defaults (timeouts, API credentials, delimiters) from here.

Usage:
    from rebase.config import get_config
    config = get_config()

    timeout = config.http_timeout_seconds
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class RebaseSettings(BaseSettings):
    """Configuration settings for Rebase.

    Settings can be configured via environment variables with the
    REBASE_ prefix, or from a ``.env`` file in the working directory.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # LOGGING SETTINGS
    # ==========================================================================

    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
        validation_alias="REBASE_LOG_LEVEL",
    )
    log_format: str = Field(
        default="",
        description="Log format: 'json', 'text', or '' (auto-detect)",
        validation_alias="REBASE_LOG_FORMAT",
    )
    log_file: str | None = Field(
        default=None,
        description="Log file path (optional)",
        validation_alias="REBASE_LOG_FILE",
    )

    # ==========================================================================
    # NETWORK SETTINGS
    # ==========================================================================

    http_timeout_seconds: float = Field(
        default=10.0,
        description="Default deadline for a single witness evidence fetch",
        validation_alias="REBASE_HTTP_TIMEOUT",
    )
    dns_timeout_seconds: float = Field(
        default=10.0,
        description="DNS TXT query lifetime",
        validation_alias="REBASE_DNS_TIMEOUT",
    )
    did_web_timeout_seconds: float = Field(
        default=10.0,
        description="Deadline for fetching a did:web document",
        validation_alias="REBASE_DID_WEB_TIMEOUT",
    )

    # ==========================================================================
    # WITNESS SETTINGS
    # ==========================================================================

    dns_txt_prefix: str = Field(
        default="rebase",
        description="Prefix of the TXT records that carry DNS statements",
        validation_alias="REBASE_DNS_TXT_PREFIX",
    )
    post_delimiter: str = Field(
        default="\n\n",
        description="Separator between statement and signature in posted evidence",
        validation_alias="REBASE_POST_DELIMITER",
    )
    challenge_delimiter: str = Field(
        default=":::",
        description="Separator between a statement and a witness challenge",
        validation_alias="REBASE_CHALLENGE_DELIMITER",
    )
    max_elapsed_minutes: int = Field(
        default=15,
        description="How long a witness challenge stays valid",
        validation_alias="REBASE_MAX_ELAPSED_MINUTES",
    )
    github_user_agent: str = Field(
        default="rebase-witness",
        description="User-Agent sent to the GitHub API",
        validation_alias="REBASE_GITHUB_USER_AGENT",
    )

    # ==========================================================================
    # THIRD-PARTY CREDENTIALS
    # ==========================================================================

    twitter_bearer_token: str = Field(
        default="",
        description="Bearer token for the Twitter v2 API",
        validation_alias="REBASE_TWITTER_BEARER_TOKEN",
    )
    soundcloud_client_id: str = Field(
        default="",
        description="SoundCloud API client id",
        validation_alias="REBASE_SOUNDCLOUD_CLIENT_ID",
    )
    alchemy_api_key: str = Field(
        default="",
        description="Alchemy API key for NFT ownership lookups",
        validation_alias="REBASE_ALCHEMY_API_KEY",
    )
    poap_api_key: str = Field(
        default="",
        description="POAP API key",
        validation_alias="REBASE_POAP_API_KEY",
    )
    sendgrid_api_key: str = Field(
        default="",
        description="SendGrid API key for email challenges",
        validation_alias="REBASE_SENDGRID_API_KEY",
    )
    email_from_addr: str = Field(
        default="",
        description="From address of challenge emails",
        validation_alias="REBASE_EMAIL_FROM_ADDR",
    )
    email_from_name: str = Field(
        default="Rebase Witness",
        description="From name of challenge emails",
        validation_alias="REBASE_EMAIL_FROM_NAME",
    )
    email_subject_name: str = Field(
        default="Rebase",
        description="Service name used in challenge email subjects",
        validation_alias="REBASE_EMAIL_SUBJECT_NAME",
    )


# ==========================================================================
# GLOBAL CONFIG INSTANCE (lazy loaded)
# ==========================================================================

_config: RebaseSettings | None = None


def get_config() -> RebaseSettings:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = RebaseSettings()
    return _config


def clear_config_cache() -> None:
    """Clear the config cache. Useful for testing."""
    global _config
    _config = None
