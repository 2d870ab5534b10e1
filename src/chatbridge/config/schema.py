"""
Pydantic configuration schema for chatbridge.

This module defines all configuration models with validation.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

# =============================================================================
# Platform Configuration
# =============================================================================


class SlackConfig(BaseModel):
    """Slack workspace configuration.

    The bridge connects through Socket Mode, so both the bot token (xoxb-)
    and the app-level token (xapp-) are required.
    """

    model_config = ConfigDict(extra="allow")

    bot_token: str = ""
    app_token: str = ""
    bot_id: str = ""  # Bxxxx id of our own app, used to drop echoes
    reviewer_group_id: str = ""  # User group invited to every provisioned channel
    main_channel: str = ""  # Receives chat connection notifications


class ChatConfig(BaseModel):
    """Chat client configuration."""

    model_config = ConfigDict(extra="allow")

    client: str = ""  # Import path of a ChatClient, "package.module:ClassName"
    options: dict[str, Any] = Field(default_factory=dict)
    contact_id_suffix: str = "@s.whatsapp.net"


# =============================================================================
# Bridge Configuration
# =============================================================================


class BridgeSettings(BaseModel):
    """Relay and provisioning tunables."""

    dedup_ttl_seconds: float = Field(default=600.0, gt=0)
    recent_limit: int = Field(default=50, ge=1)
    view_limit: int = Field(default=5, ge=1)
    large_file_threshold: int = Field(default=10 * 1024 * 1024, ge=1)
    channel_name_max_length: int = Field(default=21, ge=4, le=80)
    channel_create_attempts: int = Field(default=5, ge=1, le=20)
    temp_file_max_age_seconds: float = Field(default=3600.0, gt=0)


class StorageConfig(BaseModel):
    """Persisted state locations. Empty values fall back to ~/.chatbridge."""

    state_file: str = ""
    temp_dir: str = ""


class LoggingConfig(BaseModel):
    """Operational log configuration."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    file: str | None = None
    max_size_mb: int = Field(default=10, ge=1)
    backup_count: int = Field(default=3, ge=0)


# =============================================================================
# Root Configuration
# =============================================================================


class Config(BaseModel):
    """Root configuration model."""

    model_config = ConfigDict(extra="allow")

    slack: SlackConfig = Field(default_factory=SlackConfig)
    chat: ChatConfig = Field(default_factory=ChatConfig)
    bridge: BridgeSettings = Field(default_factory=BridgeSettings)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def missing_slack_tokens(self) -> list[str]:
        """Names of the Slack tokens that are not configured."""
        missing = []
        if not self.slack.bot_token:
            missing.append("slack.bot_token")
        if not self.slack.app_token:
            missing.append("slack.app_token")
        return missing
