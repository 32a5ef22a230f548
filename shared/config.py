"""
Shared configuration management for the ACL policy engine.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ACLSettings(BaseSettings):
    """Engine configuration, read from ACL_* environment variables or .env."""

    model_config = SettingsConfigDict(
        env_prefix="ACL_",
        env_file=".env",
        case_sensitive=False,
        extra="allow"
    )

    # Logging
    log_level: str = Field(default="info")

    # Policy
    default_policy: str = Field(default="DENY", description="Applied when no rule decides")
    preferred_policy: str = Field(default="ALLOW", description="Wins ties between rules and parents")

    # Rule storage
    rules_file: Optional[str] = Field(default=None, description="JSON file with rule records")

    # Observability
    enable_metrics: bool = Field(default=False)


def get_config(**overrides) -> ACLSettings:
    """Get engine configuration."""
    return ACLSettings(**overrides)
