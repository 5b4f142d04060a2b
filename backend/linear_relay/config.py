"""Configuration management for Linear Relay."""

from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Linear
    linear_api_key: str = ""
    linear_api_url: str = "https://api.linear.app/graphql"
    linear_webhook_secret: str = ""

    # Slite
    slite_api_key: str = ""
    slite_api_url: str = "https://api.slite.com/v1"
    slite_release_collection_id: str = "Bg5eYBZU2CgDoY"
    slite_retro_collection_id: str = ""

    # Slack incoming webhooks
    slack_webhook_fireman_url: str = ""
    slack_webhook_cycle_status_url: str = ""

    # Urgent-status alert
    fireman_status_name: str = "Fireman Validation"
    urgent_priority: int = 1
    alert_dedupe_ttl_seconds: int = 0

    # Cycle-milestone alert
    cycle_team_name: str = "Engineering - PRODUCT"
    cycle_target_statuses: list[str] = ["QA Testing", "Done"]
    flagged_label_name: str = "🔴 FLAGGED"

    # Release documents
    story_label_parent_id: str = "037a6e45-7430-42bc-b6e9-c3a083514ead"
    release_lead_days: int = 7

    # Retrospectives
    retro_require_completed: bool = False

    # Outbound calls
    http_timeout_seconds: float = 10.0
    issues_page_size: int = 100
    comments_page_size: int = 50
    comments_concurrency: int = 5

    # App
    log_level: str = "INFO"
    env: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
