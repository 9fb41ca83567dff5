"""Environment-driven configuration with Pydantic v2."""

from datetime import timedelta
from typing import Literal, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

LINE_REPLY_URL = "https://api.line.me/v2/bot/message/reply"


class Settings(BaseSettings):
    """Settings for every Lambda in the proxy, built once per container."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Backend gateway (Apps Script web app)
    gateway_url: str
    http_timeout_seconds: float = Field(default=5.0, gt=0)

    # DynamoDB tables
    cache_table: str = "camp-cache"
    post_log_table: str = "camp-post-log"
    aws_region: Optional[str] = None

    # Cache lifetimes
    movement_lib_ttl_seconds: int = Field(default=12 * 60 * 60, ge=0)
    training_progress_ttl_seconds: int = Field(default=12 * 60 * 60, ge=0)
    diary_ttl_seconds: int = Field(default=24 * 60 * 60, ge=0)

    # Audit log keys are grouped by this fixed offset, not by a tz database zone
    local_utc_offset_hours: int = Field(default=8, ge=-12, le=14)

    # LINE bridge
    refresh_progress_url: str = ""
    refresh_command: str = "更新進度"
    line_reply_url: str = LINE_REPLY_URL
    line_channel_access_token: Optional[str] = None
    line_token_secret_id: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    @property
    def movement_lib_ttl(self) -> timedelta:
        return timedelta(seconds=self.movement_lib_ttl_seconds)

    @property
    def training_progress_ttl(self) -> timedelta:
        return timedelta(seconds=self.training_progress_ttl_seconds)

    @property
    def diary_ttl(self) -> timedelta:
        return timedelta(seconds=self.diary_ttl_seconds)

    @property
    def local_offset(self) -> timedelta:
        return timedelta(hours=self.local_utc_offset_hours)
