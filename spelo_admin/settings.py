from __future__ import annotations

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .status_canon import JobKind


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    api_url: str = Field("https://api.spelo.dev", alias="SPELO_API_URL")
    api_token: Optional[str] = Field(None, alias="SPELO_API_TOKEN")
    http_timeout: float = Field(30.0, alias="SPELO_HTTP_TIMEOUT")
    vocab_poll_interval: float = Field(1.8, alias="VOCAB_POLL_INTERVAL")
    audio_poll_interval: float = Field(4.0, alias="AUDIO_POLL_INTERVAL")
    upload_poll_interval: float = Field(1.2, alias="UPLOAD_POLL_INTERVAL")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    def poll_interval_for(self, kind: JobKind) -> float:
        if kind is JobKind.AUDIO:
            return self.audio_poll_interval
        if kind is JobKind.UPLOAD:
            return self.upload_poll_interval
        return self.vocab_poll_interval


settings = Settings()
