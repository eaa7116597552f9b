from __future__ import annotations

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Environment variables map to fields case-insensitively
    (MONGO_URI -> mongo_uri).
    """

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "LMS Admin Backend"
    env: str = "dev"
    log_level: str = "INFO"

    mongo_uri: str = "mongodb://localhost:27017"
    mongo_db: str = "lms"
    # multi-document transactions need a replica set
    mongo_transactions: bool = False

    cors_origins: str = "http://localhost:5173,http://127.0.0.1:5173"

    geolocation_enabled: bool = True
    geolocation_url: str = (
        "http://ip-api.com/json/{ip}?fields=status,message,country,countryCode,"
        "region,regionName,city,lat,lon,timezone,isp,query"
    )
    geolocation_timeout_seconds: float = 5.0

    smtp_host: str | None = None
    smtp_port: int = 587
    smtp_username: str | None = None
    smtp_password: str | None = None
    smtp_starttls: bool = True
    mail_from_address: str = "noreply@lms.local"
    mail_from_name: str = "LMS Team"

    audit_retention_days: int = 90
    session_invalidation_retention_days: int = 30
    retention_enabled: bool = False
    retention_interval_seconds: int = 86400

    restoration_window_days: int = 30
    protected_admin_username: str = "admin"
    reason_max_length: int = 500

    @staticmethod
    def parse_list_env(value: str) -> List[str]:
        if not value:
            return []
        return [v.strip() for v in value.split(",") if v.strip()]

    @property
    def cors_origin_list(self) -> List[str]:
        return Settings.parse_list_env(self.cors_origins)

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_username and self.smtp_password)


@lru_cache
def get_settings() -> Settings:
    return Settings()
