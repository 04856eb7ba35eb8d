# filedrive/core/config.py
from functools import lru_cache
from typing import List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    database_url: str = "sqlite:///./filedrive.db"

    # session + email tokens
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    session_ttl_seconds: int = 60 * 60 * 24
    email_token_ttl_seconds: int = 60 * 60
    cookie_name: str = "token"
    cookie_secure: bool = False

    # S3 blob store
    aws_access_key_id: Optional[str] = None
    aws_secret_access_key: Optional[str] = None
    aws_region: Optional[str] = None
    aws_s3_bucket_name: str = "filedrive"
    aws_s3_endpoint_url: Optional[str] = None

    # storage ceiling per account, in bytes
    max_storage_bytes: int = 1073741824
    blob_delete_concurrency: int = 8

    # stored as a comma separated string so plain env values work
    allowed_email_domains: str = "gmail.com,outlook.com,hotmail.com,yahoo.com,icloud.com"

    # mail
    base_url: str = "http://localhost:3000"
    smtp_host: Optional[str] = None
    smtp_port: int = 0
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    mail_sender: Optional[str] = None

    # seed script
    admin_email: str = "admin@example.com"
    admin_password: str = "Admin123!"

    log_level: str = "INFO"

    # Tell pydantic-settings to load from .env at project root
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # ignore any extra stuff in .env
    )

    @field_validator("max_storage_bytes", "blob_delete_concurrency")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must not be negative")
        return value

    @property
    def email_domains(self) -> List[str]:
        return [
            domain.strip().lower()
            for domain in self.allowed_email_domains.split(",")
            if domain.strip()
        ]

    @property
    def sender(self) -> str:
        return self.mail_sender or self.smtp_user or "no-reply@example.com"


@lru_cache
def get_settings() -> Settings:
    return Settings()
