"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings
from typing import List


class IntakeConfig(BaseSettings):
    """Client intake service configuration"""

    # Storage configuration
    use_sqlite: bool = True
    database_path: str = "client_intake.db"

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    cors_origins: List[str] = ["*"]
    # Honour X-Forwarded-For only behind a proxy that overwrites it
    trust_forwarded_headers: bool = False

    # Security configuration
    jwt_secret: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    session_hours: int = 8
    password_min_length: int = 8
    max_failed_logins: int = 5

    # Bootstrap administrator, created at start when username and password are set
    admin_username: str = ""
    admin_password: str = ""
    admin_email: str = ""

    # Banking data encryption: base64 of a 32-byte AES-256 key
    encryption_key: str = Field(
        default="",
        validation_alias=AliasChoices("ENCRYPTION_KEY", "INTAKE_ENCRYPTION_KEY", "encryption_key"),
    )

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text

    # Email notification configuration
    smtp_host: str = ""  # Empty = log notifications instead of sending
    smtp_port: int = 465
    smtp_user: str = ""
    smtp_password: str = ""
    smtp_timeout: float = 10.0
    notification_sender: str = ""
    notification_recipient: str = ""

    # Public submission rate limiting (per client IP, single instance only)
    rate_limit_max_requests: int = 5
    rate_limit_window_seconds: int = 60

    # SEPA creditor shown on mandates and notifications
    creditor_name: str = "DOSKFRED, S.L. (DOS SERVEIS)"
    creditor_identifier: str = "ES51000B17722059"
    mandate_reference_prefix: str = "DOSK"

    class Config:
        env_prefix = "INTAKE_"
        env_file = ".env"
        case_sensitive = False
        populate_by_name = True
        extra = "ignore"


# Global configuration instance
config = IntakeConfig()


def get_config() -> IntakeConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> IntakeConfig:
    """Reload configuration from environment"""
    global config
    config = IntakeConfig()
    return config
