"""
Application Configuration
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # MongoDB Configuration
    mongodb_uri: str
    database_name: str = "helpdesk"

    # API Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_reload: bool = True
    environment: str = "development"  # development | staging | production
    cors_allowed_origins: List[str] = ["http://localhost:3000", "http://localhost:5173"]

    # JWT Configuration
    jwt_secret_key: str = "change-this-jwt-secret"
    jwt_algorithm: str = "HS256"
    jwt_expiration_hours: int = 24

    # Ticket workflow
    max_transition_retries: int = 3
    comment_edit_window_minutes: int = 15

    # Notifications (SMTP)
    notifications_enabled: bool = False
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from: Optional[str] = None
    smtp_use_tls: bool = True

    # Monitoring
    sentry_dsn: Optional[str] = None

    # Logging
    log_level: str = "INFO"
    log_format: str = "text"  # text | json

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False


# Global settings instance
settings = Settings()
