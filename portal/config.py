"""
Client Files Portal - Configuration Management

Centralized configuration using Pydantic Settings.
All secrets and connection strings are loaded from environment variables.

Security: No secrets are hardcoded. Use .env for local development.
"""

from typing import List, Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    
    Attributes:
        SECRET_KEY: JWT signing key for access and refresh tokens
        DATABASE_URL: SQLAlchemy URL (PostgreSQL in production, SQLite locally)
        ENVIRONMENT: "production" hides stack traces from error responses
        ALLOWED_ORIGINS: CORS allowed origins for the dashboard
        FRONTEND_URL: Base URL used for links in outbound email
    """
    
    # Security
    SECRET_KEY: str = ""  # Must be set via environment
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_DAYS: int = 7
    REFRESH_TOKEN_EXPIRE_DAYS: int = 30
    
    # Account lockout
    MAX_FAILED_LOGINS: int = 5
    LOCKOUT_MINUTES: int = 30
    
    # Password / token lifecycle
    PASSWORD_RESET_EXPIRE_HOURS: int = 1
    EMAIL_VERIFICATION_EXPIRE_HOURS: int = 24
    PASSWORD_HISTORY_DEPTH: int = 5
    
    # Audit retention
    LOGIN_HISTORY_RETENTION_DAYS: int = 90
    
    # Rate limits (fixed window)
    LOGIN_RATE_LIMIT: int = 5
    LOGIN_RATE_WINDOW_SECONDS: int = 15 * 60
    RESET_RATE_LIMIT: int = 3
    RESET_RATE_WINDOW_SECONDS: int = 60 * 60
    VERIFICATION_RATE_LIMIT: int = 5
    VERIFICATION_RATE_WINDOW_SECONDS: int = 60 * 60
    
    # Database (PostgreSQL for production, SQLite for development)
    DATABASE_URL: str = "sqlite:///./portal.db"
    
    # Runtime
    ENVIRONMENT: str = "development"
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000"]
    FRONTEND_URL: str = "http://localhost:3000"
    
    # Outbound email (logs instead of sending when SMTP_HOST is unset)
    SMTP_HOST: Optional[str] = None
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    EMAIL_FROM: Optional[str] = None
    EMAIL_TIMEOUT_SECONDS: float = 10.0
    
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    LOG_DEV_MODE: bool = False
    
    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
    
    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


settings = Settings()
