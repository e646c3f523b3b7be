"""
Configuration management using Pydantic Settings
"""
from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Database
    DATABASE_URL: str

    # Redis (rate limiting); empty disables it
    REDIS_URL: Optional[str] = "redis://redis:6379/0"

    # Application
    APP_NAME: str = "Learning Path Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]

    # Rate Limiting
    RATE_LIMIT_PER_MINUTE: int = 60
    RATE_LIMIT_PER_HOUR: int = 1000

    # Progress Settings
    DEFAULT_APPROVAL_PERCENTAGE: int = 80
    AUTO_COMPLETE_THRESHOLD: float = 97.0

    # Reference resolution
    RESOLVER_PARALLEL_LOOKUPS: bool = False
    RESOLVER_MAX_WORKERS: int = 4

    # Transactions
    TRANSACTION_RETRY_ATTEMPTS: int = 1
    TRANSACTION_RETRY_BACKOFF: float = 0.2  # seconds

    # Logging
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Global settings instance
settings = Settings()
