"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import List, Optional


class PlatformConfig(BaseSettings):
    """Investment platform configuration"""

    # Storage configuration
    storage_backend: str = "sqlite"  # sqlite or memory
    database_path: str = "investment_platform.db"

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 5000
    cors_origins: List[str] = ["*"]

    # Security configuration
    jwt_secret: str = "change-me-in-production-use-a-long-random-secret"
    jwt_expiry_hours: int = 24 * 30  # 30 days
    jwt_algorithm: str = "HS256"
    password_min_length: int = 6

    # Seeded administrator, created at startup when all three are set
    default_admin_email: Optional[str] = None
    default_admin_username: str = "admin"
    default_admin_password: Optional[str] = None

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_requests: bool = False

    class Config:
        env_prefix = "PLATFORM_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = PlatformConfig()


def get_config() -> PlatformConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> PlatformConfig:
    """Reload configuration from environment"""
    global config
    config = PlatformConfig()
    return config
