"""
Faultline configuration management.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Faultline settings loaded from environment variables."""

    # Logging
    log_level: str = "INFO"

    # Error factories
    report_immediately: bool = False
    capture_stack_traces: bool = True

    # Development only; keep disabled in production
    alert_on_assert_failure: bool = False
    debug_on_assert_failure: bool = False

    # Process-wide uncaught error hooks
    install_excepthooks: bool = False

    # Seconds to wait at exit for background reports
    shutdown_flush_timeout: float = 2.0

    class Config:
        env_file = ".env"
        env_prefix = "FAULTLINE_"
        case_sensitive = False


# Global settings instance
settings = Settings()
