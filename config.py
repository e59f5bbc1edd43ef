"""
Configuration management for MedTrack
"""

from datetime import timedelta
from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Application
    APP_NAME: str = "MedTrack"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENV: str = "development"

    # API
    API_PREFIX: str = "/api/v1"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Database
    DATABASE_URL: str = "sqlite:///./medtrack.db"
    DATABASE_ECHO: bool = False

    # Scheduler
    # "periodic" runs a background sweep every 15 minutes,
    # "on_demand" is for hosts that forbid standing background timers
    SCHEDULER_MODE: str = "periodic"
    SCHEDULER_ENABLED: bool = True

    # CORS
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()


# Fixed tracking constants (deliberately not environment-tunable)
class TrackerConstants:
    """Timing and scoring constants for dose tracking"""

    # Overdue sweeper
    GRACE_PERIOD: timedelta = timedelta(hours=2)
    SWEEP_INTERVAL_MINUTES: int = 15

    # Adherence analyzer
    ANALYSIS_WINDOW_DAYS: int = 30
    ON_TIME_TOLERANCE_MINUTES: int = 60
    EXPIRY_WARNING_DAYS: int = 3
    MIN_DOSES_FOR_RISK: int = 3
    HIGH_RISK_BELOW: int = 50
    LOW_RISK_FROM: int = 80

    # Optimistic concurrency
    MAX_WRITE_ATTEMPTS: int = 3


# Database table names
class TableNames:
    TRACKERS = "medicine_trackers"
    MEDICINES = "medicines"
    DOSE_INSTANCES = "dose_instances"


settings = get_settings()
tracker_constants = TrackerConstants()
