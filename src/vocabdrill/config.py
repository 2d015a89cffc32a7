"""Configuration settings for the practice engine."""
import os
from dataclasses import dataclass, field
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# SRS settings
SRS_BASE_INTERVALS = [1, 4, 8, 24, 72, 168]  # hours between reviews for levels 0-5


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", "sqlite:///vocabdrill.db")
    echo: bool = os.getenv("DATABASE_ECHO", "false").lower() == "true"


@dataclass
class LoggingSettings:
    """Logging configuration settings."""
    level: str = os.getenv("LOG_LEVEL", "INFO")
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    dir: Optional[str] = os.getenv("LOG_DIR", None)
    rotation: str = os.getenv("LOG_ROTATION", "midnight")
    interval: int = int(os.getenv("LOG_INTERVAL", "1"))
    backup_count: int = int(os.getenv("LOG_BACKUP_COUNT", "7"))


@dataclass
class PracticeSettings:
    """Practice engine settings."""
    words_per_session: int = int(os.getenv("WORDS_PER_SESSION", "10"))
    max_words_per_session: int = int(os.getenv("MAX_WORDS_PER_SESSION", "50"))
    difficulty_threshold: int = int(os.getenv("DIFFICULTY_THRESHOLD", "70"))
    due_soon_hours: int = int(os.getenv("DUE_SOON_HOURS", "24"))
    overdue_share: float = float(os.getenv("OVERDUE_SHARE", "0.7"))
    due_soon_share: float = float(os.getenv("DUE_SOON_SHARE", "0.7"))
    conflict_retries: int = int(os.getenv("CONFLICT_RETRIES", "3"))
    conflict_backoff_seconds: float = float(os.getenv("CONFLICT_BACKOFF_SECONDS", "0.05"))
    srs_base_intervals: list[int] = field(default_factory=lambda: list(SRS_BASE_INTERVALS))


@dataclass
class SchedulerSettings:
    """Batch re-evaluation scheduler settings."""
    reevaluation_interval: int = int(os.getenv("REEVALUATION_INTERVAL", "86400"))  # seconds
    retry_delay: int = int(os.getenv("SCHEDULER_RETRY_DELAY", "60"))  # seconds


@dataclass
class MonitoringSettings:
    """Prometheus metrics settings."""
    enabled: bool = os.getenv("METRICS_ENABLED", "false").lower() == "true"
    port: int = int(os.getenv("METRICS_PORT", "9090"))


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_practice_settings() -> PracticeSettings:
    """Get practice settings."""
    return PracticeSettings()


def get_scheduler_settings() -> SchedulerSettings:
    """Get scheduler settings."""
    return SchedulerSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    practice: PracticeSettings = field(default_factory=get_practice_settings)
    scheduler: SchedulerSettings = field(default_factory=get_scheduler_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if self.practice.words_per_session < 1:
            raise ValueError("WORDS_PER_SESSION must be positive")

        if self.practice.max_words_per_session < self.practice.words_per_session:
            raise ValueError("MAX_WORDS_PER_SESSION cannot be less than WORDS_PER_SESSION")

        if not 0 <= self.practice.difficulty_threshold <= 100:
            raise ValueError("DIFFICULTY_THRESHOLD must be between 0 and 100")

        for name in ("overdue_share", "due_soon_share"):
            value = getattr(self.practice, name)
            if value < 0 or value > 1:
                raise ValueError(f"{name.upper()} must be between 0 and 1")

        if self.practice.conflict_retries < 1:
            raise ValueError("CONFLICT_RETRIES must be positive")

        if len(self.practice.srs_base_intervals) != 6 or min(self.practice.srs_base_intervals) < 1:
            raise ValueError("SRS_BASE_INTERVALS must hold six positive hour values")

        if self.scheduler.reevaluation_interval < 1:
            raise ValueError("REEVALUATION_INTERVAL must be positive")


# Create global settings instance
settings = Settings()
settings.validate()
