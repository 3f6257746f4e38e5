"""Configuration settings for the application."""
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Define base directory
BASE_DIR = Path(__file__).parent.parent.parent
PACKAGE_DIR = Path(__file__).parent

# Load environment variables from .env file
env_file = ".env.test" if os.getenv("ENV") == "test" else ".env"
load_dotenv(env_file)


# Define data directories from environment variables
DATA_DIR = Path(os.getenv("DATA_DIR", "./data"))
WORDLISTS_DIR = PACKAGE_DIR / "wordlists"

# Learning settings
PRELOAD_BUFFER_SIZE = 3  # words kept in the pre-fetch queue
MASTERY_THRESHOLD = 3  # correct answers needed to master a word
DAILY_CHALLENGE_SIZE = 10
DAILY_CHALLENGE_MAX_ATTEMPTS = 15
DAILY_CHALLENGE_MINUTES = 5
DAILY_CHALLENGE_POOL = "sum"

VALID_PROVIDERS = ("gemini", "openai", "proxy")


def ensure_directories() -> None:
    """Ensure all required directories exist."""
    directories = [
        DATA_DIR,
    ]

    for directory in directories:
        directory.mkdir(parents=True, exist_ok=True)


@dataclass
class PathSettings:
    """Path configuration settings."""
    base_dir: Path = BASE_DIR
    data_dir: Path = DATA_DIR
    wordlists_dir: Path = WORDLISTS_DIR


@dataclass
class DatabaseSettings:
    """Database configuration settings."""
    url: str = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'neonvocab.db'}")
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
class DefinitionSettings:
    """Definition provider settings."""
    provider: str = os.getenv("DEFINITION_PROVIDER", "gemini").lower()
    api_base_url: str = os.getenv("API_BASE_URL", "http://localhost:3000")
    openai_api_key: str = os.getenv("OPENAI_API_KEY", "")
    openai_base_url: str = os.getenv("OPENAI_BASE_URL", "https://api.openai.com/v1")
    openai_model: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    gemini_api_key: str = os.getenv("GEMINI_API_KEY", "")
    gemini_model: str = os.getenv("GEMINI_MODEL", "gemini-2.5-flash")
    request_timeout: float = float(os.getenv("DEFINITION_TIMEOUT", "20"))
    retry_attempts: int = int(os.getenv("DEFINITION_RETRY_ATTEMPTS", "3"))
    retry_base_delay: float = float(os.getenv("DEFINITION_RETRY_BASE_DELAY", "0.25"))
    retry_max_jitter: float = float(os.getenv("DEFINITION_RETRY_JITTER", "0.1"))


@dataclass
class LearningSettings:
    """Learning process settings."""
    preload_buffer_size: int = int(os.getenv("PRELOAD_BUFFER_SIZE", str(PRELOAD_BUFFER_SIZE)))
    queue_retry_limit: int = int(os.getenv("QUEUE_RETRY_LIMIT", "10"))
    mastery_threshold: int = MASTERY_THRESHOLD
    daily_challenge_size: int = int(os.getenv("DAILY_CHALLENGE_SIZE", str(DAILY_CHALLENGE_SIZE)))
    daily_challenge_max_attempts: int = DAILY_CHALLENGE_MAX_ATTEMPTS
    daily_challenge_minutes: int = int(os.getenv("DAILY_CHALLENGE_MINUTES", str(DAILY_CHALLENGE_MINUTES)))
    daily_challenge_pool: str = os.getenv("DAILY_CHALLENGE_POOL", DAILY_CHALLENGE_POOL)


@dataclass
class MonitoringSettings:
    """Prometheus metrics settings."""
    port: Optional[int] = int(os.environ["METRICS_PORT"]) if os.getenv("METRICS_PORT") else None


def get_path_settings() -> PathSettings:
    """Get path settings."""
    return PathSettings()


def get_database_settings() -> DatabaseSettings:
    """Get database settings."""
    return DatabaseSettings()


def get_logging_settings() -> LoggingSettings:
    """Get logging settings."""
    return LoggingSettings()


def get_definition_settings() -> DefinitionSettings:
    """Get definition provider settings."""
    return DefinitionSettings()


def get_learning_settings() -> LearningSettings:
    """Get learning settings."""
    return LearningSettings()


def get_monitoring_settings() -> MonitoringSettings:
    """Get monitoring settings."""
    return MonitoringSettings()


@dataclass
class Settings:
    """Main settings class that combines all configuration settings."""
    paths: PathSettings = field(default_factory=get_path_settings)
    database: DatabaseSettings = field(default_factory=get_database_settings)
    logging: LoggingSettings = field(default_factory=get_logging_settings)
    definitions: DefinitionSettings = field(default_factory=get_definition_settings)
    learning: LearningSettings = field(default_factory=get_learning_settings)
    monitoring: MonitoringSettings = field(default_factory=get_monitoring_settings)

    def validate(self) -> None:
        """Validate settings and raise ValueError if invalid."""
        if self.definitions.provider not in VALID_PROVIDERS:
            raise ValueError(f"DEFINITION_PROVIDER must be one of {', '.join(VALID_PROVIDERS)}")

        if self.definitions.retry_attempts < 1:
            raise ValueError("DEFINITION_RETRY_ATTEMPTS must be positive")

        if self.learning.preload_buffer_size < 1:
            raise ValueError("PRELOAD_BUFFER_SIZE must be positive")

        if self.learning.daily_challenge_size < 1:
            raise ValueError("DAILY_CHALLENGE_SIZE must be positive")

        if self.learning.daily_challenge_minutes < 1:
            raise ValueError("DAILY_CHALLENGE_MINUTES must be positive")


# Create global settings instance
settings = Settings()
settings.validate()
