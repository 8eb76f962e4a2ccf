"""
Configuration management for NEIS School Lookup.

Environment-based configuration using python-dotenv for secure credential handling.
"""

import os
from pathlib import Path
from typing import Optional
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class NeisConfig:
    """NEIS Open API endpoint configuration."""

    # API key issued by open.neis.go.kr (optional, keyless calls are rate limited)
    API_KEY: Optional[str] = os.getenv("NEIS_API_KEY")

    BASE_URL: str = os.getenv("NEIS_BASE_URL", "https://open.neis.go.kr/hub")

    # Rows per page; 1000 is the upstream maximum
    PAGE_SIZE: int = int(os.getenv("NEIS_PAGE_SIZE", "1000"))

    # Pages fetched at most per query; results beyond are logged as truncated
    MAX_PAGES: int = int(os.getenv("NEIS_MAX_PAGES", "10"))

    @classmethod
    def has_api_key(cls) -> bool:
        """Check if an API key is configured."""
        return bool(cls.API_KEY)


class FetcherConfig:
    """Upstream request and retry configuration."""

    # Per-attempt request timeout in seconds
    REQUEST_TIMEOUT: int = int(os.getenv("REQUEST_TIMEOUT", "15"))

    # Total attempts per request (first try included)
    MAX_RETRIES: int = int(os.getenv("MAX_RETRIES", "3"))

    # Backoff base delay in seconds; attempt i waits base * 2**i
    RETRY_BASE_DELAY: float = float(os.getenv("RETRY_BASE_DELAY", "0.5"))

    RETRY_JITTER_RATIO: float = float(os.getenv("RETRY_JITTER_RATIO", "0.1"))

    # Retry 4xx responses like 5xx ones (upstream reference behavior)
    RETRY_CLIENT_ERRORS: bool = os.getenv("RETRY_CLIENT_ERRORS", "true").lower() == "true"


class CacheConfig:
    """In-process response cache configuration."""

    # Cache time-to-live in seconds (5 minutes default)
    TTL_SECONDS: int = int(os.getenv("CACHE_TTL_SECONDS", "300"))

    # Background sweep interval in seconds
    SWEEP_INTERVAL_SECONDS: int = int(os.getenv("CACHE_SWEEP_INTERVAL_SECONDS", "60"))


class CalendarConfig:
    """Calendar settings for date window calculation."""

    # Fixed offset used for "today" (KST)
    UTC_OFFSET_HOURS: int = int(os.getenv("UTC_OFFSET_HOURS", "9"))


class LoggingConfig:
    """Logging configuration."""

    # Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # Log directory
    LOG_DIR: Path = Path(os.getenv("LOG_DIR", "logs"))

    # Log file name
    LOG_FILE: str = os.getenv("LOG_FILE", "neis_lookup.log")

    # Log format
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Date format
    DATE_FORMAT: str = "%Y-%m-%d %H:%M:%S"

    # Maximum log file size in bytes (10MB default)
    MAX_LOG_SIZE: int = int(os.getenv("MAX_LOG_SIZE", str(10 * 1024 * 1024)))

    # Number of backup log files to keep
    BACKUP_COUNT: int = int(os.getenv("BACKUP_COUNT", "5"))

    @classmethod
    def ensure_log_directory(cls) -> None:
        """Create log directory if it doesn't exist."""
        cls.LOG_DIR.mkdir(parents=True, exist_ok=True)

    @classmethod
    def get_log_file_path(cls) -> Path:
        """Get full path to log file."""
        return cls.LOG_DIR / cls.LOG_FILE


class AppConfig:
    """Main application configuration aggregating all config classes."""

    neis = NeisConfig
    fetcher = FetcherConfig
    cache = CacheConfig
    calendar = CalendarConfig
    logging = LoggingConfig

    # Application metadata
    APP_NAME: str = "NEIS School Lookup"
    VERSION: str = "0.1.0"

    @classmethod
    def initialize(cls) -> None:
        """Initialize configuration settings and create necessary directories."""
        LoggingConfig.ensure_log_directory()

    @classmethod
    def validate(cls) -> tuple[bool, list[str]]:
        """
        Validate configuration settings.

        Returns:
            Tuple of (is_valid, error_messages)
        """
        errors = []

        if not NeisConfig.BASE_URL.startswith(("http://", "https://")):
            errors.append("NEIS_BASE_URL must be an http(s) URL")

        if not 1 <= NeisConfig.PAGE_SIZE <= 1000:
            errors.append("NEIS_PAGE_SIZE must be between 1 and 1000")

        if NeisConfig.MAX_PAGES < 1:
            errors.append("NEIS_MAX_PAGES must be at least 1")

        if FetcherConfig.MAX_RETRIES < 1:
            errors.append("MAX_RETRIES must be at least 1")

        if FetcherConfig.RETRY_BASE_DELAY < 0:
            errors.append("RETRY_BASE_DELAY must not be negative")

        if not 0 <= FetcherConfig.RETRY_JITTER_RATIO < 1:
            errors.append("RETRY_JITTER_RATIO must be in [0, 1)")

        if FetcherConfig.REQUEST_TIMEOUT <= 0:
            errors.append("REQUEST_TIMEOUT must be greater than 0")

        if CacheConfig.TTL_SECONDS <= 0:
            errors.append("CACHE_TTL_SECONDS must be greater than 0")

        if CacheConfig.SWEEP_INTERVAL_SECONDS <= 0:
            errors.append("CACHE_SWEEP_INTERVAL_SECONDS must be greater than 0")

        return (len(errors) == 0, errors)


# Initialize configuration on module import
AppConfig.initialize()
