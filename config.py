# config.py - Configuration management

import os
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_flag(name: str, default: str = "true") -> bool:
    return os.getenv(name, default).lower() not in {"false", "0", "no"}


class Config:
    """
    Configuration class to manage database and link validation settings
    """

    def __init__(self):
        # Database Configuration
        self.DB_NAME = os.getenv("DB_NAME", "link-page-db")
        self.DB_USER = os.getenv("DB_USER", "postgres")
        self.DB_PASSWORD = os.getenv("DB_PASSWORD", "postgres")
        self.DB_HOST = os.getenv("DB_HOST", "localhost")
        self.DB_PORT = os.getenv("DB_PORT", "5432")
        self.DB_CONNECTION = os.getenv("DB_CONNECTION")  # Full DSN wins over the parts above

        # Link Validation
        self.VALIDATION_MIN_INTERVAL_MS = int(os.getenv("VALIDATION_MIN_INTERVAL_MS", "100"))
        self.VALIDATION_TIMEOUT = float(os.getenv("VALIDATION_TIMEOUT", "10"))
        self.VALIDATION_USER_AGENT = os.getenv("VALIDATION_USER_AGENT", "LinkValidator/1.0")
        self.VALIDATION_INTERVAL = int(os.getenv("VALIDATION_INTERVAL", "3600"))
        self.VALIDATION_BATCH_SIZE = int(os.getenv("VALIDATION_BATCH_SIZE", "50"))
        self.STALE_AFTER_HOURS = int(os.getenv("STALE_AFTER_HOURS", "24"))
        self.ENABLE_PERIODIC_VALIDATION = _env_flag("ENABLE_PERIODIC_VALIDATION")

        # Metadata fetches are unbounded unless explicitly configured
        fetch_timeout = os.getenv("METADATA_FETCH_TIMEOUT")
        self.METADATA_FETCH_TIMEOUT = float(fetch_timeout) if fetch_timeout else None

        # API Server
        self.APP_NAME = os.getenv("APP_NAME", "Link Health API")
        self.API_HOST = os.getenv("API_HOST", "0.0.0.0")
        self.API_PORT = int(os.getenv("API_PORT", "8000"))

        # Validate settings
        self._validate_config()

    @property
    def database_url(self) -> str:
        if self.DB_CONNECTION:
            return self.DB_CONNECTION
        return (
            f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}"
            f"@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
        )

    def _validate_config(self):
        """Check that numeric settings are usable"""
        positive_vars = {
            "VALIDATION_TIMEOUT": self.VALIDATION_TIMEOUT,
            "VALIDATION_INTERVAL": self.VALIDATION_INTERVAL,
            "VALIDATION_BATCH_SIZE": self.VALIDATION_BATCH_SIZE,
            "STALE_AFTER_HOURS": self.STALE_AFTER_HOURS,
        }

        invalid_vars = [var for var, value in positive_vars.items() if value <= 0]
        if self.VALIDATION_MIN_INTERVAL_MS < 0:
            invalid_vars.append("VALIDATION_MIN_INTERVAL_MS")
        if self.METADATA_FETCH_TIMEOUT is not None and self.METADATA_FETCH_TIMEOUT <= 0:
            invalid_vars.append("METADATA_FETCH_TIMEOUT")

        if invalid_vars:
            raise ValueError(
                f"Invalid values for environment variables: {', '.join(invalid_vars)}\n"
                f"Please check your .env file."
            )

    def __str__(self):
        """String representation for debugging (without exposing passwords)"""
        return f"""
Config Status:
- Database: {self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}{' (DSN override)' if self.DB_CONNECTION else ''}
- Throttle interval: {self.VALIDATION_MIN_INTERVAL_MS}ms
- Probe timeout: {self.VALIDATION_TIMEOUT}s
- Sweep: every {self.VALIDATION_INTERVAL}s, {self.VALIDATION_BATCH_SIZE} links, stale after {self.STALE_AFTER_HOURS}h
- Periodic validation: {'✅' if self.ENABLE_PERIODIC_VALIDATION else '❌'}
        """
