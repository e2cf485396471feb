"""
accesslog — Configuration
==========================

What:  Settings for the access log, loaded with Pydantic Settings.
Why:   Type-safe environment variable loading, validated once at startup.
       A typo in ACCESSLOG_LOG_FORMAT fails immediately instead of producing
       an unreadable log.
How:   Environment variables prefixed with ACCESSLOG_ (or a .env file) are
       read when a `Settings` is constructed, never at import time;
       accesslog.logger.build_logger() turns it into a Logger.

Every setting has a default, so the middleware works with zero configuration:
common log format, written to standard output, every path logged.
"""

from typing import Literal, Set

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Access log settings loaded from environment variables.

    Attributes are grouped by concern for readability.
    """

    # ── Access Log ────────────────────────────────────────────────────────
    # What: Which formatter renders each line
    # common:   remote identity authuser [time] "request" status size
    # combined: common + "referer" "user-agent"
    log_format: Literal["common", "combined"] = Field(default="common")

    # What: Where lines are written
    # stdout / stderr: written directly, one line per request
    # logging: emitted through the stdlib logger named by `logger_name`,
    #          so existing handlers (files, syslog, ...) receive them
    log_output: Literal["stdout", "stderr", "logging"] = Field(default="stdout")

    logger_name: str = Field(default="accesslog.access")

    # What: Comma-separated paths that are served but never logged
    # Example: "/health,/metrics" to keep load balancer probes out of the log
    skip_paths: str = Field(default="")

    @property
    def skip_paths_set(self) -> Set[str]:
        """Splits comma-separated skip paths into a set, ignoring blanks."""
        return {path.strip() for path in self.skip_paths.split(",") if path.strip()}

    # ── Application Logging ───────────────────────────────────────────────
    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    model_config = SettingsConfigDict(
        env_prefix="ACCESSLOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

