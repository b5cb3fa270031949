"""
memcache-conn Configuration Settings

This module contains the defaults used by a Connection when an option is
not passed explicitly. Network and backoff defaults can be overridden with
environment variables.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Connection configuration settings."""

    # Network settings
    HOST: str = os.environ.get("MEMCACHE_HOST", "localhost")
    PORT: int = int(os.environ.get("MEMCACHE_PORT", "11211"))
    READ_BUFFER_SIZE: int = 1024 * 1024 + 1024  # Longest line the reader accepts

    # Reconnect settings
    RECONNECT: bool = os.environ.get("MEMCACHE_RECONNECT", "true").lower() == "true"
    INITIAL_BACKOFF_MS: int = int(os.environ.get("MEMCACHE_BACKOFF_MS", "10"))
    MAX_BACKOFF_MS: int = 60000

    # Protocol settings
    MAX_KEY_LENGTH: int = 250  # Keys must be strictly shorter than this
    ENCODING: str = "utf-8"
    LINE_TERMINATOR: bytes = b"\r\n"

    # Logging settings
    DEBUG: bool = os.environ.get("MEMCACHE_DEBUG", "false").lower() == "true"
    LOG_LEVEL: str = os.environ.get("MEMCACHE_LOG_LEVEL", "INFO")


# Global settings instance
settings = Settings()
