"""Configuration module for memcache-conn."""

from .settings import Settings, settings

__all__ = ["Settings", "settings"]
