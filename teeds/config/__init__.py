"""Configuration loading and settings management."""

from .settings import REQUIRED_ENV_VARS, Settings, load_settings

__all__ = ["REQUIRED_ENV_VARS", "Settings", "load_settings"]
