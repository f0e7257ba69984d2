"""Configuration module for Sitedoc."""

from sitedoc.config.settings import ReportingConfig, Settings, get_settings

__all__ = ["Settings", "ReportingConfig", "get_settings"]
