"""Shared helpers with no sitedoc dependencies."""

from sitedoc.utils.exceptions import (
    ConfigurationError,
    SitedocError,
)

__all__ = ["SitedocError", "ConfigurationError"]
