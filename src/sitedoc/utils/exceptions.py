"""Root of the sitedoc exception hierarchy."""


class SitedocError(Exception):
    """Base class for every error raised by sitedoc."""


class ConfigurationError(SitedocError):
    """Invalid setting, such as an unknown storage backend or a zero worker count."""
