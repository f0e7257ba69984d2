"""Report generation and delivery for site documentation."""

__version__ = "0.1.0"
