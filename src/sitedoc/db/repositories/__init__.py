"""Database repositories for clean data access."""

from .base import BaseRepository
from .membership import MembershipRepository
from .report import ReportRequestRepository

__all__ = [
    "BaseRepository",
    "MembershipRepository",
    "ReportRequestRepository",
]
