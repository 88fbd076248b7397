"""Data models for N+1 query detection."""

from .finding import (
    QUERY_IN_LOOP_MESSAGE,
    ProcessingStats,
    Report,
    SourceLocation,
)
from .declaration import DeclarationId

__all__ = [
    "QUERY_IN_LOOP_MESSAGE",
    "ProcessingStats",
    "Report",
    "SourceLocation",
    "DeclarationId",
]
