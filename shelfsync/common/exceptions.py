"""Custom exception hierarchy for shelfsync.

Every project-specific error derives from :class:`ShelfSyncError`, which
carries an optional ``details`` mapping rendered into ``str(exc)``.
"""

from __future__ import annotations
from typing import Optional, Any


# ============================================================================
# BASE EXCEPTIONS
# ============================================================================

class ShelfSyncError(Exception):
    """Base class for every shelfsync error."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class ConfigurationError(ShelfSyncError):
    """Invalid or missing configuration."""
    pass


# ============================================================================
# SOURCE ERRORS (vendor database)
# ============================================================================

class SourceError(ShelfSyncError):
    """Base for errors raised while reading a vendor source."""

    def __init__(self, source: str, message: str, details: Optional[dict] = None):
        details = details or {}
        details["source"] = source
        super().__init__(message, details)
        self.source = source


class SourceUnavailableError(SourceError):
    """The vendor database is missing, unreadable or not a vendor database."""

    def __init__(self, source: str, path: Optional[str] = None, reason: str = ""):
        msg = f"Source unavailable: {source}"
        if reason:
            msg += f" - {reason}"
        super().__init__(source, msg, {"path": path} if path else None)
        self.path = path


class ExtractionError(SourceError):
    """A query against the vendor schema failed; the whole source is aborted."""

    def __init__(self, source: str, path: str, reason: str = ""):
        msg = f"Extraction failed for {path}"
        if reason:
            msg += f": {reason}"
        super().__init__(source, msg, {"path": path})
        self.path = path


class RecordParseError(SourceError):
    """A single vendor row could not be decoded; only that row is skipped."""

    def __init__(self, source: str, release_key: str, reason: str = ""):
        msg = f"Could not parse record {release_key}"
        if reason:
            msg += f": {reason}"
        super().__init__(source, msg, {"release_key": release_key})
        self.release_key = release_key


# ============================================================================
# DATABASE ERRORS (persisted library)
# ============================================================================

class DatabaseError(ShelfSyncError):
    """Error in the persisted library store."""
    pass


class PersistenceError(DatabaseError):
    """Writing a sync result failed; the transaction was rolled back."""
    pass


class EntryNotFoundError(DatabaseError):
    """Library entry not found."""

    def __init__(self, key: str, table: str = "user_games"):
        super().__init__(
            f"Entry not found: {key} in {table}",
            {"key": key, "table": table}
        )


# ============================================================================
# IMPORT ERRORS
# ============================================================================

class ImportFormatError(ShelfSyncError):
    """A manual import document could not be parsed."""

    def __init__(self, fmt: str, reason: str = ""):
        msg = f"Invalid {fmt.upper()} format. Please ensure the data is properly formatted."
        if reason:
            msg += f" ({reason})"
        super().__init__(msg, {"format": fmt})
        self.format = fmt


# ============================================================================
# NETWORKING ERRORS
# ============================================================================

class NetworkError(ShelfSyncError):
    """Network related error."""
    pass


class MetadataServiceError(NetworkError):
    """Error talking to an external metadata service."""

    def __init__(self, service: str, reason: str = ""):
        msg = f"Failed to talk to {service}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, {"service": service, "reason": reason})


# ============================================================================
# HELPER FUNCTIONS
# ============================================================================

def format_exception_chain(exc: Exception, include_traceback: bool = False) -> str:
    """Format an exception together with its chain of causes.

    Args:
        exc: Exception to format
        include_traceback: Whether to include the full traceback

    Returns:
        Formatted string with the exception and its causes
    """
    import traceback

    if include_traceback:
        return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    messages = []
    current = exc
    while current is not None:
        if isinstance(current, ShelfSyncError):
            messages.append(str(current))
        else:
            messages.append(f"{type(current).__name__}: {current}")
        current = getattr(current, "__cause__", None)

    return " -> ".join(messages)
