"""Exception taxonomy for shelfsync.

Import problems also subclass ``ValueError``.
"""
from __future__ import annotations


class ShelfsyncError(Exception):
    """Base exception for shelfsync errors."""


class ImportFormatError(ShelfsyncError, ValueError):
    """Raised when an uploaded file cannot be turned into rows."""


class UnsupportedFormatError(ImportFormatError):
    """Raised when the file extension is not csv, xlsx or xls."""


class ImportParseError(ImportFormatError):
    """Raised when a supported file is malformed."""


class RemoteError(ShelfsyncError):
    """Base exception for remote mirror failures."""


class AuthError(RemoteError):
    """Raised when the remote mirror cannot obtain or use a session."""


class SyncError(RemoteError):
    """Raised when pushing rows to the remote mirror fails."""
