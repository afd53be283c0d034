"""Exception types raised by the sync engine.

Every error carries a human readable message plus a ``details`` mapping so
the scheduler can log one line per failure and keep going with the next API.
"""

from __future__ import annotations

from typing import Any


class SyncError(Exception):
    """Base exception for all openapi-sync errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


class ConfigError(SyncError):
    """Raised when the configuration file is missing or invalid."""

    pass


class SpecUnreachableError(SyncError):
    """Raised when a spec source cannot be fetched or read."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"Spec unreachable: {source}: {reason}", {"source": source})
        self.source = source
        self.reason = reason


class SpecParseError(SyncError):
    """Raised when spec bytes are not a JSON/YAML mapping."""

    def __init__(self, source: str, reason: str):
        super().__init__(f"Spec could not be parsed: {source}: {reason}", {"source": source})
        self.source = source
        self.reason = reason


class UnresolvedReferenceError(SyncError):
    """Raised when a ``$ref`` points at nothing inside the document."""

    def __init__(self, ref: str):
        super().__init__(f"Unresolved reference: {ref}", {"ref": ref})
        self.ref = ref


class NameCollisionError(SyncError):
    """Raised when no unique name can be derived for an operation."""

    def __init__(self, name: str, attempts: int):
        super().__init__(
            f"Could not derive a unique name for {name!r} after {attempts} attempts",
            {"name": name, "attempts": attempts},
        )
        self.name = name


class WriteError(SyncError):
    """Raised when a generated file cannot be written."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Could not write {path}: {reason}", {"path": path})
        self.path = path
