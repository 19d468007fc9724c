"""
Domain exceptions for the Vision Board engine.

Notes
-----
Engine code raises domain exceptions for expected failure modes. Callers at the
edges (GUI, CLI) decide whether a failure is fatal, logged, or shown to the user.
"""

from __future__ import annotations


class VisionBoardError(RuntimeError):
    """Base exception for all Vision Board domain failures."""


class SafetyViolationError(VisionBoardError):
    """Raised when a board name or path is rejected by path policy."""


class StoreOpenError(VisionBoardError):
    """Raised when the local persistent store cannot be opened."""


class SaveError(VisionBoardError):
    """Raised when a context's pending changes cannot be committed."""


class UnknownDreamError(VisionBoardError):
    """Raised when a dream_id is not known to the store."""


class SyncError(VisionBoardError):
    """Raised when replication with the cloud folder fails."""


class InvalidImageError(VisionBoardError):
    """Raised when image bytes are not a recognised image format."""
