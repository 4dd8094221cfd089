"""Fatal error taxonomy for a codescan run."""

from __future__ import annotations

from typing import Optional

from .models import Position


class CodescanError(RuntimeError):
    """Base error for codescan; carries the source position when known."""

    def __init__(self, message: str, position: Optional[Position] = None) -> None:
        self.message = message
        self.position = position
        super().__init__(f"{position}: {message}" if position is not None else message)


class LoadError(CodescanError):
    """Raised for bad patterns, unparsable files and unresolvable imports."""


class AnnotationError(CodescanError):
    """Raised when a directive body is malformed or misses mandatory arguments."""


class ResolutionError(CodescanError):
    """Raised when a Go type cannot be turned into a schema."""


class ConflictError(CodescanError):
    """Raised for duplicate operations or incompatible duplicate definitions."""


class MergeError(CodescanError):
    """Raised when the base document cannot be merged."""


__all__ = [
    "AnnotationError",
    "CodescanError",
    "ConflictError",
    "LoadError",
    "MergeError",
    "ResolutionError",
]
