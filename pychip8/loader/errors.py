"""Errors raised while placing programs into memory."""

from __future__ import annotations


class ProgramLoadError(RuntimeError):
    """Raised when a program image cannot be read or placed."""


class ProgramTooLargeError(ProgramLoadError):
    """Raised before copying when a program exceeds the space above the reserved region."""

    def __init__(self, size: int, limit: int) -> None:
        super().__init__(f"program of {size} bytes exceeds available memory ({limit} bytes)")
        self.size = size
        self.limit = limit
