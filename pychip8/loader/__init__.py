"""Loaders for CHIP-8 program images."""

from __future__ import annotations

from .errors import ProgramLoadError, ProgramTooLargeError
from .program import MAX_PROGRAM_SIZE, ProgramImage, load_program, load_program_from_path

__all__ = [
    "MAX_PROGRAM_SIZE",
    "ProgramImage",
    "ProgramLoadError",
    "ProgramTooLargeError",
    "load_program",
    "load_program_from_path",
]
