"""Bus-related helpers for the CHIP-8 Python port."""

from .memory import MEMORY_SIZE, PROGRAM_START, RESERVED_SIZE, MemoryImage, MemoryImageError

__all__ = [
    "MEMORY_SIZE",
    "PROGRAM_START",
    "RESERVED_SIZE",
    "MemoryImage",
    "MemoryImageError",
]
