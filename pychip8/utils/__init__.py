"""Utility helpers for the CHIP-8 Python port."""

from .debug import debug_enabled, debug_log
from .diagnostics import format_hex, format_memory, format_registers
from .trace import TraceEntry, TraceRecorder

__all__ = [
    "debug_enabled",
    "debug_log",
    "format_hex",
    "format_memory",
    "format_registers",
    "TraceEntry",
    "TraceRecorder",
]
