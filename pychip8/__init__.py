"""Python port of a CHIP-8 interpreter core.

The CPU and memory image form the core; loading, diagnostics, the paced
driver loop and the sound-timer beeper are collaborators layered around it.
"""

from __future__ import annotations

from . import audio, bus, cpu, loader, system, ui, utils

__all__: list[str] = [
    "cpu",
    "bus",
    "audio",
    "loader",
    "system",
    "ui",
    "utils",
]
