"""Program images and the loaders that place them in memory."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING

from pychip8.bus import MEMORY_SIZE, PROGRAM_START
from pychip8.utils import debug_enabled, debug_log, format_memory

from .errors import ProgramLoadError

if TYPE_CHECKING:  # pragma: no cover
    from pychip8.cpu import Chip8CPU

MAX_PROGRAM_SIZE = MEMORY_SIZE - PROGRAM_START


@dataclass
class ProgramImage:
    """Program bytes together with where they were placed."""

    name: str = ""
    start: int = PROGRAM_START
    data: bytes = field(default=b"", repr=False)

    @property
    def length(self) -> int:
        return len(self.data)

    @property
    def end(self) -> int:
        """Last address occupied by the program (``start - 1`` when empty)."""

        return self.start + self.length - 1


def load_program(data: bytes, cpu: "Chip8CPU", name: str = "") -> ProgramImage:
    """Load ``data`` at the program start of ``cpu`` and return its metadata."""

    payload = bytes(data)
    cpu.load(payload)
    program = ProgramImage(name=name, start=PROGRAM_START, data=payload)
    if debug_enabled("load"):
        debug_log("load", "name=%s start=%03x length=%d", name or "-", program.start, program.length)
        for line in format_memory(cpu.memory, program.start, program.length):
            debug_log("load", line)
    return program


def load_program_from_path(path: Path, cpu: "Chip8CPU") -> ProgramImage:
    """Load a raw program file from the filesystem."""

    try:
        with path.open("rb") as handle:
            data = handle.read()
    except OSError as exc:
        raise ProgramLoadError(f"cannot read program {path}: {exc}") from exc
    return load_program(data, cpu, name=path.name)
