"""Lightweight execution trace buffer for diagnostics."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Sequence, Tuple

from .debug import debug_log


@dataclass
class TraceEntry:
    pc: int
    word: int | None
    mnemonic: str
    v: Tuple[int, ...]
    i: int
    sp: int
    delay_timer: int
    sound_timer: int
    note: str = ""


class TraceRecorder:
    """Ring buffer that stores recent CPU snapshots."""

    def __init__(self, capacity: int = 256) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._entries: List[TraceEntry | None] = [None] * capacity
        self._index = 0
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def record_step(
        self,
        cpu_state,
        word: int | None,
        *,
        pc: int | None = None,
        mnemonic: str = "",
        note: str = "",
    ) -> None:
        entry = TraceEntry(
            pc=(cpu_state.pc if pc is None else pc) & 0xFFFF,
            word=None if word is None else word & 0xFFFF,
            mnemonic=mnemonic,
            v=tuple(value & 0xFF for value in cpu_state.v),
            i=cpu_state.i & 0xFFFF,
            sp=cpu_state.sp,
            delay_timer=cpu_state.delay_timer & 0xFF,
            sound_timer=cpu_state.sound_timer & 0xFF,
            note=note,
        )
        self._append(entry)

    def entries(self, limit: int | None = None) -> Iterable[TraceEntry]:
        count = self._size if limit is None else min(self._size, max(limit, 0))
        for offset in range(count):
            index = (self._index - count + offset) % self._capacity
            entry = self._entries[index]
            if entry is not None:
                yield entry

    def last_entry(self) -> TraceEntry | None:
        if self._size == 0:
            return None
        index = (self._index - 1) % self._capacity
        return self._entries[index]

    def format_entries(self, limit: int | None = None) -> Sequence[str]:
        lines: list[str] = []
        for entry in self.entries(limit):
            word = "----" if entry.word is None else f"{entry.word:04X}"
            mnemonic = entry.mnemonic or "?"
            registers = "".join(f"{value:02X}" for value in entry.v)
            note = entry.note or "-"
            line = (
                f"pc={entry.pc:03X} word={word} {mnemonic:<16} "
                f"I={entry.i:03X} sp={entry.sp:X} DT={entry.delay_timer:02X} ST={entry.sound_timer:02X} "
                f"V={registers} note={note}"
            )
            lines.append(line)
        return lines

    def dump(self, category: str, limit: int | None = None) -> None:
        for line in self.format_entries(limit):
            debug_log(category, line)

    def clear(self) -> None:
        self._entries = [None] * self._capacity
        self._index = 0
        self._size = 0

    def _append(self, entry: TraceEntry) -> None:
        self._entries[self._index] = entry
        self._index = (self._index + 1) % self._capacity
        if self._size < self._capacity:
            self._size += 1
