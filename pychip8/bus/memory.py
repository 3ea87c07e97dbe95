"""Memory image for the CHIP-8 Python port.

The interpreter sees a single flat 4 KB address space. The first 512 bytes
were historically occupied by the interpreter itself, so programs are placed
at ``PROGRAM_START`` and the low region stays reserved. Unlike the CPU-side
accessors, the memory image never masks addresses: anything outside
``[0, size)`` is a caller error.
"""

from __future__ import annotations

from dataclasses import dataclass, field

MEMORY_SIZE = 0x1000
RESERVED_SIZE = 0x200
PROGRAM_START = RESERVED_SIZE


class MemoryImageError(Exception):
    """Raised when the memory image is misconfigured or used incorrectly."""


@dataclass
class MemoryImage:
    """Simple byte-addressable memory."""

    size: int = MEMORY_SIZE
    _data: bytearray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.size <= 0:
            raise MemoryImageError("memory image must have a positive size")
        self._data = bytearray(self.size)

    def __len__(self) -> int:
        return self.size

    def contains(self, address: int, length: int = 1) -> bool:
        """Return True when ``address .. address + length - 1`` is mapped."""

        return 0 <= address and address + length <= self.size

    def _offset(self, address: int) -> int:
        if not 0 <= address < self.size:
            raise MemoryImageError(f"address {address:#05x} outside memory 0x000-{self.size - 1:#05x}")
        return address

    def read(self, address: int) -> int:
        return self._data[self._offset(address)]

    def write(self, address: int, value: int) -> None:
        self._data[self._offset(address)] = value & 0xFF

    def read_word(self, address: int) -> int:
        high = self.read(address)
        low = self.read(address + 1)
        return (high << 8) | low

    def write_instruction(self, address: int, instruction: int) -> None:
        """Store a 16-bit instruction big-endian, high byte first."""

        if not self.contains(address, 2):
            raise MemoryImageError(f"instruction at {address:#05x} does not fit in memory")
        self._data[address] = (instruction >> 8) & 0xFF
        self._data[address + 1] = instruction & 0xFF

    def load_image(self, address: int, data: bytes) -> None:
        if not self.contains(address, len(data)):
            raise MemoryImageError(
                f"image of {len(data)} bytes at {address:#05x} exceeds memory size {self.size:#05x}")
        self._data[address:address + len(data)] = data

    def snapshot(self, start: int = 0, length: int | None = None) -> bytes:
        if length is None:
            length = self.size - start
        if not self.contains(start, length):
            raise MemoryImageError(f"snapshot {start:#05x}+{length} outside memory")
        return bytes(self._data[start:start + length])

    def clear(self) -> None:
        self._data[:] = bytes(self.size)
