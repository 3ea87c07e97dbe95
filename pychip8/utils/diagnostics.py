"""Human-readable dumps of interpreter state."""

from __future__ import annotations

from typing import List, Sequence


def format_hex(description: str, value: int, width: int = 4) -> str:
    """Render ``value`` as ``description: 0x00ee`` with ``width`` hex digits."""

    return f"{description}: 0x{value & ((1 << (4 * width)) - 1):0{width}x}"


def format_registers(state) -> Sequence[str]:
    """Two-line dump of the register file and the call stack."""

    registers = " ".join(f"V{index:X}={value:02X}" for index, value in enumerate(state.v))
    header = (
        f"pc={state.pc:03X} I={state.i:03X} sp={state.sp:X} "
        f"DT={state.delay_timer:02X} ST={state.sound_timer:02X}"
    )
    stack = " ".join(f"{address:03X}" for address in state.stack[1:state.sp + 1])
    return [f"{header} {registers}", f"stack=[{stack}]"]


def format_memory(memory, start: int, length: int, words_per_line: int = 8) -> Sequence[str]:
    """List ``length`` bytes from ``start`` as big-endian instruction words.

    An odd trailing byte is shown on its own.
    """

    if words_per_line <= 0:
        raise ValueError("words_per_line must be positive")
    data = memory.snapshot(start, length)
    lines: List[str] = []
    step = words_per_line * 2
    for offset in range(0, len(data), step):
        chunk = data[offset:offset + step]
        words = []
        for index in range(0, len(chunk) - 1, 2):
            words.append(f"{chunk[index]:02X}{chunk[index + 1]:02X}")
        if len(chunk) % 2:
            words.append(f"{chunk[-1]:02X}")
        lines.append(f"{start + offset:03X}: {' '.join(words)}")
    return lines
