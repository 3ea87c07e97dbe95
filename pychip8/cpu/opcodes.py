"""Opcode metadata and decoding for the CHIP-8 instruction set."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Dict, Final, Iterable, Mapping, Sequence, Tuple


class OperandShape(Enum):
    """Operand layouts encoded in the low 12 bits of an instruction word."""

    NONE = auto()
    ADDRESS = auto()
    REGISTER_IMMEDIATE = auto()
    REGISTER_PAIR = auto()
    REGISTER = auto()


class Selector(Enum):
    """How an instruction class picks its sub-operation."""

    CLASS = auto()
    LOW_NIBBLE = auto()
    LOW_BYTE = auto()
    WORD = auto()


# Classes not listed here are identified by the top nibble alone.
CLASS_SELECTORS: Final[Mapping[int, Selector]] = {
    0x0: Selector.WORD,
    0x8: Selector.LOW_NIBBLE,
    0xF: Selector.LOW_BYTE,
}


def op_class(word: int) -> int:
    return (word >> 12) & 0xF


def select(word: int, selector: Selector) -> int:
    if selector is Selector.WORD:
        return word & 0xFFFF
    if selector is Selector.LOW_BYTE:
        return word & 0xFF
    if selector is Selector.LOW_NIBBLE:
        return word & 0xF
    return 0


@dataclass(frozen=True)
class Opcode:
    """Metadata describing one row of the opcode table.

    ``pattern`` is written the usual way, e.g. ``"8xy4"`` or ``"Fx1E"``;
    lowercase letters are operand fields and uppercase/digits are fixed.
    """

    pattern: str
    mnemonic: str
    shape: OperandShape
    handler: str
    operands: str = ""

    def __post_init__(self) -> None:
        if len(self.pattern) != 4:
            raise ValueError(f"opcode pattern must have four nibbles: {self.pattern!r}")
        if self.pattern[0] not in "0123456789ABCDEF":
            raise ValueError(f"opcode class must be a fixed nibble: {self.pattern!r}")

    @property
    def op_class(self) -> int:
        return int(self.pattern[0], 16)

    @property
    def selector(self) -> Selector:
        return CLASS_SELECTORS.get(self.op_class, Selector.CLASS)

    @property
    def key(self) -> int:
        """Selector value this row answers to within its class."""

        selector = self.selector
        if selector is Selector.WORD:
            return int(self.pattern, 16)
        if selector is Selector.LOW_BYTE:
            return int(self.pattern[2:], 16)
        if selector is Selector.LOW_NIBBLE:
            return int(self.pattern[3], 16)
        return 0


@dataclass(frozen=True)
class Instruction:
    """A decoded instruction word bound to its opcode row."""

    word: int
    opcode: Opcode

    @property
    def x(self) -> int:
        return (self.word >> 8) & 0xF

    @property
    def y(self) -> int:
        return (self.word >> 4) & 0xF

    @property
    def n(self) -> int:
        return self.word & 0xF

    @property
    def kk(self) -> int:
        return self.word & 0xFF

    @property
    def nnn(self) -> int:
        return self.word & 0xFFF

    @property
    def mnemonic(self) -> str:
        return self.opcode.mnemonic

    @property
    def shape(self) -> OperandShape:
        return self.opcode.shape

    @property
    def handler(self) -> str:
        return self.opcode.handler

    def describe(self) -> str:
        """Assembly-style rendering, e.g. ``ADD V1, V2``."""

        if not self.opcode.operands:
            return self.mnemonic
        operands = self.opcode.operands.format(x=self.x, y=self.y, kk=self.kk, nnn=self.nnn)
        return f"{self.mnemonic} {operands}"


class OpcodeTable:
    """Builder for the class/selector lookup used by the decoder."""

    _CLASS_COUNT: Final[int] = 0x10

    def __init__(self) -> None:
        self._classes: list[Dict[int, Opcode]] = [{} for _ in range(self._CLASS_COUNT)]

    def register(self, opcode: Opcode) -> None:
        rows = self._classes[opcode.op_class]
        key = opcode.key
        if key in rows:
            existing = rows[key]
            raise ValueError(
                f"opcode {opcode.pattern} already registered as {existing.pattern} {existing.mnemonic}")
        rows[key] = opcode

    def register_all(self, opcodes: Iterable[Opcode]) -> None:
        for opcode in opcodes:
            self.register(opcode)

    def freeze(self) -> "DecodeTable":
        return DecodeTable(tuple(dict(rows) for rows in self._classes))


@dataclass(frozen=True)
class DecodeTable:
    """Immutable decoder: top nibble first, then the class selector."""

    classes: Tuple[Mapping[int, Opcode], ...]

    def lookup(self, word: int) -> Opcode | None:
        word &= 0xFFFF
        cls = op_class(word)
        selector = CLASS_SELECTORS.get(cls, Selector.CLASS)
        return self.classes[cls].get(select(word, selector))

    def decode(self, word: int) -> Instruction | None:
        opcode = self.lookup(word)
        if opcode is None:
            return None
        return Instruction(word & 0xFFFF, opcode)

    def opcodes(self) -> Iterable[Opcode]:
        for rows in self.classes:
            yield from rows.values()


def build_decode_table(opcodes: Iterable[Opcode]) -> DecodeTable:
    """Build a decoder from opcode rows, rejecting duplicate encodings."""

    table = OpcodeTable()
    table.register_all(opcodes)
    return table.freeze()


DEFAULT_OPCODES: Sequence[Opcode] = (
    # Flow control
    Opcode("00EE", "RET", OperandShape.NONE, "op_ret"),
    Opcode("1nnn", "JP", OperandShape.ADDRESS, "op_jp", "{nnn:#05x}"),
    Opcode("2nnn", "CALL", OperandShape.ADDRESS, "op_call", "{nnn:#05x}"),
    Opcode("Bnnn", "JP", OperandShape.ADDRESS, "op_jp_v0", "V0, {nnn:#05x}"),
    # Conditional skips
    Opcode("3xkk", "SE", OperandShape.REGISTER_IMMEDIATE, "op_se_immediate", "V{x:X}, {kk:#04x}"),
    Opcode("4xkk", "SNE", OperandShape.REGISTER_IMMEDIATE, "op_sne_immediate", "V{x:X}, {kk:#04x}"),
    Opcode("5xy0", "SE", OperandShape.REGISTER_PAIR, "op_se_register", "V{x:X}, V{y:X}"),
    # Immediate loads and arithmetic
    Opcode("6xkk", "LD", OperandShape.REGISTER_IMMEDIATE, "op_ld_immediate", "V{x:X}, {kk:#04x}"),
    Opcode("7xkk", "ADD", OperandShape.REGISTER_IMMEDIATE, "op_add_immediate", "V{x:X}, {kk:#04x}"),
    Opcode("Cxkk", "RND", OperandShape.REGISTER_IMMEDIATE, "op_rnd", "V{x:X}, {kk:#04x}"),
    # Register/register ALU
    Opcode("8xy0", "LD", OperandShape.REGISTER_PAIR, "op_ld_register", "V{x:X}, V{y:X}"),
    Opcode("8xy1", "OR", OperandShape.REGISTER_PAIR, "op_or", "V{x:X}, V{y:X}"),
    Opcode("8xy2", "AND", OperandShape.REGISTER_PAIR, "op_and", "V{x:X}, V{y:X}"),
    Opcode("8xy3", "XOR", OperandShape.REGISTER_PAIR, "op_xor", "V{x:X}, V{y:X}"),
    Opcode("8xy4", "ADD", OperandShape.REGISTER_PAIR, "op_add_register", "V{x:X}, V{y:X}"),
    Opcode("8xy5", "SUB", OperandShape.REGISTER_PAIR, "op_sub", "V{x:X}, V{y:X}"),
    Opcode("8xy6", "SHR", OperandShape.REGISTER_PAIR, "op_shr", "V{x:X}"),
    Opcode("8xy7", "SUBN", OperandShape.REGISTER_PAIR, "op_subn", "V{x:X}, V{y:X}"),
    Opcode("8xyE", "SHL", OperandShape.REGISTER_PAIR, "op_shl", "V{x:X}"),
    # Address register
    Opcode("Annn", "LD", OperandShape.ADDRESS, "op_ld_i", "I, {nnn:#05x}"),
    Opcode("Fx1E", "ADD", OperandShape.REGISTER, "op_add_i", "I, V{x:X}"),
    # Timers
    Opcode("Fx07", "LD", OperandShape.REGISTER, "op_ld_from_delay", "V{x:X}, DT"),
    Opcode("Fx15", "LD", OperandShape.REGISTER, "op_ld_delay", "DT, V{x:X}"),
    Opcode("Fx18", "LD", OperandShape.REGISTER, "op_ld_sound", "ST, V{x:X}"),
    # Bulk memory
    Opcode("Fx33", "LD", OperandShape.REGISTER, "op_bcd", "B, V{x:X}"),
    Opcode("Fx55", "LD", OperandShape.REGISTER, "op_store_registers", "[I], V{x:X}"),
    Opcode("Fx65", "LD", OperandShape.REGISTER, "op_load_registers", "V{x:X}, [I]"),
)


DECODE_TABLE: DecodeTable = build_decode_table(DEFAULT_OPCODES)


__all__ = [
    "CLASS_SELECTORS",
    "DECODE_TABLE",
    "DEFAULT_OPCODES",
    "DecodeTable",
    "Instruction",
    "Opcode",
    "OpcodeTable",
    "OperandShape",
    "Selector",
    "build_decode_table",
]
