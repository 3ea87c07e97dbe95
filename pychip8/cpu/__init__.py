"""CPU package for the CHIP-8 Python port."""

from .core import (
    AddressOutOfRangeError,
    Chip8CPU,
    CPUError,
    CPUState,
    RandomSource,
    StackError,
    StackOverflowError,
    StackUnderflowError,
    UnrecognizedInstructionError,
    default_random_source,
)
from . import opcodes

__all__ = [
    "Chip8CPU",
    "CPUState",
    "CPUError",
    "UnrecognizedInstructionError",
    "StackError",
    "StackOverflowError",
    "StackUnderflowError",
    "AddressOutOfRangeError",
    "RandomSource",
    "default_random_source",
    "opcodes",
]
