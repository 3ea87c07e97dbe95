"""Core CHIP-8 CPU implementation."""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from typing import Callable, List

from pychip8.bus import PROGRAM_START, MemoryImage
from pychip8.loader.errors import ProgramTooLargeError
from pychip8.utils import debug_enabled, debug_log

from .opcodes import DECODE_TABLE, DecodeTable, Instruction

NUM_REGISTERS = 16
STACK_SIZE = 16
FLAG_REGISTER = 0xF
INSTRUCTION_SIZE = 2

RandomSource = Callable[[], int]


class CPUError(Exception):
    """Base error for CPU-related failures."""


class UnrecognizedInstructionError(CPUError):
    """Raised when a fetched word matches no row of the opcode table."""

    def __init__(self, word: int, address: int) -> None:
        super().__init__(f"unrecognized instruction {word:#06x} at {address:#05x}")
        self.word = word
        self.address = address


class StackError(CPUError):
    """Raised on call/return imbalance."""

    def __init__(self, message: str, sp: int, address: int) -> None:
        super().__init__(message)
        self.sp = sp
        self.address = address


class StackOverflowError(StackError):
    """CALL with every stack slot in use."""


class StackUnderflowError(StackError):
    """RET with an empty stack."""


class AddressOutOfRangeError(CPUError):
    """Raised when ``pc`` or an ``I``-relative access leaves memory."""

    def __init__(self, address: int, source: str, length: int = 1) -> None:
        if length > 1:
            detail = f"{address:#05x}..{address + length - 1:#05x}"
        else:
            detail = f"{address:#05x}"
        super().__init__(f"{source} address {detail} outside memory")
        self.address = address
        self.source = source
        self.length = length


def default_random_source(seed: int | None = None) -> RandomSource:
    """Return a byte source backed by one generator seeded once."""

    rng = random.Random(seed)

    def next_byte() -> int:
        return rng.getrandbits(8)

    return next_byte


@dataclass
class CPUState:
    """Register file, stack and timers of the interpreter."""

    v: List[int] = field(default_factory=lambda: [0] * NUM_REGISTERS)
    i: int = 0x000
    pc: int = PROGRAM_START
    sp: int = 0
    stack: List[int] = field(default_factory=lambda: [0] * STACK_SIZE)
    delay_timer: int = 0
    sound_timer: int = 0

    def clone(self) -> "CPUState":
        return CPUState(
            list(self.v),
            self.i,
            self.pc,
            self.sp,
            list(self.stack),
            self.delay_timer,
            self.sound_timer,
        )


@dataclass
class Chip8CPU:
    """Fetch/decode/execute engine over a 4 KB memory image.

    A freshly constructed CPU is in the reset state; :meth:`reset` returns
    to it (clearing memory as well) before loading another program.
    """

    memory: MemoryImage
    random_source: RandomSource = field(default_factory=default_random_source)
    decode_table: DecodeTable = field(default=DECODE_TABLE)

    state: CPUState = field(default_factory=CPUState)
    instruction_count: int = 0

    def reset(self) -> None:
        """Clear memory, registers, stack and timers; point pc at the program start."""

        self.memory.clear()
        self.state = CPUState()
        self.instruction_count = 0

    def load(self, program: bytes) -> int:
        """Copy ``program`` to the program start and return its length."""

        limit = self.memory.size - PROGRAM_START
        if len(program) > limit:
            raise ProgramTooLargeError(len(program), limit)
        self.memory.load_image(PROGRAM_START, bytes(program))
        return len(program)

    def step(self) -> Instruction:
        """Execute a single instruction and return it."""

        pc = self.state.pc
        word = self._fetch_word(pc)
        instruction = self._decode(word, pc)
        if debug_enabled("cpu"):
            debug_log("cpu", "pc=%03x word=%04x %s", pc, word, instruction.describe())

        handler = getattr(self, instruction.handler, None)
        if handler is None:
            raise CPUError(f"handler '{instruction.handler}' not implemented")
        handler(instruction)
        self.instruction_count += 1
        return instruction

    def tick_timers(self) -> None:
        """Count both timers down by one; the driver decides the rate."""

        state = self.state
        if state.delay_timer > 0:
            state.delay_timer -= 1
        if state.sound_timer > 0:
            state.sound_timer -= 1
        if debug_enabled("timer"):
            debug_log("timer", "dt=%02x st=%02x", state.delay_timer, state.sound_timer)

    @property
    def sound_active(self) -> bool:
        return self.state.sound_timer > 0

    def snapshot(self) -> CPUState:
        return self.state.clone()

    # ------------------------------------------------------------------
    # Flow control

    def op_ret(self, _: Instruction) -> None:
        state = self.state
        if state.sp <= 0:
            raise StackUnderflowError("return with empty stack", state.sp, state.pc)
        target = state.stack[state.sp]
        self._check_pc(target)
        state.sp -= 1
        state.pc = target

    def op_jp(self, instruction: Instruction) -> None:
        self._jump(instruction.nnn)

    def op_call(self, instruction: Instruction) -> None:
        state = self.state
        if state.sp >= STACK_SIZE - 1:
            raise StackOverflowError("call with full stack", state.sp, state.pc)
        self._check_pc(instruction.nnn)
        state.sp += 1
        state.stack[state.sp] = state.pc
        state.pc = instruction.nnn

    def op_jp_v0(self, instruction: Instruction) -> None:
        self._jump(self.state.v[0] + instruction.nnn)

    def op_se_immediate(self, instruction: Instruction) -> None:
        self._skip_if(self.state.v[instruction.x] == instruction.kk)

    def op_sne_immediate(self, instruction: Instruction) -> None:
        self._skip_if(self.state.v[instruction.x] != instruction.kk)

    def op_se_register(self, instruction: Instruction) -> None:
        v = self.state.v
        self._skip_if(v[instruction.x] == v[instruction.y])

    # ------------------------------------------------------------------
    # Loads and arithmetic

    def op_ld_immediate(self, instruction: Instruction) -> None:
        next_pc = self._next_pc()
        self.state.v[instruction.x] = instruction.kk
        self.state.pc = next_pc

    def op_add_immediate(self, instruction: Instruction) -> None:
        next_pc = self._next_pc()
        v = self.state.v
        v[instruction.x] = _add8(v[instruction.x], instruction.kk)
        self.state.pc = next_pc

    def op_rnd(self, instruction: Instruction) -> None:
        next_pc = self._next_pc()
        value = self.random_source() & 0xFF
        self.state.v[instruction.x] = value & instruction.kk
        self.state.pc = next_pc

    def op_ld_register(self, instruction: Instruction) -> None:
        next_pc = self._next_pc()
        v = self.state.v
        v[instruction.x] = v[instruction.y]
        self.state.pc = next_pc

    def op_or(self, instruction: Instruction) -> None:
        next_pc = self._next_pc()
        v = self.state.v
        v[instruction.x] = (v[instruction.x] | v[instruction.y]) & 0xFF
        self.state.pc = next_pc

    def op_and(self, instruction: Instruction) -> None:
        next_pc = self._next_pc()
        v = self.state.v
        v[instruction.x] = v[instruction.x] & v[instruction.y]
        self.state.pc = next_pc

    def op_xor(self, instruction: Instruction) -> None:
        next_pc = self._next_pc()
        v = self.state.v
        v[instruction.x] = (v[instruction.x] ^ v[instruction.y]) & 0xFF
        self.state.pc = next_pc

    def op_add_register(self, instruction: Instruction) -> None:
        next_pc = self._next_pc()
        v = self.state.v
        total = v[instruction.x] + v[instruction.y]
        v[instruction.x] = total & 0xFF
        v[FLAG_REGISTER] = 1 if total > 0xFF else 0
        self.state.pc = next_pc

    def op_sub(self, instruction: Instruction) -> None:
        next_pc = self._next_pc()
        v = self.state.v
        # VF is written first; the difference reads the registers afterwards.
        v[FLAG_REGISTER] = 1 if v[instruction.x] > v[instruction.y] else 0
        v[instruction.x] = _sub8(v[instruction.x], v[instruction.y])
        self.state.pc = next_pc

    def op_shr(self, instruction: Instruction) -> None:
        next_pc = self._next_pc()
        v = self.state.v
        v[FLAG_REGISTER] = v[instruction.x] & 0x01
        v[instruction.x] = v[instruction.x] >> 1
        self.state.pc = next_pc

    def op_subn(self, instruction: Instruction) -> None:
        next_pc = self._next_pc()
        v = self.state.v
        v[FLAG_REGISTER] = 1 if v[instruction.y] > v[instruction.x] else 0
        v[instruction.x] = _sub8(v[instruction.y], v[instruction.x])
        self.state.pc = next_pc

    def op_shl(self, instruction: Instruction) -> None:
        next_pc = self._next_pc()
        v = self.state.v
        v[FLAG_REGISTER] = (v[instruction.x] >> 7) & 0x01
        v[instruction.x] = (v[instruction.x] << 1) & 0xFF
        self.state.pc = next_pc

    # ------------------------------------------------------------------
    # Address register, timers and bulk memory

    def op_ld_i(self, instruction: Instruction) -> None:
        next_pc = self._next_pc()
        self.state.i = instruction.nnn
        self.state.pc = next_pc

    def op_add_i(self, instruction: Instruction) -> None:
        next_pc = self._next_pc()
        state = self.state
        state.i = (state.i + state.v[instruction.x]) & 0xFFFF
        state.pc = next_pc

    def op_ld_from_delay(self, instruction: Instruction) -> None:
        next_pc = self._next_pc()
        self.state.v[instruction.x] = self.state.delay_timer
        self.state.pc = next_pc

    def op_ld_delay(self, instruction: Instruction) -> None:
        next_pc = self._next_pc()
        self.state.delay_timer = self.state.v[instruction.x]
        self.state.pc = next_pc

    def op_ld_sound(self, instruction: Instruction) -> None:
        next_pc = self._next_pc()
        self.state.sound_timer = self.state.v[instruction.x]
        self.state.pc = next_pc

    def op_bcd(self, instruction: Instruction) -> None:
        state = self.state
        self._check_i_range(3)
        next_pc = self._next_pc()
        value = state.v[instruction.x]
        self.memory.write(state.i, value // 100)
        self.memory.write(state.i + 1, (value // 10) % 10)
        self.memory.write(state.i + 2, value % 10)
        state.pc = next_pc

    def op_store_registers(self, instruction: Instruction) -> None:
        state = self.state
        self._check_i_range(instruction.x + 1)
        next_pc = self._next_pc()
        for index in range(instruction.x + 1):
            self.memory.write(state.i + index, state.v[index])
        state.pc = next_pc

    def op_load_registers(self, instruction: Instruction) -> None:
        state = self.state
        self._check_i_range(instruction.x + 1)
        next_pc = self._next_pc()
        for index in range(instruction.x + 1):
            state.v[index] = self.memory.read(state.i + index)
        state.pc = next_pc

    # ------------------------------------------------------------------
    # Helpers

    def _fetch_word(self, pc: int) -> int:
        if not self.memory.contains(pc, INSTRUCTION_SIZE):
            raise AddressOutOfRangeError(pc, "pc", INSTRUCTION_SIZE)
        return self.memory.read_word(pc)

    def _decode(self, word: int, address: int) -> Instruction:
        instruction = self.decode_table.decode(word)
        if instruction is None:
            raise UnrecognizedInstructionError(word, address)
        return instruction

    def _check_pc(self, target: int) -> None:
        if not self.memory.contains(target):
            raise AddressOutOfRangeError(target, "pc")

    def _next_pc(self, distance: int = INSTRUCTION_SIZE) -> int:
        target = self.state.pc + distance
        self._check_pc(target)
        return target

    def _jump(self, target: int) -> None:
        self._check_pc(target)
        self.state.pc = target

    def _skip_if(self, condition: bool) -> None:
        self.state.pc = self._next_pc(2 * INSTRUCTION_SIZE if condition else INSTRUCTION_SIZE)

    def _check_i_range(self, length: int) -> None:
        address = self.state.i
        if not self.memory.contains(address, length):
            raise AddressOutOfRangeError(address, "I", length)


def _add8(x: int, y: int) -> int:
    return (x + y) & 0xFF


def _sub8(x: int, y: int) -> int:
    return (x - y) & 0xFF
