"""CHIP-8 machine assembly and the frame-based driver loop."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pychip8.bus import MemoryImage
from pychip8.cpu import Chip8CPU, CPUError, RandomSource, default_random_source
from pychip8.cpu.opcodes import Instruction
from pychip8.loader import ProgramImage, load_program
from pychip8.utils import TraceRecorder, debug_enabled, debug_log


@dataclass
class MachineConfig:
    """Runtime configuration for the CHIP-8 machine."""

    program: Optional[bytes] = None
    program_name: str = ""
    seed: Optional[int] = None
    random_source: Optional[RandomSource] = None
    cycles_per_frame: int = 10
    trace_capacity: int = 0

    def __post_init__(self) -> None:
        if self.cycles_per_frame <= 0:
            raise ValueError("cycles_per_frame must be positive")
        if self.trace_capacity < 0:
            raise ValueError("trace_capacity must not be negative")


@dataclass
class Machine:
    """Aggregates the memory image and CPU and drives them frame by frame.

    A frame executes ``cycles_per_frame`` instructions and then ticks the
    timers once, so the caller controls the real-time rate by how often it
    runs frames.
    """

    memory: MemoryImage
    cpu: Chip8CPU
    config: MachineConfig
    program: Optional[ProgramImage] = None
    trace: Optional[TraceRecorder] = None
    frame_count: int = 0

    def reset(self) -> None:
        """Return to the power-on state with no program loaded."""

        self.cpu.reset()
        self.program = None
        self.frame_count = 0
        if self.trace is not None:
            self.trace.clear()

    def load_program(self, data: bytes, name: str = "") -> ProgramImage:
        self.program = load_program(data, self.cpu, name=name)
        return self.program

    def restart(self) -> None:
        """Reset and reload the current program, if any."""

        program = self.program
        self.reset()
        if program is not None:
            self.load_program(program.data, program.name)

    def step(self) -> Instruction:
        pc = self.cpu.state.pc
        try:
            instruction = self.cpu.step()
        except CPUError as exc:
            if self.trace is not None:
                self.trace.record_step(self.cpu.state, self._peek_word(pc), pc=pc, note=type(exc).__name__)
            raise
        if self.trace is not None:
            self.trace.record_step(
                self.cpu.state,
                instruction.word,
                pc=pc,
                mnemonic=instruction.describe(),
            )
        return instruction

    def run_frame(self) -> int:
        """Execute one frame and return the number of instructions run."""

        for _ in range(self.config.cycles_per_frame):
            self.step()
        self.cpu.tick_timers()
        self.frame_count += 1
        if debug_enabled("run"):
            debug_log("run", "frame=%d pc=%03x", self.frame_count, self.cpu.state.pc)
        return self.config.cycles_per_frame

    def run(self, frames: int) -> int:
        executed = 0
        for _ in range(frames):
            executed += self.run_frame()
        return executed

    def _peek_word(self, pc: int) -> int | None:
        if not self.memory.contains(pc, 2):
            return None
        return self.memory.read_word(pc)


def create_machine(config: MachineConfig) -> Machine:
    """Instantiate a CHIP-8 machine with the requested configuration."""

    memory = MemoryImage()
    random_source = config.random_source or default_random_source(config.seed)
    cpu = Chip8CPU(memory, random_source=random_source)
    cpu.reset()

    trace = TraceRecorder(config.trace_capacity) if config.trace_capacity else None
    machine = Machine(memory=memory, cpu=cpu, config=config, trace=trace)

    if config.program is not None:
        machine.load_program(config.program, config.program_name)

    return machine
