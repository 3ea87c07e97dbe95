"""Pygame-paced driver loop for the CHIP-8 interpreter."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from pychip8.audio import SquareWaveBeeper
from pychip8.cpu import CPUError
from pychip8.loader import ProgramImage, load_program_from_path
from pychip8.system import Machine, MachineConfig, create_machine
from pychip8.utils import debug_enabled, debug_log


@dataclass
class AppConfig:
    """Configuration for the CHIP-8 runner."""

    program_path: Optional[Path] = None
    instructions_per_second: int = 600
    timer_hz: int = 60
    seed: Optional[int] = None
    max_frames: Optional[int] = None
    enable_audio: bool = True
    beep_frequency: float = 440.0
    trace_capacity: int = 0

    def __post_init__(self) -> None:
        if self.instructions_per_second <= 0:
            raise ValueError("instructions_per_second must be positive")
        if self.timer_hz <= 0:
            raise ValueError("timer_hz must be positive")

    @property
    def cycles_per_frame(self) -> int:
        return max(1, round(self.instructions_per_second / self.timer_hz))


class Chip8App:
    """Runs the machine at a fixed frame rate and drives the beeper."""

    def __init__(self, config: AppConfig) -> None:
        self._config = config
        self._running = False
        self._machine: Machine | None = None
        self._beeper: SquareWaveBeeper | None = None
        self._pygame = None

    @property
    def machine(self) -> Machine | None:
        return self._machine

    def run(self) -> None:
        try:
            import pygame  # type: ignore
        except ImportError as exc:  # pragma: no cover - optional dependency
            raise RuntimeError("pygame is required to run the interpreter loop") from exc

        if not self._config.program_path:
            raise RuntimeError("a program is required; pass a program path")
        program_path = self._config.program_path
        if not program_path.exists():
            raise RuntimeError(f"Program file not found: {program_path}")

        if self._config.enable_audio:
            pygame.mixer.pre_init(44_100, -16, 1, 512)
        pygame.init()
        self._pygame = pygame
        if self._config.enable_audio:
            self._beeper = self._create_beeper(pygame)

        machine = self._create_machine()
        self._machine = machine
        self._load_program(machine, program_path)

        try:
            self._run_frames(machine, pygame.time.Clock())
        except KeyboardInterrupt:
            if debug_enabled("run"):
                debug_log("run", "interrupted frame=%d", machine.frame_count)
        except CPUError:
            if machine.trace is not None:
                machine.trace.dump("trace")
            raise
        finally:
            self._running = False
            if self._beeper is not None:
                self._beeper.shutdown()
            pygame.quit()

    def stop(self) -> None:
        self._running = False

    # ------------------------------------------------------------------
    # Internals

    def _create_machine(self) -> Machine:
        config = MachineConfig(
            seed=self._config.seed,
            cycles_per_frame=self._config.cycles_per_frame,
            trace_capacity=self._config.trace_capacity,
        )
        return create_machine(config)

    def _load_program(self, machine: Machine, path: Path) -> ProgramImage:
        program = load_program_from_path(path, machine.cpu)
        machine.program = program
        if debug_enabled("run"):
            debug_log("run", "loaded %s (%d bytes)", program.name, program.length)
        return program

    def _run_frames(self, machine: Machine, clock) -> None:
        """Run frames until stopped or ``max_frames`` is reached.

        ``clock`` only needs a ``tick(framerate)`` method.
        """

        max_frames = self._config.max_frames
        self._running = True
        while self._running:
            if max_frames is not None and machine.frame_count >= max_frames:
                break
            machine.run_frame()
            if self._beeper is not None:
                self._beeper.set_active(machine.cpu.sound_active)
            clock.tick(self._config.timer_hz)
        self._running = False

    def _create_beeper(self, pygame) -> SquareWaveBeeper | None:
        if pygame.mixer.get_init() is None:
            try:
                pygame.mixer.init(44_100, -16, 1)
            except pygame.error as exc:  # pragma: no cover - best-effort path
                if debug_enabled("audio"):
                    debug_log("audio", "mixer_init_failed=%s", exc)
                return None

        mixer_state = pygame.mixer.get_init()
        if mixer_state is None:
            if debug_enabled("audio"):
                debug_log("audio", "mixer_unavailable")
            return None
        try:
            return SquareWaveBeeper(frequency=self._config.beep_frequency, sample_rate=mixer_state[0])
        except RuntimeError as exc:
            if debug_enabled("audio"):
                debug_log("audio", "beeper_init_failed=%s", exc)
            return None
