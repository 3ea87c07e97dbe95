"""Chip8App driver loop and program loading."""

from __future__ import annotations

import pytest

from pychip8.system import MachineConfig, create_machine
from pychip8.ui.app import AppConfig, Chip8App


class FakeClock:
    def __init__(self) -> None:
        self.ticks: list[int] = []

    def tick(self, framerate: int) -> int:
        self.ticks.append(framerate)
        return 0


class FakeBeeper:
    def __init__(self) -> None:
        self.states: list[bool] = []

    def set_active(self, active: bool) -> None:
        self.states.append(active)

    def shutdown(self) -> None:
        pass


def _write_program(tmp_path, *words: int):
    path = tmp_path / "prog.ch8"
    path.write_bytes(b"".join(word.to_bytes(2, "big") for word in words))
    return path


def test_cycles_per_frame_from_rates() -> None:
    assert AppConfig(instructions_per_second=600, timer_hz=60).cycles_per_frame == 10
    assert AppConfig(instructions_per_second=30, timer_hz=60).cycles_per_frame == 1
    with pytest.raises(ValueError):
        AppConfig(timer_hz=0)


def test_app_load_program(tmp_path) -> None:
    path = _write_program(tmp_path, 0x6A01, 0x1202)
    app = Chip8App(AppConfig(program_path=path, enable_audio=False))
    machine = create_machine(MachineConfig())

    program = app._load_program(machine, path)

    assert machine.program is program
    assert program.name == "prog.ch8"
    assert machine.memory.read_word(0x200) == 0x6A01


def test_run_frames_paces_and_drives_beeper(tmp_path) -> None:
    # LD V1, 2 ; LD ST, V1 ; JP 0x204
    path = _write_program(tmp_path, 0x6102, 0xF118, 0x1204)
    config = AppConfig(
        program_path=path,
        instructions_per_second=180,
        timer_hz=60,
        max_frames=4,
        enable_audio=False,
    )
    app = Chip8App(config)
    machine = app._create_machine()
    app._load_program(machine, path)
    beeper = FakeBeeper()
    app._beeper = beeper
    clock = FakeClock()

    app._run_frames(machine, clock)

    assert machine.frame_count == 4
    assert clock.ticks == [60, 60, 60, 60]
    # ST=2 after frame one's tick is 1, then 0.
    assert beeper.states == [True, False, False, False]


def test_run_requires_existing_program(tmp_path) -> None:
    pytest.importorskip("pygame")
    app = Chip8App(AppConfig(program_path=tmp_path / "missing.ch8", enable_audio=False))

    with pytest.raises(RuntimeError, match="not found"):
        app.run()
