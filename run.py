"""Command-line entry point for the Python CHIP-8 interpreter.

Runs a program paced by the pygame clock, or lists the loaded program with
``--dump``. Faults raised by the CPU end the run with a register dump.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from pychip8.cpu import CPUError, UnrecognizedInstructionError
from pychip8.loader import ProgramLoadError, load_program_from_path
from pychip8.system import MachineConfig, create_machine
from pychip8.ui.app import AppConfig, Chip8App
from pychip8.utils import format_hex, format_memory, format_registers


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="run.py",
        description="CHIP-8 interpreter core (Python)",
    )
    parser.add_argument(
        "program",
        type=Path,
        help="Path to a raw CHIP-8 program image",
    )
    parser.add_argument(
        "--ips",
        type=int,
        default=600,
        help="Instructions executed per second (default: 600)",
    )
    parser.add_argument(
        "--timer-hz",
        type=int,
        default=60,
        help="Timer tick rate in Hertz (default: 60)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Seed for the RND instruction's generator",
    )
    parser.add_argument(
        "--frames",
        type=int,
        help="Stop after this many timer frames",
    )
    parser.add_argument(
        "--trace",
        type=int,
        default=64,
        help="Number of executed instructions kept for fault reports (default: 64, 0 disables)",
    )
    parser.add_argument(
        "--no-audio",
        action="store_true",
        help="Do not sound the beeper while the sound timer runs",
    )
    parser.add_argument(
        "--dump",
        action="store_true",
        help="List the loaded program and exit without running it",
    )
    return parser


def dump_program(path: Path) -> list[str]:
    machine = create_machine(MachineConfig())
    program = load_program_from_path(path, machine.cpu)
    lines = [f"{program.name}: {program.length} bytes at {program.start:#05x}"]
    lines.extend(format_memory(machine.memory, program.start, program.length))
    return lines


def describe_fault(app: Chip8App, exc: CPUError) -> list[str]:
    lines = [str(exc)]
    if isinstance(exc, UnrecognizedInstructionError):
        lines.append(format_hex("Instruction not recognised", exc.word))
        lines.append(format_hex("Fetched from", exc.address, width=3))
    machine = app.machine
    if machine is not None:
        if machine.trace is not None:
            lines.extend(machine.trace.format_entries(16))
        lines.extend(format_registers(machine.cpu.state))
    return lines


def main(argv: list[str] | None = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)

    if not args.program.exists():
        parser.error(f"Program file not found: {args.program}")
    if args.ips <= 0 or args.timer_hz <= 0:
        parser.error("--ips and --timer-hz must be positive")
    if args.trace < 0:
        parser.error("--trace must not be negative")

    if args.dump:
        try:
            lines = dump_program(args.program)
        except ProgramLoadError as exc:
            parser.exit(1, f"run.py: {exc}\n")
        print("\n".join(lines))
        return 0

    config = AppConfig(
        program_path=args.program,
        instructions_per_second=args.ips,
        timer_hz=args.timer_hz,
        seed=args.seed,
        max_frames=args.frames,
        enable_audio=not args.no_audio,
        trace_capacity=args.trace,
    )
    app = Chip8App(config)
    try:
        app.run()
    except CPUError as exc:
        parser.exit(1, "\n".join(f"run.py: {line}" for line in describe_fault(app, exc)) + "\n")
    except RuntimeError as exc:
        parser.exit(1, f"run.py: {exc}\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())
