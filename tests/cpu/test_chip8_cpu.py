"""Tests for the CHIP-8 CPU core."""

from __future__ import annotations

import pytest

from pychip8.bus import PROGRAM_START, MemoryImage
from pychip8.cpu import (
    AddressOutOfRangeError,
    Chip8CPU,
    StackOverflowError,
    StackUnderflowError,
    UnrecognizedInstructionError,
    default_random_source,
)
from pychip8.cpu.core import FLAG_REGISTER
from pychip8.loader import ProgramTooLargeError


def make_cpu(entry_point: int = PROGRAM_START, *words: int, random_source=None) -> Chip8CPU:
    memory = MemoryImage()
    if random_source is None:
        cpu = Chip8CPU(memory)
    else:
        cpu = Chip8CPU(memory, random_source=random_source)
    cpu.reset()
    for offset, word in enumerate(words):
        memory.write_instruction(entry_point + 2 * offset, word)
    cpu.state.pc = entry_point
    return cpu


def test_reset_clears_state_and_points_at_program_start() -> None:
    cpu = make_cpu(0x300, 0x6A42)
    cpu.state.v[3] = 0x99
    cpu.state.i = 0x456
    cpu.state.sp = 4
    cpu.state.stack[4] = 0x222
    cpu.state.delay_timer = 7
    cpu.state.sound_timer = 9
    cpu.step()

    cpu.reset()

    assert cpu.state.pc == 0x200
    assert cpu.state.v == [0] * 16
    assert cpu.state.i == 0
    assert cpu.state.sp == 0
    assert cpu.state.stack == [0] * 16
    assert cpu.state.delay_timer == 0
    assert cpu.state.sound_timer == 0
    assert cpu.instruction_count == 0
    assert cpu.memory.snapshot() == bytes(0x1000)


def test_step_fetches_big_endian_word_and_advances() -> None:
    cpu = make_cpu(PROGRAM_START, 0x6A42)

    instruction = cpu.step()

    assert instruction.word == 0x6A42
    assert instruction.mnemonic == "LD"
    assert cpu.state.v[0xA] == 0x42
    assert cpu.state.pc == 0x202
    assert cpu.instruction_count == 1


def test_load_copies_program_to_start() -> None:
    cpu = make_cpu()

    length = cpu.load(bytes([0x12, 0x34, 0x56]))

    assert length == 3
    assert cpu.memory.snapshot(0x200, 3) == b"\x12\x34\x56"
    assert cpu.memory.read(0x1FF) == 0x00


def test_load_rejects_oversized_program_before_copying() -> None:
    cpu = make_cpu()

    with pytest.raises(ProgramTooLargeError) as excinfo:
        cpu.load(b"\x11" * (0x1000 - 0x200 + 1))

    assert excinfo.value.limit == 0xE00
    assert cpu.memory.snapshot() == bytes(0x1000)


def test_load_accepts_program_filling_memory() -> None:
    cpu = make_cpu()

    cpu.load(b"\x22" * 0xE00)

    assert cpu.memory.read(0xFFF) == 0x22


# ----------------------------------------------------------------------
# Flow control


def test_jp_sets_pc_without_increment() -> None:
    cpu = make_cpu(PROGRAM_START, 0x1ABC)

    cpu.step()

    assert cpu.state.pc == 0xABC


def test_call_pushes_pc_and_jumps() -> None:
    cpu = make_cpu(0xFF5, 0x2E48)
    cpu.state.sp = 1
    cpu.state.stack[1] = 0x00E

    cpu.step()

    assert cpu.state.sp == 2
    assert cpu.state.stack[:3] == [0x000, 0x00E, 0xFF5]
    assert cpu.state.pc == 0xE48


def test_call_then_return_restores_pc() -> None:
    cpu = make_cpu(0xFF5, 0x2E48)
    cpu.memory.write_instruction(0xE48, 0x00EE)

    cpu.step()
    assert cpu.state.pc == 0xE48
    assert cpu.state.stack[cpu.state.sp] == 0xFF5

    cpu.step()
    assert cpu.state.pc == 0xFF5
    assert cpu.state.sp == 0


def test_ret_pops_top_of_stack() -> None:
    cpu = make_cpu(0x400, 0x00EE)
    cpu.state.sp = 2
    cpu.state.stack[1] = 0x0AB
    cpu.state.stack[2] = 0x5D2

    cpu.step()

    assert cpu.state.sp == 1
    assert cpu.state.pc == 0x5D2


def test_ret_with_empty_stack_underflows() -> None:
    cpu = make_cpu(0x400, 0x00EE)
    before = cpu.snapshot()

    with pytest.raises(StackUnderflowError) as excinfo:
        cpu.step()

    assert excinfo.value.sp == 0
    assert excinfo.value.address == 0x400
    assert cpu.state == before


def test_call_with_full_stack_overflows() -> None:
    cpu = make_cpu(0x400, 0x2600)
    cpu.state.sp = 15
    before = cpu.snapshot()

    with pytest.raises(StackOverflowError):
        cpu.step()

    assert cpu.state == before


def test_nested_calls_fill_fifteen_levels() -> None:
    cpu = make_cpu(0x200)
    # Each subroutine at 0x200 + 2k calls the next one.
    for level in range(16):
        address = 0x200 + 2 * level
        cpu.memory.write_instruction(address, 0x2000 | (address + 2))

    for _ in range(15):
        cpu.step()
    assert cpu.state.sp == 15
    assert cpu.state.stack[1:16] == [0x200 + 2 * k for k in range(15)]

    with pytest.raises(StackOverflowError):
        cpu.step()


def test_jp_v0_adds_offset() -> None:
    cpu = make_cpu(PROGRAM_START, 0xB300)
    cpu.state.v[0] = 0x24

    cpu.step()

    assert cpu.state.pc == 0x324


def test_jp_v0_out_of_memory_faults_without_moving() -> None:
    cpu = make_cpu(PROGRAM_START, 0xBF80)
    cpu.state.v[0] = 0xFF

    with pytest.raises(AddressOutOfRangeError) as excinfo:
        cpu.step()

    assert excinfo.value.source == "pc"
    assert excinfo.value.address == 0x107F
    assert cpu.state.pc == PROGRAM_START


# ----------------------------------------------------------------------
# Skips


@pytest.mark.parametrize(
    ("word", "vx", "expected_pc"),
    [
        (0x3142, 0x42, 0x204),
        (0x3142, 0x41, 0x202),
        (0x4142, 0x41, 0x204),
        (0x4142, 0x42, 0x202),
    ],
)
def test_skip_against_immediate(word: int, vx: int, expected_pc: int) -> None:
    cpu = make_cpu(PROGRAM_START, word)
    cpu.state.v[1] = vx

    cpu.step()

    assert cpu.state.pc == expected_pc


@pytest.mark.parametrize(("vy", "expected_pc"), [(0x7F, 0x204), (0x80, 0x202)])
def test_skip_if_registers_equal(vy: int, expected_pc: int) -> None:
    cpu = make_cpu(PROGRAM_START, 0x5120)
    cpu.state.v[1] = 0x7F
    cpu.state.v[2] = vy

    cpu.step()

    assert cpu.state.pc == expected_pc


def test_skip_past_end_of_memory_faults() -> None:
    cpu = make_cpu(0xFFC, 0x3000)

    with pytest.raises(AddressOutOfRangeError):
        cpu.step()

    assert cpu.state.pc == 0xFFC


def test_fetch_past_end_of_memory_faults() -> None:
    cpu = make_cpu(0xFFF)

    with pytest.raises(AddressOutOfRangeError) as excinfo:
        cpu.step()

    assert excinfo.value.source == "pc"
    assert excinfo.value.length == 2


def test_sequential_step_off_the_end_faults() -> None:
    cpu = make_cpu(0xFFE, 0x6001)

    with pytest.raises(AddressOutOfRangeError):
        cpu.step()

    assert cpu.state.v[0] == 0
    assert cpu.state.pc == 0xFFE


# ----------------------------------------------------------------------
# Loads and immediate arithmetic


def test_ld_register_copies_value() -> None:
    cpu = make_cpu(PROGRAM_START, 0x8450)
    cpu.state.v[5] = 0xC3

    cpu.step()

    assert cpu.state.v[4] == 0xC3
    assert cpu.state.v[5] == 0xC3
    assert cpu.state.pc == 0x202


def test_add_immediate_wraps_without_flag() -> None:
    cpu = make_cpu(PROGRAM_START, 0x72F0)
    cpu.state.v[2] = 0x20
    cpu.state.v[FLAG_REGISTER] = 0x77

    cpu.step()

    assert cpu.state.v[2] == 0x10
    assert cpu.state.v[FLAG_REGISTER] == 0x77


@pytest.mark.parametrize(
    ("word", "x", "y", "expected"),
    [
        (0x8121, 0x01, 0x10, 0x11),
        (0x8122, 0x3C, 0x0F, 0x0C),
        (0x8123, 0xFF, 0x0F, 0xF0),
    ],
)
def test_bitwise_ops_leave_flag(word: int, x: int, y: int, expected: int) -> None:
    cpu = make_cpu(PROGRAM_START, word)
    cpu.state.v[1] = x
    cpu.state.v[2] = y
    cpu.state.v[FLAG_REGISTER] = 0x05

    cpu.step()

    assert cpu.state.v[1] == expected
    assert cpu.state.v[2] == y
    assert cpu.state.v[FLAG_REGISTER] == 0x05
    assert cpu.state.pc == 0x202


def test_rnd_masks_injected_byte() -> None:
    cpu = make_cpu(PROGRAM_START, 0xC30F, 0xC4F0, random_source=lambda: 0xAB)

    cpu.step()
    cpu.step()

    assert cpu.state.v[3] == 0x0B
    assert cpu.state.v[4] == 0xA0
    assert cpu.state.pc == 0x204


def test_rnd_sequence_is_reproducible_with_seed() -> None:
    words = [0xC0FF] * 8
    first = make_cpu(PROGRAM_START, *words, random_source=default_random_source(1234))
    second = make_cpu(PROGRAM_START, *words, random_source=default_random_source(1234))

    values_first = []
    values_second = []
    for _ in words:
        first.step()
        second.step()
        values_first.append(first.state.v[0])
        values_second.append(second.state.v[0])

    assert values_first == values_second


# ----------------------------------------------------------------------
# Address register and timers


def test_ld_i_sets_address() -> None:
    cpu = make_cpu(PROGRAM_START, 0xA123)

    cpu.step()

    assert cpu.state.i == 0x123
    assert cpu.state.pc == 0x202


def test_add_i_adds_register() -> None:
    cpu = make_cpu(PROGRAM_START, 0xF51E)
    cpu.state.i = 0x0F0
    cpu.state.v[5] = 0x20

    cpu.step()

    assert cpu.state.i == 0x110
    assert cpu.state.v[FLAG_REGISTER] == 0


def test_add_i_wraps_at_sixteen_bits() -> None:
    cpu = make_cpu(PROGRAM_START, 0xF51E)
    cpu.state.i = 0xFFFF
    cpu.state.v[5] = 0x02

    cpu.step()

    assert cpu.state.i == 0x0001


def test_timer_opcodes_move_values() -> None:
    cpu = make_cpu(PROGRAM_START, 0xF215, 0xF318, 0xF407)
    cpu.state.v[2] = 0x30
    cpu.state.v[3] = 0x05

    cpu.step()
    cpu.step()
    cpu.step()

    assert cpu.state.delay_timer == 0x30
    assert cpu.state.sound_timer == 0x05
    assert cpu.state.v[4] == 0x30
    assert cpu.sound_active
    assert cpu.state.pc == 0x206


def test_step_does_not_tick_timers() -> None:
    cpu = make_cpu(PROGRAM_START, 0x6000, 0x6000)
    cpu.state.delay_timer = 3
    cpu.state.sound_timer = 3

    cpu.step()
    cpu.step()

    assert cpu.state.delay_timer == 3
    assert cpu.state.sound_timer == 3


def test_tick_timers_counts_down_to_zero() -> None:
    cpu = make_cpu()
    cpu.state.delay_timer = 2
    cpu.state.sound_timer = 1

    cpu.tick_timers()
    assert (cpu.state.delay_timer, cpu.state.sound_timer) == (1, 0)
    assert not cpu.sound_active

    cpu.tick_timers()
    cpu.tick_timers()
    assert (cpu.state.delay_timer, cpu.state.sound_timer) == (0, 0)


# ----------------------------------------------------------------------
# Bulk memory


@pytest.mark.parametrize(("value", "digits"), [(154, (1, 5, 4)), (0, (0, 0, 0)), (255, (2, 5, 5)), (7, (0, 0, 7))])
def test_bcd_writes_decimal_digits(value: int, digits: tuple[int, int, int]) -> None:
    cpu = make_cpu(PROGRAM_START, 0xF733)
    cpu.state.v[7] = value
    cpu.state.i = 0x300

    cpu.step()

    assert tuple(cpu.memory.snapshot(0x300, 3)) == digits
    assert cpu.state.i == 0x300
    assert cpu.state.pc == 0x202


def test_bcd_at_last_addresses_fits() -> None:
    cpu = make_cpu(PROGRAM_START, 0xF733)
    cpu.state.v[7] = 154
    cpu.state.i = 0xFFD

    cpu.step()

    assert cpu.memory.snapshot(0xFFD, 3) == bytes([1, 5, 4])


def test_bcd_past_end_faults_without_writing() -> None:
    cpu = make_cpu(PROGRAM_START, 0xF733)
    cpu.state.v[7] = 154
    cpu.state.i = 0xFFE

    with pytest.raises(AddressOutOfRangeError) as excinfo:
        cpu.step()

    assert excinfo.value.source == "I"
    assert excinfo.value.length == 3
    assert cpu.memory.snapshot(0xFFE, 2) == b"\x00\x00"
    assert cpu.state.pc == PROGRAM_START


def test_store_registers_is_inclusive() -> None:
    cpu = make_cpu(PROGRAM_START, 0xF355)
    cpu.state.v[:5] = [0x10, 0x20, 0x30, 0x40, 0x50]
    cpu.state.i = 0x400

    cpu.step()

    assert cpu.memory.snapshot(0x400, 5) == bytes([0x10, 0x20, 0x30, 0x40, 0x00])
    assert cpu.state.i == 0x400
    assert cpu.state.pc == 0x202


def test_load_registers_is_inclusive() -> None:
    cpu = make_cpu(PROGRAM_START, 0xF265)
    cpu.memory.load_image(0x400, bytes([0xA1, 0xB2, 0xC3, 0xD4]))
    cpu.state.i = 0x400

    cpu.step()

    assert cpu.state.v[:4] == [0xA1, 0xB2, 0xC3, 0x00]
    assert cpu.state.i == 0x400


def test_dump_then_load_round_trips_registers() -> None:
    cpu = make_cpu(PROGRAM_START, 0xFF55)
    original = [(index * 37 + 11) & 0xFF for index in range(16)]
    cpu.state.v = list(original)
    cpu.state.i = 0x600

    cpu.step()

    cpu.state.v = [0] * 16
    cpu.memory.write_instruction(0x202, 0xFF65)
    cpu.step()

    assert cpu.state.v == original
    assert cpu.state.i == 0x600


@pytest.mark.parametrize("word", [0xF455, 0xF465])
def test_bulk_transfer_past_end_faults(word: int) -> None:
    cpu = make_cpu(PROGRAM_START, word)
    cpu.state.v[:5] = [1, 2, 3, 4, 5]
    cpu.state.i = 0xFFC
    before = cpu.snapshot()

    with pytest.raises(AddressOutOfRangeError):
        cpu.step()

    assert cpu.state == before
    assert cpu.memory.snapshot(0xFFC, 4) == bytes(4)


# ----------------------------------------------------------------------
# Decode failures


@pytest.mark.parametrize(
    "word",
    [0x0000, 0x00E0, 0x0123, 0x8008, 0x800F, 0xD123, 0xE19E, 0xE1A1, 0xF10A, 0xF129, 0xF1FF],
)
def test_unrecognized_instruction_leaves_state_unchanged(word: int) -> None:
    cpu = make_cpu(0x240, word)
    cpu.state.v[1] = 0x12
    cpu.state.i = 0x345
    before = cpu.snapshot()

    with pytest.raises(UnrecognizedInstructionError) as excinfo:
        cpu.step()

    assert excinfo.value.word == word
    assert excinfo.value.address == 0x240
    assert cpu.state == before
    assert cpu.instruction_count == 0


def test_counting_loop_program() -> None:
    program = [
        0x6A05,  # LD VA, 5
        0x6B00,  # LD VB, 0
        0x7B01,  # ADD VB, 1
        0x5AB0,  # SE VA, VB
        0x1204,  # JP 0x204
        0xA300,  # LD I, 0x300
        0xFB33,  # LD B, VB
        0x120E,  # JP 0x20E
    ]
    cpu = make_cpu(PROGRAM_START, *program)

    for _ in range(100):
        if cpu.state.pc == 0x20E:
            break
        cpu.step()

    assert cpu.state.pc == 0x20E
    assert cpu.instruction_count == 18
    assert cpu.state.v[0xB] == 5
    assert cpu.memory.snapshot(0x300, 3) == bytes([0, 0, 5])
