"""Tests for the execution engine."""

import pytest
from chip8 import Machine, LoadError, MachineHalted
from chip8.errors import (
    KeypadAccessError,
    MemoryAccessError,
    OutOfBoundsAccess,
    StackOverflow,
    StackUnderflow,
)
from chip8.instructions import execute_8xy4, execute_8xy5, execute_8xy7
from chip8.memory import MAX_IMAGE_SIZE
from chip8.opcode import Opcode


def rom(*words: int) -> bytes:
    return b"".join(w.to_bytes(2, "big") for w in words)


def boot(*words: int, seed: int = 0) -> Machine:
    machine = Machine(seed=seed)
    machine.load_image(rom(*words))
    return machine


def run(*words: int, steps: int = None) -> Machine:
    machine = boot(*words)
    for _ in range(len(words) if steps is None else steps):
        machine.step()
    return machine


class TestConstruction:
    """Power-on state."""

    def test_initial_state(self):
        machine = Machine()
        state = machine.get_state()
        assert state["pc"] == 0x200
        assert state["v"] == [0] * 16
        assert state["i"] == 0
        assert state["sp"] == 0
        assert state["cycles"] == 0
        assert state["halted"] is False
        assert machine.memory.read(0) == 0xF0

    def test_load_full_image(self):
        machine = Machine()
        machine.load_image(bytes([0x11]) * MAX_IMAGE_SIZE)
        assert machine.memory.read(0xFFF) == 0x11

    def test_load_oversized_image(self):
        machine = boot(0x6001)
        before = machine.memory.snapshot()
        with pytest.raises(LoadError):
            machine.load_image(bytes(MAX_IMAGE_SIZE + 1))
        assert machine.memory.snapshot() == before

    def test_reset(self):
        machine = run(0x6A05, 0xA300, 0x00E0)
        machine.set_key(3, True)
        machine.reset()
        assert machine.cpu.pc == 0x200
        assert machine.cpu.v[0xA] == 0
        assert machine.memory.read(0x200) == 0
        assert machine.keypad.pressed_keys() == []
        assert machine.cycles == 0


class TestStep:
    """Cycle mechanics."""

    def test_step_result(self):
        machine = boot(0x6A05)
        result = machine.step()
        assert result.addr == 0x200
        assert result.opcode == 0x6A05
        assert result.mnemonic == "LD VA, 0x05"
        assert result.beep is False

    def test_sequential_instructions_advance_by_two(self):
        machine = run(0x6001, 0x6102, 0x6203)
        assert machine.cpu.v[:3] == [1, 2, 3]
        assert machine.cpu.pc == 0x206
        assert machine.cycles == 3

    def test_unmatched_opcode_is_noop(self):
        machine = run(0x6007, 0x5121, 0x8128, 0xF0FF)
        assert machine.cpu.pc == 0x208
        assert machine.cpu.v[0] == 7
        assert machine.halted is False

    def test_sys_is_noop(self):
        machine = run(0x0123)
        assert machine.cpu.pc == 0x202


class TestFlowControl:
    """Jumps, calls and skips."""

    def test_jump(self):
        machine = run(0x1208, steps=1)
        assert machine.cpu.pc == 0x208

    def test_call_then_return(self):
        """Return lands on the instruction after the call."""
        machine = boot(0x2206, 0x6101, 0x1204, 0x00EE)
        machine.step()
        assert machine.cpu.pc == 0x206
        assert machine.cpu.sp == 1
        assert machine.cpu.stack[0] == 0x202
        machine.step()
        assert machine.cpu.pc == 0x202
        assert machine.cpu.sp == 0
        machine.step()
        assert machine.cpu.v[1] == 1

    def test_nested_calls(self):
        # 200: CALL 206, 202: JP 202, 204: (unused), 206: CALL 20A, 208: RET, 20A: RET
        machine = boot(0x2206, 0x1202, 0x0000, 0x220A, 0x00EE, 0x00EE)
        pcs = []
        for _ in range(4):
            machine.step()
            pcs.append(machine.cpu.pc)
        assert pcs == [0x206, 0x20A, 0x208, 0x202]

    @pytest.mark.parametrize("words,skipped", [
        ((0x6042, 0x3042), True),
        ((0x6042, 0x3043), False),
        ((0x6042, 0x4043), True),
        ((0x6042, 0x4042), False),
        ((0x6009, 0x6109, 0x5010), True),
        ((0x6009, 0x6108, 0x5010), False),
        ((0x6009, 0x6108, 0x9010), True),
        ((0x6009, 0x6109, 0x9010), False),
    ])
    def test_skips(self, words, skipped):
        machine = run(*words)
        end = 0x200 + 2 * len(words)
        assert machine.cpu.pc == (end + 2 if skipped else end)

    def test_jump_with_offset(self):
        machine = run(0x6004, 0xB300)
        assert machine.cpu.pc == 0x304

    def test_jump_with_offset_masks_to_12_bits(self):
        machine = run(0x60FF, 0xBFFF)
        assert machine.cpu.pc == (0xFF + 0xFFF) & 0xFFF


class TestRegisters:
    """Register loads and arithmetic."""

    def test_load_and_add_immediate(self):
        machine = run(0x6AFE, 0x7A03)
        assert machine.cpu.v[0xA] == 0x01

    def test_add_immediate_leaves_flag(self):
        machine = run(0x6F07, 0x60FF, 0x7002)
        assert machine.cpu.v[0] == 1
        assert machine.cpu.v[0xF] == 7

    def test_register_copy_and_logic(self):
        machine = run(0x60F0, 0x613C, 0x8200, 0x8211, 0x8300, 0x8312, 0x8400, 0x8413, 0x8510)
        assert machine.cpu.v[2] == 0xFC
        assert machine.cpu.v[3] == 0x30
        assert machine.cpu.v[4] == 0xCC
        assert machine.cpu.v[5] == 0x3C

    @pytest.mark.parametrize("value,result,flag", [
        (0x01, 0x00, 1),
        (0x02, 0x01, 0),
        (0xFF, 0x7F, 1),
    ])
    def test_shift_right(self, value, result, flag):
        machine = run(0x6000 | value, 0x8006)
        assert machine.cpu.v[0] == result
        assert machine.cpu.v[0xF] == flag

    @pytest.mark.parametrize("value,result,flag", [
        (0x80, 0x00, 1),
        (0x40, 0x80, 0),
        (0xFF, 0xFE, 1),
    ])
    def test_shift_left_flag_is_normalized(self, value, result, flag):
        machine = run(0x6000 | value, 0x800E)
        assert machine.cpu.v[0] == result
        assert machine.cpu.v[0xF] == flag

    def test_flag_register_as_destination_keeps_flag(self):
        machine = run(0x6FFF, 0x6101, 0x8F14)
        assert machine.cpu.v[0xF] == 1

    def test_random_is_masked(self):
        machine = run(0xC00F, 0xC100, 0xC2FF)
        assert machine.cpu.v[0] <= 0x0F
        assert machine.cpu.v[1] == 0

    def test_random_is_reproducible_with_seed(self):
        first = run(0xC0FF, 0xC1FF, 0xC2FF)
        second = run(0xC0FF, 0xC1FF, 0xC2FF)
        assert first.cpu.v[:3] == second.cpu.v[:3]


def _arith(machine: Machine, executor, vx: int, vy: int):
    machine.cpu.v[1] = vx
    machine.cpu.v[2] = vy
    executor(Opcode.from_word(0x8120), machine)
    return machine.cpu.v[1], machine.cpu.v[0xF]


class TestArithmeticFlags:
    """Exhaustive flag tables for add and subtract."""

    def test_add_all_pairs(self):
        machine = Machine()
        for a in range(256):
            for b in range(256):
                assert _arith(machine, execute_8xy4, a, b) == ((a + b) & 0xFF, 1 if a + b > 0xFF else 0)

    def test_sub_all_pairs(self):
        machine = Machine()
        for a in range(256):
            for b in range(256):
                assert _arith(machine, execute_8xy5, a, b) == ((a - b) & 0xFF, 0 if b > a else 1)

    def test_subn_all_pairs(self):
        machine = Machine()
        for a in range(256):
            for b in range(256):
                assert _arith(machine, execute_8xy7, a, b) == ((b - a) & 0xFF, 0 if a > b else 1)

    def test_add_via_step(self):
        machine = run(0x60C8, 0x6164, 0x8014)
        assert machine.cpu.v[0] == 0x2C
        assert machine.cpu.v[0xF] == 1


class TestDrawing:
    """Screen opcodes."""

    def test_clear_screen(self):
        machine = boot(0xA000, 0xD005, 0x6020, 0xD00F, 0x00E0)
        for _ in range(4):
            machine.step()
        assert machine.display.lit_count() > 0
        machine.step()
        assert all(pixel == 0 for line in machine.framebuffer() for pixel in line)

    def test_draw_glyph(self):
        # Glyph "1" at (0, 0)
        machine = run(0x6001, 0xF029, 0x6000, 0xD005)
        fb = machine.framebuffer()
        assert fb[0][:4] == [0, 0, 1, 0]
        assert fb[4][:4] == [0, 1, 1, 1]
        assert machine.cpu.v[0xF] == 0
        assert machine.cpu.i == 5

    def test_draw_twice_restores_screen(self):
        machine = boot(0x6A0C, 0x6B07, 0xA000, 0xDAB5, 0xDAB5)
        for _ in range(4):
            machine.step()
        assert machine.cpu.v[0xF] == 0
        assert machine.display.lit_count() == 14
        machine.step()
        assert machine.cpu.v[0xF] == 1
        assert machine.display.lit_count() == 0
        assert machine.cpu.i == 0

    def test_draw_wraps(self):
        machine = run(0x603E, 0x611F, 0xA000, 0xD011)
        fb = machine.framebuffer()
        assert fb[31][62:] == [1, 1]
        assert fb[31][:2] == [1, 1]

    def test_draw_past_end_of_memory_faults(self):
        machine = boot(0xAFFE, 0xD005)
        machine.step()
        with pytest.raises(MemoryAccessError):
            machine.step()

    def test_framebuffer_scaled(self):
        machine = run(0xA000, 0xD001)
        big = machine.framebuffer(scale=10)
        assert len(big) == 320
        assert len(big[0]) == 640
        assert big[0][:40] == [1] * 40


class TestKeys:
    """Keypad opcodes."""

    def test_skip_if_pressed(self):
        machine = boot(0x6005, 0xE09E)
        machine.set_key(5, True)
        machine.step()
        machine.step()
        assert machine.cpu.pc == 0x206

    def test_skip_if_pressed_not_taken(self):
        machine = run(0x6005, 0xE09E)
        assert machine.cpu.pc == 0x204

    def test_skip_if_not_pressed(self):
        machine = run(0x6005, 0xE0A1)
        assert machine.cpu.pc == 0x206

    def test_skip_if_not_pressed_not_taken(self):
        machine = boot(0x6005, 0xE0A1)
        machine.set_key(5, True)
        machine.step()
        machine.step()
        assert machine.cpu.pc == 0x204

    def test_wait_for_key(self):
        machine = boot(0x6007, 0xF00A, 0x6101)
        machine.step()
        for _ in range(5):
            machine.step()
            assert machine.cpu.pc == 0x202
        machine.set_key(7, True)
        machine.step()
        assert machine.cpu.pc == 0x204
        machine.step()
        assert machine.cpu.v[1] == 1

    def test_wait_for_key_keeps_timers_running(self):
        machine = boot(0x6003, 0xF015, 0xF00A)
        for _ in range(5):
            machine.step()
        assert machine.cpu.delay_timer == 0

    def test_key_index_out_of_range_faults(self):
        machine = boot(0x6010, 0xE09E)
        machine.step()
        with pytest.raises(KeypadAccessError) as excinfo:
            machine.step()
        assert excinfo.value.addr == 0x202
        assert excinfo.value.opcode == 0xE09E


class TestTimers:
    """Delay and sound timers."""

    def test_delay_timer_round_trip(self):
        machine = run(0x6009, 0xF015, 0xF107)
        # Set to 9, ticked on that cycle, read on the next then ticked again
        assert machine.cpu.v[1] == 8
        assert machine.cpu.delay_timer == 7

    def test_sound_timer_one_beeps_once(self):
        machine = boot(0x6000, 0x6000, 0x6000)
        machine.cpu.sound_timer = 1
        beeps = [machine.step().beep for _ in range(3)]
        assert beeps == [True, False, False]
        assert machine.cpu.sound_timer == 0

    def test_sound_timer_zero_never_beeps(self):
        machine = boot(0x6000, 0x6000)
        assert not machine.step().beep
        assert not machine.step().beep

    def test_sound_timer_set_by_opcode(self):
        machine = boot(0x6003, 0xF018, 0x6000, 0x6000, 0x6000)
        beeps = [machine.step().beep for _ in range(5)]
        assert beeps == [False, False, False, True, False]

    def test_beep_listener(self):
        calls = []
        machine = boot(0x6000)
        machine.on_beep(lambda: calls.append(True))
        machine.cpu.sound_timer = 1
        machine.step()
        assert calls == [True]


class TestIndexAndMemory:
    """Index register and bulk memory opcodes."""

    def test_set_index(self):
        machine = run(0xA2F0)
        assert machine.cpu.i == 0x2F0

    def test_add_to_index_leaves_flag(self):
        machine = run(0xAFFF, 0x6002, 0x6F05, 0xF01E)
        assert machine.cpu.i == 0x1001
        assert machine.cpu.v[0xF] == 5

    @pytest.mark.parametrize("digit", range(16))
    def test_glyph_address(self, digit):
        machine = run(0x6000 | digit, 0xF029)
        assert machine.cpu.i == digit * 5

    @pytest.mark.parametrize("value,digits", [
        (157, [1, 5, 7]),
        (0, [0, 0, 0]),
        (255, [2, 5, 5]),
        (9, [0, 0, 9]),
    ])
    def test_bcd(self, value, digits):
        machine = run(0xA300, 0x6000 | value, 0xF033)
        assert [machine.memory.read(0x300 + k) for k in range(3)] == digits
        assert machine.cpu.i == 0x300

    def test_dump_then_load_round_trips(self):
        machine = boot(0xA400, 0xFF55, 0xFF65)
        values = [(17 * k + 3) & 0xFF for k in range(16)]
        machine.cpu.v = list(values)
        machine.step()
        machine.step()
        machine.cpu.v = [0] * 16
        machine.step()
        assert machine.cpu.v == values
        assert machine.cpu.i == 0x400

    def test_dump_partial(self):
        machine = run(0x6011, 0x6122, 0x6233, 0xA400, 0xF155)
        assert machine.memory.read_block(0x400, 3) == bytes([0x11, 0x22, 0x00])

    def test_load_partial(self):
        machine = boot(0xA208, 0xF165, 0x0000, 0x0000, 0xABCD)
        machine.step()
        machine.step()
        assert machine.cpu.v[:3] == [0xAB, 0xCD, 0x00]


class TestFaults:
    """Out-of-bounds conditions halt the machine."""

    def test_stack_overflow(self):
        # 200: CALL 200, forever
        machine = boot(0x2200)
        for _ in range(16):
            machine.step()
        with pytest.raises(StackOverflow) as excinfo:
            machine.step()
        assert excinfo.value.addr == 0x200
        assert excinfo.value.opcode == 0x2200
        assert excinfo.value.step == 17
        assert machine.halted

    def test_stack_underflow(self):
        machine = boot(0x00EE)
        with pytest.raises(StackUnderflow):
            machine.step()
        assert isinstance(machine.fault, OutOfBoundsAccess)

    def test_halted_machine_refuses_to_step(self):
        machine = boot(0x00EE)
        with pytest.raises(StackUnderflow):
            machine.step()
        with pytest.raises(MachineHalted) as excinfo:
            machine.step()
        assert excinfo.value.addr == 0x200

    def test_reset_clears_fault(self):
        machine = boot(0x00EE)
        with pytest.raises(StackUnderflow):
            machine.step()
        machine.reset()
        assert not machine.halted

    def test_dump_past_end_writes_nothing(self):
        machine = boot(0xAFFE, 0x6001, 0x6102, 0xF255)
        for _ in range(3):
            machine.step()
        with pytest.raises(MemoryAccessError):
            machine.step()
        assert machine.memory.read(0xFFE) == 0
        assert machine.memory.read(0xFFF) == 0

    def test_fetch_at_last_address(self):
        machine = boot(0x1FFF)
        machine.step()
        with pytest.raises(MemoryAccessError) as excinfo:
            machine.step()
        assert excinfo.value.addr == 0xFFF
        assert excinfo.value.opcode is None

    def test_faulting_cycle_skips_timers(self):
        machine = boot(0x00EE)
        machine.cpu.sound_timer = 1
        with pytest.raises(StackUnderflow):
            machine.step()
        assert machine.cpu.sound_timer == 1

    def test_error_info(self):
        machine = boot(0x00EE)
        with pytest.raises(StackUnderflow) as excinfo:
            machine.step()
        info = excinfo.value.to_error_info().to_dict()
        assert info == {
            "type": "StackUnderflow",
            "message": "Return with empty call stack",
            "step": 1,
            "addr": 0x200,
            "opcode": 0x00EE,
        }
        assert str(excinfo.value) == "Return with empty call stack at 0x200 (opcode 00EE)"
