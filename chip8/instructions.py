"""Instruction execution for the CHIP-8 interpreter.

Every executor receives the decoded opcode and the machine, with the program
counter already advanced past the instruction. Executors return a new PC for
control transfers, or None to continue with the next instruction.
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Optional

from .font import glyph_address
from .opcode import Opcode

if TYPE_CHECKING:
    from .machine import Machine

ADDRESS_MASK = 0x0FFF
INSTRUCTION_SIZE = 2

# Instruction executor type
InstructionExecutor = Callable[[Opcode, "Machine"], Optional[int]]


def _skip_if(condition: bool, m: "Machine") -> Optional[int]:
    if condition:
        return m.cpu.pc + INSTRUCTION_SIZE
    return None


def execute_00e0(op: Opcode, m: "Machine") -> Optional[int]:
    """CLS: clear the framebuffer"""
    m.display.clear()
    return None


def execute_00ee(op: Opcode, m: "Machine") -> Optional[int]:
    """RET: PC := pop()"""
    return m.cpu.pop()


def execute_0nnn(op: Opcode, m: "Machine") -> Optional[int]:
    """SYS nnn: machine-code routine, ignored"""
    return None


def execute_1nnn(op: Opcode, m: "Machine") -> Optional[int]:
    """JP nnn: PC := nnn"""
    return op.nnn


def execute_2nnn(op: Opcode, m: "Machine") -> Optional[int]:
    """CALL nnn: push(PC), PC := nnn"""
    m.cpu.push(m.cpu.pc)
    return op.nnn


def execute_3xnn(op: Opcode, m: "Machine") -> Optional[int]:
    """SE Vx, nn: skip if Vx == nn"""
    return _skip_if(m.cpu.get_reg(op.x) == op.nn, m)


def execute_4xnn(op: Opcode, m: "Machine") -> Optional[int]:
    """SNE Vx, nn: skip if Vx != nn"""
    return _skip_if(m.cpu.get_reg(op.x) != op.nn, m)


def execute_5xy0(op: Opcode, m: "Machine") -> Optional[int]:
    """SE Vx, Vy: skip if Vx == Vy"""
    return _skip_if(m.cpu.get_reg(op.x) == m.cpu.get_reg(op.y), m)


def execute_6xnn(op: Opcode, m: "Machine") -> Optional[int]:
    """LD Vx, nn: Vx := nn"""
    m.cpu.set_reg(op.x, op.nn)
    return None


def execute_7xnn(op: Opcode, m: "Machine") -> Optional[int]:
    """ADD Vx, nn: Vx := Vx + nn, VF untouched"""
    m.cpu.set_reg(op.x, m.cpu.get_reg(op.x) + op.nn)
    return None


def execute_8xy0(op: Opcode, m: "Machine") -> Optional[int]:
    """LD Vx, Vy: Vx := Vy"""
    m.cpu.set_reg(op.x, m.cpu.get_reg(op.y))
    return None


def execute_8xy1(op: Opcode, m: "Machine") -> Optional[int]:
    """OR Vx, Vy: Vx := Vx | Vy"""
    m.cpu.set_reg(op.x, m.cpu.get_reg(op.x) | m.cpu.get_reg(op.y))
    return None


def execute_8xy2(op: Opcode, m: "Machine") -> Optional[int]:
    """AND Vx, Vy: Vx := Vx & Vy"""
    m.cpu.set_reg(op.x, m.cpu.get_reg(op.x) & m.cpu.get_reg(op.y))
    return None


def execute_8xy3(op: Opcode, m: "Machine") -> Optional[int]:
    """XOR Vx, Vy: Vx := Vx ^ Vy"""
    m.cpu.set_reg(op.x, m.cpu.get_reg(op.x) ^ m.cpu.get_reg(op.y))
    return None


def execute_8xy4(op: Opcode, m: "Machine") -> Optional[int]:
    """ADD Vx, Vy: Vx := Vx + Vy, VF := carry"""
    total = m.cpu.get_reg(op.x) + m.cpu.get_reg(op.y)
    m.cpu.set_reg(op.x, total)
    m.cpu.set_flag(total > 0xFF)
    return None


def execute_8xy5(op: Opcode, m: "Machine") -> Optional[int]:
    """SUB Vx, Vy: Vx := Vx - Vy, VF := not borrow"""
    vx = m.cpu.get_reg(op.x)
    vy = m.cpu.get_reg(op.y)
    m.cpu.set_reg(op.x, vx - vy)
    m.cpu.set_flag(vx >= vy)
    return None


def execute_8xy6(op: Opcode, m: "Machine") -> Optional[int]:
    """SHR Vx: VF := Vx & 1, Vx := Vx >> 1"""
    vx = m.cpu.get_reg(op.x)
    m.cpu.set_reg(op.x, vx >> 1)
    m.cpu.set_flag(vx & 0x01)
    return None


def execute_8xy7(op: Opcode, m: "Machine") -> Optional[int]:
    """SUBN Vx, Vy: Vx := Vy - Vx, VF := not borrow"""
    vx = m.cpu.get_reg(op.x)
    vy = m.cpu.get_reg(op.y)
    m.cpu.set_reg(op.x, vy - vx)
    m.cpu.set_flag(vy >= vx)
    return None


def execute_8xye(op: Opcode, m: "Machine") -> Optional[int]:
    """SHL Vx: VF := high bit of Vx (0 or 1), Vx := Vx << 1"""
    vx = m.cpu.get_reg(op.x)
    m.cpu.set_reg(op.x, vx << 1)
    m.cpu.set_flag(vx & 0x80)
    return None


def execute_9xy0(op: Opcode, m: "Machine") -> Optional[int]:
    """SNE Vx, Vy: skip if Vx != Vy"""
    return _skip_if(m.cpu.get_reg(op.x) != m.cpu.get_reg(op.y), m)


def execute_annn(op: Opcode, m: "Machine") -> Optional[int]:
    """LD I, nnn: I := nnn"""
    m.cpu.set_i(op.nnn)
    return None


def execute_bnnn(op: Opcode, m: "Machine") -> Optional[int]:
    """JP V0, nnn: PC := V0 + nnn"""
    return (m.cpu.get_reg(0) + op.nnn) & ADDRESS_MASK


def execute_cxnn(op: Opcode, m: "Machine") -> Optional[int]:
    """RND Vx, nn: Vx := random byte & nn"""
    m.cpu.set_reg(op.x, m.rng.randrange(256) & op.nn)
    return None


def execute_dxyn(op: Opcode, m: "Machine") -> Optional[int]:
    """DRW Vx, Vy, n: XOR sprite at I onto the screen, VF := collision"""
    x = m.cpu.get_reg(op.x)
    y = m.cpu.get_reg(op.y)
    rows = m.memory.read_block(m.cpu.i, op.n)
    m.cpu.set_flag(m.display.draw_sprite(x, y, rows))
    return None


def execute_ex9e(op: Opcode, m: "Machine") -> Optional[int]:
    """SKP Vx: skip if key Vx is pressed"""
    return _skip_if(m.keypad.is_pressed(m.cpu.get_reg(op.x)), m)


def execute_exa1(op: Opcode, m: "Machine") -> Optional[int]:
    """SKNP Vx: skip if key Vx is not pressed"""
    return _skip_if(not m.keypad.is_pressed(m.cpu.get_reg(op.x)), m)


def execute_fx07(op: Opcode, m: "Machine") -> Optional[int]:
    """LD Vx, DT: Vx := delay timer"""
    m.cpu.set_reg(op.x, m.cpu.delay_timer)
    return None


def execute_fx0a(op: Opcode, m: "Machine") -> Optional[int]:
    """LD Vx, K: repeat this instruction until key Vx is pressed"""
    if m.keypad.is_pressed(m.cpu.get_reg(op.x)):
        return None
    return m.cpu.pc - INSTRUCTION_SIZE


def execute_fx15(op: Opcode, m: "Machine") -> Optional[int]:
    """LD DT, Vx: delay timer := Vx"""
    m.cpu.delay_timer = m.cpu.get_reg(op.x)
    return None


def execute_fx18(op: Opcode, m: "Machine") -> Optional[int]:
    """LD ST, Vx: sound timer := Vx"""
    m.cpu.sound_timer = m.cpu.get_reg(op.x)
    return None


def execute_fx1e(op: Opcode, m: "Machine") -> Optional[int]:
    """ADD I, Vx: I := I + Vx, VF untouched"""
    m.cpu.set_i(m.cpu.i + m.cpu.get_reg(op.x))
    return None


def execute_fx29(op: Opcode, m: "Machine") -> Optional[int]:
    """LD F, Vx: I := address of glyph Vx"""
    m.cpu.set_i(glyph_address(m.cpu.get_reg(op.x)))
    return None


def execute_fx33(op: Opcode, m: "Machine") -> Optional[int]:
    """LD B, Vx: store hundreds, tens, ones of Vx at I, I+1, I+2"""
    vx = m.cpu.get_reg(op.x)
    m.memory.write_block(m.cpu.i, bytes([vx // 100, (vx // 10) % 10, vx % 10]))
    return None


def execute_fx55(op: Opcode, m: "Machine") -> Optional[int]:
    """LD [I], Vx: store V0..Vx at I, I unchanged"""
    m.memory.write_block(m.cpu.i, bytes(m.cpu.v[:op.x + 1]))
    return None


def execute_fx65(op: Opcode, m: "Machine") -> Optional[int]:
    """LD Vx, [I]: load V0..Vx from I, I unchanged"""
    for index, value in enumerate(m.memory.read_block(m.cpu.i, op.x + 1)):
        m.cpu.set_reg(index, value)
    return None


@dataclass(frozen=True)
class InstructionDef:
    """One row of the instruction table.

    `pattern` is the 4-character opcode template: hex digits must match the
    corresponding nibble exactly, letters (N, X, Y) match anything.
    """
    pattern: str
    mnemonic: str
    executor: InstructionExecutor

    @property
    def mask(self) -> int:
        return int("".join("F" if c in "0123456789ABCDEF" else "0" for c in self.pattern), 16)

    @property
    def value(self) -> int:
        return int("".join(c if c in "0123456789ABCDEF" else "0" for c in self.pattern), 16)

    def matches(self, op: Opcode) -> bool:
        return op.word & self.mask == self.value


# Instruction table. Order matters only for the 0 group, where 00E0 and 00EE
# must be tried before the 0NNN catch-all.
INSTRUCTION_TABLE: list[InstructionDef] = [
    InstructionDef("00E0", "CLS", execute_00e0),
    InstructionDef("00EE", "RET", execute_00ee),
    InstructionDef("0NNN", "SYS 0x{nnn:03X}", execute_0nnn),
    InstructionDef("1NNN", "JP 0x{nnn:03X}", execute_1nnn),
    InstructionDef("2NNN", "CALL 0x{nnn:03X}", execute_2nnn),
    InstructionDef("3XNN", "SE V{x:X}, 0x{nn:02X}", execute_3xnn),
    InstructionDef("4XNN", "SNE V{x:X}, 0x{nn:02X}", execute_4xnn),
    InstructionDef("5XY0", "SE V{x:X}, V{y:X}", execute_5xy0),
    InstructionDef("6XNN", "LD V{x:X}, 0x{nn:02X}", execute_6xnn),
    InstructionDef("7XNN", "ADD V{x:X}, 0x{nn:02X}", execute_7xnn),
    InstructionDef("8XY0", "LD V{x:X}, V{y:X}", execute_8xy0),
    InstructionDef("8XY1", "OR V{x:X}, V{y:X}", execute_8xy1),
    InstructionDef("8XY2", "AND V{x:X}, V{y:X}", execute_8xy2),
    InstructionDef("8XY3", "XOR V{x:X}, V{y:X}", execute_8xy3),
    InstructionDef("8XY4", "ADD V{x:X}, V{y:X}", execute_8xy4),
    InstructionDef("8XY5", "SUB V{x:X}, V{y:X}", execute_8xy5),
    InstructionDef("8XY6", "SHR V{x:X}", execute_8xy6),
    InstructionDef("8XY7", "SUBN V{x:X}, V{y:X}", execute_8xy7),
    InstructionDef("8XYE", "SHL V{x:X}", execute_8xye),
    InstructionDef("9XY0", "SNE V{x:X}, V{y:X}", execute_9xy0),
    InstructionDef("ANNN", "LD I, 0x{nnn:03X}", execute_annn),
    InstructionDef("BNNN", "JP V0, 0x{nnn:03X}", execute_bnnn),
    InstructionDef("CXNN", "RND V{x:X}, 0x{nn:02X}", execute_cxnn),
    InstructionDef("DXYN", "DRW V{x:X}, V{y:X}, {n}", execute_dxyn),
    InstructionDef("EX9E", "SKP V{x:X}", execute_ex9e),
    InstructionDef("EXA1", "SKNP V{x:X}", execute_exa1),
    InstructionDef("FX07", "LD V{x:X}, DT", execute_fx07),
    InstructionDef("FX0A", "LD V{x:X}, K", execute_fx0a),
    InstructionDef("FX15", "LD DT, V{x:X}", execute_fx15),
    InstructionDef("FX18", "LD ST, V{x:X}", execute_fx18),
    InstructionDef("FX1E", "ADD I, V{x:X}", execute_fx1e),
    InstructionDef("FX29", "LD F, V{x:X}", execute_fx29),
    InstructionDef("FX33", "LD B, V{x:X}", execute_fx33),
    InstructionDef("FX55", "LD [I], V{x:X}", execute_fx55),
    InstructionDef("FX65", "LD V{x:X}, [I]", execute_fx65),
]

# Rows grouped by leading nibble so lookup scans at most a handful of entries
_TABLE_BY_OP: dict[int, list[InstructionDef]] = {}
for _row in INSTRUCTION_TABLE:
    _TABLE_BY_OP.setdefault(int(_row.pattern[0], 16), []).append(_row)


def lookup(op: Opcode) -> Optional[InstructionDef]:
    """Find the table row for a decoded opcode, or None if unmatched."""
    for row in _TABLE_BY_OP.get(op.op, ()):
        if row.matches(op):
            return row
    return None


def disassemble(op: Opcode) -> str:
    """Render an opcode in assembler notation."""
    row = lookup(op)
    if row is None:
        return f"DW 0x{op.word:04X}"
    return row.mnemonic.format(x=op.x, y=op.y, n=op.n, nn=op.nn, nnn=op.nnn)


def execute_instruction(op: Opcode, m: "Machine") -> Optional[int]:
    """Execute a single instruction.

    Returns:
        New PC value if instruction transfers control, None otherwise
    """
    row = lookup(op)
    if row is None:
        return None
    return row.executor(op, m)
