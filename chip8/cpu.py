"""CPU state model for the CHIP-8 interpreter."""

from .errors import RegisterAccessError, StackOverflow, StackUnderflow
from .memory import PROGRAM_START

NUM_REGISTERS = 16
STACK_SIZE = 16
FLAG = 0xF


class CPU:
    """Register file, call stack and countdown timers."""

    def __init__(self, start_address: int = PROGRAM_START):
        self.v: list[int] = [0] * NUM_REGISTERS
        self.i: int = 0
        self.pc: int = start_address
        self.stack: list[int] = [0] * STACK_SIZE
        self.sp: int = 0
        self.delay_timer: int = 0
        self.sound_timer: int = 0

    def _check_register(self, index: int) -> None:
        if index < 0 or index >= NUM_REGISTERS:
            raise RegisterAccessError(f"Register index out of range: {index}")

    def get_reg(self, index: int) -> int:
        """Read register Vindex."""
        self._check_register(index)
        return self.v[index]

    def set_reg(self, index: int, value: int) -> None:
        """Set register Vindex, keeping the low 8 bits."""
        self._check_register(index)
        self.v[index] = value & 0xFF

    def set_flag(self, condition: bool) -> None:
        """Set VF to 1 or 0."""
        self.v[FLAG] = 1 if condition else 0

    def set_i(self, value: int) -> None:
        """Set the index register, keeping the low 16 bits."""
        self.i = value & 0xFFFF

    def push(self, addr: int) -> None:
        """Push a return address onto the call stack."""
        if self.sp >= STACK_SIZE:
            raise StackOverflow(f"Call stack overflow: depth {STACK_SIZE} exceeded")
        self.stack[self.sp] = addr & 0xFFFF
        self.sp += 1

    def pop(self) -> int:
        """Pop the most recent return address."""
        if self.sp <= 0:
            raise StackUnderflow("Return with empty call stack")
        self.sp -= 1
        return self.stack[self.sp]

    def tick_timers(self) -> bool:
        """Decrement both timers toward zero.

        Returns:
            True when the sound timer has just run out
        """
        if self.delay_timer > 0:
            self.delay_timer -= 1
        beep = False
        if self.sound_timer > 0:
            beep = self.sound_timer == 1
            self.sound_timer -= 1
        return beep

    def get_state(self) -> dict:
        """Get current register state as dictionary."""
        return {
            "v": list(self.v),
            "i": self.i,
            "pc": self.pc,
            "sp": self.sp,
            "stack": self.stack[:self.sp],
            "delay_timer": self.delay_timer,
            "sound_timer": self.sound_timer,
        }

    def reset(self, start_address: int = PROGRAM_START) -> None:
        """Reset CPU to initial state."""
        self.v = [0] * NUM_REGISTERS
        self.i = 0
        self.pc = start_address
        self.stack = [0] * STACK_SIZE
        self.sp = 0
        self.delay_timer = 0
        self.sound_timer = 0
