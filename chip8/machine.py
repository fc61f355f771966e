"""Fetch-decode-execute engine for the CHIP-8 interpreter."""

import logging
import random
from dataclasses import dataclass
from typing import Callable, Optional

from .cpu import CPU
from .display import Framebuffer
from .errors import Chip8RuntimeError, MachineHalted
from .instructions import disassemble, execute_instruction, lookup
from .keypad import Keypad
from .memory import Memory, PROGRAM_START
from .opcode import Opcode

logger = logging.getLogger(__name__)

BeepListener = Callable[[], None]


@dataclass
class StepResult:
    """Outcome of one machine cycle."""
    addr: int
    opcode: int
    mnemonic: str
    beep: bool = False


class Machine:
    """A complete CHIP-8 machine: memory, CPU, framebuffer and keypad.

    The driver calls `step` repeatedly; each call runs one instruction and
    one timer tick. Keys may be set from another thread through `set_key`,
    and `framebuffer` may be read from another thread at any time.
    """

    def __init__(self, seed: Optional[int] = None):
        self.seed = seed
        self.rng = random.Random(seed)
        self.memory = Memory()
        self.cpu = CPU(start_address=PROGRAM_START)
        self.display = Framebuffer()
        self.keypad = Keypad()
        self.cycles: int = 0
        self.fault: Optional[Chip8RuntimeError] = None
        self._beep_listeners: list[BeepListener] = []

    @property
    def halted(self) -> bool:
        return self.fault is not None

    def reset(self) -> None:
        """Return to the power-on state, discarding the loaded program."""
        self.rng = random.Random(self.seed)
        self.memory = Memory()
        self.cpu.reset(start_address=PROGRAM_START)
        self.display.clear()
        self.keypad.release_all()
        self.cycles = 0
        self.fault = None

    def load_image(self, image: bytes) -> None:
        """Copy a program image into memory at 0x200.

        Raises:
            LoadError: if the image does not fit; memory is left untouched
        """
        self.memory.load_image(image)

    def on_beep(self, listener: BeepListener) -> None:
        """Register a callback run whenever the sound timer runs out."""
        self._beep_listeners.append(listener)

    def set_key(self, index: int, pressed: bool) -> None:
        self.keypad.set_key(index, pressed)

    def framebuffer(self, scale: int = 1) -> list[list[int]]:
        """Copy of the screen, optionally expanded by an integer factor."""
        if scale == 1:
            return self.display.snapshot()
        return self.display.scaled(scale)

    def fetch(self) -> Opcode:
        """Read the instruction at PC and advance PC past it."""
        word = self.memory.read_word(self.cpu.pc)
        self.cpu.pc += 2
        return Opcode.from_word(word)

    def step(self) -> StepResult:
        """Run one fetch, decode, execute and timer cycle.

        Raises:
            OutOfBoundsAccess: the instruction touched an invalid address,
                register, key or stack slot; the machine is halted
            MachineHalted: a previous step faulted
        """
        if self.fault is not None:
            raise MachineHalted(
                f"Machine halted after {self.fault.__class__.__name__}",
                step=self.cycles,
                addr=self.fault.addr,
                opcode=self.fault.opcode,
            )

        addr = self.cpu.pc
        op: Optional[Opcode] = None
        try:
            op = self.fetch()
            if lookup(op) is None:
                logger.debug("Unmatched opcode %04X at 0x%03X ignored", op.word, addr)
            new_pc = execute_instruction(op, self)
        except Chip8RuntimeError as e:
            # Attach context to error
            e.step = self.cycles + 1
            e.addr = addr
            e.opcode = op.word if op is not None else None
            self.fault = e
            logger.warning("Execution fault: %s", e)
            raise

        if new_pc is not None:
            self.cpu.pc = new_pc

        self.cycles += 1
        beep = self.cpu.tick_timers()
        if beep:
            for listener in self._beep_listeners:
                listener()

        return StepResult(
            addr=addr,
            opcode=op.word,
            mnemonic=disassemble(op),
            beep=beep,
        )

    def get_state(self) -> dict:
        """Register and timer state plus cycle count."""
        state = self.cpu.get_state()
        state["cycles"] = self.cycles
        state["halted"] = self.halted
        return state
