"""Headless program runner with tracing for the CHIP-8 interpreter."""

import logging
from dataclasses import dataclass, field
from typing import Optional

from .errors import Chip8Error, ErrorInfo, StepLimitExceeded
from .machine import Machine, StepResult

logger = logging.getLogger(__name__)


@dataclass
class RunOptions:
    """Options for program execution."""
    max_cycles: int = 1000
    seed: Optional[int] = None
    trace: bool = True
    trace_limit: int = 1000
    trace_watch: list[int] = field(default_factory=list)
    pressed_keys: list[int] = field(default_factory=list)
    halt_on_idle: bool = True
    fail_on_limit: bool = False


@dataclass
class TraceRow:
    """Single row of execution trace."""
    cycle: int
    addr: int
    opcode: int
    mnemonic: str
    pc: int
    i: int
    v: list[int]
    beep: bool = False
    mem: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "cycle": self.cycle,
            "addr": self.addr,
            "opcode": f"{self.opcode:04X}",
            "mnemonic": self.mnemonic,
            "pc": self.pc,
            "i": self.i,
            "v": self.v,
            "beep": self.beep,
            "mem": self.mem,
        }


@dataclass
class RunResult:
    """Result of program execution."""
    status: str  # "ok" | "error"
    cycles_executed: int
    beeps: int
    idle: bool
    final_state: dict
    framebuffer: list[str]
    trace: list[dict]
    error: Optional[ErrorInfo] = None

    def to_dict(self) -> dict:
        result = {
            "status": self.status,
            "cycles_executed": self.cycles_executed,
            "beeps": self.beeps,
            "idle": self.idle,
            "final_state": self.final_state,
            "framebuffer": self.framebuffer,
            "trace": self.trace,
        }
        if self.error:
            result["error"] = self.error.to_dict()
        return result


def _is_idle_loop(machine: Machine, step: StepResult) -> bool:
    """A jump to its own address: the conventional end of a program."""
    return machine.cpu.pc == step.addr and step.opcode == (0x1000 | step.addr)


def run_program(image: bytes, options: Optional[RunOptions] = None) -> RunResult:
    """Run a CHIP-8 program image without a display.

    Args:
        image: Raw program bytes, loaded at 0x200
        options: Execution options

    Returns:
        RunResult with execution status, screen contents, and trace
    """
    if options is None:
        options = RunOptions()

    trace_rows: list[dict] = []
    error_info: Optional[ErrorInfo] = None
    beeps = 0
    idle = False

    machine = Machine(seed=options.seed)

    try:
        machine.load_image(image)
        for key in options.pressed_keys:
            machine.set_key(key, True)
    except Chip8Error as e:
        return RunResult(
            status="error",
            cycles_executed=0,
            beeps=0,
            idle=False,
            final_state=machine.get_state(),
            framebuffer=machine.display.to_strings(),
            trace=[],
            error=e.to_error_info(),
        )

    logger.info("Running %d-byte image for up to %d cycles", len(image), options.max_cycles)

    try:
        while machine.cycles < options.max_cycles:
            step = machine.step()
            if step.beep:
                beeps += 1

            # Record trace
            if options.trace and len(trace_rows) < options.trace_limit:
                row = TraceRow(
                    cycle=machine.cycles,
                    addr=step.addr,
                    opcode=step.opcode,
                    mnemonic=step.mnemonic,
                    pc=machine.cpu.pc,
                    i=machine.cpu.i,
                    v=list(machine.cpu.v),
                    beep=step.beep,
                    mem=machine.memory.get_watched(options.trace_watch),
                )
                trace_rows.append(row.to_dict())

            if options.halt_on_idle and _is_idle_loop(machine, step):
                idle = True
                break

        # Check cycle limit
        if options.fail_on_limit and not idle and machine.cycles >= options.max_cycles:
            raise StepLimitExceeded(
                f"Cycle limit exceeded: {options.max_cycles}",
                step=machine.cycles,
                addr=machine.cpu.pc,
            )

    except Chip8Error as e:
        error_info = e.to_error_info()

    logger.info("Run finished after %d cycles", machine.cycles)

    return RunResult(
        status="ok" if error_info is None else "error",
        cycles_executed=machine.cycles,
        beeps=beeps,
        idle=idle,
        final_state=machine.get_state(),
        framebuffer=machine.display.to_strings(),
        trace=trace_rows,
        error=error_info,
    )
