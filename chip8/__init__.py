"""CHIP-8 Interpreter Core Package."""

from .machine import Machine, StepResult
from .runner import run_program, RunOptions, RunResult
from .errors import (
    Chip8Error,
    LoadError,
    Chip8RuntimeError,
    OutOfBoundsAccess,
    MachineHalted,
)
from .input import set_key, translate

__all__ = [
    "Machine",
    "StepResult",
    "run_program",
    "RunOptions",
    "RunResult",
    "Chip8Error",
    "LoadError",
    "Chip8RuntimeError",
    "OutOfBoundsAccess",
    "MachineHalted",
    "set_key",
    "translate",
]
