"""Custom exceptions for the CHIP-8 interpreter."""

from dataclasses import dataclass
from typing import Optional


@dataclass
class ErrorInfo:
    """Structured error information for API responses."""
    type: str
    message: str
    step: int
    addr: Optional[int] = None
    opcode: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "message": self.message,
            "step": self.step,
            "addr": self.addr,
            "opcode": self.opcode,
        }


class Chip8Error(Exception):
    """Base exception for all interpreter errors."""

    def __init__(
        self,
        message: str,
        step: int = 0,
        addr: Optional[int] = None,
        opcode: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.step = step
        self.addr = addr
        self.opcode = opcode

    def __str__(self) -> str:
        if self.addr is None:
            return self.message
        location = f"0x{self.addr:03X}"
        if self.opcode is not None:
            location += f" (opcode {self.opcode:04X})"
        return f"{self.message} at {location}"

    def to_error_info(self) -> ErrorInfo:
        return ErrorInfo(
            type=self.__class__.__name__,
            message=self.message,
            step=self.step,
            addr=self.addr,
            opcode=self.opcode,
        )


class LoadError(Chip8Error):
    """Program image cannot be loaded into memory."""
    pass


class Chip8RuntimeError(Chip8Error):
    """Error during program execution."""
    pass


class OutOfBoundsAccess(Chip8RuntimeError):
    """A computed index fell outside its structure."""
    pass


class MemoryAccessError(OutOfBoundsAccess):
    """Memory address out of bounds."""
    pass


class RegisterAccessError(OutOfBoundsAccess):
    """Register index out of bounds."""
    pass


class KeypadAccessError(OutOfBoundsAccess):
    """Key index out of bounds."""
    pass


class StackOverflow(OutOfBoundsAccess):
    """Subroutine call with every stack slot in use."""
    pass


class StackUnderflow(OutOfBoundsAccess):
    """Return executed with an empty stack."""
    pass


class MachineHalted(Chip8RuntimeError):
    """Step requested after an execution fault."""
    pass


class StepLimitExceeded(Chip8RuntimeError):
    """Maximum cycle count exceeded."""
    pass
