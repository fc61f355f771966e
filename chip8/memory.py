"""Memory model for the CHIP-8 interpreter."""

import logging

from .errors import LoadError, MemoryAccessError
from .font import FONT_BASE, FONTSET

logger = logging.getLogger(__name__)

MEMORY_SIZE = 4096
PROGRAM_START = 0x200
MAX_IMAGE_SIZE = MEMORY_SIZE - PROGRAM_START


class Memory:
    """Byte-addressed memory with the glyph table preloaded."""

    def __init__(self, size: int = MEMORY_SIZE, program_start: int = PROGRAM_START):
        self.size = size
        self.program_start = program_start
        self._data = bytearray(size)
        self._data[FONT_BASE:FONT_BASE + len(FONTSET)] = FONTSET

    def _check_bounds(self, addr: int) -> None:
        """Check if address is within valid range."""
        if addr < 0 or addr >= self.size:
            raise MemoryAccessError(f"Memory address out of range: 0x{addr:X}")

    def check_range(self, addr: int, length: int) -> None:
        """Check that every address in [addr, addr + length) is valid."""
        if length <= 0:
            return
        self._check_bounds(addr)
        self._check_bounds(addr + length - 1)

    def read(self, addr: int) -> int:
        """Read byte from memory address."""
        self._check_bounds(addr)
        return self._data[addr]

    def write(self, addr: int, value: int) -> None:
        """Write byte to memory address, keeping the low 8 bits."""
        self._check_bounds(addr)
        self._data[addr] = value & 0xFF

    def read_word(self, addr: int) -> int:
        """Read a big-endian 16-bit word."""
        self.check_range(addr, 2)
        return (self._data[addr] << 8) | self._data[addr + 1]

    def read_block(self, addr: int, length: int) -> bytes:
        """Read `length` bytes starting at `addr`."""
        self.check_range(addr, length)
        return bytes(self._data[addr:addr + length])

    def write_block(self, addr: int, data: bytes) -> None:
        """Write a run of bytes; nothing is written if any address is invalid."""
        self.check_range(addr, len(data))
        self._data[addr:addr + len(data)] = data

    def load_image(self, image: bytes) -> None:
        """Copy a program image verbatim to the program start address."""
        if not isinstance(image, (bytes, bytearray, memoryview)):
            raise LoadError(f"Program image must be bytes, got {type(image).__name__}")
        capacity = self.size - self.program_start
        if len(image) > capacity:
            raise LoadError(
                f"Program image of {len(image)} bytes exceeds capacity of {capacity} bytes"
            )
        self.write_block(self.program_start, bytes(image))
        logger.debug("Loaded %d bytes at 0x%03X", len(image), self.program_start)

    def get_watched(self, addresses: list[int]) -> dict[str, int]:
        """Get values at watched addresses as string-keyed dict."""
        result = {}
        for addr in addresses:
            if 0 <= addr < self.size:
                result[str(addr)] = self._data[addr]
        return result

    def snapshot(self) -> bytes:
        """Return a copy of the entire memory."""
        return bytes(self._data)
