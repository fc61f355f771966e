"""Decoded CHIP-8 instruction word."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Opcode:
    """A fetched 2-byte instruction split into four nibbles.

    For the word 0xD123: op=0xD, x=0x1, y=0x2, n=0x3.
    """
    op: int
    x: int
    y: int
    n: int

    @classmethod
    def from_word(cls, word: int) -> "Opcode":
        return cls(
            op=(word & 0xF000) >> 12,
            x=(word & 0x0F00) >> 8,
            y=(word & 0x00F0) >> 4,
            n=word & 0x000F,
        )

    @classmethod
    def from_bytes(cls, high: int, low: int) -> "Opcode":
        return cls.from_word(((high & 0xFF) << 8) | (low & 0xFF))

    @property
    def word(self) -> int:
        """The merged 16-bit instruction."""
        return (self.op << 12) | (self.x << 8) | (self.y << 4) | self.n

    @property
    def nn(self) -> int:
        return self.word & 0x00FF

    @property
    def nnn(self) -> int:
        return self.word & 0x0FFF

    def __str__(self) -> str:
        return f"{self.word:04X}"
