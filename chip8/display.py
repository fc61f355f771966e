"""Monochrome framebuffer for the CHIP-8 interpreter."""

import threading

WIDTH = 64
HEIGHT = 32
# Expansion factor of the 640x320 window the interpreter historically drew into
SCALE = 10


class Framebuffer:
    """64x32 grid of single-bit pixels mutated by sprite XOR."""

    def __init__(self, width: int = WIDTH, height: int = HEIGHT):
        self.width = width
        self.height = height
        self._pixels: list[list[int]] = [[0] * width for _ in range(height)]
        self._lock = threading.Lock()

    def clear(self) -> None:
        """Turn every pixel off."""
        with self._lock:
            self._pixels = [[0] * self.width for _ in range(self.height)]

    def draw_sprite(self, x: int, y: int, rows: bytes) -> bool:
        """XOR an 8-pixel-wide sprite onto the grid at (x, y).

        Each byte of `rows` is one sprite row, most significant bit leftmost.
        Pixels falling off an edge wrap around to the opposite edge.

        Returns:
            True if any lit pixel was turned off
        """
        collision = False
        with self._lock:
            for row, bits in enumerate(rows):
                py = (y + row) % self.height
                line = self._pixels[py]
                for col in range(8):
                    if not bits & (0x80 >> col):
                        continue
                    px = (x + col) % self.width
                    if line[px]:
                        collision = True
                    line[px] ^= 1
        return collision

    def get_pixel(self, x: int, y: int) -> int:
        return self._pixels[y % self.height][x % self.width]

    def snapshot(self) -> list[list[int]]:
        """Return a copy of the grid, consistent with respect to draws."""
        with self._lock:
            return [list(line) for line in self._pixels]

    def scaled(self, factor: int = SCALE) -> list[list[int]]:
        """Return a copy expanded `factor` times along both axes."""
        if factor < 1:
            raise ValueError(f"Scale factor must be positive, got {factor}")
        result = []
        for line in self.snapshot():
            wide = [pixel for pixel in line for _ in range(factor)]
            result.extend(list(wide) for _ in range(factor))
        return result

    def to_strings(self) -> list[str]:
        """Render rows as strings of '0' and '1'."""
        return ["".join(str(pixel) for pixel in line) for line in self.snapshot()]

    def lit_count(self) -> int:
        return sum(sum(line) for line in self.snapshot())
