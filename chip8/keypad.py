"""Sixteen-key input matrix shared between the input side and the engine."""

import threading

from .errors import KeypadAccessError

NUM_KEYS = 16


class Keypad:
    """Lock-guarded pressed/released state for keys 0x0-0xF."""

    def __init__(self):
        self._keys = [False] * NUM_KEYS
        self._lock = threading.Lock()

    def _check_key(self, index: int) -> None:
        if index < 0 or index >= NUM_KEYS:
            raise KeypadAccessError(f"Key index out of range: {index}")

    def set_key(self, index: int, pressed: bool) -> None:
        self._check_key(index)
        with self._lock:
            self._keys[index] = bool(pressed)

    def is_pressed(self, index: int) -> bool:
        self._check_key(index)
        with self._lock:
            return self._keys[index]

    def pressed_keys(self) -> list[int]:
        """Indices of every key currently held down."""
        with self._lock:
            return [index for index, pressed in enumerate(self._keys) if pressed]

    def release_all(self) -> None:
        with self._lock:
            self._keys = [False] * NUM_KEYS

    def snapshot(self) -> list[bool]:
        with self._lock:
            return list(self._keys)
