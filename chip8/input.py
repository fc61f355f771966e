"""Host keyboard to keypad translation.

The 4x4 block of host keys on the left of a QWERTY keyboard maps onto the
hexadecimal keypad in its physical layout:

    1 2 3 4      1 2 3 C
    q w e r  ->  4 5 6 D
    a s d f      7 8 9 E
    z x c v      A 0 B F
"""

from typing import Optional

KEY_MAP: dict[str, int] = {
    "1": 0x1, "2": 0x2, "3": 0x3, "4": 0xC,
    "q": 0x4, "w": 0x5, "e": 0x6, "r": 0xD,
    "a": 0x7, "s": 0x8, "d": 0x9, "f": 0xE,
    "z": 0xA, "x": 0x0, "c": 0xB, "v": 0xF,
}


def translate(symbol: str) -> Optional[int]:
    """Return the keypad index for a host key symbol, or None."""
    return KEY_MAP.get(symbol.lower())


def set_key(target, symbol: str, pressed: bool) -> bool:
    """Apply a host key event to a keypad or machine.

    Returns:
        False if the symbol is not part of the layout and was ignored
    """
    index = translate(symbol)
    if index is None:
        return False
    target.set_key(index, pressed)
    return True
