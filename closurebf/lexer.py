from __future__ import annotations

from enum import Enum
from typing import List


class Symbol(str, Enum):
    MOVE_RIGHT = ">"
    MOVE_LEFT = "<"
    INCR = "+"
    DECR = "-"
    WRITE = "."
    READ = ","
    LOOP_BEGIN = "["
    LOOP_END = "]"


_RECOGNIZED = frozenset(member.value for member in Symbol)


def lex(source: str) -> List[Symbol]:
    """Return the recognized symbols of ``source`` in order; anything else is a comment."""
    return [Symbol(char) for char in source if char in _RECOGNIZED]


__all__ = ["Symbol", "lex"]
