from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from .lexer import Symbol, lex
from .nodes import Decr, Incr, Instruction, Loop, MoveLeft, MoveRight, Read, Write


class ParseError(Exception):
    def __init__(self, message: str, position: int) -> None:
        super().__init__(message)
        self.position = position


class UnmatchedLoopEnd(ParseError):
    def __init__(self, position: int) -> None:
        super().__init__(f"Unmatched ']' at symbol #{position}", position)


class UnmatchedLoopBegin(ParseError):
    def __init__(self, position: int) -> None:
        super().__init__(f"Unmatched '[' starting at symbol #{position}", position)


_SIMPLE: Dict[Symbol, type] = {
    Symbol.MOVE_RIGHT: MoveRight,
    Symbol.MOVE_LEFT: MoveLeft,
    Symbol.INCR: Incr,
    Symbol.DECR: Decr,
    Symbol.WRITE: Write,
    Symbol.READ: Read,
}


def parse(symbols: Sequence[Symbol]) -> List[Instruction]:
    """Build the instruction tree for ``symbols``.

    A ``[`` pushes the block being filled and starts a fresh one for the loop
    body; the matching ``]`` closes that body into a ``Loop`` and appends it to
    the enclosing block. Positions in errors are symbol indices; an unclosed
    program reports the outermost ``[`` still open.
    """
    program: List[Instruction] = []
    block = program
    open_loops: List[Tuple[int, List[Instruction]]] = []

    for index, symbol in enumerate(symbols):
        if symbol is Symbol.LOOP_BEGIN:
            open_loops.append((index, block))
            block = []
        elif symbol is Symbol.LOOP_END:
            if not open_loops:
                raise UnmatchedLoopEnd(index)
            _, enclosing = open_loops.pop()
            enclosing.append(Loop(body=block))
            block = enclosing
        else:
            block.append(_SIMPLE[symbol]())

    if open_loops:
        raise UnmatchedLoopBegin(open_loops[0][0])
    return program


def parse_source(source: str) -> List[Instruction]:
    return parse(lex(source))


__all__ = [
    "ParseError",
    "UnmatchedLoopBegin",
    "UnmatchedLoopEnd",
    "parse",
    "parse_source",
]
