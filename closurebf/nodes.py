from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence


class Instruction:
    pass


# === Raw instructions (parser output) ===


@dataclass
class MoveRight(Instruction):
    pass


@dataclass
class MoveLeft(Instruction):
    pass


@dataclass
class Incr(Instruction):
    pass


@dataclass
class Decr(Instruction):
    pass


# === Coalesced instructions (optimizer output) ===


@dataclass
class Move(Instruction):
    delta: int


@dataclass
class Adjust(Instruction):
    delta: int


# === Shared by both trees ===


@dataclass
class Write(Instruction):
    pass


@dataclass
class Read(Instruction):
    pass


@dataclass
class Loop(Instruction):
    body: List[Instruction] = field(default_factory=list)


def count_nodes(program: Sequence[Instruction]) -> int:
    total = 0
    pending = [program]
    while pending:
        block = pending.pop()
        total += len(block)
        pending.extend(node.body for node in block if isinstance(node, Loop))
    return total


def nesting_depth(program: Sequence[Instruction]) -> int:
    deepest = 0
    pending = [(program, 0)]
    while pending:
        block, depth = pending.pop()
        deepest = max(deepest, depth)
        pending.extend((node.body, depth + 1) for node in block if isinstance(node, Loop))
    return deepest


__all__ = [
    "Instruction",
    "MoveRight",
    "MoveLeft",
    "Incr",
    "Decr",
    "Move",
    "Adjust",
    "Write",
    "Read",
    "Loop",
    "count_nodes",
    "nesting_depth",
]
