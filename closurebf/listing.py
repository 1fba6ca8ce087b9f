from __future__ import annotations

from typing import Iterator, List, Sequence, Tuple

from .nodes import (
    Adjust,
    Decr,
    Incr,
    Instruction,
    Loop,
    Move,
    MoveLeft,
    MoveRight,
    Read,
    Write,
)

_NAMES = {
    MoveRight: "right",
    MoveLeft: "left",
    Incr: "incr",
    Decr: "decr",
    Write: "write",
    Read: "read",
}


def format_program(program: Sequence[Instruction], indent: str = "  ") -> str:
    lines: List[str] = []
    blocks: List[Tuple[Iterator[Instruction], int]] = [(iter(program), 0)]
    while blocks:
        nodes, level = blocks[-1]
        node = next(nodes, None)
        if node is None:
            blocks.pop()
            if blocks:
                lines.append(indent * (level - 1) + "}")
            continue

        prefix = indent * level
        if isinstance(node, Move):
            lines.append(f"{prefix}move {node.delta:+d}")
        elif isinstance(node, Adjust):
            lines.append(f"{prefix}adjust {node.delta:+d}")
        elif isinstance(node, Loop):
            if not node.body:
                lines.append(f"{prefix}loop {{}}")
                continue
            lines.append(f"{prefix}loop {{")
            blocks.append((iter(node.body), level + 1))
        else:
            lines.append(prefix + _NAMES[type(node)])
    return "\n".join(lines)


__all__ = ["format_program"]
