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


class _Coalescer:
    """Pending cursor and cell deltas for one nesting level."""

    def __init__(self) -> None:
        self.output: List[Instruction] = []
        self.pending_move = 0
        self.pending_adjust = 0

    def move(self, delta: int) -> None:
        # An adjust that is still pending belongs to the old cursor position.
        if self.pending_adjust:
            self.flush()
        self.pending_move += delta

    def adjust(self, delta: int) -> None:
        self.pending_adjust += delta

    def flush(self) -> None:
        if self.pending_move:
            self.output.append(Move(self.pending_move))
            self.pending_move = 0
        if self.pending_adjust:
            self.output.append(Adjust(self.pending_adjust))
            self.pending_adjust = 0

    def emit(self, node: Instruction) -> None:
        self.flush()
        self.output.append(node)


def optimize(program: Sequence[Instruction]) -> List[Instruction]:
    """Coalesce runs of cursor moves and cell increments.

    Runs of ``>``/``<`` become a single signed ``Move`` and runs of ``+``/``-``
    a single signed ``Adjust``; runs that cancel out vanish. Every loop body is
    coalesced at its own level, so no pending delta crosses a loop boundary.
    Nesting is tracked with an explicit stack of levels.
    """
    root = _Coalescer()
    levels: List[Tuple[Iterator[Instruction], _Coalescer]] = [(iter(program), root)]
    while levels:
        nodes, level = levels[-1]
        node = next(nodes, None)
        if node is None:
            levels.pop()
            level.flush()
            if levels:
                parent = levels[-1][1]
                parent.emit(Loop(body=level.output))
                assert parent.pending_move == 0 and parent.pending_adjust == 0, (
                    "pending deltas leaked across a loop boundary"
                )
            continue

        if isinstance(node, MoveRight):
            level.move(1)
        elif isinstance(node, MoveLeft):
            level.move(-1)
        elif isinstance(node, Incr):
            level.adjust(1)
        elif isinstance(node, Decr):
            level.adjust(-1)
        elif isinstance(node, (Write, Read)):
            level.emit(node)
        elif isinstance(node, Loop):
            # The enclosing level's deltas are flushed when the body's Loop is emitted.
            levels.append((iter(node.body), _Coalescer()))
        else:
            raise TypeError(f"Cannot optimize instruction {node!r}")
    return root.output


__all__ = ["optimize"]
