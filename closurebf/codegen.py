from __future__ import annotations

from typing import Callable, List, Optional, Sequence, Tuple

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
from .ports import Ports

# A compiled unit takes the tape and the cursor, performs its effects and those
# of every unit after it, and returns the final cursor.
Unit = Callable[[bytearray, int], int]


class ExecutionError(RuntimeError):
    """Base class for failures raised while a compiled program runs."""


class OutOfBoundsAccess(ExecutionError):
    def __init__(self, cursor: int, tape_length: int) -> None:
        super().__init__(
            f"Cursor {cursor} is outside the tape (valid cells: 0..{tape_length - 1})"
        )
        self.cursor = cursor
        self.tape_length = tape_length


class InputExhausted(ExecutionError):
    def __init__(self, cursor: int) -> None:
        super().__init__(f"No input left for read at cell {cursor}")
        self.cursor = cursor


class StepLimitExceeded(ExecutionError):
    """Raised when loops run more iterations than the configured budget."""


def _check(tape: bytearray, cursor: int) -> None:
    if not 0 <= cursor < len(tape):
        raise OutOfBoundsAccess(cursor, len(tape))


def _is_clear_loop(body: Sequence[Instruction]) -> bool:
    if len(body) != 1:
        return False
    only = body[0]
    return isinstance(only, Decr) or (isinstance(only, Adjust) and only.delta == -1)


class _IterationBudget:
    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.used = 0

    def charge(self) -> None:
        self.used += 1
        if self.used > self.limit:
            raise StepLimitExceeded(
                f"Program exceeded the allowed {self.limit} loop iterations"
            )


class CodeGenerator:
    """Compiles an instruction tree into a chain of closures.

    Each unit is built already holding its continuation, the compiled rest of
    its block, so running the chain is a series of direct calls with no
    per-instruction dispatch. ``Move`` nodes from the optimizer produce no unit
    of their own: their delta becomes a displacement baked into the next unit
    that touches the tape, or into the block's terminal unit.
    """

    def __init__(self, ports: Ports, iteration_limit: Optional[int] = None) -> None:
        self.ports = ports
        self.iteration_limit = iteration_limit

    def compile(self, program: Sequence[Instruction], displacement: int = 0) -> Unit:
        """Compile ``program`` into a fresh chain.

        Every call gets its own loop-iteration budget, shared only by the loops
        of the chain it returns.
        """
        budget = None
        if self.iteration_limit is not None:
            budget = _IterationBudget(self.iteration_limit)
        return self._compile_block(program, displacement, budget)

    def _compile_block(
        self,
        program: Sequence[Instruction],
        displacement: int,
        budget: Optional[_IterationBudget],
    ) -> Unit:
        staged: List[Tuple[Instruction, int]] = []
        pending = displacement
        for node in program:
            if isinstance(node, Move):
                pending += node.delta
                continue
            staged.append((node, pending))
            pending = 0

        chain = self._compile_end(pending)
        for node, offset in reversed(staged):
            chain = self._compile_node(node, offset, chain, budget)
        return chain

    # --- Units ---

    def _compile_node(
        self,
        node: Instruction,
        offset: int,
        rest: Unit,
        budget: Optional[_IterationBudget],
    ) -> Unit:
        if isinstance(node, MoveRight):
            return self._compile_step(offset + 1, rest)
        if isinstance(node, MoveLeft):
            return self._compile_step(offset - 1, rest)
        if isinstance(node, Incr):
            return self._compile_adjust(offset, 1, rest)
        if isinstance(node, Decr):
            return self._compile_adjust(offset, -1, rest)
        if isinstance(node, Adjust):
            return self._compile_adjust(offset, node.delta, rest)
        if isinstance(node, Write):
            return self._compile_write(offset, rest)
        if isinstance(node, Read):
            return self._compile_read(offset, rest)
        if isinstance(node, Loop):
            if _is_clear_loop(node.body):
                return self._compile_clear(offset, rest)
            body = self._compile_block(node.body, 0, budget)
            return self._compile_loop(offset, body, rest, budget)
        raise TypeError(f"Cannot compile instruction {node!r}")

    def _compile_end(self, offset: int) -> Unit:
        if offset == 0:
            def finish(tape: bytearray, cursor: int) -> int:
                return cursor
        else:
            def finish(tape: bytearray, cursor: int) -> int:
                return cursor + offset
        return finish

    def _compile_step(self, step: int, rest: Unit) -> Unit:
        def move(tape: bytearray, cursor: int) -> int:
            return rest(tape, cursor + step)
        return move

    def _compile_adjust(self, offset: int, delta: int, rest: Unit) -> Unit:
        def adjust(tape: bytearray, cursor: int) -> int:
            cursor += offset
            _check(tape, cursor)
            tape[cursor] = (tape[cursor] + delta) & 0xFF
            return rest(tape, cursor)
        return adjust

    def _compile_write(self, offset: int, rest: Unit) -> Unit:
        write_byte = self.ports.write_byte

        def write(tape: bytearray, cursor: int) -> int:
            cursor += offset
            _check(tape, cursor)
            write_byte(tape[cursor])
            return rest(tape, cursor)
        return write

    def _compile_read(self, offset: int, rest: Unit) -> Unit:
        read_byte = self.ports.read_byte

        def read(tape: bytearray, cursor: int) -> int:
            cursor += offset
            _check(tape, cursor)
            value = read_byte()
            if value is None:
                raise InputExhausted(cursor)
            tape[cursor] = value
            return rest(tape, cursor)
        return read

    def _compile_clear(self, offset: int, rest: Unit) -> Unit:
        def clear(tape: bytearray, cursor: int) -> int:
            cursor += offset
            _check(tape, cursor)
            tape[cursor] = 0
            return rest(tape, cursor)
        return clear

    def _compile_loop(
        self,
        offset: int,
        body: Unit,
        rest: Unit,
        budget: Optional[_IterationBudget],
    ) -> Unit:
        if budget is None:
            def loop(tape: bytearray, cursor: int) -> int:
                cursor += offset
                _check(tape, cursor)
                while tape[cursor]:
                    cursor = body(tape, cursor)
                    _check(tape, cursor)
                return rest(tape, cursor)
        else:
            def loop(tape: bytearray, cursor: int) -> int:
                cursor += offset
                _check(tape, cursor)
                while tape[cursor]:
                    budget.charge()
                    cursor = body(tape, cursor)
                    _check(tape, cursor)
                return rest(tape, cursor)
        return loop


__all__ = [
    "CodeGenerator",
    "ExecutionError",
    "InputExhausted",
    "OutOfBoundsAccess",
    "StepLimitExceeded",
    "Unit",
]
