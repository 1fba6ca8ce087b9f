from __future__ import annotations

import inspect
import logging
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import IO, Iterable, Iterator, List, Optional

from .codegen import CodeGenerator, Unit
from .lexer import lex
from .nodes import Instruction, count_nodes, nesting_depth
from .optimizer import optimize
from .parser import parse
from .ports import BufferPorts, Ports, StreamPorts

logger = logging.getLogger(__name__)

# Frames reserved for the caller on top of the chain's own call depth.
_STACK_HEADROOM = 200


def _stack_depth() -> int:
    depth = 0
    frame = inspect.currentframe()
    while frame is not None:
        depth += 1
        frame = frame.f_back
    return depth


class _RecursionAllowance:
    """Process-wide recursion limit shared by concurrent runs.

    The limit only grows while any reservation is active and falls back to
    the value seen before the first reservation once the last one is released.
    It never drops below what a still-active reservation asked for.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._active: List[int] = []
        self._baseline = 0

    @contextmanager
    def reserve(self, depth: int) -> Iterator[None]:
        needed = _stack_depth() + depth + _STACK_HEADROOM
        with self._lock:
            if not self._active:
                self._baseline = sys.getrecursionlimit()
            self._active.append(needed)
            if needed > sys.getrecursionlimit():
                sys.setrecursionlimit(needed)
        try:
            yield
        finally:
            with self._lock:
                self._active.remove(needed)
                target = max([self._baseline, *self._active])
                if target < sys.getrecursionlimit():
                    sys.setrecursionlimit(target)


_recursion = _RecursionAllowance()


@dataclass
class Executor:
    tape_length: int = 1024
    start: Optional[int] = None
    optimize: bool = True
    iteration_limit: Optional[int] = None

    tape: bytearray = field(init=False, repr=False)
    cursor: int = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.tape_length <= 0:
            raise ValueError("tape_length must be positive")
        if self.start is not None and not 0 <= self.start < self.tape_length:
            raise ValueError(f"start must lie within the tape (0..{self.tape_length - 1})")
        self.reset()

    @property
    def initial_cursor(self) -> int:
        return self.tape_length // 2 if self.start is None else self.start

    def reset(self) -> None:
        self.tape = bytearray(self.tape_length)
        self.cursor = self.initial_cursor

    def build(self, source: str) -> List[Instruction]:
        symbols = lex(source)
        program = parse(symbols)
        logger.debug("parsed %d symbols into %d nodes", len(symbols), count_nodes(program))
        if self.optimize:
            program = optimize(program)
            logger.debug("optimized program down to %d nodes", count_nodes(program))
        return program

    def compile(self, program: List[Instruction], ports: Ports) -> Unit:
        generator = CodeGenerator(ports, iteration_limit=self.iteration_limit)
        # Loop bodies are compiled recursively, two frames per nesting level.
        with _recursion.reserve(3 * nesting_depth(program)):
            return generator.compile(program)

    def execute(self, program: List[Instruction], ports: Ports) -> None:
        """Run ``program`` once on a fresh tape.

        The tape keeps whatever state it reached, also when a runtime error
        aborts the run.
        """
        self.reset()
        chain = self.compile(program, ports)
        logger.debug("running on %d cells from cursor %d", self.tape_length, self.cursor)
        try:
            with _recursion.reserve(count_nodes(program) + 2 * nesting_depth(program)):
                self.cursor = chain(self.tape, self.cursor)
        finally:
            ports.flush()

    def run(self, source: str, input_data: Optional[Iterable[int]] = None) -> bytes:
        ports = BufferPorts(input_data)
        self.execute(self.build(source), ports)
        return bytes(ports.output)

    def run_stream(self, source: str, stdin: IO, stdout: IO) -> None:
        self.execute(self.build(source), StreamPorts(stdin, stdout))


__all__ = ["Executor"]
