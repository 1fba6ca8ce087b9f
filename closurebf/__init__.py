from .codegen import (
    CodeGenerator,
    ExecutionError,
    InputExhausted,
    OutOfBoundsAccess,
    StepLimitExceeded,
)
from .executor import Executor
from .lexer import Symbol, lex
from .listing import format_program
from .optimizer import optimize
from .parser import ParseError, UnmatchedLoopBegin, UnmatchedLoopEnd, parse, parse_source
from .ports import BufferPorts, StreamPorts

__all__ = [
    "BufferPorts",
    "CodeGenerator",
    "ExecutionError",
    "Executor",
    "InputExhausted",
    "OutOfBoundsAccess",
    "ParseError",
    "StepLimitExceeded",
    "StreamPorts",
    "Symbol",
    "UnmatchedLoopBegin",
    "UnmatchedLoopEnd",
    "format_program",
    "lex",
    "optimize",
    "parse",
    "parse_source",
]
