from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .codegen import ExecutionError
from .executor import Executor
from .listing import format_program
from .parser import ParseError
from .ports import StreamPorts


def _read_source(path: str) -> str:
    source_path = Path(path)
    if not source_path.exists():
        raise FileNotFoundError(f"Source file not found: {path}")
    # Anything outside the eight symbols is commentary, so undecodable bytes are harmless.
    return source_path.read_text(encoding="utf-8", errors="replace")


def _binary(stream):
    return getattr(stream, "buffer", stream)


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="closurebf",
        description="Compile a tape-machine program into a closure chain and run it",
    )
    parser.add_argument("source", help="Path to the program source file")
    parser.add_argument(
        "--no-optimize",
        dest="optimize",
        action="store_false",
        help="Compile the raw instruction tree without coalescing moves and adjustments",
    )
    parser.add_argument(
        "--tape-length",
        type=int,
        default=1024,
        help="Number of cells on the tape (default: 1024, cursor starts in the middle)",
    )
    parser.add_argument(
        "--dump",
        action="store_true",
        help="Print the instruction listing instead of running the program",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    if args.tape_length <= 0:
        parser.error("--tape-length must be positive")

    try:
        source_text = _read_source(args.source)
    except FileNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1

    executor = Executor(tape_length=args.tape_length, optimize=args.optimize)
    try:
        program = executor.build(source_text)
    except ParseError as exc:
        print(f"Parse error: {exc}", file=sys.stderr)
        return 1

    if args.dump:
        listing = format_program(program)
        if listing:
            sys.stdout.write(listing + "\n")
        return 0

    try:
        executor.execute(program, StreamPorts(_binary(sys.stdin), _binary(sys.stdout)))
    except ExecutionError as exc:
        print(f"Runtime error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
