from __future__ import annotations

import io
from typing import IO, Iterable, Iterator, Optional, Protocol


class Ports(Protocol):
    """Byte I/O used by generated code."""

    def read_byte(self) -> Optional[int]:
        ...

    def write_byte(self, value: int) -> None:
        ...

    def flush(self) -> None:
        ...


class BufferPorts:
    """Feeds input from an iterable of ints and collects output in memory."""

    def __init__(self, input_data: Optional[Iterable[int]] = None) -> None:
        # bytes() rejects values outside 0..255 up front.
        self._input: Iterator[int] = iter(bytes(input_data or b""))
        self.output = bytearray()

    def read_byte(self) -> Optional[int]:
        return next(self._input, None)

    def write_byte(self, value: int) -> None:
        self.output.append(value)

    def flush(self) -> None:
        pass


class StreamPorts:
    """Reads and writes one byte at a time on file-like objects.

    Binary streams carry raw bytes. On text streams each input character is
    fed as its UTF-8 bytes, one per read, and each output byte is written as
    the character with the same code point.
    """

    def __init__(self, stdin: IO, stdout: IO) -> None:
        self.stdin = stdin
        self.stdout = stdout
        self._text_in = isinstance(stdin, io.TextIOBase)
        self._text_out = isinstance(stdout, io.TextIOBase)
        self._pending = bytearray()

    def read_byte(self) -> Optional[int]:
        # Prompts written so far must be visible before blocking on input.
        self.flush()
        if self._pending:
            return self._pending.pop(0)
        data = self.stdin.read(1)
        if not data:
            return None
        if self._text_in:
            self._pending.extend(data.encode("utf-8"))
            return self._pending.pop(0)
        return data[0]

    def write_byte(self, value: int) -> None:
        if self._text_out:
            self.stdout.write(chr(value))
        else:
            self.stdout.write(bytes((value,)))

    def flush(self) -> None:
        self.stdout.flush()


__all__ = ["BufferPorts", "Ports", "StreamPorts"]
