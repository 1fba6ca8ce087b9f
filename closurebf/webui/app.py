from __future__ import annotations

from typing import List, Optional

from fastapi import FastAPI, HTTPException, status
from pydantic import BaseModel, Field

from closurebf.codegen import ExecutionError
from closurebf.executor import Executor
from closurebf.listing import format_program
from closurebf.nodes import count_nodes
from closurebf.parser import ParseError
from closurebf.ports import BufferPorts


def _string_to_input_bytes(data: str) -> List[int]:
    return list(data.encode("utf-8"))


def _tape_window(executor: Executor, window: int) -> tuple[int, List[int]]:
    start = max(0, executor.cursor - window)
    end = min(executor.tape_length, executor.cursor + window + 1)
    return start, list(executor.tape[start:end])


class CompileRequest(BaseModel):
    code: str = ""
    optimize: bool = True


class CompileResponse(BaseModel):
    listing: str
    node_count: int


class RunRequest(BaseModel):
    code: str = ""
    input: str = ""
    optimize: bool = True
    tape_length: int = Field(default=1024, ge=1, le=1_000_000)
    tape_window: int = Field(default=10, ge=0)
    iteration_limit: Optional[int] = Field(default=1_000_000, ge=1)


class RunResponse(BaseModel):
    output: str
    output_bytes: List[int]
    cursor: int
    tape_start: int
    tape: List[int]


def create_app() -> FastAPI:
    app = FastAPI(title="closurebf API", version="0.1.0")

    def _build(executor: Executor, code: str):
        try:
            return executor.build(code)
        except ParseError as exc:
            raise HTTPException(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                detail=str(exc),
            ) from exc

    @app.post("/api/compile", response_model=CompileResponse)
    def compile_program(payload: CompileRequest) -> CompileResponse:
        program = _build(Executor(optimize=payload.optimize), payload.code)
        return CompileResponse(listing=format_program(program), node_count=count_nodes(program))

    @app.post("/api/run", response_model=RunResponse)
    def run_program(payload: RunRequest) -> RunResponse:
        executor = Executor(
            tape_length=payload.tape_length,
            optimize=payload.optimize,
            iteration_limit=payload.iteration_limit,
        )
        program = _build(executor, payload.code)
        ports = BufferPorts(_string_to_input_bytes(payload.input))
        try:
            executor.execute(program, ports)
        except ExecutionError as exc:
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=str(exc),
            ) from exc

        tape_start, tape = _tape_window(executor, payload.tape_window)
        output = bytes(ports.output)
        return RunResponse(
            output=output.decode("latin-1"),
            output_bytes=list(output),
            cursor=executor.cursor,
            tape_start=tape_start,
            tape=tape,
        )

    return app


__all__ = ["create_app"]
