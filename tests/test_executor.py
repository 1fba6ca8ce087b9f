from pathlib import Path
import sys
import tempfile
import threading
from contextlib import redirect_stderr, redirect_stdout
import io
import unittest

from closurebf import (
    BufferPorts,
    Executor,
    InputExhausted,
    OutOfBoundsAccess,
    StepLimitExceeded,
    UnmatchedLoopEnd,
)
from closurebf.cli import main as cli_main

HELLO_WORLD = (
    "++++++++[>++++[>++>+++>+++>+<<<<-]>+>+>->>+[<]<-]"
    ">>.>---.+++++++..+++.>>.<-.<.+++.------.--------.>>+.>++."
)


class ExecutorTests(unittest.TestCase):
    def test_increment_and_write(self) -> None:
        self.assertEqual(Executor().run("+++."), b"\x03")

    def test_clear_loop(self) -> None:
        self.assertEqual(Executor().run("+++++[-]."), b"\x00")

    def test_echo(self) -> None:
        self.assertEqual(Executor().run(",.", input_data=[0x41]), b"\x41")

    def test_nested_loop_moves_and_adjusts(self) -> None:
        self.assertEqual(Executor().run("++[>++<-]>."), b"\x04")

    def test_hello_world(self) -> None:
        self.assertEqual(Executor().run(HELLO_WORLD), b"Hello World!\n")

    def test_comments_do_not_change_output(self) -> None:
        plain = Executor().run("++[>++<-]>.")
        commented = Executor().run("two ++ [ move right > add two ++ back < minus - ] >\n print .")
        self.assertEqual(plain, commented)

    def test_cell_arithmetic_wraps(self) -> None:
        self.assertEqual(Executor().run("-."), b"\xff")
        self.assertEqual(Executor().run("+" * 257 + "."), b"\x01")

    def test_cursor_starts_mid_tape(self) -> None:
        executor = Executor()
        executor.run("++>")
        self.assertEqual(executor.cursor, 513)
        self.assertEqual(executor.tape[512], 2)

    def test_explicit_start(self) -> None:
        executor = Executor(tape_length=4, start=0)
        executor.run("+>++")
        self.assertEqual(bytes(executor.tape), b"\x01\x02\x00\x00")

    def test_invalid_configuration(self) -> None:
        with self.assertRaises(ValueError):
            Executor(tape_length=0)
        with self.assertRaises(ValueError):
            Executor(tape_length=4, start=4)

    def test_parse_error_runs_nothing(self) -> None:
        executor = Executor()
        with self.assertRaises(UnmatchedLoopEnd):
            executor.run("+++.]")

    def test_read_past_input(self) -> None:
        with self.assertRaises(InputExhausted):
            Executor().run(",.,.", input_data=[1])

    def test_step_limit(self) -> None:
        with self.assertRaises(StepLimitExceeded):
            Executor(iteration_limit=10).run("+[]")

    def test_deeply_nested_program(self) -> None:
        source = "+" + "[" * 1200 + "-" + "]" * 1200 + "."
        for optimized in (True, False):
            with self.subTest(optimized=optimized):
                self.assertEqual(Executor(optimize=optimized).run(source), b"\x00")

    def test_long_unoptimized_program(self) -> None:
        output = Executor(optimize=False).run("+" * 5000 + ".")
        self.assertEqual(output, bytes([5000 % 256]))


class TapeBoundsTests(unittest.TestCase):
    def test_before_first_cell(self) -> None:
        for optimized in (True, False):
            with self.subTest(optimized=optimized):
                with self.assertRaises(OutOfBoundsAccess):
                    Executor(optimize=optimized).run("<" * 513 + "+")

    def test_past_last_cell(self) -> None:
        for optimized in (True, False):
            with self.subTest(optimized=optimized):
                with self.assertRaises(OutOfBoundsAccess):
                    Executor(tape_length=8, optimize=optimized).run(">>>>.")

    def test_moving_out_and_back_is_allowed(self) -> None:
        for optimized in (True, False):
            with self.subTest(optimized=optimized):
                executor = Executor(tape_length=4, start=0, optimize=optimized)
                self.assertEqual(executor.run("<>+."), b"\x01")

    def test_tape_keeps_partial_state(self) -> None:
        for optimized in (True, False):
            with self.subTest(optimized=optimized):
                executor = Executor(tape_length=4, start=0, optimize=optimized)
                with self.assertRaises(OutOfBoundsAccess):
                    executor.run("+++>+<<+")
                self.assertEqual(executor.tape[0], 3)
                self.assertEqual(executor.tape[1], 1)


class OptimizationEquivalenceTests(unittest.TestCase):
    PROGRAMS = [
        ("+++.", b""),
        ("++[>++<-]>.", b""),
        (HELLO_WORLD, b""),
        ("--[>+<--]>.", b""),
        (",[.,]", b"abc\x00"),
        ("+>+++<[->[->+>+<<]>[-<+>]<<]>>>.", b""),
        (",>,<[->+<]>.", b"\x05\x07"),
        (">>+<<-.>>[<<+>>-]<<.", b""),
    ]

    def test_optimized_matches_raw(self) -> None:
        for source, input_data in self.PROGRAMS:
            with self.subTest(source=source):
                raw = Executor(optimize=False)
                fast = Executor(optimize=True)
                raw_output = raw.run(source, input_data=input_data)
                fast_output = fast.run(source, input_data=input_data)
                self.assertEqual(raw_output, fast_output)
                self.assertEqual(bytes(raw.tape), bytes(fast.tape))
                self.assertEqual(raw.cursor, fast.cursor)

    def test_sample_outputs(self) -> None:
        self.assertEqual(Executor().run("--[>+<--]>."), b"\x7f")
        self.assertEqual(Executor().run(",[.,]", input_data=b"abc\x00"), b"abc")
        self.assertEqual(Executor().run(",>,<[->+<]>.", input_data=b"\x05\x07"), b"\x0c")


class _GatedPorts(BufferPorts):
    """Buffer ports whose reads block until released."""

    def __init__(self, input_data) -> None:
        super().__init__(input_data)
        self.reading = threading.Event()
        self.release = threading.Event()

    def read_byte(self):
        self.reading.set()
        self.release.wait(timeout=30)
        return super().read_byte()


class ConcurrentExecutionTests(unittest.TestCase):
    def _start(self, executor, source, ports, errors):
        program = executor.build(source)

        def target() -> None:
            try:
                executor.execute(program, ports)
            except Exception as exc:  # collected for the main thread
                errors.append(exc)

        thread = threading.Thread(target=target)
        thread.start()
        return thread

    def test_overlapping_runs_keep_call_depth(self) -> None:
        limit_before = sys.getrecursionlimit()
        errors: list = []
        shallow_ports = _GatedPorts([7])
        deep_ports = _GatedPorts([1])
        shallow = Executor(optimize=False)
        deep = Executor(optimize=False)

        shallow_thread = self._start(shallow, "," + "+" * 3000, shallow_ports, errors)
        self.assertTrue(shallow_ports.reading.wait(timeout=30))
        deep_thread = self._start(deep, "+" * 5000 + "," + "+" * 100 + ".", deep_ports, errors)
        self.assertTrue(deep_ports.reading.wait(timeout=30))

        # The shorter run finishes while the longer one is thousands of frames deep.
        shallow_ports.release.set()
        shallow_thread.join(timeout=30)
        deep_ports.release.set()
        deep_thread.join(timeout=30)

        self.assertEqual(errors, [])
        self.assertEqual(shallow.tape[512], (7 + 3000) % 256)
        self.assertEqual(bytes(deep_ports.output), bytes([(5000 + 1 + 100) % 256]))
        self.assertEqual(sys.getrecursionlimit(), limit_before)


class StreamTests(unittest.TestCase):
    def test_binary_streams(self) -> None:
        stdout = io.BytesIO()
        Executor().run_stream(",+.", io.BytesIO(b"A"), stdout)
        self.assertEqual(stdout.getvalue(), b"B")

    def test_text_streams(self) -> None:
        stdout = io.StringIO()
        Executor().run_stream(",.,.", io.StringIO("hi"), stdout)
        self.assertEqual(stdout.getvalue(), "hi")

    def test_text_input_is_fed_as_utf8(self) -> None:
        stdout = io.BytesIO()
        Executor().run_stream(",.,.", io.StringIO("\u00e9"), stdout)
        self.assertEqual(stdout.getvalue(), b"\xc3\xa9")

    def test_stream_input_exhausted(self) -> None:
        stdout = io.BytesIO()
        with self.assertRaises(InputExhausted):
            Executor().run_stream(",.,.", io.BytesIO(b"x"), stdout)
        self.assertEqual(stdout.getvalue(), b"x")


class CLITests(unittest.TestCase):
    def setUp(self) -> None:
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp_path = Path(self._tmp.name)

    def tearDown(self) -> None:
        self._tmp.cleanup()

    def _write_source(self, content: str, name: str = "program.bf") -> Path:
        path = self.tmp_path / name
        path.write_text(content, encoding="utf-8")
        return path

    def test_cli_runs_program(self) -> None:
        source_path = self._write_source("nine times seven +++++++++[>+++++++<-]>++.")
        buffer = io.StringIO()
        with redirect_stdout(buffer):
            exit_code = cli_main([str(source_path)])
        self.assertEqual(exit_code, 0)
        self.assertEqual(buffer.getvalue(), "A")

    def test_cli_without_optimization(self) -> None:
        source_path = self._write_source("+++++++++[>+++++++<-]>++.")
        buffer = io.StringIO()
        with redirect_stdout(buffer):
            exit_code = cli_main([str(source_path), "--no-optimize"])
        self.assertEqual(exit_code, 0)
        self.assertEqual(buffer.getvalue(), "A")

    def test_cli_dump(self) -> None:
        source_path = self._write_source("+++>>")
        buffer = io.StringIO()
        with redirect_stdout(buffer):
            exit_code = cli_main([str(source_path), "--dump"])
        self.assertEqual(exit_code, 0)
        self.assertEqual(buffer.getvalue(), "adjust +3\nmove +2\n")

    def test_cli_missing_file_errors(self) -> None:
        buffer = io.StringIO()
        with redirect_stderr(buffer):
            exit_code = cli_main([str(self.tmp_path / "does_not_exist.bf")])
        self.assertEqual(exit_code, 1)
        self.assertIn("Source file not found", buffer.getvalue())

    def test_cli_parse_error(self) -> None:
        source_path = self._write_source("+]")
        buffer = io.StringIO()
        with redirect_stderr(buffer):
            exit_code = cli_main([str(source_path)])
        self.assertEqual(exit_code, 1)
        self.assertIn("Parse error", buffer.getvalue())

    def test_cli_runtime_error_keeps_output(self) -> None:
        source_path = self._write_source("+++." + "<" * 600 + "+")
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            exit_code = cli_main([str(source_path)])
        self.assertEqual(exit_code, 1)
        self.assertEqual(out.getvalue(), "\x03")
        self.assertIn("Runtime error", err.getvalue())

    def test_cli_requires_exactly_one_source(self) -> None:
        for argv in ([], ["a.bf", "b.bf"]):
            with self.subTest(argv=argv):
                with redirect_stderr(io.StringIO()):
                    with self.assertRaises(SystemExit) as ctx:
                        cli_main(argv)
                self.assertNotEqual(ctx.exception.code, 0)


if __name__ == "__main__":
    unittest.main()
