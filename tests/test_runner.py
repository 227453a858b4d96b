"""
Steplang File Runner Tests
==========================
run.py end to end: exit codes and console output.

Usage:
    python -m unittest tests.test_runner -v
    python -m pytest tests/test_runner.py -v
"""
import sys
import os
import io
import tempfile
import unittest
from contextlib import redirect_stdout

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from run import build_parser, run_file
from steplang.config import RuntimeConfig


class TestRunFile(unittest.TestCase):

    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.tmpdir.cleanup()

    def run_source(self, source, **kwargs):
        path = os.path.join(self.tmpdir.name, "program.sl")
        with open(path, "w", encoding="utf-8") as f:
            f.write(source)
        buffer = io.StringIO()
        with redirect_stdout(buffer):
            code = run_file(path, **kwargs)
        return code, buffer.getvalue()

    def test_successful_run(self):
        code, out = self.run_source('println("hello"); 6 * 7')
        self.assertEqual(code, 0)
        self.assertIn("◬ ─── Running: program.sl ───", out)
        self.assertIn("hello", out)
        self.assertIn("⟹ 42", out)
        self.assertIn("☾ ─── Complete ───", out)

    def test_null_result_is_not_printed(self):
        code, out = self.run_source("let x = null; x")
        self.assertEqual(code, 0)
        self.assertNotIn("⟹", out)

    def test_syntax_errors(self):
        code, out = self.run_source("let = 1;")
        self.assertEqual(code, 1)
        self.assertIn("⚠ 1 syntax error(s):", out)

    def test_runtime_error(self):
        code, out = self.run_source("let f = fn() { nope };\nf();")
        self.assertEqual(code, 1)
        self.assertIn("⚠ Runtime Error: ERROR: identifier not found: nope", out)
        self.assertIn("at f [Function]", out)

    def test_stack_overflow(self):
        code, out = self.run_source(
            "let f = fn() { f() }; f();", config=RuntimeConfig(max_call_depth=10),
        )
        self.assertEqual(code, 1)
        self.assertIn("Stack overflow", out)

    def test_step_mode_prints_steps(self):
        code, out = self.run_source("let x = 1;", step=True)
        self.assertEqual(code, 0)
        self.assertIn("[before] L1:1 Program execution started", out)
        self.assertIn("Variable 'x' declared with value: 1", out)

    def test_tokens_and_ast(self):
        code, out = self.run_source("let x = 1 + 2;", show_tokens=True, show_ast=True)
        self.assertEqual(code, 0)
        self.assertIn("─── Tokens ───", out)
        self.assertIn("let x = (1 + 2);", out)

    def test_quiet_suppresses_program_output(self):
        code, out = self.run_source('print("secret");', config=RuntimeConfig(echo_output=False))
        self.assertEqual(code, 0)
        self.assertNotIn("secret", out)

    def test_missing_file(self):
        buffer = io.StringIO()
        with redirect_stdout(buffer):
            code = run_file(os.path.join(self.tmpdir.name, "absent.sl"))
        self.assertEqual(code, 1)
        self.assertIn("File not found", buffer.getvalue())


class TestArguments(unittest.TestCase):

    def test_flags(self):
        args = build_parser().parse_args(["prog.sl", "--step", "--max-depth", "50", "-v"])
        self.assertEqual(args.file, "prog.sl")
        self.assertTrue(args.step)
        self.assertTrue(args.verbose)
        self.assertEqual(args.max_depth, 50)
        self.assertIsNone(args.max_loops)


if __name__ == "__main__":
    unittest.main()
