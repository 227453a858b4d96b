"""
Steplang File Runner
====================
Execute steplang source files from the command line.

Usage:
    python run.py <filename.sl>
    python run.py <filename.sl> --step
    python run.py <filename.sl> --tokens --ast
    python run.py fib.sl --max-depth 200 --verbose
"""
import argparse
import logging
import os
import sys

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from steplang.callstack import StackOverflowError
from steplang.config import RuntimeConfig
from steplang.evaluator import Evaluator
from steplang.lexer import tokenize
from steplang.objects import Error, Null
from steplang.output import OutputLog
from steplang.parser import parse_program
from steplang.stepwise import StepwiseError, StepwiseEvaluator


def _print_tokens(source: str):
    print("─── Tokens ───")
    for token in tokenize(source):
        print(f"  {str(token.position):<10} {token.type.name:<14} {token.literal!r}")
    print()


def _print_step(state):
    step = state.current_step
    indent = "  " * step.depth
    line = f"  #{step.step_number:<5} {indent}[{step.step_type.value}] L{step.line}:{step.column} {step.description}"
    print(line)


def run_file(
    filepath: str,
    step: bool = False,
    show_tokens: bool = False,
    show_ast: bool = False,
    config: RuntimeConfig | None = None,
) -> int:
    """
    Execute a steplang source file.

    Args:
        filepath: Path to the source file
        step: Run with the stepwise evaluator and print every step
        show_tokens: Print the token table before running
        show_ast: Print the canonical source of the parsed AST before running
        config: Evaluation limits (defaults from STEPLANG_* variables)

    Returns:
        0 on success, 1 on error
    """
    if not os.path.exists(filepath):
        print(f"Error: File not found: {filepath}")
        return 1

    with open(filepath, "r", encoding="utf-8") as f:
        source = f.read()

    config = config or RuntimeConfig.from_env()

    print(f"◬ ─── Running: {os.path.basename(filepath)} ───")
    print()

    if show_tokens:
        _print_tokens(source)

    result = parse_program(source)
    if not result.ok:
        print(f"⚠ {len(result.errors)} syntax error(s):")
        for error in result.errors:
            print(f"  {error}")
        return 1

    if show_ast:
        print("─── AST ───")
        print(result.program)
        print()

    on_print = print if config.echo_output else None
    output = OutputLog(on_print=on_print)

    try:
        if step:
            stepper = StepwiseEvaluator(config=config, output=output)
            stepper.prepare(result.program)
            state = stepper.next_step()
            _print_step(state)
            while not state.is_complete:
                state = stepper.next_step()
                _print_step(state)
            value = stepper.final_value
        else:
            value = Evaluator(config=config, output=output).evaluate_program(result.program)
    except StackOverflowError as e:
        print(f"⚠ {e}")
        return 1
    except StepwiseError as e:
        print(f"⚠ Stepwise Error: {e}")
        return 1

    if isinstance(value, Error):
        print(f"⚠ Runtime Error: {value.format()}")
        return 1

    if not isinstance(value, Null):
        print(f"⟹ {value.inspect()}")

    print()
    print(f"☾ ─── Complete ───")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="run.py",
        description="Run a steplang program directly or step by step.",
    )
    parser.add_argument("file", help="Path to the source file")
    parser.add_argument("--step", action="store_true", help="Print every evaluation step")
    parser.add_argument("--tokens", action="store_true", help="Print the token table first")
    parser.add_argument("--ast", action="store_true", help="Print the parsed program first")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument("--max-depth", type=int, default=None, help="Maximum call depth")
    parser.add_argument("--max-loops", type=int, default=None, help="Maximum iterations per loop")
    parser.add_argument("--quiet", action="store_true", help="Do not echo print() output")
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    try:
        config = RuntimeConfig.from_env().with_overrides(
            max_call_depth=args.max_depth,
            max_loop_iterations=args.max_loops,
            echo_output=False if args.quiet else None,
        )
    except ValueError as e:
        print(f"⚠ Configuration Error: {e}")
        sys.exit(1)

    exit_code = run_file(
        args.file,
        step=args.step,
        show_tokens=args.tokens,
        show_ast=args.ast,
        config=config,
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
