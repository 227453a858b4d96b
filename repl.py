"""
Steplang REPL
=============
Interactive Read-Eval-Print Loop for steplang.
Bindings persist between inputs; unbalanced braces continue the input on
the next line.
"""
import sys
import os

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from steplang import __version__
from steplang.callstack import StackOverflowError
from steplang.config import RuntimeConfig
from steplang.environment import Environment
from steplang.evaluator import Evaluator
from steplang.objects import Error, Null
from steplang.output import OutputLog
from steplang.parser import parse_program


BANNER = rf"""
╔══════════════════════════════════════════════════════════════╗
║                                                              ║
║     ◬ ─── STEPLANG ─── ◬                                     ║
║                                                              ║
║     Interactive interpreter v{__version__:<32}║
║                                                              ║
║     Type 'help' for a language reference                     ║
║     Type 'exit' or Ctrl+C to quit                            ║
║                                                              ║
╚══════════════════════════════════════════════════════════════╝
"""

HELP_TEXT = """
╔══════════════════════════════════════════════════════════════╗
║                  STEPLANG QUICK REFERENCE                    ║
╠══════════════════════════════════════════════════════════════╣
║ let x = 5;  const y = 10;        Bindings                    ║
║ x = x + 1;  x += 2;              Assignment                  ║
║ fn(a, b) { return a + b; }       Functions and closures      ║
║ if (c) { } elif (d) { } else { } Conditionals                ║
║ while (c) { }  for (let i = 0; i < n; i += 1) { }  Loops     ║
║ [1, 2, 3]  {"k": 1}  f"x = {x}"  Arrays, hashes, f-strings   ║
║ class A extends B { init() { } } Classes, new A(), super()   ║
╚══════════════════════════════════════════════════════════════╝

Examples:
  let add = fn(a, b) { a + b }; add(2, 3)
  println(f"len = {len([1, 2, 3])}")

Commands: help, env, log, clear, exit
"""


def _needs_more(text: str) -> bool:
    """True while braces, brackets or parentheses are still open."""
    depth = 0
    for ch in text:
        if ch in "{[(":
            depth += 1
        elif ch in "}])":
            depth -= 1
    return depth > 0


def run_repl():
    """Run the interactive steplang REPL."""
    print(BANNER)

    config = RuntimeConfig.from_env()
    output = OutputLog(on_print=lambda text: print(f"  {text}"))
    evaluator = Evaluator(config=config, output=output)
    env = Environment()

    while True:
        try:
            line = input("  ◬⟩ ")
            while _needs_more(line):
                line += "\n" + input("  ..  ")
        except (EOFError, KeyboardInterrupt):
            print("\n  ☾ Goodbye.")
            break

        line = line.strip()
        if not line:
            continue

        # Special commands
        command = line.lower()
        if command in ("exit", "quit"):
            print("  ☾ Goodbye.")
            break

        if command == "help":
            print(HELP_TEXT)
            continue

        if command == "env":
            snapshot = env.snapshot()
            if snapshot.variables:
                print("  ─── Bindings ───")
                for var in snapshot.variables:
                    marker = " (const)" if var.is_constant else ""
                    print(f"    {var.name} = {var.value}{marker}")
            else:
                print("  (no bindings)")
            continue

        if command == "log":
            if output.entries:
                print("  ─── Output Log ───")
                for entry in output.entries:
                    print(f"    [{entry.type}] {entry.value}")
            else:
                print("  (no output)")
            continue

        if command == "clear":
            output.clear()
            env = Environment()
            print("  ∅ State cleared.")
            continue

        # Parse → Evaluate
        result = parse_program(line)
        if not result.ok:
            for error in result.errors:
                print(f"  ⚠ Syntax Error: {error}")
            continue

        try:
            value = evaluator.evaluate_program(result.program, env)
        except StackOverflowError as e:
            print(f"  ⚠ {e}")
            continue

        if isinstance(value, Error):
            print(f"  ⚠ {value.format()}")
        elif not isinstance(value, Null):
            print(f"  ⟹ {value.inspect()}")


if __name__ == "__main__":
    run_repl()
