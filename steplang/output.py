"""
Steplang Output Log
===================
The explicit side-effect sink handed to each evaluator. Both evaluators
report through the same helper methods, so a direct run and a stepwise run
of the same program produce the same sequence of entries.
"""
import time
from typing import Callable

from .objects import Object
from .steps import OutputEntry, OutputType


class OutputLog:
    """
    Append-only list of OutputEntry records.

    Usage:
        output = OutputLog(on_print=print)
        evaluate(program, output=output)
        for entry in output.entries: ...

    `step_number` is maintained by the owning evaluator and stamped onto
    every new entry (the direct evaluator leaves it at 0). `on_entry`
    receives every entry; `on_print` receives only text written by
    print/println.
    """

    def __init__(
        self,
        on_entry: Callable[[OutputEntry], None] | None = None,
        on_print: Callable[[str], None] | None = None,
    ):
        self.entries: list[OutputEntry] = []
        self.step_number = 0
        self.on_entry = on_entry
        self.on_print = on_print

    def add(self, value: str, type: OutputType = "log") -> OutputEntry:
        entry = OutputEntry(
            value=value, type=type, timestamp=time.time(), step_number=self.step_number,
        )
        self.entries.append(entry)
        if self.on_entry is not None:
            self.on_entry(entry)
        return entry

    def clear(self):
        self.entries.clear()
        self.step_number = 0

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def messages(self) -> list[tuple[str, str]]:
        """(type, value) pairs, without step/timestamp bookkeeping."""
        return [(e.type, e.value) for e in self.entries]

    # ─────────────────────────────────────────────────────────
    #  Event helpers
    # ─────────────────────────────────────────────────────────

    def program_started(self):
        self.add("Program execution started", "log")

    def program_completed(self):
        self.add("Program execution completed", "log")

    def program_returned(self, value: Object):
        self.add(f"Program returned: {value.inspect()}", "return")

    def program_error(self, message: str):
        self.add(f"Program error: {message}", "error")

    def variable_assigned(self, name: str, value: Object):
        self.add(f"Variable '{name}' assigned value: {value.inspect()}", "assignment")

    def variable_updated(self, name: str, value: Object):
        self.add(f"Variable '{name}' updated to: {value.inspect()}", "assignment")

    def operation(self, left: Object, operator: str, right: Object, result: Object):
        self.add(f"{left.inspect()} {operator} {right.inspect()} = {result.inspect()}", "operation")

    def constant_assigned(self, name: str, value: Object):
        self.add(f"Constant '{name}' assigned value: {value.inspect()}", "assignment")

    def declared(self, name: str, value: Object, constant: bool = False):
        if constant:
            self.constant_assigned(name, value)
        else:
            self.variable_assigned(name, value)

    def prefix_operation(self, operator: str, right: Object, result: Object):
        self.add(f"{operator}{right.inspect()} = {result.inspect()}", "operation")

    def branch_taken(self, branch: int | None):
        """`branch` is the 1-based condition number, None for the else branch."""
        label = "else" if branch is None else f"condition {branch}"
        self.add(f"Branch taken: {label}", "log")

    def function_returned(self, name: str, value: Object):
        self.add(f"Function '{name}' returned: {value.inspect()}", "return")

    def printed(self, text: str):
        self.add(text, "log")
        if self.on_print is not None:
            self.on_print(text)
