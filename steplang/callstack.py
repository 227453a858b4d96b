"""
Steplang Call Stack
===================
Call-depth accounting shared by both evaluators.

The stack always holds a global frame at the bottom. Pushing beyond the
configured maximum raises StackOverflowError, which is fatal for the run
rather than an Error value the program could observe.
"""
from dataclasses import dataclass, field
from enum import Enum

from .steps import CallStackFrame
from .token import Position


DEFAULT_MAX_DEPTH = 1000


class StackOverflowError(RuntimeError):
    """Raised when a call would exceed the maximum stack depth."""

    def __init__(self, max_depth: int):
        super().__init__(
            f"Stack overflow: Maximum stack depth of {max_depth} exceeded. "
            "This usually indicates infinite recursion."
        )
        self.max_depth = max_depth


class FrameType(Enum):
    GLOBAL = "Global"
    FUNCTION = "Function"
    CONSTRUCTOR = "Constructor"
    METHOD = "Method"
    BUILTIN = "Built-in"


@dataclass
class StackFrame:
    function_name: str = "<anonymous>"
    frame_type: FrameType = FrameType.FUNCTION
    position: Position | None = None
    args: list[str] = field(default_factory=list)
    is_active: bool = True
    return_value: str | None = None

    def format_for_stack_trace(self) -> str:
        text = f"at {self.function_name} [{self.frame_type.value}]"
        if self.position is not None:
            text += f" (line {self.position.line}, column {self.position.column})"
        return text

    def to_contract(self) -> CallStackFrame:
        position = self.position or Position(0, 0)
        return CallStackFrame(
            function_name=self.function_name,
            args=list(self.args),
            start_line=position.line,
            start_column=position.column,
            is_active=self.is_active,
            return_value=self.return_value,
        )


class CallStack:
    """
    Bounded stack of active calls.

    Usage:
        stack = CallStack(max_depth=1000)
        stack.push(StackFrame("fib", position=node.position()))
        ...
        stack.pop()
    """

    def __init__(self, max_depth: int = DEFAULT_MAX_DEPTH):
        self.max_depth = max_depth
        self.max_depth_reached = 1
        self._frames: list[StackFrame] = [self._global_frame()]
        # Contract models of the call frames; shared by snapshots until the stack changes
        self._contract: tuple[CallStackFrame, ...] = ()

    @staticmethod
    def _global_frame() -> StackFrame:
        return StackFrame("<global>", FrameType.GLOBAL, Position(1, 1))

    def push(self, frame: StackFrame):
        if len(self._frames) >= self.max_depth:
            raise StackOverflowError(self.max_depth)
        self._frames.append(frame)
        self._contract = (*self._contract, frame.to_contract())
        self.max_depth_reached = max(self.max_depth_reached, len(self._frames))

    def pop(self, return_value: str | None = None) -> StackFrame | None:
        """Remove the innermost call frame; the global frame is never popped."""
        if len(self._frames) <= 1:
            return None
        frame = self._frames.pop()
        frame.is_active = False
        frame.return_value = return_value
        self._contract = self._contract[:-1]
        return frame

    def set_return_value(self, return_value: str):
        """Stamp the innermost call frame with the value it is returning."""
        if len(self._frames) <= 1:
            return
        frame = self._frames[-1]
        frame.return_value = return_value
        self._contract = (*self._contract[:-1], frame.to_contract())

    def peek(self) -> StackFrame:
        return self._frames[-1]

    def depth(self) -> int:
        return len(self._frames)

    def __len__(self) -> int:
        return len(self._frames)

    def clear(self):
        self._frames = [self._global_frame()]
        self._contract = ()
        self.max_depth_reached = 1

    def format_stack_trace(self) -> list[str]:
        """Innermost call first."""
        return [frame.format_for_stack_trace() for frame in reversed(self._frames)]

    def to_contract(self) -> tuple[CallStackFrame, ...]:
        """Call frames (global excluded) as step-contract models, outermost first.

        The returned tuple and its models must not be mutated.
        """
        return self._contract

    def __repr__(self) -> str:
        return f"CallStack(depth={self.depth()}, max_depth={self.max_depth})"
