"""
Steplang Step Contracts
=======================
The data the stepwise evaluator hands to visualizers, the CLI and the HTTP
API. Visualizers consume only these models, never evaluator internals.

All models are pydantic so they validate on construction and serialize
straight to JSON (`model_dump()` / `model_dump_json()`).
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class StepType(str, Enum):
    """Where in a node's evaluation a step was recorded."""
    BEFORE = "before"
    DURING = "during"
    AFTER = "after"


OutputType = Literal["log", "error", "return", "assignment", "operation"]


# ─────────────────────────────────────────────────────────────
#  Environment
# ─────────────────────────────────────────────────────────────

class VariableSnapshot(BaseModel):
    name: str
    value: str                  # inspect() of the bound value
    type: str                   # ObjectType tag
    is_constant: bool = False


class EnvironmentSnapshot(BaseModel):
    """One scope's bindings plus the chain of enclosing scopes."""
    variables: list[VariableSnapshot] = Field(default_factory=list)
    parent: Optional[EnvironmentSnapshot] = None
    is_block_scope: bool = False

    def lookup(self, name: str) -> Optional[VariableSnapshot]:
        """Find the innermost binding for `name`."""
        scope = self
        while scope is not None:
            for var in scope.variables:
                if var.name == name:
                    return var
            scope = scope.parent
        return None


EnvironmentSnapshot.model_rebuild()


# ─────────────────────────────────────────────────────────────
#  Output and Call Stack
# ─────────────────────────────────────────────────────────────

class OutputEntry(BaseModel):
    value: str
    type: OutputType = "log"
    timestamp: float = 0.0
    step_number: int = 0


class CallStackFrame(BaseModel):
    function_name: str
    args: list[str] = Field(default_factory=list)
    start_line: int = 0
    start_column: int = 0
    is_active: bool = True
    return_value: Optional[str] = None


# ─────────────────────────────────────────────────────────────
#  Steps
# ─────────────────────────────────────────────────────────────

class EvaluationStep(BaseModel):
    """A single recorded moment of evaluation.

    `node` and `result` hold live AST/runtime objects for in-process
    consumers and are excluded from serialization; `node_type` and
    `result_text` carry the same information as plain strings.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    step_number: int
    node: Any = Field(default=None, exclude=True)
    node_type: str = ""
    description: str = ""
    environment: EnvironmentSnapshot = Field(default_factory=EnvironmentSnapshot)
    result: Any = Field(default=None, exclude=True)
    result_text: Optional[str] = None
    line: int = 0
    column: int = 0
    depth: int = 0
    node_path: str = ""
    step_type: StepType = StepType.BEFORE


class ExecutionState(BaseModel):
    """Everything a visualizer needs for the step under the cursor."""
    current_step: Optional[EvaluationStep] = None
    call_stack: list[CallStackFrame] = Field(default_factory=list)
    output: list[OutputEntry] = Field(default_factory=list)
    is_complete: bool = False
    current_step_number: int = 0
    total_steps: int = 0
