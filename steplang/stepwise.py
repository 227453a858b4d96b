"""
Steplang Stepwise Evaluator
===========================
An externally driven evaluator that records every intermediate step of a
run and lets the caller move back and forth through them.

Evaluation is an explicit work-list machine: each pending node is a
`_Frame` (node + environment + node path + phase + partial results) on a
stack, and one unit of work advances the top frame by one phase. Finished
children hand their result to the parent through a single value register.
Nothing is re-executed when stepping backwards; history entries carry the
call stack and output length as of their step, so any recorded step can be
shown again exactly.

Usage:
    stepper = StepwiseEvaluator()
    stepper.prepare(parse_program(source).program)
    state = stepper.next_step()
    while not state.is_complete:
        state = stepper.next_step()
"""
import logging
from dataclasses import dataclass, field
from typing import Any

from . import nodes
from .callstack import CallStack, FrameType, StackFrame, StackOverflowError
from .config import RuntimeConfig
from .environment import Environment
from .objects import (
    BREAK, CONTINUE, NULL, Array, Break, Builtin, Class, Continue, Error,
    Float, Function, Instance, Integer, Object, ReturnValue, String,
    native_bool,
)
from .output import OutputLog
from .semantics import (
    assign_index, assign_variable, build_hash, builtin_error, callee_name,
    constructor_for, declare, define_class, eval_index, eval_infix,
    eval_prefix, fstring_error, fstring_text, function_env, get_property,
    instantiation_error, loop_limit_error, missing_constructor,
    not_callable, resolve_identifier, resolve_super, resolve_this,
    set_property,
)
from .steps import CallStackFrame, EvaluationStep, ExecutionState, StepType

logger = logging.getLogger(__name__)


class StepwiseError(RuntimeError):
    """Raised when the stepwise evaluator is misused or hits its step cap."""


_UNWINDS = (ReturnValue, Error, Break, Continue)


# ─────────────────────────────────────────────────────────────
#  Step Descriptions
# ─────────────────────────────────────────────────────────────

def describe_before(node: nodes.Node) -> str:
    match node:
        case nodes.Program():
            return "Program execution started"
        case nodes.ConstStatement():
            return f"About to declare constant '{node.name.value}'"
        case nodes.LetStatement():
            return f"About to declare variable '{node.name.value}'"
        case nodes.ReturnStatement():
            return "About to return a value"
        case nodes.CallExpression():
            return f"About to call function '{callee_name(node.function)}'"
        case nodes.Identifier():
            return f"Looking up variable '{node.value}'"
        case nodes.BlockStatement():
            return "About to run a block"
        case nodes.WhileStatement():
            return "Starting while loop"
        case nodes.ForStatement():
            return "Starting for loop"
        case nodes.ClassStatement():
            return f"About to define class '{node.name.value}'"
        case nodes.FunctionLiteral():
            return "About to create a function"
    return f"About to evaluate {node.describe()}"


def describe_after(node: nodes.Node, result: Object) -> str:
    if isinstance(result, Error):
        return f"Error: {result.message}"
    text = result.inspect()
    match node:
        case nodes.Program():
            return f"Program finished with result: {text}"
        case nodes.ConstStatement():
            return f"Constant '{node.name.value}' declared with value: {text}"
        case nodes.LetStatement():
            return f"Variable '{node.name.value}' declared with value: {text}"
        case nodes.ReturnStatement():
            return f"Returned: {text}"
        case nodes.CallExpression():
            return f"Function call completed, result: {text}"
        case nodes.Identifier():
            return f"Variable '{node.value}' has value: {text}"
        case nodes.BreakStatement() | nodes.ContinueStatement():
            return f"'{text}' reached"
    return f"{node.describe()} evaluated to: {text}"


# ─────────────────────────────────────────────────────────────
#  Machine State
# ─────────────────────────────────────────────────────────────

@dataclass
class _Frame:
    """A node whose evaluation is in progress."""
    node: nodes.Node
    env: Environment
    path: str
    phase: int = 0
    started: bool = False
    data: dict[str, Any] = field(default_factory=dict)


@dataclass
class _HistoryEntry:
    step: EvaluationStep
    call_stack: tuple[CallStackFrame, ...]
    output_count: int


class StepwiseEvaluator:
    """
    Steppable evaluator with replayable history.

    Produces the same final value and the same output entries as
    `Evaluator.evaluate_program` for the same program.
    """

    def __init__(self, config: RuntimeConfig | None = None, output: OutputLog | None = None):
        self.config = config or RuntimeConfig()
        self.output = output if output is not None else OutputLog()
        self.call_stack = CallStack(self.config.max_call_depth)
        self.env = Environment()
        self._program: nodes.Program | None = None
        self._work: list[_Frame] = []
        self._value: Object = NULL
        self._history: list[_HistoryEntry] = []
        self._cursor = 0
        self._finished = False
        self._final_value: Object = NULL

    # ─────────────────────────────────────────────────────────
    #  Public API
    # ─────────────────────────────────────────────────────────

    def prepare(self, program: nodes.Program, env: Environment | None = None) -> ExecutionState:
        """Reset all state and seed the 'Program execution started' step."""
        self._program = program
        self.env = env if env is not None else Environment()
        self.call_stack.clear()
        self.output.clear()
        self._work = [_Frame(program, self.env, "program", started=True)]
        self._value = NULL
        self._history = []
        self._cursor = 0
        self._finished = False
        self._final_value = NULL

        self.output.step_number = 1
        self.output.program_started()
        self._record(program, self.env, StepType.BEFORE, describe_before(program), "program")
        logger.debug("prepared program with %d statements", len(program.statements))
        return self.get_state()

    def next_step(self) -> ExecutionState:
        """Advance the cursor, running the machine when it is at the frontier."""
        self._require_program()
        if self._cursor >= len(self._history) and not self._finished:
            self._run(lambda: len(self._history) > self._cursor)
        if self._cursor < len(self._history):
            self._cursor += 1
        return self.get_state()

    def previous_step(self) -> ExecutionState | None:
        """Move the cursor back one step; None when already at the first."""
        if self._cursor <= 1:
            return None
        self._cursor -= 1
        logger.debug("stepped back to %d", self._cursor)
        return self.get_state()

    def run_to_completion(self) -> Object:
        """Run the machine to the end and move the cursor to the last step."""
        self._require_program()
        self._run(lambda: False)
        self._cursor = len(self._history)
        return self._final_value

    def go_to_step(self, number: int) -> ExecutionState:
        """Move the cursor to step `number`, running forward when needed."""
        self._require_program()
        if number < 1:
            raise StepwiseError(f"Step numbers start at 1, got {number}")
        if number > len(self._history):
            self._run(lambda: len(self._history) >= number)
        self._cursor = min(number, len(self._history))
        logger.debug("moved to step %d", self._cursor)
        return self.get_state()

    def reset(self) -> ExecutionState:
        """Start the prepared program over with a fresh environment."""
        self._require_program()
        return self.prepare(self._program)

    def get_state(self) -> ExecutionState:
        if self._cursor == 0:
            return ExecutionState(total_steps=len(self._history))
        entry = self._history[self._cursor - 1]
        return ExecutionState(
            current_step=entry.step,
            call_stack=list(entry.call_stack),
            output=self.output.entries[:entry.output_count],
            is_complete=self._finished and self._cursor == len(self._history),
            current_step_number=self._cursor,
            total_steps=len(self._history),
        )

    @property
    def is_complete(self) -> bool:
        return self._finished

    @property
    def final_value(self) -> Object:
        return self._final_value

    @property
    def history(self) -> list[EvaluationStep]:
        return [entry.step for entry in self._history]

    # ─────────────────────────────────────────────────────────
    #  Driving the Machine
    # ─────────────────────────────────────────────────────────

    def _require_program(self):
        if self._program is None:
            raise StepwiseError("No program prepared; call prepare() first")

    def _run(self, done):
        """Run work units until `done()` holds or the program finishes."""
        try:
            while not self._finished and not done():
                self._tick()
        except (StackOverflowError, StepwiseError) as exc:
            logger.debug("stepwise run aborted: %s", exc)
            self._abort(exc)
            raise

    def _abort(self, exc: Exception):
        """End the run with a final Program step showing the failure."""
        self.output.program_error(str(exc))
        self._work.clear()
        self.call_stack.clear()
        self._final_value = Error(str(exc))
        self._record(
            self._program, self.env, StepType.AFTER, f"Error: {exc}", "program",
            self._final_value, enforce_limit=False,
        )
        self._finished = True
        self._cursor = len(self._history)

    def _tick(self):
        frame = self._work[-1]
        if not frame.started:
            frame.started = True
            self._record(frame.node, frame.env, StepType.BEFORE, describe_before(frame.node), frame.path)
            return
        self._advance(frame)

    def _record(self, node, env, step_type, description, path, result=None, enforce_limit=True):
        number = len(self._history) + 1
        if enforce_limit and number > self.config.max_steps:
            raise StepwiseError(f"Step limit of {self.config.max_steps} exceeded")
        position = node.position()
        step = EvaluationStep(
            step_number=number,
            node=node,
            node_type=node.node_type,
            description=description,
            environment=env.snapshot(),
            result=result,
            result_text=result.inspect() if result is not None else None,
            line=position.line,
            column=position.column,
            depth=self.call_stack.depth() - 1,
            node_path=path,
            step_type=step_type,
        )
        self._history.append(_HistoryEntry(step, self.call_stack.to_contract(), len(self.output)))
        self.output.step_number = number + 1

    def _during(self, frame: _Frame, description: str, env: Environment | None = None):
        self._record(frame.node, env or frame.env, StepType.DURING, description, frame.path)

    def _push(self, node: nodes.Node, env: Environment, path: str):
        self._work.append(_Frame(node, env, path))

    def _child(self, frame: _Frame, node: nodes.Node, path: str, phase: int, env: Environment | None = None):
        """Evaluate `node` next; `frame` resumes at `phase` with its result."""
        frame.phase = phase
        self._push(node, env or frame.env, f"{frame.path}.{path}")

    def _finish(self, frame: _Frame, result: Object):
        self._work.pop()
        self._value = result
        self._record(
            frame.node, frame.env, StepType.AFTER,
            describe_after(frame.node, result), frame.path, result,
        )

    def _located(self, obj: Object, node: nodes.Node) -> Object:
        if isinstance(obj, Error) and obj.position is None:
            obj.position = node.position()
            obj.stack_trace = self.call_stack.format_stack_trace()
        return obj

    def _collect(self, frame: _Frame, children: list[tuple[nodes.Node, str]]) -> list[Object] | Error | None:
        """Evaluate `children` left to right across ticks.

        Returns None while a child is pending, the first Error, or the list
        of values once all are evaluated.
        """
        data = frame.data
        if "items" not in data:
            data["items"] = []
        elif data.pop("waiting", False):
            if isinstance(self._value, Error):
                return self._value
            data["items"].append(self._value)
        items = data["items"]
        if len(items) < len(children):
            node, path = children[len(items)]
            data["waiting"] = True
            self._push(node, frame.env, f"{frame.path}.{path}")
            return None
        return items

    # ─────────────────────────────────────────────────────────
    #  Node Handlers
    # ─────────────────────────────────────────────────────────

    def _advance(self, frame: _Frame):
        node = frame.node
        match node:
            case nodes.Program():
                self._advance_program(frame)

            # statements
            case nodes.ExpressionStatement():
                if frame.phase == 0:
                    return self._child(frame, node.expression, "expression", 1)
                self._finish(frame, self._value)
            case nodes.LetStatement():
                self._advance_declaration(frame)
            case nodes.ReturnStatement():
                if node.value is None:
                    return self._finish(frame, ReturnValue(NULL))
                if frame.phase == 0:
                    return self._child(frame, node.value, "value", 1)
                value = self._value
                self._finish(frame, value if isinstance(value, Error) else ReturnValue(value))
            case nodes.BlockStatement():
                self._advance_block(frame)
            case nodes.WhileStatement() | nodes.ForStatement():
                self._advance_loop(frame)
            case nodes.BreakStatement():
                self._finish(frame, BREAK)
            case nodes.ContinueStatement():
                self._finish(frame, CONTINUE)
            case nodes.ClassStatement():
                self._finish(frame, self._located(define_class(node, frame.env), node))

            # literals
            case nodes.IntegerLiteral():
                self._finish(frame, Integer(node.value))
            case nodes.FloatLiteral():
                self._finish(frame, Float(node.value))
            case nodes.StringLiteral():
                self._finish(frame, String(node.value))
            case nodes.BooleanLiteral():
                self._finish(frame, native_bool(node.value))
            case nodes.NullLiteral():
                self._finish(frame, NULL)
            case nodes.FunctionLiteral():
                self._finish(frame, Function(node.parameters, node.body, frame.env))
            case nodes.ArrayLiteral():
                values = self._collect(frame, [(e, f"elements[{i}]") for i, e in enumerate(node.elements)])
                if values is not None:
                    self._finish(frame, values if isinstance(values, Error) else Array(list(values)))
            case nodes.HashLiteral():
                self._advance_hash(frame)
            case nodes.FStringLiteral():
                values = self._collect(frame, [(e, f"expressions[{i}]") for i, e in enumerate(node.expressions)])
                if isinstance(values, Error):
                    self._finish(frame, self._located(fstring_error(values), node))
                elif values is not None:
                    self._finish(frame, fstring_text(node.parts, values))

            # expressions
            case nodes.Identifier():
                self._finish(frame, self._located(resolve_identifier(frame.env, node.value), node))
            case nodes.ThisExpression():
                self._finish(frame, self._located(resolve_this(frame.env), node))
            case nodes.PrefixExpression():
                if frame.phase == 0:
                    return self._child(frame, node.right, "right", 1)
                right = self._value
                if isinstance(right, Error):
                    return self._finish(frame, right)
                result = eval_prefix(node.operator, right)
                if isinstance(result, Error):
                    return self._finish(frame, self._located(result, node))
                self.output.prefix_operation(node.operator, right, result)
                self._finish(frame, result)
            case nodes.InfixExpression():
                self._advance_infix(frame)
            case nodes.AssignmentExpression():
                self._advance_assignment(frame)
            case nodes.IfExpression():
                self._advance_if(frame)
            case nodes.IndexExpression():
                if frame.phase == 0:
                    return self._child(frame, node.left, "left", 1)
                if isinstance(self._value, Error):
                    return self._finish(frame, self._value)
                if frame.phase == 1:
                    frame.data["left"] = self._value
                    return self._child(frame, node.index, "index", 2)
                self._finish(frame, self._located(eval_index(frame.data["left"], self._value), node))
            case nodes.PropertyExpression():
                if frame.phase == 0:
                    return self._child(frame, node.left, "left", 1)
                obj = self._value
                if isinstance(obj, Error):
                    return self._finish(frame, obj)
                self._finish(frame, self._located(get_property(obj, node.property.value), node))
            case nodes.CallExpression():
                self._advance_call(frame)
            case nodes.NewExpression():
                self._advance_new(frame)
            case nodes.SuperExpression():
                self._advance_super(frame)
            case _:
                self._finish(frame, Error(f"No evaluator found for node type: {node.node_type}"))

    def _advance_program(self, frame: _Frame):
        program = frame.node
        data = frame.data
        if frame.phase == 1:
            result = self._value
            data["result"] = result
            if isinstance(result, ReturnValue):
                self.output.program_returned(result.value)
                return self._finish_program(frame, result.value)
            if isinstance(result, Error):
                self.output.program_error(result.message)
                return self._finish_program(frame, result)
            data["index"] = data.get("index", 0) + 1

        index = data.get("index", 0)
        if index < len(program.statements):
            return self._child(frame, program.statements[index], f"statements[{index}]", 1)
        self.output.program_completed()
        self._finish_program(frame, data.get("result", NULL))

    def _finish_program(self, frame: _Frame, result: Object):
        self._final_value = result
        self._finish(frame, result)
        self._finished = True
        logger.debug("stepwise program finished after %d steps", len(self._history))

    def _advance_declaration(self, frame: _Frame):
        node = frame.node
        if frame.phase == 0:
            return self._child(frame, node.value, "value", 1)
        value = self._value
        if isinstance(value, Error):
            return self._finish(frame, value)
        name = node.name.value
        constant = isinstance(node, nodes.ConstStatement)
        result = declare(frame.env, name, value, constant=constant)
        if isinstance(result, Error):
            return self._finish(frame, self._located(result, node))
        self.output.declared(name, value, constant)
        self._finish(frame, result)

    def _advance_block(self, frame: _Frame):
        node = frame.node
        data = frame.data
        if frame.phase == 0:
            data["env"] = frame.env.new_block_scope()
            data["index"] = 0
            data["result"] = NULL
            self._during(frame, "Entered block scope", data["env"])
            frame.phase = 1
            return
        if frame.phase == 2:
            data["result"] = self._value
            if isinstance(self._value, _UNWINDS):
                return self._exit_block(frame)
            data["index"] += 1

        index = data["index"]
        if index < len(node.statements):
            return self._child(frame, node.statements[index], f"statements[{index}]", 2, data["env"])
        self._exit_block(frame)

    def _exit_block(self, frame: _Frame):
        self._during(frame, "Leaving block scope", frame.data["env"])
        self._finish(frame, frame.data["result"])

    def _advance_loop(self, frame: _Frame):
        """`while` and `for`; phases: init, condition, body, update."""
        node = frame.node
        data = frame.data
        is_for = isinstance(node, nodes.ForStatement)
        match frame.phase:
            case 0:
                data["iterations"] = 0
                if is_for:
                    data["env"] = frame.env.new_block_scope()
                    return self._child(frame, node.init, "init", 1, data["env"])
                data["env"] = frame.env
                frame.phase = 2
            case 1:
                if isinstance(self._value, Error):
                    return self._finish(frame, self._value)
                frame.phase = 2
            case 3:
                condition = self._value
                if isinstance(condition, Error):
                    return self._finish(frame, condition)
                if not condition.is_truthy():
                    self._during(frame, "Loop condition is false, leaving loop", data["env"])
                    return self._finish(frame, NULL)
                data["iterations"] += 1
                if data["iterations"] > self.config.max_loop_iterations:
                    return self._finish(
                        frame, self._located(loop_limit_error(self.config.max_loop_iterations), node),
                    )
                self._during(frame, f"Loop condition is true, running iteration {data['iterations']}", data["env"])
                return self._child(frame, node.body, "body", 4, data["env"])
            case 4:
                result = self._value
                if isinstance(result, (ReturnValue, Error)):
                    return self._finish(frame, result)
                if isinstance(result, Break):
                    return self._finish(frame, NULL)
                if is_for:
                    return self._child(frame, node.update, "update", 5, data["env"])
                frame.phase = 2
            case 5:
                if isinstance(self._value, Error):
                    return self._finish(frame, self._value)
                frame.phase = 2
        if frame.phase == 2:
            self._child(frame, node.condition, "condition", 3, data["env"])

    def _advance_hash(self, frame: _Frame):
        node = frame.node
        children = []
        for i, (key, value) in enumerate(node.pairs):
            children.append((key, f"pairs[{i}].key"))
            children.append((value, f"pairs[{i}].value"))
        values = self._collect(frame, children)
        if values is None:
            return
        if isinstance(values, Error):
            return self._finish(frame, values)
        pairs = list(zip(values[0::2], values[1::2]))
        self._finish(frame, self._located(build_hash(pairs), node))

    def _advance_infix(self, frame: _Frame):
        node = frame.node
        if frame.phase == 0:
            return self._child(frame, node.left, "left", 1)
        if isinstance(self._value, Error):
            return self._finish(frame, self._value)
        if frame.phase == 1:
            frame.data["left"] = self._value
            return self._child(frame, node.right, "right", 2)
        left, right = frame.data["left"], self._value
        self._during(frame, f"Applying '{node.operator}' to {left.inspect()} and {right.inspect()}")
        result = eval_infix(node.operator, left, right)
        if isinstance(result, Error):
            return self._finish(frame, self._located(result, node))
        self.output.operation(left, node.operator, right, result)
        self._finish(frame, result)

    def _advance_assignment(self, frame: _Frame):
        node = frame.node
        target = node.target
        data = frame.data
        if frame.phase == 0:
            return self._child(frame, node.value, "value", 1)
        if isinstance(self._value, Error):
            return self._finish(frame, self._value)
        if frame.phase == 1:
            data["value"] = value = self._value
            match target:
                case nodes.Identifier():
                    result = assign_variable(frame.env, target.value, value)
                    if not isinstance(result, Error):
                        self.output.variable_updated(target.value, value)
                    return self._finish(frame, self._located(result, node))
                case nodes.IndexExpression() | nodes.PropertyExpression():
                    return self._child(frame, target.left, "target.left", 2)
            return self._finish(frame, self._located(Error(f"Invalid assignment target: {target}"), node))
        if isinstance(target, nodes.PropertyExpression):
            result = set_property(self._value, target.property.value, data["value"])
            return self._finish(frame, self._located(result, node))
        if frame.phase == 2:
            data["container"] = self._value
            return self._child(frame, target.index, "target.index", 3)
        result = assign_index(data["container"], self._value, data["value"])
        self._finish(frame, self._located(result, node))

    def _advance_if(self, frame: _Frame):
        node = frame.node
        data = frame.data
        if frame.phase == 3:
            return self._finish(frame, self._value)
        if frame.phase == 1:
            condition = self._value
            if isinstance(condition, Error):
                return self._finish(frame, condition)
            index = data["index"]
            if condition.is_truthy():
                self.output.branch_taken(index + 1)
                self._during(frame, f"Condition {index + 1} is true, taking its branch")
                return self._child(frame, node.consequences[index], f"consequences[{index}]", 3)
            data["index"] = index + 1
        else:
            data["index"] = 0

        index = data["index"]
        if index < len(node.conditions):
            return self._child(frame, node.conditions[index], f"conditions[{index}]", 1)
        if node.alternative is not None:
            self.output.branch_taken(None)
            self._during(frame, "All conditions are false, taking the else branch")
            return self._child(frame, node.alternative, "alternative", 3)
        self._finish(frame, NULL)

    # ─────────────────────────────────────────────────────────
    #  Calls
    # ─────────────────────────────────────────────────────────

    def _arguments(self, frame: _Frame) -> list[Object] | Error | None:
        arguments = frame.node.arguments
        return self._collect(frame, [(a, f"arguments[{i}]") for i, a in enumerate(arguments)])

    def _advance_call(self, frame: _Frame):
        node = frame.node
        if frame.phase == 0:
            return self._child(frame, node.function, "function", 1)
        if frame.phase == 1:
            if isinstance(self._value, Error):
                return self._finish(frame, self._value)
            frame.data["function"] = self._value
            frame.phase = 2
        if frame.phase == 2:
            args = self._arguments(frame)
            if args is None:
                return
            if isinstance(args, Error):
                return self._finish(frame, args)
            function = frame.data["function"]
            name = callee_name(node.function)
            if isinstance(function, Function):
                frame_type = FrameType.METHOD if function.owner is not None else FrameType.FUNCTION
                return self._begin_call(frame, function, args, name, frame_type)
            if isinstance(function, Builtin):
                return self._finish(frame, self._call_builtin(frame, function, args))
            return self._finish(frame, self._located(not_callable(function), node))
        self._finish(frame, self._end_call(frame))

    def _call_builtin(self, frame: _Frame, builtin: Builtin, args: list[Object]) -> Object:
        self.call_stack.push(StackFrame(builtin.name, FrameType.BUILTIN, None, [a.inspect() for a in args]))
        try:
            self._during(frame, f"Calling built-in function '{builtin.name}'")
            result = builtin.fn(args, self.output)
        finally:
            self.call_stack.pop()
        if isinstance(result, Error):
            return self._located(builtin_error(builtin.name, result), frame.node)
        return result

    def _begin_call(self, frame: _Frame, function: Function, args: list[Object], name: str, frame_type: FrameType):
        """Push a call frame and schedule the body; resumes at phase 3."""
        env = function_env(function, args)
        if isinstance(env, Error):
            return self._finish(frame, self._located(env, frame.node))
        args_text = [a.inspect() for a in args]
        self.call_stack.push(StackFrame(name, frame_type, frame.node.position(), args_text))
        frame.data["name"] = name
        self._during(frame, f"Entering function '{name}' with arguments ({', '.join(args_text)})", env)
        self._child(frame, function.body, f"call[{name}].body", 3, env)

    def _end_call(self, frame: _Frame) -> Object:
        """Unwind the call frame after the body ran; returns the call result."""
        name = frame.data["name"]
        result = self._value
        if isinstance(result, ReturnValue):
            result = result.value
        if isinstance(result, Error):
            self.call_stack.pop()
            return result
        self.call_stack.set_return_value(result.inspect())
        self._during(frame, f"Returning from '{name}' with {result.inspect()}")
        self.call_stack.pop(result.inspect())
        self.output.function_returned(name, result)
        return result

    def _advance_new(self, frame: _Frame):
        node = frame.node
        data = frame.data
        if frame.phase == 0:
            return self._child(frame, node.class_name, "class_name", 1)
        if frame.phase == 1:
            if isinstance(self._value, Error):
                return self._finish(frame, self._value)
            data["class"] = self._value
            frame.phase = 2
        if frame.phase == 2:
            args = self._arguments(frame)
            if args is None:
                return
            if isinstance(args, Error):
                return self._finish(frame, args)
            klass = data["class"]
            if not isinstance(klass, Class):
                return self._finish(frame, self._located(instantiation_error(klass), node))
            data["instance"] = instance = Instance(klass)
            constructor = constructor_for(klass, instance)
            if constructor is None:
                if args:
                    return self._finish(frame, self._located(missing_constructor(klass), node))
                return self._finish(frame, instance)
            return self._begin_call(frame, constructor, args, f"{klass.name}.init", FrameType.CONSTRUCTOR)
        result = self._end_call(frame)
        self._finish(frame, result if isinstance(result, Error) else data["instance"])

    def _advance_super(self, frame: _Frame):
        node = frame.node
        data = frame.data
        if frame.phase == 0:
            resolved = resolve_super(frame.env, node.method.value if node.method else None)
            if isinstance(resolved, Error):
                return self._finish(frame, self._located(resolved, node))
            data["function"], data["target"] = resolved
            frame.phase = 2
        if frame.phase == 2:
            args = self._arguments(frame)
            if args is None:
                return
            if isinstance(args, Error):
                return self._finish(frame, args)
            frame_type = FrameType.CONSTRUCTOR if node.method is None else FrameType.METHOD
            return self._begin_call(frame, data["function"], args, data["target"], frame_type)
        result = self._end_call(frame)
        if isinstance(result, Error) or node.method is not None:
            return self._finish(frame, result)
        self._finish(frame, NULL)
