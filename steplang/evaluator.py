"""
Steplang Evaluator
==================
Direct tree-walking evaluator: `evaluate(program)` runs to completion and
returns the final value.

Runtime errors are Error values that propagate through every composite
node; only stack overflow escapes as a host exception (StackOverflowError),
since it ends the run rather than being something a program can observe.
"""
import logging
import sys
from contextlib import contextmanager

from . import nodes
from .callstack import CallStack, FrameType, StackFrame, StackOverflowError
from .config import RuntimeConfig
from .environment import Environment
from .objects import (
    BREAK, CONTINUE, NULL, Array, Break, Builtin, Class, Continue, Error, Float,
    Function, Instance, Integer, Object, ReturnValue, String, native_bool,
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

logger = logging.getLogger(__name__)


# Host frames used per language call, with room to spare
FRAMES_PER_CALL = 30


@contextmanager
def recursion_headroom(max_call_depth: int):
    """Raise the interpreter recursion limit so `max_call_depth` calls fit."""
    needed = max_call_depth * FRAMES_PER_CALL + 1000
    previous = sys.getrecursionlimit()
    if needed > previous:
        sys.setrecursionlimit(needed)
    try:
        yield
    finally:
        if needed > previous:
            sys.setrecursionlimit(previous)


_UNWINDS = (ReturnValue, Error, Break, Continue)


class Evaluator:
    """
    Tree-walking evaluator for steplang programs.

    Usage:
        evaluator = Evaluator(config=RuntimeConfig(), output=OutputLog())
        result = evaluator.evaluate_program(program)
    """

    def __init__(self, config: RuntimeConfig | None = None, output: OutputLog | None = None):
        self.config = config or RuntimeConfig()
        self.output = output if output is not None else OutputLog()
        self.call_stack = CallStack(self.config.max_call_depth)

    # ─────────────────────────────────────────────────────────
    #  Entry Points
    # ─────────────────────────────────────────────────────────

    def evaluate_program(self, program: nodes.Program, env: Environment | None = None) -> Object:
        """Run every statement; stops at a top-level return or the first Error."""
        env = env if env is not None else Environment()
        logger.debug("program started (%d statements)", len(program.statements))
        self.output.program_started()
        result: Object = NULL
        try:
            with recursion_headroom(self.config.max_call_depth):
                for statement in program.statements:
                    result = self.evaluate(statement, env)
                    if isinstance(result, ReturnValue):
                        self.output.program_returned(result.value)
                        return result.value
                    if isinstance(result, Error):
                        logger.debug("program error: %s", result.message)
                        self.output.program_error(result.message)
                        return result
        except RecursionError:
            self._overflowed()
            raise StackOverflowError(self.config.max_call_depth) from None
        except StackOverflowError:
            self._overflowed()
            raise
        self.output.program_completed()
        logger.debug("program completed: %s", result.inspect())
        return result

    def _overflowed(self):
        logger.debug("stack overflow at depth %d", self.call_stack.depth())
        self.output.program_error(str(StackOverflowError(self.config.max_call_depth)))
        self.call_stack.clear()

    def evaluate(self, node: nodes.Node, env: Environment) -> Object:
        match node:
            case nodes.Program():
                return self.evaluate_program(node, env)

            # statements
            case nodes.ExpressionStatement():
                return self.evaluate(node.expression, env)
            case nodes.LetStatement():
                return self._eval_declaration(node, env)
            case nodes.ReturnStatement():
                if node.value is None:
                    return ReturnValue(NULL)
                value = self.evaluate(node.value, env)
                return value if isinstance(value, Error) else ReturnValue(value)
            case nodes.BlockStatement():
                return self._eval_block(node, env.new_block_scope())
            case nodes.WhileStatement():
                return self._eval_while(node, env)
            case nodes.ForStatement():
                return self._eval_for(node, env)
            case nodes.BreakStatement():
                return BREAK
            case nodes.ContinueStatement():
                return CONTINUE
            case nodes.ClassStatement():
                return self._located(define_class(node, env), node)

            # literals
            case nodes.IntegerLiteral():
                return Integer(node.value)
            case nodes.FloatLiteral():
                return Float(node.value)
            case nodes.StringLiteral():
                return String(node.value)
            case nodes.BooleanLiteral():
                return native_bool(node.value)
            case nodes.NullLiteral():
                return NULL
            case nodes.FStringLiteral():
                return self._eval_fstring(node, env)
            case nodes.ArrayLiteral():
                elements = self._eval_expressions(node.elements, env)
                if isinstance(elements, Error):
                    return elements
                return Array(elements)
            case nodes.HashLiteral():
                return self._eval_hash(node, env)
            case nodes.FunctionLiteral():
                return Function(node.parameters, node.body, env)

            # expressions
            case nodes.Identifier():
                return self._located(resolve_identifier(env, node.value), node)
            case nodes.ThisExpression():
                return self._located(resolve_this(env), node)
            case nodes.PrefixExpression():
                right = self.evaluate(node.right, env)
                if isinstance(right, Error):
                    return right
                return self._eval_prefix(node, right)
            case nodes.InfixExpression():
                return self._eval_infix(node, env)
            case nodes.AssignmentExpression():
                return self._eval_assignment(node, env)
            case nodes.IfExpression():
                return self._eval_if(node, env)
            case nodes.IndexExpression():
                left = self.evaluate(node.left, env)
                if isinstance(left, Error):
                    return left
                index = self.evaluate(node.index, env)
                if isinstance(index, Error):
                    return index
                return self._located(eval_index(left, index), node)
            case nodes.PropertyExpression():
                obj = self.evaluate(node.left, env)
                if isinstance(obj, Error):
                    return obj
                return self._located(get_property(obj, node.property.value), node)
            case nodes.CallExpression():
                return self._eval_call(node, env)
            case nodes.NewExpression():
                return self._eval_new(node, env)
            case nodes.SuperExpression():
                return self._eval_super(node, env)

        return Error(f"No evaluator found for node type: {type(node).__name__}")

    # ─────────────────────────────────────────────────────────
    #  Helpers
    # ─────────────────────────────────────────────────────────

    def _located(self, obj: Object, node: nodes.Node) -> Object:
        """Attach position and stack trace to a freshly created Error."""
        if isinstance(obj, Error) and obj.position is None:
            obj.position = node.position()
            obj.stack_trace = self.call_stack.format_stack_trace()
        return obj

    def _eval_expressions(self, expressions, env: Environment) -> list[Object] | Error:
        values = []
        for expression in expressions:
            value = self.evaluate(expression, env)
            if isinstance(value, Error):
                return value
            values.append(value)
        return values

    # ─────────────────────────────────────────────────────────
    #  Statements
    # ─────────────────────────────────────────────────────────

    def _eval_declaration(self, node: nodes.LetStatement, env: Environment) -> Object:
        value = self.evaluate(node.value, env)
        if isinstance(value, Error):
            return value
        name = node.name.value
        constant = isinstance(node, nodes.ConstStatement)
        result = declare(env, name, value, constant=constant)
        if isinstance(result, Error):
            return self._located(result, node)
        self.output.declared(name, value, constant)
        return result

    def _eval_block(self, node: nodes.BlockStatement, env: Environment) -> Object:
        result: Object = NULL
        for statement in node.statements:
            result = self.evaluate(statement, env)
            if isinstance(result, _UNWINDS):
                break
        return result

    def _eval_while(self, node: nodes.WhileStatement, env: Environment) -> Object:
        iterations = 0
        while True:
            condition = self.evaluate(node.condition, env)
            if isinstance(condition, Error):
                return condition
            if not condition.is_truthy():
                return NULL
            iterations += 1
            if iterations > self.config.max_loop_iterations:
                return self._located(loop_limit_error(self.config.max_loop_iterations), node)
            result = self.evaluate(node.body, env)
            if isinstance(result, (ReturnValue, Error)):
                return result
            if isinstance(result, Break):
                return NULL

    def _eval_for(self, node: nodes.ForStatement, env: Environment) -> Object:
        loop_env = env.new_block_scope()
        init = self.evaluate(node.init, loop_env)
        if isinstance(init, Error):
            return init
        iterations = 0
        while True:
            condition = self.evaluate(node.condition, loop_env)
            if isinstance(condition, Error):
                return condition
            if not condition.is_truthy():
                return NULL
            iterations += 1
            if iterations > self.config.max_loop_iterations:
                return self._located(loop_limit_error(self.config.max_loop_iterations), node)
            result = self.evaluate(node.body, loop_env)
            if isinstance(result, (ReturnValue, Error)):
                return result
            if isinstance(result, Break):
                return NULL
            update = self.evaluate(node.update, loop_env)
            if isinstance(update, Error):
                return update

    # ─────────────────────────────────────────────────────────
    #  Expressions
    # ─────────────────────────────────────────────────────────

    def _eval_fstring(self, node: nodes.FStringLiteral, env: Environment) -> Object:
        values = []
        for expression in node.expressions:
            value = self.evaluate(expression, env)
            if isinstance(value, Error):
                return self._located(fstring_error(value), node)
            values.append(value)
        return fstring_text(node.parts, values)

    def _eval_hash(self, node: nodes.HashLiteral, env: Environment) -> Object:
        pairs = []
        for key_node, value_node in node.pairs:
            key = self.evaluate(key_node, env)
            if isinstance(key, Error):
                return key
            value = self.evaluate(value_node, env)
            if isinstance(value, Error):
                return value
            pairs.append((key, value))
        return self._located(build_hash(pairs), node)

    def _eval_prefix(self, node: nodes.PrefixExpression, right: Object) -> Object:
        result = eval_prefix(node.operator, right)
        if isinstance(result, Error):
            return self._located(result, node)
        self.output.prefix_operation(node.operator, right, result)
        return result

    def _eval_infix(self, node: nodes.InfixExpression, env: Environment) -> Object:
        left = self.evaluate(node.left, env)
        if isinstance(left, Error):
            return left
        right = self.evaluate(node.right, env)
        if isinstance(right, Error):
            return right
        result = eval_infix(node.operator, left, right)
        if isinstance(result, Error):
            return self._located(result, node)
        self.output.operation(left, node.operator, right, result)
        return result

    def _eval_assignment(self, node: nodes.AssignmentExpression, env: Environment) -> Object:
        value = self.evaluate(node.value, env)
        if isinstance(value, Error):
            return value
        target = node.target
        match target:
            case nodes.Identifier():
                result = assign_variable(env, target.value, value)
                if not isinstance(result, Error):
                    self.output.variable_updated(target.value, value)
            case nodes.IndexExpression():
                container = self.evaluate(target.left, env)
                if isinstance(container, Error):
                    return container
                index = self.evaluate(target.index, env)
                if isinstance(index, Error):
                    return index
                result = assign_index(container, index, value)
            case nodes.PropertyExpression():
                obj = self.evaluate(target.left, env)
                if isinstance(obj, Error):
                    return obj
                result = set_property(obj, target.property.value, value)
            case _:
                result = Error(f"Invalid assignment target: {target}")
        return self._located(result, node)

    def _eval_if(self, node: nodes.IfExpression, env: Environment) -> Object:
        for number, (condition_node, consequence) in enumerate(zip(node.conditions, node.consequences), 1):
            condition = self.evaluate(condition_node, env)
            if isinstance(condition, Error):
                return condition
            if condition.is_truthy():
                self.output.branch_taken(number)
                return self.evaluate(consequence, env)
        if node.alternative is not None:
            self.output.branch_taken(None)
            return self.evaluate(node.alternative, env)
        return NULL

    # ─────────────────────────────────────────────────────────
    #  Calls
    # ─────────────────────────────────────────────────────────

    def _eval_call(self, node: nodes.CallExpression, env: Environment) -> Object:
        function = self.evaluate(node.function, env)
        if isinstance(function, Error):
            return function
        args = self._eval_expressions(node.arguments, env)
        if isinstance(args, Error):
            return args
        return self.apply(function, args, node, callee_name(node.function))

    def apply(self, function: Object, args: list[Object], node: nodes.Node, name: str) -> Object:
        """Call a user function or builtin with evaluated arguments."""
        if isinstance(function, Function):
            frame_type = FrameType.METHOD if function.owner is not None else FrameType.FUNCTION
            return self._call_function(function, args, node, name, frame_type)
        if isinstance(function, Builtin):
            return self._call_builtin(function, args, node)
        return self._located(not_callable(function), node)

    def _call_builtin(self, builtin: Builtin, args: list[Object], node: nodes.Node) -> Object:
        self.call_stack.push(StackFrame(builtin.name, FrameType.BUILTIN, None, [a.inspect() for a in args]))
        try:
            result = builtin.fn(args, self.output)
        finally:
            self.call_stack.pop()
        if isinstance(result, Error):
            return self._located(builtin_error(builtin.name, result), node)
        return result

    def _call_function(
        self,
        function: Function,
        args: list[Object],
        node: nodes.Node,
        name: str,
        frame_type: FrameType,
    ) -> Object:
        env = function_env(function, args)
        if isinstance(env, Error):
            return self._located(env, node)
        self.call_stack.push(StackFrame(name, frame_type, node.position(), [a.inspect() for a in args]))
        try:
            result = self.evaluate(function.body, env)
        finally:
            self.call_stack.pop()
        if isinstance(result, ReturnValue):
            result = result.value
        if isinstance(result, Error):
            return result
        self.output.function_returned(name, result)
        return result

    def _eval_new(self, node: nodes.NewExpression, env: Environment) -> Object:
        klass = self.evaluate(node.class_name, env)
        if isinstance(klass, Error):
            return klass
        args = self._eval_expressions(node.arguments, env)
        if isinstance(args, Error):
            return args
        if not isinstance(klass, Class):
            return self._located(instantiation_error(klass), node)
        instance = Instance(klass)
        constructor = constructor_for(klass, instance)
        if constructor is None:
            if args:
                return self._located(missing_constructor(klass), node)
            return instance
        result = self._call_function(
            constructor, args, node, f"{klass.name}.init", FrameType.CONSTRUCTOR,
        )
        if isinstance(result, Error):
            return result
        return instance

    def _eval_super(self, node: nodes.SuperExpression, env: Environment) -> Object:
        resolved = resolve_super(env, node.method.value if node.method else None)
        if isinstance(resolved, Error):
            return self._located(resolved, node)
        function, name = resolved
        args = self._eval_expressions(node.arguments, env)
        if isinstance(args, Error):
            return args
        frame_type = FrameType.CONSTRUCTOR if node.method is None else FrameType.METHOD
        result = self._call_function(function, args, node, name, frame_type)
        if isinstance(result, Error) or node.method is not None:
            return result
        return NULL


def evaluate(
    node: nodes.Node,
    env: Environment | None = None,
    *,
    config: RuntimeConfig | None = None,
    output: OutputLog | None = None,
) -> Object:
    """Evaluate a program (or any node) with a fresh Evaluator."""
    evaluator = Evaluator(config=config, output=output)
    env = env if env is not None else Environment()
    if isinstance(node, nodes.Program):
        return evaluator.evaluate_program(node, env)
    with recursion_headroom(evaluator.config.max_call_depth):
        try:
            return evaluator.evaluate(node, env)
        except RecursionError:
            raise StackOverflowError(evaluator.config.max_call_depth) from None
