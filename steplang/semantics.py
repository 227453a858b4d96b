"""
Steplang Semantics
==================
Language rules shared by the direct and the stepwise evaluator, so the two
cannot drift apart:

  - prefix and infix operators (numeric promotion, null handling, strings)
  - index read/write on arrays and hashes, property read/write on instances
  - declaration, assignment and identifier resolution against environments
  - class definition, method binding, constructor and `super` lookup
  - call-frame naming and argument binding

Functions here return Error values without a position; the calling
evaluator stamps position and stack trace onto them.
"""
import math

from . import nodes
from .builtins import get_builtin
from .environment import Environment
from .objects import (
    NULL, Array, Class, Error, Float, Function, Hash, Instance, Integer,
    Null, Object, String, Boolean, native_bool,
)


# Internal binding that records the class whose method body is running
CLASS_BINDING = "__class__"
THIS_BINDING = "this"

ANONYMOUS = "<anonymous>"


# ─────────────────────────────────────────────────────────────
#  Prefix Operators
# ─────────────────────────────────────────────────────────────

def eval_prefix(operator: str, right: Object) -> Object:
    if operator == "!":
        return native_bool(not right.is_truthy())
    if operator == "-":
        if isinstance(right, Integer):
            return Integer(-right.value)
        if isinstance(right, Float):
            return Float(-right.value)
        return Error(f"unknown operator: -{right.type.value}")
    return Error(f"unknown operator: {operator}{right.type.value}")


# ─────────────────────────────────────────────────────────────
#  Infix Operators
# ─────────────────────────────────────────────────────────────

def _invalid_operator(operator: str, left: Object, right: Object) -> Error:
    return Error(
        f"Invalid operator '{operator}' for types {left.type.value} and {right.type.value}. "
        "This operation is not supported."
    )


def _type_mismatch(operator: str, left: Object, right: Object) -> Error:
    return Error(
        f"Type mismatch: {left.type.value} {operator} {right.type.value}. "
        "This operation is not supported."
    )


_COMPARISONS = {
    "==": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
}


def eval_infix(operator: str, left: Object, right: Object) -> Object:
    """Apply a binary operator to two already-evaluated operands."""
    if isinstance(left, Null) or isinstance(right, Null):
        return _eval_null_infix(operator, left, right)
    if isinstance(left, String) and isinstance(right, String):
        return _eval_string_infix(operator, left, right)
    if isinstance(left, String) and isinstance(right, Integer):
        return _eval_concatenation(operator, left, right)
    if isinstance(left, Integer) and isinstance(right, String):
        return _eval_concatenation(operator, left, right)
    if isinstance(left, (Integer, Float)) and isinstance(right, (Integer, Float)):
        if isinstance(left, Float) or isinstance(right, Float):
            return _eval_float_infix(operator, left, right)
        return _eval_integer_infix(operator, left, right)
    if isinstance(left, Boolean) and isinstance(right, Boolean):
        return _eval_boolean_infix(operator, left, right)
    if isinstance(left, Boolean) or isinstance(right, Boolean):
        return _type_mismatch(operator, left, right)
    return _invalid_operator(operator, left, right)


def _eval_null_infix(operator: str, left: Object, right: Object) -> Object:
    both_null = isinstance(left, Null) and isinstance(right, Null)
    if operator == "==":
        return native_bool(both_null)
    if operator == "!=":
        return native_bool(not both_null)
    return Error(
        f"Cannot perform '{operator}' operation with null values. "
        "Only equality (==) and inequality (!=) operations are supported with null."
    )


def _eval_string_infix(operator: str, left: String, right: String) -> Object:
    if operator == "+":
        return String(left.value + right.value)
    if operator in _COMPARISONS:
        return native_bool(_COMPARISONS[operator](left.value, right.value))
    return _invalid_operator(operator, left, right)


def _eval_concatenation(operator: str, left: Object, right: Object) -> Object:
    if operator != "+":
        return _invalid_operator(operator, left, right)
    return String(f"{left.value}{right.value}")


def _eval_integer_infix(operator: str, left: Integer, right: Integer) -> Object:
    a, b = left.value, right.value
    match operator:
        case "+":
            return Integer(a + b)
        case "-":
            return Integer(a - b)
        case "*":
            return Integer(a * b)
        case "/":
            if b == 0:
                return Error("division by zero")
            return Float(a / b)
        case "//":
            if b == 0:
                return Error("integer division by zero")
            return Integer(a // b)
        case "%":
            if b == 0:
                return Error("modulo by zero")
            return Integer(a % b)
    if operator in _COMPARISONS:
        return native_bool(_COMPARISONS[operator](a, b))
    return _invalid_operator(operator, left, right)


def _eval_float_infix(operator: str, left: Object, right: Object) -> Object:
    a, b = float(left.value), float(right.value)
    match operator:
        case "+":
            return Float(a + b)
        case "-":
            return Float(a - b)
        case "*":
            return Float(a * b)
        case "/":
            if b == 0.0:
                if a > 0.0:
                    return Float(math.inf)
                if a < 0.0:
                    return Float(-math.inf)
                return Float(math.nan)
            return Float(a / b)
        case "//":
            if b == 0.0:
                return Error("integer division by zero")
            quotient = a / b
            if math.isnan(quotient) or math.isinf(quotient):
                return Float(quotient)
            return Integer(math.floor(quotient))
        case "%":
            if b == 0.0 or math.isinf(a):
                return Float(math.nan)
            return Float(a % b)
    if operator in _COMPARISONS:
        return native_bool(_COMPARISONS[operator](a, b))
    return _invalid_operator(operator, left, right)


def _eval_boolean_infix(operator: str, left: Boolean, right: Boolean) -> Object:
    a, b = left.value, right.value
    match operator:
        case "==":
            return native_bool(a == b)
        case "!=":
            return native_bool(a != b)
        case "&&":
            return native_bool(a and b)
        case "||":
            return native_bool(a or b)
    return _invalid_operator(operator, left, right)


# ─────────────────────────────────────────────────────────────
#  Indexing and Properties
# ─────────────────────────────────────────────────────────────

def hash_key(key: Object) -> str | None:
    """The storage key for a hash index; None for unusable key types."""
    if isinstance(key, String):
        return key.value
    if isinstance(key, Integer):
        return str(key.value)
    return None


def eval_index(left: Object, index: Object) -> Object:
    if isinstance(left, Array):
        if not isinstance(index, Integer):
            return Error(f"Index must be an integer, got: {index.inspect()}")
        size = len(left.elements)
        if index.value < 0 or index.value >= size:
            return Error(f"Index out of bounds: {index.value} for array of size {size}")
        return left.elements[index.value]
    if isinstance(left, Hash):
        key = hash_key(index)
        if key is None:
            return Error(f"Index must be a string or integer, got: {index.inspect()}")
        return left.get(key)
    return Error(f"Index operator not supported for type: {left.type.value}")


def assign_index(container: Object, index: Object, value: Object) -> Object:
    """`container[index] = value`, mutating arrays and hashes in place."""
    if isinstance(container, Array):
        if not isinstance(index, Integer):
            return Error(f"Array index must be an integer, got: {index.type.value}")
        size = len(container.elements)
        if index.value < 0 or index.value >= size:
            return Error(f"Array index out of bounds: {index.value} for array of size {size}")
        container.elements[index.value] = value
        return value
    if isinstance(container, Hash):
        key = hash_key(index)
        if key is None:
            return Error(f"Hash key must be a string or integer, got: {index.type.value}")
        container.pairs[key] = value
        return value
    return Error(f"Index assignment not supported for type: {container.type.value}")


def bind_method(instance: Instance, literal: nodes.FunctionLiteral, owner: Class, name: str) -> Function:
    """A closure over the class env with `this` bound to `instance`."""
    env = Environment(outer=owner.env)
    env.define(THIS_BINDING, instance)
    env.define(CLASS_BINDING, owner)
    return Function(literal.parameters, literal.body, env, name=name, owner=owner)


def get_property(obj: Object, name: str) -> Object:
    if not isinstance(obj, Instance):
        return Error(f"Cannot access property '{name}' on non-instance object: {obj.type.value}")
    if name in obj.fields:
        return obj.fields[name]
    found = obj.klass.find_method(name)
    if found is not None:
        literal, owner = found
        return bind_method(obj, literal, owner, name)
    return Error(f"Property '{name}' not found on instance of {obj.klass.name}")


def set_property(obj: Object, name: str, value: Object) -> Object:
    if not isinstance(obj, Instance):
        return Error(f"Cannot assign property '{name}' on non-instance object: {obj.type.value}")
    obj.fields[name] = value
    return value


# ─────────────────────────────────────────────────────────────
#  Bindings
# ─────────────────────────────────────────────────────────────

def resolve_identifier(env: Environment, name: str) -> Object:
    value = env.get(name)
    if value is not None:
        return value
    builtin = get_builtin(name)
    if builtin is not None:
        return builtin
    return Error(f"identifier not found: {name}")


def declare(env: Environment, name: str, value: Object, constant: bool = False) -> Object:
    """Bind a new name in `env`; redeclaring within the same scope is an Error."""
    if env.contains_locally(name):
        return Error(f"Identifier {name} already declared")
    if constant:
        return env.define_constant(name, value)
    return env.define(name, value)


def assign_variable(env: Environment, name: str, value: Object) -> Object:
    scope = env.find_scope(name)
    if scope is None:
        return Error(f"identifier not found: {name}")
    if name in scope.constants:
        return Error(f"cannot assign to constant {name}")
    scope.store[name] = value
    return value


def resolve_this(env: Environment) -> Object:
    value = env.get(THIS_BINDING)
    if value is None:
        return Error("'this' is not available in this context")
    return value


# ─────────────────────────────────────────────────────────────
#  Classes
# ─────────────────────────────────────────────────────────────

def define_class(node: nodes.ClassStatement, env: Environment) -> Object:
    name = node.name.value
    if env.contains_locally(name):
        return Error(f"Class '{name}' already defined in this scope")

    parent = None
    if node.parent is not None:
        parent = env.get(node.parent.value)
        if parent is None:
            return Error(f"Parent class '{node.parent.value}' not found")
        if not isinstance(parent, Class):
            return Error(f"'{node.parent.value}' is not a class")

    klass = Class(
        name=name,
        parent=parent,
        constructor=node.constructor,
        methods={m.name.value: m.function for m in node.methods},
        env=env,
    )
    env.define(name, klass)
    return klass


def constructor_for(klass: Class, instance: Instance) -> Function | None:
    """The (possibly inherited) `init`, bound to `instance`."""
    found = klass.find_constructor()
    if found is None:
        return None
    literal, owner = found
    return bind_method(instance, literal, owner, "init")


def resolve_super(env: Environment, method: str | None) -> tuple[Function, str] | Error:
    """The parent constructor or method to run for a `super` expression.

    Returns the bound function together with its call-frame name.
    """
    instance = env.get(THIS_BINDING)
    klass = env.get(CLASS_BINDING)
    if instance is None or not isinstance(klass, Class):
        return Error("'super' is not available in this context")
    parent = klass.parent
    if parent is None:
        return Error(f"No parent class found for class: {klass.name}")

    if method is None:
        found = parent.find_constructor()
        if found is None:
            return Error(f"No constructor found for class: {parent.name}")
        name = "init"
    else:
        found = parent.find_method(method)
        if found is None:
            return Error(f"Method not found: {method} in parent class: {parent.name}")
        name = method
    literal, owner = found
    return bind_method(instance, literal, owner, name), f"{parent.name}.{name}"


# ─────────────────────────────────────────────────────────────
#  Calls
# ─────────────────────────────────────────────────────────────

def callee_name(node: nodes.Expression) -> str:
    """Call-frame name for the expression being called."""
    if isinstance(node, nodes.Identifier):
        return node.value
    if isinstance(node, nodes.PropertyExpression):
        return node.property.value
    return ANONYMOUS


def function_env(fn: Function, args: list[Object]) -> Environment | Error:
    """A fresh function scope with parameters bound positionally."""
    if len(args) != len(fn.parameters):
        return Error(f"Wrong number of arguments. Expected {len(fn.parameters)}, got {len(args)}")
    env = fn.env.new_function_scope()
    for param, arg in zip(fn.parameters, args):
        env.define(param.value, arg)
    return env


def not_callable(obj: Object) -> Error:
    return Error(f"Not a function: {obj.type.value}")


def builtin_error(name: str, error: Error) -> Error:
    return Error(f"Error in evaluation of the builtin function {name}: {error.message}")


def fstring_error(error: Error) -> Error:
    return Error(f"Error evaluating expression in f-string: {error.message}")


def fstring_text(parts: tuple[str, ...], values: list[Object]) -> String:
    out = [parts[0]]
    for value, text in zip(values, parts[1:]):
        out.append(value.inspect())
        out.append(text)
    return String("".join(out))


def build_hash(pairs: list[tuple[Object, Object]]) -> Object:
    result = Hash()
    for key, value in pairs:
        storage_key = hash_key(key)
        if storage_key is None:
            return Error(f"Hash key must be a string or integer, got: {key.type.value}")
        result.pairs[storage_key] = value
    return result


def instantiation_error(obj: Object) -> Error:
    return Error(f"Cannot instantiate non-class object: {obj.type.value}")


def missing_constructor(klass: Class) -> Error:
    return Error(f"No constructor found for class: {klass.name}")


def loop_limit_error(limit: int) -> Error:
    return Error(f"Loop exceeded maximum iterations ({limit})")


