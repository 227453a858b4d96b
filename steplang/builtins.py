"""
Steplang Builtins
=================
Host functions resolved after a name misses the environment chain.

Every builtin takes the evaluated argument list plus the active OutputLog
and returns an Object; misuse is reported as an Error value, never raised.
Array helpers return new arrays and leave their arguments untouched.
"""
import math
import re
from typing import Callable

from .objects import (
    NULL, Array, Builtin, Error, Float, Hash, Integer, Object,
    String, native_bool,
)
from .output import OutputLog


BuiltinFn = Callable[[list[Object], OutputLog], Object]

BUILTINS: dict[str, Builtin] = {}


def builtin(name: str, arity: int | tuple[int, int] | None = None):
    """Register a builtin under `name`, checking its argument count first."""
    low, high = (arity, arity) if isinstance(arity, int) else (arity or (None, None))

    def register(fn: BuiltinFn) -> BuiltinFn:
        def checked(args: list[Object], output: OutputLog) -> Object:
            if low is not None and not low <= len(args) <= high:
                want = str(low) if low == high else f"{low} or {high}"
                return Error(f"wrong number of arguments. got={len(args)}, want={want}")
            return fn(args, output)

        BUILTINS[name] = Builtin(name, checked)
        return fn

    return register


def _type_error(position: str, name: str, expected: str, got: Object) -> Error:
    prefix = f"{position} argument" if position else "argument"
    return Error(f"{prefix} to '{name}' must be {expected}, got {got.type.value}")


def _is_number(obj: Object) -> bool:
    return isinstance(obj, (Integer, Float))


# ─────────────────────────────────────────────────────────────
#  Core
# ─────────────────────────────────────────────────────────────

@builtin("len", 1)
def _len(args, output):
    arg = args[0]
    if isinstance(arg, Array):
        return Integer(len(arg.elements))
    if isinstance(arg, String):
        return Integer(len(arg.value))
    if isinstance(arg, Hash):
        return Integer(len(arg.pairs))
    return Error(f"argument to 'len' not supported, got {arg.type.value}")


@builtin("type", 1)
def _type(args, output):
    return String(args[0].type.value)


@builtin("str", 1)
def _str(args, output):
    return String(args[0].inspect())


_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@builtin("int", 1)
def _int(args, output):
    arg = args[0]
    if isinstance(arg, Integer):
        return arg
    if isinstance(arg, Float):
        if math.isnan(arg.value) or math.isinf(arg.value):
            return Error(f"cannot convert {arg.inspect()} to integer")
        return Integer(int(arg.value))
    if isinstance(arg, String):
        match = _LEADING_INT.match(arg.value)
        if match is None:
            return Error(f'cannot convert "{arg.value}" to integer')
        return Integer(int(match.group(1)))
    return Error(f"argument to 'int' not supported, got {arg.type.value}")


@builtin("float", 1)
def _float(args, output):
    arg = args[0]
    if isinstance(arg, Float):
        return arg
    if isinstance(arg, Integer):
        return Float(float(arg.value))
    if isinstance(arg, String):
        try:
            return Float(float(arg.value.strip()))
        except ValueError:
            return Error(f'cannot convert "{arg.value}" to float')
    return Error(f"argument to 'float' not supported, got {arg.type.value}")


@builtin("bool", 1)
def _bool(args, output):
    return native_bool(args[0].is_truthy())


# ─────────────────────────────────────────────────────────────
#  Arrays
# ─────────────────────────────────────────────────────────────

@builtin("first", 1)
def _first(args, output):
    arr = args[0]
    if not isinstance(arr, Array):
        return _type_error("", "first", "ARRAY", arr)
    return arr.elements[0] if arr.elements else NULL


@builtin("last", 1)
def _last(args, output):
    arr = args[0]
    if not isinstance(arr, Array):
        return _type_error("", "last", "ARRAY", arr)
    return arr.elements[-1] if arr.elements else NULL


@builtin("rest", 1)
def _rest(args, output):
    arr = args[0]
    if not isinstance(arr, Array):
        return _type_error("", "rest", "ARRAY", arr)
    return Array(arr.elements[1:]) if arr.elements else NULL


@builtin("push", 2)
def _push(args, output):
    arr, element = args
    if not isinstance(arr, Array):
        return _type_error("", "push", "ARRAY", arr)
    return Array([*arr.elements, element])


@builtin("pop", 1)
def _pop(args, output):
    arr = args[0]
    if not isinstance(arr, Array):
        return _type_error("", "pop", "ARRAY", arr)
    if not arr.elements:
        return Error("cannot pop from empty array")
    return Array(arr.elements[:-1])


def _clamp_range(start: int, end: int, size: int) -> tuple[int, int]:
    if start < 0:
        start = max(0, size + start)
    if end < 0:
        end = max(0, size + end)
    start = max(0, min(start, size))
    end = max(start, min(end, size))
    return start, end


@builtin("slice", (2, 3))
def _slice(args, output):
    arr, start = args[0], args[1]
    if not isinstance(arr, Array):
        return _type_error("first", "slice", "ARRAY", arr)
    if not isinstance(start, Integer):
        return _type_error("second", "slice", "INTEGER", start)
    end = len(arr.elements)
    if len(args) == 3:
        if not isinstance(args[2], Integer):
            return _type_error("third", "slice", "INTEGER", args[2])
        end = args[2].value
    lo, hi = _clamp_range(start.value, end, len(arr.elements))
    return Array(arr.elements[lo:hi])


@builtin("concat", 2)
def _concat(args, output):
    first, second = args
    if not isinstance(first, Array):
        return _type_error("first", "concat", "ARRAY", first)
    if not isinstance(second, Array):
        return _type_error("second", "concat", "ARRAY", second)
    return Array([*first.elements, *second.elements])


@builtin("reverse", 1)
def _reverse(args, output):
    arr = args[0]
    if not isinstance(arr, Array):
        return _type_error("", "reverse", "ARRAY", arr)
    return Array(list(reversed(arr.elements)))


@builtin("join", (1, 2))
def _join(args, output):
    arr = args[0]
    if not isinstance(arr, Array):
        return _type_error("first", "join", "ARRAY", arr)
    separator = ","
    if len(args) == 2:
        if not isinstance(args[1], String):
            return _type_error("second", "join", "STRING", args[1])
        separator = args[1].value
    return String(separator.join(e.inspect() for e in arr.elements))


# ─────────────────────────────────────────────────────────────
#  Strings
# ─────────────────────────────────────────────────────────────

def _strings(name: str, args: list[Object]) -> Error | None:
    """Error for the first non-string argument, if any."""
    for position, arg in zip(("first", "second", "third"), args):
        if not isinstance(arg, String):
            return _type_error(position if len(args) > 1 else "", name, "STRING", arg)
    return None


@builtin("split", 2)
def _split(args, output):
    if (err := _strings("split", args)) is not None:
        return err
    text, delimiter = args[0].value, args[1].value
    parts = list(text) if delimiter == "" else text.split(delimiter)
    return Array([String(p) for p in parts])


@builtin("replace", 3)
def _replace(args, output):
    if (err := _strings("replace", args)) is not None:
        return err
    return String(args[0].value.replace(args[1].value, args[2].value))


@builtin("trim", 1)
def _trim(args, output):
    if (err := _strings("trim", args)) is not None:
        return err
    return String(args[0].value.strip())


@builtin("upper", 1)
def _upper(args, output):
    if (err := _strings("upper", args)) is not None:
        return err
    return String(args[0].value.upper())


@builtin("lower", 1)
def _lower(args, output):
    if (err := _strings("lower", args)) is not None:
        return err
    return String(args[0].value.lower())


@builtin("substr", (2, 3))
def _substr(args, output):
    text, start = args[0], args[1]
    if not isinstance(text, String):
        return _type_error("first", "substr", "STRING", text)
    if not isinstance(start, Integer):
        return _type_error("second", "substr", "INTEGER", start)
    size = len(text.value)
    begin = start.value
    if begin < 0:
        begin = max(0, size + begin)
    begin = min(begin, size)
    length = size - begin
    if len(args) == 3:
        if not isinstance(args[2], Integer):
            return _type_error("third", "substr", "INTEGER", args[2])
        length = max(0, args[2].value)
    return String(text.value[begin:begin + length])


@builtin("indexOf", 2)
def _index_of(args, output):
    if (err := _strings("indexOf", args)) is not None:
        return err
    return Integer(args[0].value.find(args[1].value))


@builtin("contains", 2)
def _contains(args, output):
    if (err := _strings("contains", args)) is not None:
        return err
    return native_bool(args[1].value in args[0].value)


# ─────────────────────────────────────────────────────────────
#  Math
# ─────────────────────────────────────────────────────────────

def _number(value: float | int) -> Object:
    return Integer(value) if isinstance(value, int) else Float(value)


@builtin("abs", 1)
def _abs(args, output):
    arg = args[0]
    if not _is_number(arg):
        return _type_error("", "abs", "a number", arg)
    return _number(abs(arg.value))


def _extreme(name: str, pick, args: list[Object]) -> Object:
    if not args:
        return Error(f"{name}() expected at least 1 argument, got 0")
    for arg in args:
        if not _is_number(arg):
            return Error(f"all arguments to '{name}' must be numbers, got {arg.type.value}")
    return pick(args, key=lambda a: a.value)


@builtin("max")
def _max(args, output):
    return _extreme("max", max, args)


@builtin("min")
def _min(args, output):
    return _extreme("min", min, args)


def _rounding(name: str, fn):
    @builtin(name, 1)
    def apply(args, output):
        arg = args[0]
        if isinstance(arg, Integer):
            return arg
        if not isinstance(arg, Float):
            return _type_error("", name, "a number", arg)
        if math.isnan(arg.value) or math.isinf(arg.value):
            return Error(f"cannot {name} {arg.inspect()}")
        return Integer(fn(arg.value))

    return apply


# half-up, not Python's banker's rounding
_rounding("round", lambda x: math.floor(x + 0.5))
_rounding("floor", math.floor)
_rounding("ceil", math.ceil)


@builtin("pow", 2)
def _pow(args, output):
    base, exponent = args
    if not _is_number(base):
        return _type_error("first", "pow", "a number", base)
    if not _is_number(exponent):
        return _type_error("second", "pow", "a number", exponent)
    if isinstance(base, Integer) and isinstance(exponent, Integer) and exponent.value >= 0:
        return Integer(base.value ** exponent.value)
    try:
        return Float(math.pow(base.value, exponent.value))
    except (OverflowError, ValueError) as e:
        return Error(f"pow({base.inspect()}, {exponent.inspect()}): {e}")


@builtin("sqrt", 1)
def _sqrt(args, output):
    arg = args[0]
    if not _is_number(arg):
        return _type_error("", "sqrt", "a number", arg)
    if arg.value < 0:
        return Error("cannot take square root of negative number")
    return Float(math.sqrt(arg.value))


# ─────────────────────────────────────────────────────────────
#  I/O
# ─────────────────────────────────────────────────────────────

@builtin("print")
def _print(args, output):
    output.printed(" ".join(arg.inspect() for arg in args))
    return NULL


@builtin("println")
def _println(args, output):
    output.printed(" ".join(arg.inspect() for arg in args))
    return NULL


# ─────────────────────────────────────────────────────────────
#  Utilities
# ─────────────────────────────────────────────────────────────

@builtin("range", (1, 3))
def _range(args, output):
    for position, arg in zip(("first", "second", "third"), args):
        if not isinstance(arg, Integer):
            return _type_error(position if len(args) > 1 else "", "range", "INTEGER", arg)
    values = [a.value for a in args]
    if len(values) == 1:
        values.insert(0, 0)
    if len(values) == 3 and values[2] == 0:
        return Error("step cannot be zero")
    return Array([Integer(i) for i in range(*values)])


@builtin("keys", 1)
def _keys(args, output):
    arg = args[0]
    if not isinstance(arg, Hash):
        return _type_error("", "keys", "HASH", arg)
    return Array([String(k) for k in arg.pairs])


@builtin("values", 1)
def _values(args, output):
    arg = args[0]
    if not isinstance(arg, Hash):
        return _type_error("", "values", "HASH", arg)
    return Array(list(arg.pairs.values()))


# ─────────────────────────────────────────────────────────────
#  Errors
# ─────────────────────────────────────────────────────────────

@builtin("error", 1)
def _error(args, output):
    message = args[0]
    if not isinstance(message, String):
        return _type_error("", "error", "STRING", message)
    return Error(message.value)


@builtin("assert", (1, 2))
def _assert(args, output):
    if args[0].is_truthy():
        return NULL
    if len(args) == 2 and isinstance(args[1], String):
        return Error(args[1].value)
    return Error("Assertion failed")


def get_builtin(name: str) -> Builtin | None:
    return BUILTINS.get(name)
