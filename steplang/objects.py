"""
Steplang Objects
================
Runtime values produced by both evaluators.

Every value has an ObjectType tag, a canonical `inspect()` string (what the
console and the step visualizers show) and a truthiness. Only `false` and
`null` are falsy; `0`, `""` and `[]` are truthy.

Control-flow signals (return/break/continue) are objects too, so they can
unwind through blocks and loops like ordinary results.
"""
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from .token import Position


class ObjectType(Enum):
    """Type tags, as reported by `type()` and in error messages."""
    INTEGER      = "INTEGER"
    FLOAT        = "FLOAT"
    STRING       = "STRING"
    BOOLEAN      = "BOOLEAN"
    NULL         = "NULL"
    ARRAY        = "ARRAY"
    HASH         = "HASH"
    FUNCTION     = "FUNCTION"
    BUILTIN      = "BUILTIN"
    CLASS        = "CLASS"
    INSTANCE     = "INSTANCE"
    ERROR        = "ERROR"
    RETURN_VALUE = "RETURN_VALUE"
    BREAK        = "BREAK"
    CONTINUE     = "CONTINUE"


class Object:
    """Base class for all runtime values."""
    type: ObjectType

    def inspect(self) -> str:
        raise NotImplementedError

    def is_truthy(self) -> bool:
        return True

    def __str__(self) -> str:
        return self.inspect()


# ─────────────────────────────────────────────────────────────
#  Primitive Values
# ─────────────────────────────────────────────────────────────

@dataclass(eq=False)
class Integer(Object):
    value: int
    type = ObjectType.INTEGER

    def inspect(self) -> str:
        return str(self.value)


@dataclass(eq=False)
class Float(Object):
    value: float
    type = ObjectType.FLOAT

    def inspect(self) -> str:
        if math.isnan(self.value):
            return "NaN"
        if math.isinf(self.value):
            return "Infinity" if self.value > 0 else "-Infinity"
        return repr(self.value)


@dataclass(eq=False)
class String(Object):
    value: str
    type = ObjectType.STRING

    def inspect(self) -> str:
        return self.value


@dataclass(eq=False)
class Boolean(Object):
    value: bool
    type = ObjectType.BOOLEAN

    def inspect(self) -> str:
        return "true" if self.value else "false"

    def is_truthy(self) -> bool:
        return self.value


class Null(Object):
    type = ObjectType.NULL

    def inspect(self) -> str:
        return "null"

    def is_truthy(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Null()"


TRUE = Boolean(True)
FALSE = Boolean(False)
NULL = Null()


def native_bool(value: bool) -> Boolean:
    return TRUE if value else FALSE


# ─────────────────────────────────────────────────────────────
#  Collections
# ─────────────────────────────────────────────────────────────

@dataclass(eq=False)
class Array(Object):
    elements: list[Object] = field(default_factory=list)
    type = ObjectType.ARRAY

    def inspect(self) -> str:
        return "[" + ", ".join(e.inspect() for e in self.elements) + "]"


@dataclass(eq=False)
class Hash(Object):
    """Keys are strings; integer keys are stored in their decimal form."""
    pairs: dict[str, Object] = field(default_factory=dict)
    type = ObjectType.HASH

    def get(self, key: str) -> Object:
        return self.pairs.get(key, NULL)

    def inspect(self) -> str:
        return "{" + ", ".join(f"{k}: {v.inspect()}" for k, v in self.pairs.items()) + "}"


# ─────────────────────────────────────────────────────────────
#  Callables and Classes
# ─────────────────────────────────────────────────────────────

@dataclass(eq=False)
class Function(Object):
    """A closure: parameters and body from the literal, plus its defining env.

    `owner` is set for methods and constructors so `super` can find the
    class the body was written in.
    """
    parameters: tuple = ()
    body: Any = None
    env: Any = None
    name: str | None = None
    owner: "Class | None" = None
    type = ObjectType.FUNCTION

    def inspect(self) -> str:
        params = ", ".join(p.value for p in self.parameters)
        return f"fn({params}) {{ ... }}"


@dataclass(eq=False)
class Builtin(Object):
    """A host function taking (args, output) and returning an Object."""
    name: str
    fn: Callable
    type = ObjectType.BUILTIN

    def inspect(self) -> str:
        return f"<built-in function {self.name}>"


@dataclass(eq=False)
class Class(Object):
    """A class value; methods are FunctionLiteral nodes bound on access."""
    name: str
    parent: "Class | None" = None
    constructor: Any = None
    methods: dict[str, Any] = field(default_factory=dict)
    env: Any = None
    type = ObjectType.CLASS

    def find_method(self, name: str) -> "tuple[Any, Class] | None":
        """Look up a method through the parent chain, with its defining class."""
        klass = self
        while klass is not None:
            if name in klass.methods:
                return klass.methods[name], klass
            klass = klass.parent
        return None

    def find_constructor(self) -> "tuple[Any, Class] | None":
        """The nearest `init`, inherited from a parent when missing."""
        klass = self
        while klass is not None:
            if klass.constructor is not None:
                return klass.constructor, klass
            klass = klass.parent
        return None

    def inspect(self) -> str:
        if self.parent is not None:
            return f"class {self.name} extends {self.parent.name}"
        return f"class {self.name}"


@dataclass(eq=False)
class Instance(Object):
    klass: Class
    fields: dict[str, Object] = field(default_factory=dict)
    type = ObjectType.INSTANCE

    def inspect(self) -> str:
        body = ", ".join(f"{k}: {v.inspect()}" for k, v in self.fields.items())
        return f"instance of {self.klass.name} {{{body}}}"


# ─────────────────────────────────────────────────────────────
#  Errors and Control-Flow Signals
# ─────────────────────────────────────────────────────────────

@dataclass(eq=False)
class Error(Object):
    """A runtime error value; propagates like any other result."""
    message: str
    position: Position | None = None
    stack_trace: list[str] = field(default_factory=list)
    type = ObjectType.ERROR

    def inspect(self) -> str:
        return f"ERROR: {self.message}"

    def format(self) -> str:
        """Message, position and stack trace for console display."""
        lines = [self.inspect()]
        if self.position is not None:
            lines[0] += f" ({self.position})"
        lines.extend(f"    {entry}" for entry in self.stack_trace)
        return "\n".join(lines)


@dataclass(eq=False)
class ReturnValue(Object):
    value: Object
    type = ObjectType.RETURN_VALUE

    def inspect(self) -> str:
        return self.value.inspect()


class Break(Object):
    type = ObjectType.BREAK

    def inspect(self) -> str:
        return "break"


class Continue(Object):
    type = ObjectType.CONTINUE

    def inspect(self) -> str:
        return "continue"


BREAK = Break()
CONTINUE = Continue()


def is_error(obj: Object | None) -> bool:
    return isinstance(obj, Error)


def is_truthy(obj: Object) -> bool:
    return obj.is_truthy()
