"""
Steplang AST
============
Immutable node types produced by the parser.

Every node keeps the token it started at (and, where it spans more than
one token, the token it ended at) for diagnostics; those tokens are left
out of equality, so two parses of equivalent source compare equal.

`str(node)` renders canonical source: infix and prefix expressions are
fully parenthesized and statements are terminated, so re-parsing the
output of `str(program)` yields an equal tree.
"""
from dataclasses import dataclass, field

from .token import Position, Token


DESCRIBE_WIDTH = 40

# ─────────────────────────────────────────────────────────────
#  Base Types
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Node:
    """Base class for all AST nodes."""
    token: Token | None = field(default=None, compare=False, repr=False)
    end_token: Token | None = field(default=None, compare=False, repr=False)

    @property
    def node_type(self) -> str:
        return type(self).__name__

    def position(self) -> Position:
        return self.token.position if self.token is not None else Position(0, 0)

    def end_position(self) -> Position:
        token = self.end_token or self.token
        return token.position if token is not None else Position(0, 0)

    def describe(self) -> str:
        """Single-line source excerpt used in step descriptions."""
        text = " ".join(str(self).split())
        if len(text) > DESCRIBE_WIDTH:
            text = text[:DESCRIBE_WIDTH - 3] + "..."
        return text


@dataclass(frozen=True)
class Statement(Node):
    """A node that appears in a statement list."""


@dataclass(frozen=True)
class Expression(Node):
    """A node that produces a value."""


_ESCAPES = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\t": "\\t",
    "\r": "\\r",
    "\b": "\\b",
    "\f": "\\f",
    "\v": "\\v",
    "\0": "\\0",
}


def _escape(text: str) -> str:
    return "".join(_ESCAPES.get(ch, ch) for ch in text)


def _join(nodes) -> str:
    return ", ".join(str(n) for n in nodes)


# ─────────────────────────────────────────────────────────────
#  Root
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Program(Node):
    """Root node containing all top-level statements."""
    statements: tuple[Statement, ...] = ()

    def __str__(self) -> str:
        return "\n".join(str(s) for s in self.statements)

    def describe(self) -> str:
        return "program"


# ─────────────────────────────────────────────────────────────
#  Expressions
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Identifier(Expression):
    value: str = ""

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class PrefixExpression(Expression):
    """`!x`, `-x`."""
    operator: str = ""
    right: Expression | None = None

    def __str__(self) -> str:
        return f"({self.operator}{self.right})"


@dataclass(frozen=True)
class InfixExpression(Expression):
    """`left op right`."""
    left: Expression | None = None
    operator: str = ""
    right: Expression | None = None

    def __str__(self) -> str:
        return f"({self.left} {self.operator} {self.right})"


@dataclass(frozen=True)
class AssignmentExpression(Expression):
    """`target = value`; the target is an identifier, index or property."""
    target: Expression | None = None
    value: Expression | None = None

    def __str__(self) -> str:
        return f"({self.target} = {self.value})"


@dataclass(frozen=True)
class CallExpression(Expression):
    function: Expression | None = None
    arguments: tuple[Expression, ...] = ()

    def __str__(self) -> str:
        return f"{self.function}({_join(self.arguments)})"


@dataclass(frozen=True)
class IfExpression(Expression):
    """An if/elif/else chain.

    `conditions[i]` guards `consequences[i]`; the first truthy condition
    wins, otherwise `alternative` runs (if present).
    """
    conditions: tuple[Expression, ...] = ()
    consequences: tuple["BlockStatement", ...] = ()
    alternative: "BlockStatement | None" = None

    def __str__(self) -> str:
        branches = [
            f"if ({cond}) {block}" if i == 0 else f"elif ({cond}) {block}"
            for i, (cond, block) in enumerate(zip(self.conditions, self.consequences))
        ]
        if self.alternative is not None:
            branches.append(f"else {self.alternative}")
        return " ".join(branches)


@dataclass(frozen=True)
class IndexExpression(Expression):
    left: Expression | None = None
    index: Expression | None = None

    def __str__(self) -> str:
        return f"({self.left}[{self.index}])"


@dataclass(frozen=True)
class PropertyExpression(Expression):
    """`left.property`."""
    left: Expression | None = None
    property: Identifier | None = None

    def __str__(self) -> str:
        return f"{self.left}.{self.property}"


@dataclass(frozen=True)
class NewExpression(Expression):
    class_name: Expression | None = None
    arguments: tuple[Expression, ...] = ()

    def __str__(self) -> str:
        return f"new {self.class_name}({_join(self.arguments)})"


@dataclass(frozen=True)
class SuperExpression(Expression):
    """`super(args)` when `method` is None, else `super.method(args)`."""
    method: Identifier | None = None
    arguments: tuple[Expression, ...] = ()

    def is_constructor_call(self) -> bool:
        return self.method is None

    def __str__(self) -> str:
        if self.method is None:
            return f"super({_join(self.arguments)})"
        return f"super.{self.method}({_join(self.arguments)})"


@dataclass(frozen=True)
class ThisExpression(Expression):

    def __str__(self) -> str:
        return "this"


# ─────────────────────────────────────────────────────────────
#  Literals
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class IntegerLiteral(Expression):
    value: int = 0

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class FloatLiteral(Expression):
    value: float = 0.0

    def __str__(self) -> str:
        return repr(self.value)


@dataclass(frozen=True)
class StringLiteral(Expression):
    value: str = ""

    def __str__(self) -> str:
        return f'"{_escape(self.value)}"'


@dataclass(frozen=True)
class FStringLiteral(Expression):
    """An interpolated string.

    `parts` always has one more element than `expressions`; the rendered
    text is parts[0] + expr[0] + parts[1] + ... + parts[-1].
    """
    parts: tuple[str, ...] = ("",)
    expressions: tuple[Expression, ...] = ()

    def is_static(self) -> bool:
        return not self.expressions

    def __str__(self) -> str:
        out = [_escape(self.parts[0])]
        for expr, text in zip(self.expressions, self.parts[1:]):
            out.append(f"{{{expr}}}")
            out.append(_escape(text))
        return 'f"' + "".join(out) + '"'


@dataclass(frozen=True)
class BooleanLiteral(Expression):
    value: bool = False

    def __str__(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class NullLiteral(Expression):

    def __str__(self) -> str:
        return "null"


@dataclass(frozen=True)
class ArrayLiteral(Expression):
    elements: tuple[Expression, ...] = ()

    def __str__(self) -> str:
        return f"[{_join(self.elements)}]"


@dataclass(frozen=True)
class HashLiteral(Expression):
    """`{key: value, ...}`; keys are string or integer literals."""
    pairs: tuple[tuple[Expression, Expression], ...] = ()

    def __str__(self) -> str:
        return "{" + ", ".join(f"{k}: {v}" for k, v in self.pairs) + "}"


@dataclass(frozen=True)
class FunctionLiteral(Expression):
    """`fn(params) { body }`; shared by every closure created from it."""
    parameters: tuple[Identifier, ...] = ()
    body: "BlockStatement | None" = None

    def __str__(self) -> str:
        return f"fn({_join(self.parameters)}) {self.body}"


# ─────────────────────────────────────────────────────────────
#  Statements
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class LetStatement(Statement):
    name: Identifier | None = None
    value: Expression | None = None

    keyword = "let"

    def __str__(self) -> str:
        return f"{self.keyword} {self.name} = {self.value};"


@dataclass(frozen=True)
class ConstStatement(LetStatement):
    keyword = "const"


@dataclass(frozen=True)
class ReturnStatement(Statement):
    """`return expr;` or bare `return;` (returns null)."""
    value: Expression | None = None

    def __str__(self) -> str:
        return "return;" if self.value is None else f"return {self.value};"


@dataclass(frozen=True)
class ExpressionStatement(Statement):
    expression: Expression | None = None

    def __str__(self) -> str:
        expr = self.expression
        if isinstance(expr, AssignmentExpression):
            return f"{expr.target} = {expr.value};"
        if isinstance(expr, HashLiteral):
            # a bare `{` would start a block
            return f"({expr});"
        return f"{expr};"


@dataclass(frozen=True)
class BlockStatement(Statement):
    statements: tuple[Statement, ...] = ()

    def __str__(self) -> str:
        if not self.statements:
            return "{ }"
        return "{ " + " ".join(str(s) for s in self.statements) + " }"


@dataclass(frozen=True)
class WhileStatement(Statement):
    condition: Expression | None = None
    body: BlockStatement | None = None

    def __str__(self) -> str:
        return f"while ({self.condition}) {self.body}"


@dataclass(frozen=True)
class ForStatement(Statement):
    """`for (let i = 0; cond; update) { body }`."""
    init: LetStatement | None = None
    condition: Expression | None = None
    update: Expression | None = None
    body: BlockStatement | None = None

    def __str__(self) -> str:
        return f"for ({self.init} {self.condition}; {self.update}) {self.body}"


@dataclass(frozen=True)
class BreakStatement(Statement):

    def __str__(self) -> str:
        return "break;"


@dataclass(frozen=True)
class ContinueStatement(Statement):

    def __str__(self) -> str:
        return "continue;"


@dataclass(frozen=True)
class MethodDefinition(Node):
    """A named method inside a class body."""
    name: Identifier | None = None
    function: FunctionLiteral | None = None

    def __str__(self) -> str:
        return f"{self.name}({_join(self.function.parameters)}) {self.function.body}"


@dataclass(frozen=True)
class ClassStatement(Statement):
    """`class Name extends Parent { init(...) {...} method(...) {...} }`."""
    name: Identifier | None = None
    parent: Identifier | None = None
    constructor: FunctionLiteral | None = None
    methods: tuple[MethodDefinition, ...] = ()

    def __str__(self) -> str:
        header = f"class {self.name}"
        if self.parent is not None:
            header += f" extends {self.parent}"
        members = []
        if self.constructor is not None:
            members.append(f"init({_join(self.constructor.parameters)}) {self.constructor.body}")
        members.extend(str(m) for m in self.methods)
        if not members:
            return header + " { }"
        return header + " { " + " ".join(members) + " }"
