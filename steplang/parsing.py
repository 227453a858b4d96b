"""
Steplang Parsing Infrastructure
===============================
The shared machinery every parser works against:

  - TokenStream: a two-token cursor over the lexer
  - Precedence / PrecedenceTable: binding power of infix tokens
  - ParseError / ErrorReporter: recoverable diagnostics
  - ParserException: unrecoverable errors, carrying the offending token
  - ParsingContext: the mutable state of one parse (loop depth included)
"""
from dataclasses import dataclass
from enum import IntEnum

from .lexer import Lexer
from .token import Token, TokenType


# ─────────────────────────────────────────────────────────────
#  Errors
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ParseError:
    """A recorded syntax error."""
    message: str
    line: int
    column: int
    token: Token

    def __str__(self) -> str:
        return f"L{self.line}:{self.column}: {self.message}"


class ParserException(Exception):
    """Unrecoverable syntax error; aborts the construct being parsed."""

    def __init__(self, message: str, token: Token | None = None):
        super().__init__(message)
        self.message = message
        self.token = token


class ErrorReporter:
    """Accumulates parse errors so parsing can continue past them."""

    def __init__(self):
        self._errors: list[ParseError] = []

    def add_error(self, message: str, token: Token):
        self._errors.append(ParseError(message, token.line, token.column, token))

    def add_token_error(self, expected: TokenType, actual: Token):
        self.add_error(f"Expected {expected.value}, got {describe_token(actual)}", actual)

    def add_prefix_error(self, token: Token):
        self.add_error(f"No prefix parser for {describe_token(token)}", token)

    @property
    def errors(self) -> list[ParseError]:
        return list(self._errors)

    def has_errors(self) -> bool:
        return bool(self._errors)

    def clear(self):
        self._errors.clear()


def describe_token(token: Token) -> str:
    if token.type == TokenType.EOF:
        return "end of input"
    if token.type.value == token.literal:
        return repr(token.literal)
    return f"{token.type.value} {token.literal!r}"


# ─────────────────────────────────────────────────────────────
#  Precedence
# ─────────────────────────────────────────────────────────────

class Precedence(IntEnum):
    """Binding power, lowest to highest."""
    LOWEST       = 1
    LOGICAL_OR   = 2   # ||
    LOGICAL_AND  = 3   # &&
    EQUALS       = 4   # == != = += -= ...
    LESS_GREATER = 5   # < > <= >=
    SUM          = 6   # + -
    PRODUCT      = 7   # * / // %
    PREFIX       = 8   # -x !x
    CALL         = 9   # f(x)
    INDEX        = 10  # a[i] a.b


PRECEDENCES = {
    TokenType.OR: Precedence.LOGICAL_OR,
    TokenType.AND: Precedence.LOGICAL_AND,
    TokenType.EQ: Precedence.EQUALS,
    TokenType.NOT_EQ: Precedence.EQUALS,
    TokenType.ASSIGN: Precedence.EQUALS,
    TokenType.PLUS_ASSIGN: Precedence.EQUALS,
    TokenType.MINUS_ASSIGN: Precedence.EQUALS,
    TokenType.ASTERISK_ASSIGN: Precedence.EQUALS,
    TokenType.SLASH_ASSIGN: Precedence.EQUALS,
    TokenType.MODULUS_ASSIGN: Precedence.EQUALS,
    TokenType.LT: Precedence.LESS_GREATER,
    TokenType.GT: Precedence.LESS_GREATER,
    TokenType.LE: Precedence.LESS_GREATER,
    TokenType.GE: Precedence.LESS_GREATER,
    TokenType.PLUS: Precedence.SUM,
    TokenType.MINUS: Precedence.SUM,
    TokenType.ASTERISK: Precedence.PRODUCT,
    TokenType.SLASH: Precedence.PRODUCT,
    TokenType.INT_DIVISION: Precedence.PRODUCT,
    TokenType.MODULUS: Precedence.PRODUCT,
    TokenType.LPAREN: Precedence.CALL,
    TokenType.LBRACKET: Precedence.INDEX,
    TokenType.DOT: Precedence.INDEX,
}


class PrecedenceTable:
    """Maps token types to their infix precedence."""

    def __init__(self, table: dict[TokenType, Precedence] | None = None):
        self._table = dict(PRECEDENCES if table is None else table)

    def get(self, token_type: TokenType) -> Precedence:
        return self._table.get(token_type, Precedence.LOWEST)

    def __contains__(self, token_type: TokenType) -> bool:
        return token_type in self._table


# ─────────────────────────────────────────────────────────────
#  Token Stream
# ─────────────────────────────────────────────────────────────

class TokenStream:
    """A cursor over the lexer exposing the current and peek tokens.

    ILLEGAL tokens are reported to `on_illegal` and skipped, so the grammar
    only ever sees well-formed tokens.
    """

    def __init__(self, lexer: Lexer, on_illegal=None):
        self._lexer = lexer
        self._on_illegal = on_illegal
        self.previous: Token | None = None
        self.current = self._pull()
        self.peek = self._pull()

    def _pull(self) -> Token:
        token = self._lexer.next_token()
        while token.type == TokenType.ILLEGAL:
            if self._on_illegal is not None:
                self._on_illegal(token)
            token = self._lexer.next_token()
        return token

    def advance(self) -> Token:
        """Move forward one token, returning the token just left behind."""
        self.previous = self.current
        self.current = self.peek
        self.peek = self._pull()
        return self.previous

    def is_current(self, token_type: TokenType) -> bool:
        return self.current.type == token_type

    def is_peek(self, token_type: TokenType) -> bool:
        return self.peek.type == token_type

    def consume(self, token_type: TokenType) -> Token:
        """Advance past the current token if it has the expected type."""
        if self.current.type != token_type:
            raise ParserException(
                f"Expected {token_type.value}, got {describe_token(self.current)}",
                self.current,
            )
        return self.advance()


# ─────────────────────────────────────────────────────────────
#  Parsing Context
# ─────────────────────────────────────────────────────────────

class ParsingContext:
    """State of a single parse: tokens, errors, precedences, loop depth."""

    def __init__(self, lexer: Lexer):
        self.errors = ErrorReporter()
        self.tokens = TokenStream(lexer, on_illegal=self._report_illegal)
        self.precedence = PrecedenceTable()
        self.loop_depth = 0

    def _report_illegal(self, token: Token):
        if token.literal.startswith('"') or token.literal.startswith('f"'):
            self.errors.add_error("Unterminated string literal", token)
        elif token.literal == "/*":
            self.errors.add_error("Unterminated block comment", token)
        else:
            self.errors.add_error(f"Illegal character {token.literal!r}", token)

    def enter_loop(self):
        self.loop_depth += 1

    def exit_loop(self):
        self.loop_depth -= 1

    def in_loop(self) -> bool:
        return self.loop_depth > 0

    def add_error(self, message: str, token: Token):
        self.errors.add_error(message, token)

    def consume(self, token_type: TokenType, message: str | None = None) -> Token:
        """Consume the current token or raise ParserException."""
        try:
            return self.tokens.consume(token_type)
        except ParserException as e:
            if message is None:
                raise
            raise ParserException(f"{message}: {e.message}", e.token) from e

    def expect_semicolon(self, after: str):
        """Consume a ';', recording a recoverable error when it is missing."""
        if self.tokens.is_current(TokenType.SEMICOLON):
            self.tokens.advance()
        else:
            self.errors.add_error(
                f"Expected ';' after {after}, got {describe_token(self.current)}",
                self.current,
            )

    @property
    def current(self) -> Token:
        return self.tokens.current

    @property
    def peek(self) -> Token:
        return self.tokens.peek

    def is_current(self, token_type: TokenType) -> bool:
        return self.tokens.is_current(token_type)

    def at_end(self) -> bool:
        return self.tokens.is_current(TokenType.EOF)
