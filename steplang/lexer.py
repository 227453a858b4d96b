"""
Steplang Lexer
==============
Tokenizes steplang source code into a stream of positioned tokens.
Handles identifiers and keywords, integer/float literals (including
`.5`, `5.` and `1.23e-4`), strings with escapes, f-strings, line and
nested block comments, and the full operator set.

Unrecognized characters become ILLEGAL tokens instead of raising, so the
parser can report them with their position.
"""
from typing import Iterator

from .token import Position, Token, TokenType, lookup_identifier


# Operator mapping (two-char operators are matched first)
TWO_CHAR_TOKENS = {
    "==": TokenType.EQ,
    "!=": TokenType.NOT_EQ,
    "<=": TokenType.LE,
    ">=": TokenType.GE,
    "&&": TokenType.AND,
    "||": TokenType.OR,
    "+=": TokenType.PLUS_ASSIGN,
    "-=": TokenType.MINUS_ASSIGN,
    "*=": TokenType.ASTERISK_ASSIGN,
    "/=": TokenType.SLASH_ASSIGN,
    "%=": TokenType.MODULUS_ASSIGN,
    "//": TokenType.INT_DIVISION,
    "<<": TokenType.LEFT_SHIFT,
    ">>": TokenType.RIGHT_SHIFT,
}

SINGLE_CHAR_TOKENS = {
    "=": TokenType.ASSIGN,
    "+": TokenType.PLUS,
    "-": TokenType.MINUS,
    "!": TokenType.BANG,
    "*": TokenType.ASTERISK,
    "/": TokenType.SLASH,
    "%": TokenType.MODULUS,
    "<": TokenType.LT,
    ">": TokenType.GT,
    "&": TokenType.BITWISE_AND,
    "|": TokenType.BITWISE_OR,
    "^": TokenType.BITWISE_XOR,
    "~": TokenType.BITWISE_NOT,
    ",": TokenType.COMMA,
    ";": TokenType.SEMICOLON,
    ":": TokenType.COLON,
    ".": TokenType.DOT,
    "(": TokenType.LPAREN,
    ")": TokenType.RPAREN,
    "{": TokenType.LBRACE,
    "}": TokenType.RBRACE,
    "[": TokenType.LBRACKET,
    "]": TokenType.RBRACKET,
}

ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "0": "\0",
}


class Lexer:
    """
    Tokenizes steplang source code.

    Usage:
        lexer = Lexer(source_code)
        tokens = lexer.tokenize()

    `start_line`/`start_column` shift reported positions; the parser uses
    them when re-lexing expressions embedded in f-strings.
    """

    def __init__(self, source: str, start_line: int = 1, start_column: int = 1):
        self.source = source
        self.pos = 0
        self.line = start_line
        self.col = start_column

    def _current(self) -> str | None:
        if self.pos >= len(self.source):
            return None
        return self.source[self.pos]

    def _peek(self, offset: int = 1) -> str | None:
        idx = self.pos + offset
        if idx >= len(self.source):
            return None
        return self.source[idx]

    def _advance(self) -> str:
        ch = self.source[self.pos]
        self.pos += 1
        if ch == "\n":
            self.line += 1
            self.col = 1
        else:
            self.col += 1
        return ch

    def _position(self) -> Position:
        return Position(self.line, self.col)

    # ─────────────────────────────────────────────────────────
    #  Whitespace and comments
    # ─────────────────────────────────────────────────────────

    def _skip_trivia(self) -> Token | None:
        """Skip whitespace and comments.

        Returns an ILLEGAL token when a block comment is never closed.
        """
        while self.pos < len(self.source):
            ch = self._current()
            if ch in (" ", "\t", "\r", "\n"):
                self._advance()
            elif ch == "#":
                while self.pos < len(self.source) and self._current() != "\n":
                    self._advance()
            elif ch == "/" and self._peek() == "*":
                start = self._position()
                if not self._skip_block_comment():
                    return Token(TokenType.ILLEGAL, "/*", start)
            else:
                break
        return None

    def _skip_block_comment(self) -> bool:
        """Skip a /* ... */ comment; nested comments are balanced."""
        self._advance()
        self._advance()
        depth = 1
        while self.pos < len(self.source):
            if self._current() == "/" and self._peek() == "*":
                self._advance()
                self._advance()
                depth += 1
            elif self._current() == "*" and self._peek() == "/":
                self._advance()
                self._advance()
                depth -= 1
                if depth == 0:
                    return True
            else:
                self._advance()
        return False

    # ─────────────────────────────────────────────────────────
    #  Literals
    # ─────────────────────────────────────────────────────────

    def _read_string(self) -> Token:
        """Read a double-quoted string literal."""
        start = self._position()
        self._advance()  # consume opening "
        chars = []
        while self.pos < len(self.source):
            ch = self._advance()
            if ch == '"':
                return Token(TokenType.STRING, "".join(chars), start)
            if ch == "\\" and self.pos < len(self.source):
                next_ch = self._advance()
                chars.append(ESCAPES.get(next_ch, next_ch))
            else:
                chars.append(ch)
        return Token(TokenType.ILLEGAL, '"' + "".join(chars), start)

    def _read_fstring(self) -> Token:
        """Read f"...": escapes are decoded in the static text only.

        Text inside braces is kept raw for the parser to re-lex; quotes and
        braces there are tracked so they don't terminate the literal.
        """
        start = self._position()
        self._advance()  # consume f
        self._advance()  # consume opening "
        chars = []
        depth = 0
        in_string = False
        while self.pos < len(self.source):
            ch = self._advance()
            if depth == 0:
                if ch == '"':
                    return Token(TokenType.F_STRING, "".join(chars), start)
                if ch == "\\" and self.pos < len(self.source):
                    next_ch = self._advance()
                    chars.append(ESCAPES.get(next_ch, next_ch))
                    continue
                if ch == "{":
                    depth = 1
                chars.append(ch)
                continue

            chars.append(ch)
            if in_string:
                if ch == "\\" and self.pos < len(self.source):
                    chars.append(self._advance())
                elif ch == '"':
                    in_string = False
            elif ch == '"':
                in_string = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
        return Token(TokenType.ILLEGAL, 'f"' + "".join(chars), start)

    def _read_number(self) -> Token:
        """Read an integer or float literal."""
        start = self._position()
        chars = []
        is_float = False
        while (ch := self._current()) is not None and ch.isdigit():
            chars.append(self._advance())

        if self._current() == ".":
            after = self._peek()
            if after is None or not (after.isalpha() or after in "_."):
                is_float = True
                chars.append(self._advance())
                while (ch := self._current()) is not None and ch.isdigit():
                    chars.append(self._advance())

        if self._current() in ("e", "E"):
            after = self._peek()
            signed = after in ("+", "-") and (self._peek(2) or "").isdigit()
            if (after is not None and after.isdigit()) or signed:
                is_float = True
                chars.append(self._advance())
                if signed:
                    chars.append(self._advance())
                while (ch := self._current()) is not None and ch.isdigit():
                    chars.append(self._advance())

        token_type = TokenType.FLOAT if is_float else TokenType.INT
        return Token(token_type, "".join(chars), start)

    def _read_identifier(self) -> Token:
        """Read an identifier or keyword."""
        start = self._position()
        chars = []
        while (ch := self._current()) is not None and (ch.isalnum() or ch == "_"):
            chars.append(self._advance())
        word = "".join(chars)
        return Token(lookup_identifier(word), word, start)

    # ─────────────────────────────────────────────────────────
    #  Public API
    # ─────────────────────────────────────────────────────────

    def next_token(self) -> Token:
        """Return the next token; EOF once the source is exhausted."""
        illegal = self._skip_trivia()
        if illegal is not None:
            return illegal

        ch = self._current()
        if ch is None:
            return Token(TokenType.EOF, "", self._position())

        if ch == '"':
            return self._read_string()

        if ch == "f" and self._peek() == '"':
            return self._read_fstring()

        if ch.isdigit() or (ch == "." and (self._peek() or "").isdigit()):
            return self._read_number()

        if ch.isalpha() or ch == "_":
            return self._read_identifier()

        start = self._position()
        pair = ch + (self._peek() or "")
        if pair in TWO_CHAR_TOKENS:
            self._advance()
            self._advance()
            return Token(TWO_CHAR_TOKENS[pair], pair, start)

        if ch in SINGLE_CHAR_TOKENS:
            self._advance()
            return Token(SINGLE_CHAR_TOKENS[ch], ch, start)

        self._advance()
        return Token(TokenType.ILLEGAL, ch, start)

    def tokenize(self) -> list[Token]:
        """Tokenize the entire source; the list ends with an EOF token."""
        tokens = list(self._iter_tokens())
        tokens.append(Token(TokenType.EOF, "", self._position()))
        return tokens

    def _iter_tokens(self) -> Iterator[Token]:
        """Generate tokens one at a time, stopping before EOF."""
        while True:
            token = self.next_token()
            if token.type == TokenType.EOF:
                return
            yield token


def tokenize(source: str) -> list[Token]:
    """Drive a fresh lexer over `source` to exhaustion."""
    return Lexer(source).tokenize()
