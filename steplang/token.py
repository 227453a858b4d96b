"""
Steplang Tokens
===============
The token vocabulary shared by the lexer and the parser: token types,
source positions, and the keyword table.
"""
from dataclasses import dataclass
from enum import Enum


class TokenType(Enum):
    """All token types in the steplang language."""
    # Special
    ILLEGAL         = "ILLEGAL"
    EOF             = "EOF"

    # Identifiers and literals
    IDENTIFIER      = "IDENTIFIER"
    INT             = "INT"
    FLOAT           = "FLOAT"
    STRING          = "STRING"
    F_STRING        = "F_STRING"

    # Arithmetic
    ASSIGN          = "="
    PLUS            = "+"
    MINUS           = "-"
    BANG            = "!"
    ASTERISK        = "*"
    SLASH           = "/"
    INT_DIVISION    = "//"
    MODULUS         = "%"

    # Comparison
    LT              = "<"
    GT              = ">"
    LE              = "<="
    GE              = ">="
    EQ              = "=="
    NOT_EQ          = "!="

    # Compound assignment
    PLUS_ASSIGN     = "+="
    MINUS_ASSIGN    = "-="
    ASTERISK_ASSIGN = "*="
    SLASH_ASSIGN    = "/="
    MODULUS_ASSIGN  = "%="

    # Logical
    AND             = "&&"
    OR              = "||"

    # Bitwise (lexed only)
    BITWISE_AND     = "&"
    BITWISE_OR      = "|"
    BITWISE_XOR     = "^"
    BITWISE_NOT     = "~"
    LEFT_SHIFT      = "<<"
    RIGHT_SHIFT     = ">>"

    # Delimiters
    COMMA           = ","
    SEMICOLON       = ";"
    COLON           = ":"
    DOT             = "."
    LPAREN          = "("
    RPAREN          = ")"
    LBRACE          = "{"
    RBRACE          = "}"
    LBRACKET        = "["
    RBRACKET        = "]"

    # Keywords
    FUNCTION        = "fn"
    LET             = "let"
    CONST           = "const"
    TRUE            = "true"
    FALSE           = "false"
    IF              = "if"
    ELIF            = "elif"
    ELSE            = "else"
    RETURN          = "return"
    WHILE           = "while"
    FOR             = "for"
    BREAK           = "break"
    CONTINUE        = "continue"
    CLASS           = "class"
    EXTENDS         = "extends"
    SUPER           = "super"
    THIS            = "this"
    NEW             = "new"
    NULL            = "null"


@dataclass(frozen=True)
class Position:
    """1-based line/column of a character in the source."""
    line: int = 1
    column: int = 1

    def __str__(self) -> str:
        return f"L{self.line}:{self.column}"


@dataclass(frozen=True)
class Token:
    """A single token from the source."""
    type: TokenType
    literal: str
    position: Position = Position()

    @property
    def line(self) -> int:
        return self.position.line

    @property
    def column(self) -> int:
        return self.position.column

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.literal!r}, {self.position})"


KEYWORDS = {
    token_type.value: token_type
    for token_type in (
        TokenType.FUNCTION, TokenType.LET, TokenType.CONST,
        TokenType.TRUE, TokenType.FALSE, TokenType.IF, TokenType.ELIF,
        TokenType.ELSE, TokenType.RETURN, TokenType.WHILE, TokenType.FOR,
        TokenType.BREAK, TokenType.CONTINUE, TokenType.CLASS,
        TokenType.EXTENDS, TokenType.SUPER, TokenType.THIS, TokenType.NEW,
        TokenType.NULL,
    )
}


def lookup_identifier(word: str) -> TokenType:
    """Return the keyword type for `word`, or IDENTIFIER."""
    return KEYWORDS.get(word, TokenType.IDENTIFIER)
