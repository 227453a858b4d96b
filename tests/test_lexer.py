"""
Steplang Lexer Tests
====================
Token types, literals and positions produced by the lexer.

Usage:
    python -m unittest tests.test_lexer -v
    python -m pytest tests/test_lexer.py -v
"""
import sys
import os
import unittest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from steplang.lexer import Lexer, tokenize
from steplang.token import Position, TokenType, lookup_identifier


def types(source):
    return [t.type for t in tokenize(source)]


# ─────────────────────────────────────────────
#  Basic Tokens
# ─────────────────────────────────────────────

class TestBasicTokens(unittest.TestCase):

    def test_let_statement(self):
        self.assertEqual(types("let x = 5;"), [
            TokenType.LET, TokenType.IDENTIFIER, TokenType.ASSIGN,
            TokenType.INT, TokenType.SEMICOLON, TokenType.EOF,
        ])

    def test_empty_source_is_just_eof(self):
        tokens = tokenize("")
        self.assertEqual(len(tokens), 1)
        self.assertEqual(tokens[0].type, TokenType.EOF)

    def test_two_char_operators_win_over_single(self):
        self.assertEqual(types("== != <= >= && || // += -= *= /= %="), [
            TokenType.EQ, TokenType.NOT_EQ, TokenType.LE, TokenType.GE,
            TokenType.AND, TokenType.OR, TokenType.INT_DIVISION,
            TokenType.PLUS_ASSIGN, TokenType.MINUS_ASSIGN,
            TokenType.ASTERISK_ASSIGN, TokenType.SLASH_ASSIGN,
            TokenType.MODULUS_ASSIGN, TokenType.EOF,
        ])

    def test_bitwise_tokens_are_lexed(self):
        self.assertEqual(types("& | ^ ~ << >>")[:-1], [
            TokenType.BITWISE_AND, TokenType.BITWISE_OR, TokenType.BITWISE_XOR,
            TokenType.BITWISE_NOT, TokenType.LEFT_SHIFT, TokenType.RIGHT_SHIFT,
        ])

    def test_keywords(self):
        source = "fn let const true false if elif else return while for break continue class extends super this new null"
        kinds = types(source)[:-1]
        self.assertNotIn(TokenType.IDENTIFIER, kinds)
        self.assertEqual(kinds[0], TokenType.FUNCTION)
        self.assertEqual(kinds[-1], TokenType.NULL)

    def test_lookup_identifier(self):
        self.assertEqual(lookup_identifier("elif"), TokenType.ELIF)
        self.assertEqual(lookup_identifier("fnord"), TokenType.IDENTIFIER)

    def test_unknown_character_is_illegal(self):
        tokens = tokenize("let @ = 1;")
        self.assertEqual(tokens[1].type, TokenType.ILLEGAL)
        self.assertEqual(tokens[1].literal, "@")


# ─────────────────────────────────────────────
#  Literals
# ─────────────────────────────────────────────

class TestLiterals(unittest.TestCase):

    def test_float_forms(self):
        tokens = tokenize("1.5 .5 5. 1.23e-4 2E3")[:-1]
        self.assertTrue(all(t.type == TokenType.FLOAT for t in tokens))
        self.assertEqual([t.literal for t in tokens], ["1.5", ".5", "5.", "1.23e-4", "2E3"])

    def test_integer_followed_by_property_dot(self):
        """A dot followed by a letter is property access, not a fraction."""
        self.assertEqual(types("1.foo")[:3], [TokenType.INT, TokenType.DOT, TokenType.IDENTIFIER])

    def test_string_escapes_are_decoded(self):
        token = tokenize(r'"a\nb\t\"c\""')[0]
        self.assertEqual(token.type, TokenType.STRING)
        self.assertEqual(token.literal, 'a\nb\t"c"')

    def test_unterminated_string_is_illegal(self):
        token = tokenize('"never closed')[0]
        self.assertEqual(token.type, TokenType.ILLEGAL)

    def test_fstring_keeps_embedded_source_raw(self):
        token = tokenize('f"x = {x}"')[0]
        self.assertEqual(token.type, TokenType.F_STRING)
        self.assertEqual(token.literal, "x = {x}")

    def test_fstring_quotes_and_braces_inside_expression(self):
        token = tokenize('f"{"a" + "}"}"')[0]
        self.assertEqual(token.type, TokenType.F_STRING)
        self.assertEqual(token.literal, '{"a" + "}"}')


# ─────────────────────────────────────────────
#  Comments and Positions
# ─────────────────────────────────────────────

class TestCommentsAndPositions(unittest.TestCase):

    def test_line_and_nested_block_comments_are_skipped(self):
        source = "# comment\nlet /* outer /* inner */ still outer */ x"
        self.assertEqual(types(source), [TokenType.LET, TokenType.IDENTIFIER, TokenType.EOF])

    def test_unterminated_block_comment_is_illegal(self):
        token = tokenize("/* open")[0]
        self.assertEqual(token.type, TokenType.ILLEGAL)
        self.assertEqual(token.literal, "/*")

    def test_positions_are_one_based(self):
        tokens = tokenize("let x\n  = 5")
        self.assertEqual(tokens[0].position, Position(1, 1))
        self.assertEqual(tokens[1].position, Position(1, 5))
        self.assertEqual(tokens[2].position, Position(2, 3))
        self.assertEqual(tokens[3].position, Position(2, 5))

    def test_start_offset_shifts_positions(self):
        token = Lexer("y", start_line=3, start_column=10).next_token()
        self.assertEqual((token.line, token.column), (3, 10))

    def test_next_token_returns_eof_repeatedly(self):
        lexer = Lexer("")
        self.assertEqual(lexer.next_token().type, TokenType.EOF)
        self.assertEqual(lexer.next_token().type, TokenType.EOF)


if __name__ == "__main__":
    unittest.main()
