"""
Steplang Parser Tests
=====================
AST shape, operator precedence, pretty-printing and error recovery.

Usage:
    python -m unittest tests.test_parser -v
    python -m pytest tests/test_parser.py -v
"""
import sys
import os
import unittest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from steplang import nodes
from steplang.parser import parse_program


def parse_ok(test, source):
    result = parse_program(source)
    test.assertEqual(result.errors, [], [str(e) for e in result.errors])
    return result.program


def expression(test, source):
    program = parse_ok(test, source)
    test.assertEqual(len(program.statements), 1)
    stmt = program.statements[0]
    test.assertIsInstance(stmt, nodes.ExpressionStatement)
    return stmt.expression


# ─────────────────────────────────────────────
#  Statements
# ─────────────────────────────────────────────

class TestStatements(unittest.TestCase):

    def test_let_statement(self):
        program = parse_ok(self, "let x = 5;")
        self.assertEqual(program.statements, (
            nodes.LetStatement(name=nodes.Identifier(value="x"), value=nodes.IntegerLiteral(value=5)),
        ))

    def test_const_statement(self):
        stmt = parse_ok(self, "const pi = 3.14;").statements[0]
        self.assertIsInstance(stmt, nodes.ConstStatement)
        self.assertEqual(stmt.value, nodes.FloatLiteral(value=3.14))

    def test_return_with_and_without_value(self):
        program = parse_ok(self, "let f = fn() { return; }; let g = fn() { return 1; };")
        bare = program.statements[0].value.body.statements[0]
        valued = program.statements[1].value.body.statements[0]
        self.assertIsNone(bare.value)
        self.assertEqual(valued.value, nodes.IntegerLiteral(value=1))

    def test_for_statement_parts(self):
        stmt = parse_ok(self, "for (let i = 0; i < 3; i += 1) { print(i); }").statements[0]
        self.assertIsInstance(stmt, nodes.ForStatement)
        self.assertEqual(str(stmt.init), "let i = 0;")
        self.assertEqual(str(stmt.condition), "(i < 3)")
        self.assertEqual(str(stmt.update), "(i = (i + 1))")

    def test_class_statement(self):
        source = """
        class Dog extends Animal {
            init(name) { this.name = name; }
            speak() { return "woof"; }
        }
        """
        stmt = parse_ok(self, source).statements[0]
        self.assertIsInstance(stmt, nodes.ClassStatement)
        self.assertEqual(stmt.name.value, "Dog")
        self.assertEqual(stmt.parent.value, "Animal")
        self.assertEqual([p.value for p in stmt.constructor.parameters], ["name"])
        self.assertEqual([m.name.value for m in stmt.methods], ["speak"])

    def test_positions_are_recorded(self):
        stmt = parse_ok(self, "\n  let answer = 42;").statements[0]
        self.assertEqual((stmt.position().line, stmt.position().column), (2, 3))
        self.assertEqual(stmt.end_position().line, 2)


# ─────────────────────────────────────────────
#  Expressions
# ─────────────────────────────────────────────

class TestExpressions(unittest.TestCase):

    def test_operator_precedence(self):
        cases = {
            "-a * b": "((-a) * b)",
            "!-a": "(!(-a))",
            "a + b * c": "(a + (b * c))",
            "a + b - c": "((a + b) - c)",
            "a * b // c % d": "(((a * b) // c) % d)",
            "a < b == c > d": "((a < b) == (c > d))",
            "a || b && c": "(a || (b && c))",
            "(a + b) * c": "((a + b) * c)",
            "a + f(b * c)[0]": "(a + (f((b * c))[0]))",
            "x.y.z(1)": "x.y.z(1)",
        }
        for source, expected in cases.items():
            with self.subTest(source=source):
                self.assertEqual(str(expression(self, source)), expected)

    def test_assignment_is_right_associative(self):
        expr = expression(self, "a = b = 3")
        self.assertIsInstance(expr, nodes.AssignmentExpression)
        self.assertIsInstance(expr.value, nodes.AssignmentExpression)

    def test_compound_assignment_desugars(self):
        expr = expression(self, "total *= 2")
        self.assertEqual(expr.target, nodes.Identifier(value="total"))
        self.assertEqual(str(expr.value), "(total * 2)")

    def test_assignment_to_index_and_property(self):
        self.assertIsInstance(expression(self, "a[0] = 1").target, nodes.IndexExpression)
        self.assertIsInstance(expression(self, "this.x = 1").target, nodes.PropertyExpression)

    def test_if_elif_else_chain(self):
        expr = expression(self, "if (a) { 1 } elif (b) { 2 } else if (c) { 3 } else { 4 }")
        self.assertIsInstance(expr, nodes.IfExpression)
        self.assertEqual(len(expr.conditions), 3)
        self.assertIsNotNone(expr.alternative)

    def test_function_literal(self):
        expr = expression(self, "fn(x, y) { x + y; }")
        self.assertEqual([p.value for p in expr.parameters], ["x", "y"])
        self.assertEqual(str(expr.body), "{ (x + y); }")

    def test_hash_and_array_literals(self):
        program = parse_ok(self, 'let h = {"a": 1, 2: [1, 2,]};')
        value = program.statements[0].value
        self.assertIsInstance(value, nodes.HashLiteral)
        self.assertEqual(str(value), '{"a": 1, 2: [1, 2]}')

    def test_fstring_parts(self):
        expr = expression(self, 'f"sum: {a + b}!"')
        self.assertIsInstance(expr, nodes.FStringLiteral)
        self.assertEqual(expr.parts, ("sum: ", "!"))
        self.assertEqual(str(expr.expressions[0]), "(a + b)")

    def test_new_and_super(self):
        self.assertEqual(str(expression(self, "new Point(1, 2)")), "new Point(1, 2)")
        program = parse_ok(self, "class B extends A { init() { super(1); super.m(2); } }")
        body = program.statements[0].constructor.body.statements
        self.assertTrue(body[0].expression.is_constructor_call())
        self.assertEqual(body[1].expression.method.value, "m")


# ─────────────────────────────────────────────
#  Pretty Printing
# ─────────────────────────────────────────────

class TestPrettyPrinting(unittest.TestCase):

    SOURCE = """
    let add = fn(a, b) { return a + b; };
    const names = ["a\\n", "b\\"q\\""];
    let h = {"k": -1.5, 2: null};
    x = add(1, 2) * 3;
    if (x > 3) { print(f"big {x}"); } elif (x == 0) { print("zero"); } else { print("small"); }
    while (true) { break; }
    for (let i = 0; i < 10; i += 1) { if (i % 2 == 0) { continue; } }
    class Child extends Base { init(v) { super(v); this.v = v; } get() { return super.get() + this.v; } }
    let obj = new Child(1);
    obj.v = obj.get();
    """

    def test_reparse_yields_equal_tree(self):
        program = parse_ok(self, self.SOURCE)
        reparsed = parse_ok(self, str(program))
        self.assertEqual(program, reparsed)

    def test_pretty_print_is_stable(self):
        once = str(parse_ok(self, self.SOURCE))
        twice = str(parse_ok(self, once))
        self.assertEqual(once, twice)

    def test_describe_is_single_line_and_bounded(self):
        stmt = parse_ok(self, "let f = fn(a) {\n  return a + a + a + a + a + a + a + a;\n};").statements[0]
        text = stmt.describe()
        self.assertNotIn("\n", text)
        self.assertLessEqual(len(text), nodes.DESCRIBE_WIDTH)
        self.assertTrue(text.endswith("..."))


# ─────────────────────────────────────────────
#  Errors
# ─────────────────────────────────────────────

class TestParseErrors(unittest.TestCase):

    def test_missing_prefix_parser(self):
        result = parse_program("let x = ;")
        self.assertFalse(result.ok)
        self.assertIn("No prefix parser", result.errors[0].message)

    def test_missing_semicolon_is_recoverable(self):
        result = parse_program("let x = 1 let y = 2;")
        self.assertEqual(len(result.errors), 1)
        self.assertIn("Expected ';' after let statement", result.errors[0].message)
        self.assertEqual(len(result.program.statements), 2)

    def test_errors_carry_positions(self):
        result = parse_program("let x = 1;\nlet = 2;")
        error = result.errors[0]
        self.assertEqual(error.line, 2)
        self.assertIn("Expected identifier after 'let'", error.message)

    def test_recovery_continues_with_next_statement(self):
        result = parse_program("let = 1; let ok = 2;")
        self.assertFalse(result.ok)
        names = [s.name.value for s in result.program.statements if isinstance(s, nodes.LetStatement)]
        self.assertEqual(names, ["ok"])

    def test_break_outside_loop(self):
        result = parse_program("break;")
        self.assertIn("'break' outside of loop", result.errors[0].message)

    def test_break_inside_function_inside_loop_is_rejected(self):
        result = parse_program("while (true) { let f = fn() { break; }; }")
        self.assertFalse(result.ok)

    def test_invalid_assignment_target(self):
        result = parse_program("1 + x = 3;")
        self.assertIn("Invalid assignment target", result.errors[0].message)

    def test_hash_keys_must_be_literals(self):
        result = parse_program("let h = {x: 1};")
        self.assertIn("Hash keys must be string or integer literals", result.errors[0].message)

    def test_for_requires_let(self):
        result = parse_program("for (i = 0; i < 3; i += 1) { }")
        self.assertIn("Expected 'let' in for loop initializer", result.errors[0].message)

    def test_unterminated_block(self):
        result = parse_program("while (true) { let x = 1;")
        self.assertTrue(any("Unterminated block" in e.message for e in result.errors))

    def test_bad_fstring_expressions(self):
        for source, message in [
            ('f"{}"', "Empty expression in f-string"),
            ('f"\\{x"', "Unterminated expression in f-string"),
            ('f"x}"', "Unmatched '}' in f-string"),
            ('f"{1 +}"', "Invalid expression in f-string"),
        ]:
            with self.subTest(source=source):
                result = parse_program(source)
                self.assertFalse(result.ok)
                self.assertIn(message, result.errors[0].message)

    def test_duplicate_init(self):
        result = parse_program("class A { init() { } init(x) { } }")
        self.assertIn("more than one init method", result.errors[0].message)

    def test_bitwise_operators_have_no_parser(self):
        result = parse_program("let x = 1 & 2;")
        self.assertFalse(result.ok)


if __name__ == "__main__":
    unittest.main()
