"""
Steplang Builtins Tests
=======================
Host functions called directly, bypassing the evaluator.

Usage:
    python -m unittest tests.test_builtins -v
    python -m pytest tests/test_builtins.py -v
"""
import sys
import os
import unittest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from steplang.builtins import BUILTINS, get_builtin
from steplang.objects import NULL, Array, Error, Float, Hash, Integer, String
from steplang.output import OutputLog


def call(name, *args, output=None):
    return BUILTINS[name].fn(list(args), output if output is not None else OutputLog())


def ints(*values):
    return Array([Integer(v) for v in values])


class TestCoreBuiltins(unittest.TestCase):

    def test_len(self):
        self.assertEqual(call("len", String("abc")).value, 3)
        self.assertEqual(call("len", ints(1, 2)).value, 2)
        self.assertEqual(call("len", Hash({"a": NULL})).value, 1)
        error = call("len", Integer(1))
        self.assertIsInstance(error, Error)
        self.assertEqual(error.message, "argument to 'len' not supported, got INTEGER")

    def test_arity_is_checked(self):
        error = call("len")
        self.assertEqual(error.message, "wrong number of arguments. got=0, want=1")
        error = call("slice", ints(1))
        self.assertEqual(error.message, "wrong number of arguments. got=1, want=2 or 3")

    def test_type_and_str(self):
        self.assertEqual(call("type", Float(1.5)).value, "FLOAT")
        self.assertEqual(call("str", ints(1, 2)).value, "[1, 2]")

    def test_conversions(self):
        self.assertEqual(call("int", String(" 42abc")).value, 42)
        self.assertEqual(call("int", Float(-3.9)).value, -3)
        self.assertIsInstance(call("int", String("abc")), Error)
        self.assertEqual(call("float", String("2.5")).value, 2.5)
        self.assertIsInstance(call("float", String("x")), Error)
        self.assertFalse(call("bool", NULL).value)
        self.assertTrue(call("bool", Integer(0)).value)

    def test_unknown_name(self):
        self.assertIsNone(get_builtin("nonexistent"))


class TestArrayBuiltins(unittest.TestCase):

    def test_first_last_rest(self):
        arr = ints(1, 2, 3)
        self.assertEqual(call("first", arr).value, 1)
        self.assertEqual(call("last", arr).value, 3)
        self.assertEqual(call("rest", arr).inspect(), "[2, 3]")
        self.assertIs(call("first", Array()), NULL)
        self.assertIs(call("rest", Array()), NULL)

    def test_push_and_pop_do_not_mutate(self):
        arr = ints(1, 2)
        self.assertEqual(call("push", arr, Integer(3)).inspect(), "[1, 2, 3]")
        self.assertEqual(call("pop", arr).inspect(), "[1]")
        self.assertEqual(arr.inspect(), "[1, 2]")
        self.assertEqual(call("pop", Array()).message, "cannot pop from empty array")

    def test_slice_clamps_and_accepts_negative_indices(self):
        arr = ints(1, 2, 3, 4)
        self.assertEqual(call("slice", arr, Integer(1)).inspect(), "[2, 3, 4]")
        self.assertEqual(call("slice", arr, Integer(-2)).inspect(), "[3, 4]")
        self.assertEqual(call("slice", arr, Integer(1), Integer(99)).inspect(), "[2, 3, 4]")
        self.assertEqual(call("slice", arr, Integer(3), Integer(1)).inspect(), "[]")

    def test_concat_reverse_join(self):
        self.assertEqual(call("concat", ints(1), ints(2)).inspect(), "[1, 2]")
        self.assertEqual(call("reverse", ints(1, 2, 3)).inspect(), "[3, 2, 1]")
        self.assertEqual(call("join", ints(1, 2)).value, "1,2")
        self.assertEqual(call("join", ints(1, 2), String(" - ")).value, "1 - 2")

    def test_type_errors_name_the_argument(self):
        error = call("concat", ints(1), Integer(2))
        self.assertEqual(error.message, "second argument to 'concat' must be ARRAY, got INTEGER")

    def test_range(self):
        self.assertEqual(call("range", Integer(3)).inspect(), "[0, 1, 2]")
        self.assertEqual(call("range", Integer(5), Integer(0), Integer(-2)).inspect(), "[5, 3, 1]")
        self.assertEqual(call("range", Integer(0), Integer(1), Integer(0)).message, "step cannot be zero")


class TestStringBuiltins(unittest.TestCase):

    def test_split_and_replace(self):
        self.assertEqual(call("split", String("a,b"), String(",")).inspect(), "[a, b]")
        self.assertEqual(call("split", String("ab"), String("")).inspect(), "[a, b]")
        self.assertEqual(call("replace", String("aXa"), String("a"), String("b")).value, "bXb")

    def test_case_and_trim(self):
        self.assertEqual(call("upper", String("ab")).value, "AB")
        self.assertEqual(call("lower", String("AB")).value, "ab")
        self.assertEqual(call("trim", String("  x ")).value, "x")

    def test_substr(self):
        self.assertEqual(call("substr", String("hello"), Integer(1), Integer(3)).value, "ell")
        self.assertEqual(call("substr", String("hello"), Integer(-3)).value, "llo")
        self.assertEqual(call("substr", String("hi"), Integer(5)).value, "")

    def test_search(self):
        self.assertEqual(call("indexOf", String("hello"), String("l")).value, 2)
        self.assertEqual(call("indexOf", String("hello"), String("z")).value, -1)
        self.assertTrue(call("contains", String("hello"), String("ell")).value)

    def test_non_string_argument(self):
        error = call("upper", Integer(1))
        self.assertEqual(error.message, "argument to 'upper' must be STRING, got INTEGER")


class TestMathBuiltins(unittest.TestCase):

    def test_abs_min_max(self):
        self.assertEqual(call("abs", Integer(-4)).value, 4)
        self.assertEqual(call("abs", Float(-1.5)).value, 1.5)
        self.assertEqual(call("max", Integer(1), Float(2.5), Integer(2)).inspect(), "2.5")
        self.assertEqual(call("min", Integer(3), Integer(-1)).value, -1)
        self.assertIsInstance(call("max"), Error)

    def test_rounding_is_half_up(self):
        self.assertEqual(call("round", Float(2.5)).value, 3)
        self.assertEqual(call("round", Float(-2.5)).value, -2)
        self.assertEqual(call("floor", Float(-1.2)).value, -2)
        self.assertEqual(call("ceil", Float(1.2)).value, 2)
        self.assertIsInstance(call("round", Float(float("nan"))), Error)

    def test_pow_and_sqrt(self):
        result = call("pow", Integer(2), Integer(10))
        self.assertIsInstance(result, Integer)
        self.assertEqual(result.value, 1024)
        self.assertEqual(call("pow", Integer(2), Integer(-1)).value, 0.5)
        self.assertEqual(call("sqrt", Integer(9)).value, 3.0)
        self.assertIsInstance(call("sqrt", Integer(-1)), Error)


class TestOutputAndUtilities(unittest.TestCase):

    def test_print_writes_to_output(self):
        output = OutputLog()
        result = call("print", String("a"), Integer(1), output=output)
        self.assertIs(result, NULL)
        self.assertEqual(output.messages(), [("log", "a 1")])

    def test_keys_and_values_keep_insertion_order(self):
        h = Hash({"b": Integer(1), "a": Integer(2)})
        self.assertEqual(call("keys", h).inspect(), "[b, a]")
        self.assertEqual(call("values", h).inspect(), "[1, 2]")

    def test_error_and_assert(self):
        self.assertEqual(call("error", String("boom")).message, "boom")
        self.assertIs(call("assert", Integer(1)), NULL)
        self.assertEqual(call("assert", NULL).message, "Assertion failed")
        self.assertEqual(call("assert", NULL, String("nope")).message, "nope")


if __name__ == "__main__":
    unittest.main()
