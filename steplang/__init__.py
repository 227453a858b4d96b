# Steplang — a small dynamic language with a stepping evaluator
"""
Steplang: lexer, Pratt parser, tree-walking evaluator and a stepwise
evaluator with replayable history, call-stack and environment snapshots.
"""

__version__ = "0.1.0"

from .token import Token, TokenType, Position
from .lexer import Lexer, tokenize
from .parsing import ParseError, ParserException
from .parser import Parser, ParseResult, parse_program
from .environment import Environment
from .objects import Object, ObjectType, Error
from .callstack import CallStack, StackOverflowError
from .config import RuntimeConfig
from .output import OutputLog
from .evaluator import Evaluator, evaluate
from .stepwise import StepwiseEvaluator, StepwiseError
from .steps import (
    EvaluationStep, ExecutionState, OutputEntry, CallStackFrame,
    EnvironmentSnapshot, VariableSnapshot, StepType,
)

__all__ = [
    "Token", "TokenType", "Position",
    "Lexer", "tokenize",
    "ParseError", "ParserException",
    "Parser", "ParseResult", "parse_program",
    "Environment",
    "Object", "ObjectType", "Error",
    "CallStack", "StackOverflowError",
    "RuntimeConfig",
    "OutputLog",
    "Evaluator", "evaluate",
    "StepwiseEvaluator", "StepwiseError",
    "EvaluationStep", "ExecutionState", "OutputEntry", "CallStackFrame",
    "EnvironmentSnapshot", "VariableSnapshot", "StepType",
]
