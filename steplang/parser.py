"""
Steplang Parser
===============
Pratt parser that builds the AST from the lexer's token stream.

Supports:
  - Prefix parsers per literal kind, unary operator, grouping, if/elif/else,
    function/array/hash literals, `new`, `super` and `this`
  - Infix parsers for binary operators, calls, indexing, property access,
    assignment and compound assignment (desugared to `x = x op e`)
  - Statements: let/const, return, blocks, while, for, break/continue, class
  - f-strings, whose embedded expressions are re-lexed and parsed here
  - Error accumulation: recoverable errors are collected and parsing
    resynchronizes at the next statement boundary
"""
import logging
from dataclasses import dataclass, field

from .lexer import Lexer
from .nodes import (
    ArrayLiteral, AssignmentExpression, BlockStatement, BooleanLiteral,
    BreakStatement, CallExpression, ClassStatement, ConstStatement,
    ContinueStatement, Expression, ExpressionStatement, FloatLiteral,
    ForStatement, FStringLiteral, FunctionLiteral, HashLiteral, Identifier,
    IfExpression, IndexExpression, InfixExpression, IntegerLiteral,
    LetStatement, MethodDefinition, NewExpression, NullLiteral,
    PrefixExpression, Program, PropertyExpression, ReturnStatement,
    Statement, StringLiteral, SuperExpression, ThisExpression,
    WhileStatement,
)
from .parsing import (
    ParseError, ParserException, ParsingContext, Precedence,
)
from .token import Token, TokenType

logger = logging.getLogger(__name__)


# Tokens that always end an expression, whatever their precedence
EXPRESSION_TERMINATORS = (TokenType.SEMICOLON, TokenType.COMMA, TokenType.COLON)

# Tokens that may begin a statement; error recovery stops in front of them
STATEMENT_KEYWORDS = (
    TokenType.LET, TokenType.CONST, TokenType.RETURN, TokenType.WHILE,
    TokenType.FOR, TokenType.BREAK, TokenType.CONTINUE, TokenType.CLASS,
)

ASSIGNABLE = (Identifier, IndexExpression, PropertyExpression)

COMPOUND_ASSIGNMENTS = {
    TokenType.PLUS_ASSIGN: "+",
    TokenType.MINUS_ASSIGN: "-",
    TokenType.ASTERISK_ASSIGN: "*",
    TokenType.SLASH_ASSIGN: "/",
    TokenType.MODULUS_ASSIGN: "%",
}

BINARY_OPERATORS = (
    TokenType.PLUS, TokenType.MINUS, TokenType.ASTERISK, TokenType.SLASH,
    TokenType.INT_DIVISION, TokenType.MODULUS,
    TokenType.EQ, TokenType.NOT_EQ, TokenType.LT, TokenType.GT,
    TokenType.LE, TokenType.GE, TokenType.AND, TokenType.OR,
)


@dataclass
class ParseResult:
    """A best-effort program plus every error found while parsing it."""
    program: Program
    errors: list[ParseError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


# ─────────────────────────────────────────────────────────────
#  Parser
# ─────────────────────────────────────────────────────────────

class Parser:
    """
    Pratt parser for steplang source.

    Usage:
        parser = Parser(Lexer(source))
        program = parser.parse_program()
        if parser.errors: ...
    """

    def __init__(self, lexer: Lexer):
        self.ctx = ParsingContext(lexer)

        self._prefix_parsers = {
            TokenType.IDENTIFIER: self._parse_identifier,
            TokenType.INT: self._parse_integer,
            TokenType.FLOAT: self._parse_float,
            TokenType.STRING: self._parse_string,
            TokenType.F_STRING: self._parse_fstring,
            TokenType.TRUE: self._parse_boolean,
            TokenType.FALSE: self._parse_boolean,
            TokenType.NULL: self._parse_null,
            TokenType.THIS: self._parse_this,
            TokenType.BANG: self._parse_prefix,
            TokenType.MINUS: self._parse_prefix,
            TokenType.LPAREN: self._parse_group,
            TokenType.IF: self._parse_if,
            TokenType.FUNCTION: self._parse_function,
            TokenType.LBRACKET: self._parse_array,
            TokenType.LBRACE: self._parse_hash,
            TokenType.NEW: self._parse_new,
            TokenType.SUPER: self._parse_super,
        }

        self._infix_parsers = {token_type: self._parse_infix for token_type in BINARY_OPERATORS}
        self._infix_parsers.update({
            TokenType.ASSIGN: self._parse_assignment,
            TokenType.LPAREN: self._parse_call,
            TokenType.LBRACKET: self._parse_index,
            TokenType.DOT: self._parse_property,
        })
        for token_type in COMPOUND_ASSIGNMENTS:
            self._infix_parsers[token_type] = self._parse_compound_assignment

        self._statement_parsers = {
            TokenType.LET: self._declaration_parser(LetStatement),
            TokenType.CONST: self._declaration_parser(ConstStatement),
            TokenType.RETURN: self._parse_return,
            TokenType.LBRACE: self._parse_block,
            TokenType.WHILE: self._parse_while,
            TokenType.FOR: self._parse_for,
            TokenType.BREAK: self._parse_loop_control,
            TokenType.CONTINUE: self._parse_loop_control,
            TokenType.CLASS: self._parse_class,
        }

    @property
    def errors(self) -> list[ParseError]:
        return self.ctx.errors.errors

    @property
    def tokens(self):
        return self.ctx.tokens

    def _record(self, exc: ParserException):
        token = exc.token or self.ctx.current
        logger.debug("parse error at %s: %s", token.position, exc.message)
        self.ctx.add_error(exc.message, token)

    def _synchronize(self):
        """Skip to the next statement boundary after an aborted construct."""
        self.tokens.advance()
        while not self.ctx.at_end():
            if self.tokens.previous.type == TokenType.SEMICOLON:
                return
            if self.ctx.current.type in STATEMENT_KEYWORDS or self.ctx.is_current(TokenType.RBRACE):
                return
            self.tokens.advance()

    # ─────────────────────────────────────────────────────────
    #  Top-Level Parsing
    # ─────────────────────────────────────────────────────────

    def parse_program(self) -> Program:
        """Parse statements until EOF, recovering from syntax errors."""
        first = self.ctx.current
        statements = self._parse_statements(top_level=True)
        return Program(token=first, end_token=self.ctx.current, statements=tuple(statements))

    def _parse_statements(self, top_level: bool = False) -> list[Statement]:
        statements = []
        while not self.ctx.at_end():
            if not top_level and self.ctx.is_current(TokenType.RBRACE):
                break
            start = self.ctx.current
            try:
                stmt = self.parse_statement()
                if stmt is not None:
                    statements.append(stmt)
            except ParserException as e:
                self._record(e)
                self._synchronize()
                if top_level and self.ctx.is_current(TokenType.RBRACE):
                    self.tokens.advance()
                continue
            if self.ctx.current is start:
                # nothing was consumed; the error is already on record
                self.tokens.advance()
        return statements

    def parse_statement(self) -> Statement | None:
        """Parse one statement, dispatching on its leading token."""
        parser = self._statement_parsers.get(self.ctx.current.type)
        if parser is not None:
            return parser()
        return self._parse_expression_statement()

    # ─────────────────────────────────────────────────────────
    #  Statements
    # ─────────────────────────────────────────────────────────

    def _declaration_parser(self, node_class):
        """Build the parser shared by `let` and `const`."""

        def parse() -> LetStatement:
            keyword = self.tokens.advance()
            name = self.ctx.consume(
                TokenType.IDENTIFIER, f"Expected identifier after '{keyword.literal}'",
            )
            self.ctx.consume(TokenType.ASSIGN, f"Expected '=' after '{name.literal}'")
            value = self.parse_expression()
            end = self.tokens.previous
            self.ctx.expect_semicolon(f"{keyword.literal} statement")
            return node_class(
                token=keyword,
                end_token=end,
                name=Identifier(token=name, value=name.literal),
                value=value,
            )

        return parse

    def _parse_return(self) -> ReturnStatement:
        token = self.tokens.advance()
        value = None
        if not (self.ctx.is_current(TokenType.SEMICOLON)
                or self.ctx.is_current(TokenType.RBRACE)
                or self.ctx.at_end()):
            value = self.parse_expression()
        end = self.tokens.previous
        self.ctx.expect_semicolon("return statement")
        return ReturnStatement(token=token, end_token=end, value=value)

    def _parse_block(self) -> BlockStatement:
        token = self.ctx.consume(TokenType.LBRACE)
        statements = self._parse_statements()
        end = self.ctx.consume(TokenType.RBRACE, "Unterminated block")
        return BlockStatement(token=token, end_token=end, statements=tuple(statements))

    def _parse_condition(self, keyword: str) -> Expression:
        self.ctx.consume(TokenType.LPAREN, f"Expected '(' after '{keyword}'")
        condition = self.parse_expression()
        self.ctx.consume(TokenType.RPAREN, f"Expected ')' after {keyword} condition")
        return condition

    def _parse_loop_body(self) -> BlockStatement:
        self.ctx.enter_loop()
        try:
            return self._parse_block()
        finally:
            self.ctx.exit_loop()

    def _parse_while(self) -> WhileStatement:
        token = self.tokens.advance()
        condition = self._parse_condition("while")
        body = self._parse_loop_body()
        return WhileStatement(token=token, end_token=body.end_token, condition=condition, body=body)

    def _parse_for(self) -> ForStatement:
        token = self.tokens.advance()
        self.ctx.consume(TokenType.LPAREN, "Expected '(' after 'for'")
        if not self.ctx.is_current(TokenType.LET):
            raise ParserException("Expected 'let' in for loop initializer", self.ctx.current)
        init = self._statement_parsers[TokenType.LET]()
        condition = self.parse_expression()
        self.ctx.consume(TokenType.SEMICOLON, "Expected ';' after for loop condition")
        update = self.parse_expression()
        self.ctx.consume(TokenType.RPAREN, "Expected ')' after for loop update")
        body = self._parse_loop_body()
        return ForStatement(
            token=token, end_token=body.end_token,
            init=init, condition=condition, update=update, body=body,
        )

    def _parse_loop_control(self) -> Statement:
        token = self.tokens.advance()
        if not self.ctx.in_loop():
            raise ParserException(f"'{token.literal}' outside of loop", token)
        if self.ctx.is_current(TokenType.SEMICOLON):
            self.tokens.advance()
        if token.type == TokenType.BREAK:
            return BreakStatement(token=token, end_token=token)
        return ContinueStatement(token=token, end_token=token)

    def _parse_class(self) -> ClassStatement:
        token = self.tokens.advance()
        name = self.ctx.consume(TokenType.IDENTIFIER, "Expected class name")
        parent = None
        if self.ctx.is_current(TokenType.EXTENDS):
            self.tokens.advance()
            parent_token = self.ctx.consume(TokenType.IDENTIFIER, "Expected parent class name")
            parent = Identifier(token=parent_token, value=parent_token.literal)
        self.ctx.consume(TokenType.LBRACE, f"Expected '{{' to open class '{name.literal}'")

        constructor = None
        methods = []
        while not self.ctx.is_current(TokenType.RBRACE) and not self.ctx.at_end():
            method_name = self.ctx.consume(TokenType.IDENTIFIER, "Expected method name")
            function = self._parse_function_rest(method_name)
            if method_name.literal == "init":
                if constructor is not None:
                    raise ParserException(
                        f"Class '{name.literal}' has more than one init method", method_name,
                    )
                constructor = function
            else:
                methods.append(MethodDefinition(
                    token=method_name,
                    end_token=function.end_token,
                    name=Identifier(token=method_name, value=method_name.literal),
                    function=function,
                ))
        end = self.ctx.consume(TokenType.RBRACE, f"Unterminated class '{name.literal}'")
        return ClassStatement(
            token=token,
            end_token=end,
            name=Identifier(token=name, value=name.literal),
            parent=parent,
            constructor=constructor,
            methods=tuple(methods),
        )

    def _parse_expression_statement(self) -> ExpressionStatement | None:
        token = self.ctx.current
        expression = self.parse_expression()
        if expression is None:
            return None
        end = self.tokens.previous
        if self.ctx.is_current(TokenType.SEMICOLON):
            self.tokens.advance()
        return ExpressionStatement(token=token, end_token=end, expression=expression)

    # ─────────────────────────────────────────────────────────
    #  Expressions
    # ─────────────────────────────────────────────────────────

    def parse_expression(self, precedence: Precedence = Precedence.LOWEST) -> Expression | None:
        """Pratt loop: one prefix parser, then infix parsers while they bind tighter."""
        token = self.ctx.current
        prefix = self._prefix_parsers.get(token.type)
        if prefix is None:
            self.ctx.errors.add_prefix_error(token)
            return None
        left = prefix()

        while (self.ctx.current.type not in EXPRESSION_TERMINATORS
               and precedence < self.ctx.precedence.get(self.ctx.current.type)):
            infix = self._infix_parsers.get(self.ctx.current.type)
            if infix is None:
                break
            left = infix(left)
        return left

    def _parse_expression_list(self, end: TokenType) -> tuple[Expression, ...]:
        """Comma-separated expressions up to and including `end`."""
        items = []
        if self.ctx.is_current(end):
            self.tokens.advance()
            return ()
        items.append(self.parse_expression())
        while self.ctx.is_current(TokenType.COMMA):
            self.tokens.advance()
            if self.ctx.is_current(end):
                break
            items.append(self.parse_expression())
        self.ctx.consume(end)
        return tuple(items)

    def _parse_identifier(self) -> Identifier:
        token = self.tokens.advance()
        return Identifier(token=token, value=token.literal)

    def _parse_integer(self) -> IntegerLiteral:
        token = self.tokens.advance()
        return IntegerLiteral(token=token, value=int(token.literal))

    def _parse_float(self) -> FloatLiteral:
        token = self.tokens.advance()
        return FloatLiteral(token=token, value=float(token.literal))

    def _parse_string(self) -> StringLiteral:
        token = self.tokens.advance()
        return StringLiteral(token=token, value=token.literal)

    def _parse_boolean(self) -> BooleanLiteral:
        token = self.tokens.advance()
        return BooleanLiteral(token=token, value=token.type == TokenType.TRUE)

    def _parse_null(self) -> NullLiteral:
        return NullLiteral(token=self.tokens.advance())

    def _parse_this(self) -> ThisExpression:
        return ThisExpression(token=self.tokens.advance())

    def _parse_prefix(self) -> PrefixExpression:
        token = self.tokens.advance()
        right = self.parse_expression(Precedence.PREFIX)
        return PrefixExpression(
            token=token, end_token=self.tokens.previous, operator=token.literal, right=right,
        )

    def _parse_group(self) -> Expression | None:
        self.tokens.advance()
        expression = self.parse_expression()
        self.ctx.consume(TokenType.RPAREN)
        return expression

    def _parse_if(self) -> IfExpression:
        token = self.tokens.advance()
        keyword = "if"
        conditions, consequences = [], []
        alternative = None
        while True:
            conditions.append(self._parse_condition(keyword))
            consequences.append(self._parse_block())
            if self.ctx.is_current(TokenType.ELIF):
                self.tokens.advance()
                keyword = "elif"
                continue
            if self.ctx.is_current(TokenType.ELSE):
                self.tokens.advance()
                if self.ctx.is_current(TokenType.IF):
                    self.tokens.advance()
                    keyword = "else if"
                    continue
                alternative = self._parse_block()
            break
        return IfExpression(
            token=token,
            end_token=self.tokens.previous,
            conditions=tuple(conditions),
            consequences=tuple(consequences),
            alternative=alternative,
        )

    def _parse_parameters(self) -> tuple[Identifier, ...]:
        self.ctx.consume(TokenType.LPAREN, "Expected '(' before parameters")
        params = []
        if not self.ctx.is_current(TokenType.RPAREN):
            while True:
                name = self.ctx.consume(TokenType.IDENTIFIER, "Expected parameter name")
                params.append(Identifier(token=name, value=name.literal))
                if not self.ctx.is_current(TokenType.COMMA):
                    break
                self.tokens.advance()
        self.ctx.consume(TokenType.RPAREN, "Expected ')' after parameters")
        return tuple(params)

    def _parse_function_rest(self, token: Token) -> FunctionLiteral:
        """Parameters and body; loops outside the function don't cover its body."""
        params = self._parse_parameters()
        saved_depth, self.ctx.loop_depth = self.ctx.loop_depth, 0
        try:
            body = self._parse_block()
        finally:
            self.ctx.loop_depth = saved_depth
        return FunctionLiteral(token=token, end_token=body.end_token, parameters=params, body=body)

    def _parse_function(self) -> FunctionLiteral:
        return self._parse_function_rest(self.tokens.advance())

    def _parse_array(self) -> ArrayLiteral:
        token = self.tokens.advance()
        elements = self._parse_expression_list(TokenType.RBRACKET)
        return ArrayLiteral(token=token, end_token=self.tokens.previous, elements=elements)

    def _parse_hash(self) -> HashLiteral:
        token = self.tokens.advance()
        pairs = []
        while not self.ctx.is_current(TokenType.RBRACE):
            key_token = self.ctx.current
            key = self.parse_expression()
            if not isinstance(key, (StringLiteral, IntegerLiteral)):
                raise ParserException("Hash keys must be string or integer literals", key_token)
            self.ctx.consume(TokenType.COLON, "Expected ':' after hash key")
            value = self.parse_expression()
            pairs.append((key, value))
            if not self.ctx.is_current(TokenType.RBRACE):
                self.ctx.consume(TokenType.COMMA, "Expected ',' or '}' in hash literal")
        end = self.tokens.advance()
        return HashLiteral(token=token, end_token=end, pairs=tuple(pairs))

    def _parse_new(self) -> NewExpression:
        token = self.tokens.advance()
        class_name = self.parse_expression(Precedence.CALL)
        self.ctx.consume(TokenType.LPAREN, "Expected '(' after class in 'new'")
        arguments = self._parse_expression_list(TokenType.RPAREN)
        return NewExpression(
            token=token, end_token=self.tokens.previous,
            class_name=class_name, arguments=arguments,
        )

    def _parse_super(self) -> SuperExpression:
        token = self.tokens.advance()
        method = None
        if self.ctx.is_current(TokenType.DOT):
            self.tokens.advance()
            name = self.ctx.consume(TokenType.IDENTIFIER, "Expected method name after 'super.'")
            method = Identifier(token=name, value=name.literal)
        self.ctx.consume(TokenType.LPAREN, "Expected '(' after super")
        arguments = self._parse_expression_list(TokenType.RPAREN)
        return SuperExpression(
            token=token, end_token=self.tokens.previous, method=method, arguments=arguments,
        )

    # ─────────────────────────────────────────────────────────
    #  Infix
    # ─────────────────────────────────────────────────────────

    @staticmethod
    def _start(left: Expression | None, fallback: Token) -> Token:
        if left is not None and left.token is not None:
            return left.token
        return fallback

    def _parse_infix(self, left: Expression) -> InfixExpression:
        token = self.tokens.advance()
        right = self.parse_expression(self.ctx.precedence.get(token.type))
        return InfixExpression(
            token=self._start(left, token),
            end_token=self.tokens.previous,
            left=left,
            operator=token.literal,
            right=right,
        )

    def _check_target(self, target: Expression | None, operator: Token):
        if not isinstance(target, ASSIGNABLE):
            raise ParserException(f"Invalid assignment target before '{operator.literal}'", operator)

    def _parse_assignment(self, left: Expression) -> AssignmentExpression:
        token = self.tokens.advance()
        self._check_target(left, token)
        value = self.parse_expression(Precedence.LOWEST)
        return AssignmentExpression(
            token=self._start(left, token), end_token=self.tokens.previous,
            target=left, value=value,
        )

    def _parse_compound_assignment(self, left: Expression) -> AssignmentExpression:
        token = self.tokens.advance()
        self._check_target(left, token)
        value = self.parse_expression(Precedence.LOWEST)
        start = self._start(left, token)
        combined = InfixExpression(
            token=start, end_token=self.tokens.previous,
            left=left, operator=COMPOUND_ASSIGNMENTS[token.type], right=value,
        )
        return AssignmentExpression(
            token=start, end_token=self.tokens.previous, target=left, value=combined,
        )

    def _parse_call(self, left: Expression) -> CallExpression:
        token = self.tokens.advance()
        arguments = self._parse_expression_list(TokenType.RPAREN)
        return CallExpression(
            token=self._start(left, token), end_token=self.tokens.previous,
            function=left, arguments=arguments,
        )

    def _parse_index(self, left: Expression) -> IndexExpression:
        token = self.tokens.advance()
        index = self.parse_expression()
        end = self.ctx.consume(TokenType.RBRACKET, "Expected ']' after index")
        return IndexExpression(token=self._start(left, token), end_token=end, left=left, index=index)

    def _parse_property(self, left: Expression) -> PropertyExpression:
        token = self.tokens.advance()
        name = self.ctx.consume(TokenType.IDENTIFIER, "Expected property name after '.'")
        return PropertyExpression(
            token=self._start(left, token), end_token=name,
            left=left, property=Identifier(token=name, value=name.literal),
        )

    # ─────────────────────────────────────────────────────────
    #  f-strings
    # ─────────────────────────────────────────────────────────

    def _parse_fstring(self) -> FStringLiteral:
        token = self.tokens.advance()
        text = token.literal
        parts, expressions = [], []
        buf = []
        i = 0
        while i < len(text):
            ch = text[i]
            if ch == "{":
                end = _matching_brace(text, i)
                if end < 0:
                    raise ParserException("Unterminated expression in f-string", token)
                source = text[i + 1:end]
                if not source.strip():
                    raise ParserException("Empty expression in f-string", token)
                parts.append("".join(buf))
                buf = []
                # +2 skips the f" prefix
                expressions.append(self._parse_embedded(source, token, token.column + 2 + i + 1))
                i = end + 1
            elif ch == "}":
                raise ParserException("Unmatched '}' in f-string", token)
            else:
                buf.append(ch)
                i += 1
        parts.append("".join(buf))
        return FStringLiteral(token=token, end_token=token, parts=tuple(parts), expressions=tuple(expressions))

    def _parse_embedded(self, source: str, token: Token, column: int) -> Expression:
        sub = Parser(Lexer(source, start_line=token.line, start_column=column))
        expression = sub.parse_expression()
        if sub.errors:
            raise ParserException(f"Invalid expression in f-string: {sub.errors[0].message}", token)
        if expression is None or not sub.ctx.at_end():
            raise ParserException(f"Invalid expression in f-string: {source.strip()!r}", token)
        return expression


def _matching_brace(text: str, start: int) -> int:
    """Index of the `}` closing the `{` at `start`, or -1."""
    depth = 0
    in_string = False
    i = start
    while i < len(text):
        ch = text[i]
        if in_string:
            if ch == "\\":
                i += 1
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return i
        i += 1
    return -1


def parse_program(source: str) -> ParseResult:
    """Parse `source` into a program plus its accumulated errors."""
    parser = Parser(Lexer(source))
    program = parser.parse_program()
    errors = parser.errors
    if errors:
        logger.debug("parsed with %d error(s)", len(errors))
    return ParseResult(program, errors)
