"""
Parser - builds the AST from a token stream.

Recursive descent over the line grammar, precedence climbing for
expressions. The first structural error raises ScriptSyntaxError; there is
no recovery.

Usage:
    script = parse_script(source)

    parser = Parser(Lexer(source).tokenize())
    script = parser.parse()
"""

from __future__ import annotations

import logging
from typing import Callable, Optional, Sequence

from dialogscript.language.ast import (
    BinaryOp,
    BooleanLiteral,
    CallCommand,
    Choice,
    Condition,
    Content,
    Dialogue,
    ElifBranch,
    Expression,
    FunctionCall,
    InterpolatedString,
    Interpolation,
    JumpCommand,
    Narration,
    NodeDefinition,
    NumberLiteral,
    Script,
    StringLiteral,
    TextLiteral,
    TextSegment,
    UnaryOp,
    VarCommand,
    VarOperation,
    Variable,
    WaitCommand,
    is_blank,
)
from dialogscript.language.lexer import Lexer, is_identifier
from dialogscript.language.tokens import COMMAND_TOKENS, Token, TokenType
from dialogscript.runtime.errors import ScriptSyntaxError

logger = logging.getLogger(__name__)


VAR_OPERATIONS: dict[TokenType, VarOperation] = {
    TokenType.VAR: VarOperation.SET,
    TokenType.SET: VarOperation.SET,
    TokenType.ADD: VarOperation.ADD,
    TokenType.SUB: VarOperation.SUB,
    TokenType.MUL: VarOperation.MUL,
    TokenType.DIV: VarOperation.DIV,
    TokenType.MOD: VarOperation.MOD,
}

COMPARISON_TOKENS = (
    TokenType.EQUALS,
    TokenType.NOT_EQUALS,
    TokenType.GREATER,
    TokenType.LESS,
    TokenType.GREATER_EQUALS,
    TokenType.LESS_EQUALS,
)
ADDITIVE_TOKENS = (TokenType.PLUS, TokenType.MINUS)
MULTIPLICATIVE_TOKENS = (TokenType.MULTIPLY, TokenType.DIVIDE, TokenType.MODULO)
UNARY_TOKENS = (TokenType.NOT, TokenType.MINUS, TokenType.PLUS)


class Parser:
    """
    Turns tokens into a Script.

    Condition nodes get a `(node name, ordinal)` key as they are built; the
    ordinal restarts at 1 in every node.
    """

    def __init__(self, tokens: Sequence[Token]):
        self._tokens = list(tokens)
        if not self._tokens or self._tokens[-1].type is not TokenType.EOF:
            last = self._tokens[-1] if self._tokens else None
            self._tokens.append(Token(
                TokenType.EOF, "",
                last.line if last else 1,
                last.column if last else 1,
            ))
        self._pos = 0
        self._node_name = ""
        self._condition_count = 0

    @classmethod
    def from_source(cls, source: str) -> Parser:
        return cls(Lexer(source).tokenize())

    def parse(self) -> Script:
        """Parse the whole token stream."""
        nodes: list[NodeDefinition] = []

        while True:
            while self._match(TokenType.NEWLINE, TokenType.DEDENT):
                pass
            if self._check(TokenType.EOF):
                break
            if not self._check(TokenType.DOUBLE_COLON):
                raise self._error("node header '::'")

            node = self._parse_node()
            if node.content:
                nodes.append(node)
            else:
                logger.debug(f"Dropping empty node '{node.name}'")

        return Script(tuple(nodes))

    # Token helpers

    def _peek(self, offset: int = 0) -> Token:
        index = min(self._pos + offset, len(self._tokens) - 1)
        return self._tokens[index]

    def _advance(self) -> Token:
        token = self._peek()
        if token.type is not TokenType.EOF:
            self._pos += 1
        return token

    def _check(self, *types: TokenType) -> bool:
        return self._peek().type in types

    def _match(self, *types: TokenType) -> Optional[Token]:
        if self._check(*types):
            return self._advance()
        return None

    def _consume(self, token_type: TokenType, expected: str) -> Token:
        if self._check(token_type):
            return self._advance()
        raise self._error(expected)

    def _consume_line_end(self) -> None:
        if self._check(TokenType.EOF):
            return
        self._consume(TokenType.NEWLINE, "end of line")

    def _error(
        self,
        expected: str,
        token: Optional[Token] = None,
        found: Optional[str] = None,
    ) -> ScriptSyntaxError:
        token = token or self._peek()
        error = ScriptSyntaxError(
            token.line, token.column, expected, found or token.describe()
        )
        logger.error(str(error))
        return error

    # Structure

    def _parse_node(self) -> NodeDefinition:
        header = self._advance()
        name = self._consume(TokenType.IDENTIFIER, "node name after '::'")
        self._consume_line_end()

        self._node_name = name.value
        self._condition_count = 0

        content: list[Content] = []
        depth = 0
        while not self._check(TokenType.DOUBLE_COLON, TokenType.EOF):
            if self._match(TokenType.INDENT):
                depth += 1
            elif self._check(TokenType.DEDENT):
                if depth == 0:
                    raise self._error("content")
                self._advance()
                depth -= 1
            elif not self._match(TokenType.NEWLINE):
                self._append(content, self._parse_content())

        return NodeDefinition(name.value, tuple(content), header.line, header.column)

    def _parse_block(self) -> tuple[Content, ...]:
        """Indented block below a choice or branch; empty if the next line is not indented."""
        if not self._match(TokenType.INDENT):
            return ()

        content: list[Content] = []
        depth = 1
        while depth:
            if self._match(TokenType.INDENT):
                depth += 1
            elif self._match(TokenType.DEDENT):
                depth -= 1
            elif self._match(TokenType.NEWLINE):
                continue
            elif self._check(TokenType.EOF, TokenType.DOUBLE_COLON):
                raise self._error("end of indented block")
            else:
                self._append(content, self._parse_content())
        return tuple(content)

    @staticmethod
    def _append(content: list[Content], item: Optional[Content]) -> None:
        if item is not None:
            content.append(item)

    def _parse_content(self) -> Optional[Content]:
        """Parse one content line; returns None when the line elides to nothing."""
        token = self._peek()
        kind = token.type

        if kind is TokenType.ARROW:
            return self._parse_choice()
        if kind is TokenType.IF:
            return self._parse_condition()
        if kind in (TokenType.ELIF, TokenType.ELSE, TokenType.ENDIF):
            raise self._error("content")
        if kind in COMMAND_TOKENS:
            return self._parse_command()
        if kind in (TokenType.TEXT, TokenType.IDENTIFIER) and self._peek(1).type in (
            TokenType.LEFT_BRACKET, TokenType.COLON
        ):
            return self._parse_dialogue()
        if kind in (TokenType.TEXT, TokenType.IDENTIFIER, TokenType.LEFT_BRACE, TokenType.HASH):
            return self._parse_narration()

        raise self._error("content")

    # Content

    def _parse_dialogue(self) -> Optional[Dialogue]:
        speaker = self._advance()
        emotion: Optional[str] = None

        if self._match(TokenType.LEFT_BRACKET):
            if self._check(TokenType.IDENTIFIER, TokenType.TEXT):
                emotion = self._advance().value or None
            self._consume(TokenType.RIGHT_BRACKET, "']' after emotion")
        self._consume(TokenType.COLON, "':' after speaker")

        text = self._parse_text()
        tags = self._parse_tags()
        self._consume_line_end()

        if is_blank(text):
            logger.debug(f"Dropping empty dialogue line at line {speaker.line}")
            return None
        return Dialogue(speaker.value, emotion, text, tags, speaker.line, speaker.column)

    def _parse_narration(self) -> Optional[Narration]:
        start = self._peek()
        text = self._parse_text()
        tags = self._parse_tags()
        self._consume_line_end()

        if is_blank(text):
            return None
        return Narration(text, tags, start.line, start.column)

    def _parse_choice(self) -> Optional[Choice]:
        arrow = self._advance()
        text = self._parse_text()

        condition: Optional[Expression] = None
        if self._match(TokenType.LEFT_BRACKET):
            self._consume(TokenType.IF, "'if' in choice condition")
            condition = self._parse_expression()
            self._consume(TokenType.RIGHT_BRACKET, "']' after choice condition")
        self._consume_line_end()

        content = self._parse_block()
        if is_blank(text) and not content:
            logger.debug(f"Dropping empty choice at line {arrow.line}")
            return None
        return Choice(text, condition, content, arrow.line, arrow.column)

    def _parse_condition(self) -> Optional[Condition]:
        if_token = self._advance()
        self._condition_count += 1
        key = (self._node_name, self._condition_count)

        test = self._parse_expression()
        self._consume_line_end()
        then_branch = self._parse_block()

        elif_branches: list[ElifBranch] = []
        while self._check(TokenType.ELIF):
            elif_token = self._advance()
            elif_test = self._parse_expression()
            self._consume_line_end()
            elif_branches.append(ElifBranch(
                elif_test, self._parse_block(), elif_token.line, elif_token.column
            ))

        else_branch: Optional[tuple[Content, ...]] = None
        if self._match(TokenType.ELSE):
            self._consume_line_end()
            else_branch = self._parse_block()

        self._consume(TokenType.ENDIF, "'endif'")
        self._consume_line_end()

        condition = Condition(
            test,
            then_branch,
            tuple(elif_branches),
            else_branch,
            key,
            if_token.line,
            if_token.column,
        )
        if condition.is_empty():
            logger.debug(f"Dropping empty condition at line {if_token.line}")
            return None
        return condition

    def _parse_command(self) -> Content:
        token = self._advance()
        kind = token.type

        command: Content
        if kind is TokenType.JUMP:
            target = self._consume(TokenType.IDENTIFIER, "node name after jump")
            command = JumpCommand(target.value, token.line, token.column)
        elif kind is TokenType.CALL:
            name = self._consume(TokenType.IDENTIFIER, "function name after 'call'")
            arguments: tuple[Expression, ...] = ()
            if self._match(TokenType.LEFT_PAREN):
                arguments = self._parse_arguments()
            command = CallCommand(name.value, arguments, token.line, token.column)
        elif kind is TokenType.WAIT:
            command = WaitCommand(self._parse_expression(), token.line, token.column)
        else:
            variable = self._consume(TokenType.VARIABLE, f"variable after '{token.value}'")
            self._match(TokenType.ASSIGN)
            value = self._parse_expression()
            command = VarCommand(
                variable.value, VAR_OPERATIONS[kind], value, token.line, token.column
            )

        self._consume_line_end()
        return command

    # Text

    def _parse_text(self) -> tuple[TextSegment, ...]:
        """Literal runs interleaved with `{ expr }` interpolations."""
        segments: list[TextSegment] = []
        while True:
            token = self._peek()
            if token.type is TokenType.TEXT:
                self._advance()
                segments.append(TextLiteral(token.value, token.line, token.column))
            elif token.type is TokenType.LEFT_BRACE:
                self._advance()
                expression = self._parse_expression()
                self._consume(TokenType.RIGHT_BRACE, "'}' after interpolation")
                segments.append(Interpolation(expression, token.line, token.column))
            else:
                return tuple(segments)

    def _parse_tags(self) -> tuple[str, ...]:
        """`#a,b #c` -> ('a', 'b', 'c')"""
        tags: list[str] = []
        while self._match(TokenType.HASH):
            while self._check(TokenType.IDENTIFIER, TokenType.TEXT, TokenType.COMMA):
                token = self._advance()
                if token.type is not TokenType.COMMA:
                    tags.append(token.value)
        return tuple(tags)

    # Expressions

    def _parse_expression(self) -> Expression:
        return self._parse_or()

    def _parse_binary(
        self,
        operand: Callable[[], Expression],
        operators: tuple[TokenType, ...],
    ) -> Expression:
        expr = operand()
        while self._check(*operators):
            op = self._advance()
            right = operand()
            expr = BinaryOp(op.value, expr, right, op.line, op.column)
        return expr

    def _parse_or(self) -> Expression:
        return self._parse_binary(self._parse_and, (TokenType.OR,))

    def _parse_and(self) -> Expression:
        return self._parse_binary(self._parse_comparison, (TokenType.AND,))

    def _parse_comparison(self) -> Expression:
        return self._parse_binary(self._parse_additive, COMPARISON_TOKENS)

    def _parse_additive(self) -> Expression:
        return self._parse_binary(self._parse_multiplicative, ADDITIVE_TOKENS)

    def _parse_multiplicative(self) -> Expression:
        return self._parse_binary(self._parse_unary, MULTIPLICATIVE_TOKENS)

    def _parse_unary(self) -> Expression:
        if self._check(*UNARY_TOKENS):
            op = self._advance()
            return UnaryOp(op.value, self._parse_unary(), op.line, op.column)
        return self._parse_primary()

    def _parse_primary(self) -> Expression:
        token = self._peek()
        kind = token.type

        if kind is TokenType.NUMBER:
            self._advance()
            return NumberLiteral(float(token.value), token.line, token.column)
        if kind is TokenType.STRING:
            self._advance()
            return self._string_literal(token)
        if kind in (TokenType.TRUE, TokenType.FALSE):
            self._advance()
            return BooleanLiteral(kind is TokenType.TRUE, token.line, token.column)
        if kind is TokenType.VARIABLE:
            self._advance()
            return Variable(token.value, token.line, token.column)
        if kind is TokenType.IDENTIFIER:
            self._advance()
            if self._match(TokenType.LEFT_PAREN):
                return FunctionCall(token.value, self._parse_arguments(), False, token.line, token.column)
            return FunctionCall(token.value, (), True, token.line, token.column)
        if kind is TokenType.LEFT_PAREN:
            self._advance()
            expr = self._parse_expression()
            self._consume(TokenType.RIGHT_PAREN, "')' after expression")
            return expr

        raise self._error("expression")

    def _parse_arguments(self) -> tuple[Expression, ...]:
        """Arguments after an opening '(' up to and including ')'."""
        arguments: list[Expression] = []
        if not self._check(TokenType.RIGHT_PAREN):
            while True:
                arguments.append(self._parse_expression())
                if not self._match(TokenType.COMMA):
                    break
        self._consume(TokenType.RIGHT_PAREN, "')' after arguments")
        return tuple(arguments)

    def _string_literal(self, token: Token) -> Expression:
        """Expand `{$name}` inside a string literal."""
        value = token.value
        if '{' not in value or '}' not in value:
            return StringLiteral(value, token.line, token.column)

        segments: list[TextSegment] = []
        literal: list[str] = []
        i = 0
        while i < len(value):
            ch = value[i]
            if ch != '{':
                literal.append(ch)
                i += 1
                continue

            close = value.find('}', i + 1)
            if close == -1:
                raise self._error("'}' in string interpolation", token)
            body = value[i + 1:close].strip()
            if not (body.startswith('$') and is_identifier(body[1:])):
                raise self._error("'$variable' in string interpolation", token, f"'{{{body}}}'")

            if literal:
                segments.append(TextLiteral(''.join(literal), token.line, token.column))
                literal = []
            segments.append(Interpolation(
                Variable(body[1:], token.line, token.column), token.line, token.column
            ))
            i = close + 1

        if literal:
            segments.append(TextLiteral(''.join(literal), token.line, token.column))

        if len(segments) == 1 and isinstance(segments[0], TextLiteral):
            return StringLiteral(segments[0].text, token.line, token.column)
        return InterpolatedString(tuple(segments), token.line, token.column)


def parse_script(source: str) -> Script:
    """Lex and parse a script source."""
    return Parser.from_source(source).parse()
