"""
Token types produced by the Lexer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class TokenType(Enum):
    """Lexical categories of the dialogue script language."""
    EOF = auto()

    # Punctuation
    COLON = auto()          # :
    ARROW = auto()          # ->
    DOUBLE_COLON = auto()   # ::
    LEFT_BRACKET = auto()   # [
    RIGHT_BRACKET = auto()  # ]
    LEFT_BRACE = auto()     # {
    RIGHT_BRACE = auto()    # }
    LEFT_PAREN = auto()     # (
    RIGHT_PAREN = auto()    # )
    COMMA = auto()          # ,
    HASH = auto()           # #

    # Operators
    PLUS = auto()
    MINUS = auto()
    MULTIPLY = auto()
    DIVIDE = auto()
    MODULO = auto()
    EQUALS = auto()          # ==
    NOT_EQUALS = auto()      # !=
    GREATER = auto()
    LESS = auto()
    GREATER_EQUALS = auto()
    LESS_EQUALS = auto()
    AND = auto()             # &&
    OR = auto()              # ||
    NOT = auto()             # !
    ASSIGN = auto()          # =

    # Keywords
    IF = auto()
    ELIF = auto()
    ELSE = auto()
    ENDIF = auto()
    TRUE = auto()
    FALSE = auto()

    # Commands
    VAR = auto()
    SET = auto()
    ADD = auto()
    SUB = auto()
    MUL = auto()
    DIV = auto()
    MOD = auto()
    JUMP = auto()            # jump or =>
    CALL = auto()
    WAIT = auto()

    # Identifiers and literals
    IDENTIFIER = auto()
    VARIABLE = auto()        # $name, value holds the name without the sigil
    NUMBER = auto()
    STRING = auto()
    TEXT = auto()            # free-form dialogue/narration/choice text

    # Layout
    NEWLINE = auto()
    INDENT = auto()
    DEDENT = auto()


KEYWORDS: dict[str, TokenType] = {
    "if": TokenType.IF,
    "elif": TokenType.ELIF,
    "else": TokenType.ELSE,
    "endif": TokenType.ENDIF,
    "true": TokenType.TRUE,
    "false": TokenType.FALSE,
    "var": TokenType.VAR,
    "set": TokenType.SET,
    "add": TokenType.ADD,
    "sub": TokenType.SUB,
    "mul": TokenType.MUL,
    "div": TokenType.DIV,
    "mod": TokenType.MOD,
    "jump": TokenType.JUMP,
    "call": TokenType.CALL,
    "wait": TokenType.WAIT,
}

COMMAND_TOKENS = frozenset({
    TokenType.VAR,
    TokenType.SET,
    TokenType.ADD,
    TokenType.SUB,
    TokenType.MUL,
    TokenType.DIV,
    TokenType.MOD,
    TokenType.JUMP,
    TokenType.CALL,
    TokenType.WAIT,
})

# Words that turn a whole line into code when they start it
STATEMENT_KEYWORDS = frozenset(
    word for word, kind in KEYWORDS.items()
    if kind not in (TokenType.TRUE, TokenType.FALSE)
)


@dataclass(frozen=True)
class Token:
    """A single lexical token with its 1-based source position."""
    type: TokenType
    value: str
    line: int
    column: int

    def describe(self) -> str:
        """Short form used in syntax error messages."""
        if self.type in (TokenType.NEWLINE, TokenType.INDENT,
                         TokenType.DEDENT, TokenType.EOF):
            return self.type.name
        return f"{self.type.name} '{self.value}'"

    def __str__(self) -> str:
        return f"Token({self.type.name}, '{self.value}', line={self.line}, col={self.column})"
