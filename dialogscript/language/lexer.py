"""
Lexer - converts dialogue script text into tokens.

The language mixes Python-like block structure with free-form prose, so
scanning is line-oriented and context-sensitive:

```
:: start                        <- header, resets indentation
var $gold 10                    <- code line (statement keyword)
Guard[angry]: Halt! #shout      <- dialogue: speaker, emotion, text, tags
The gate is shut.               <- narration: free text
-> Pay {$gold} coins [if $gold > 5]
    => paid                     <- indented block of the choice
```

Each content line is classified once, after its indentation has been
measured, and the rest of the line is scanned in the matching mode.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Iterator, Optional

from dialogscript.language.tokens import (
    KEYWORDS,
    STATEMENT_KEYWORDS,
    Token,
    TokenType,
)
from dialogscript.runtime.errors import (
    InvalidCharacterSequenceError,
    InvalidIndentationError,
    LexError,
    UnterminatedStringError,
)

logger = logging.getLogger(__name__)

# Characters a backslash may escape inside free text
TEXT_ESCAPES = frozenset('#:：[]{}\\')
COLONS = (':', '：')
ARROW_HEADS = ('>', '》')
LINE_ENDS = ('', '\n', '\r')
BLANKS = (' ', '\t')

SINGLE_CHAR_TOKENS: dict[str, TokenType] = {
    '+': TokenType.PLUS,
    '*': TokenType.MULTIPLY,
    '/': TokenType.DIVIDE,
    '%': TokenType.MODULO,
    '(': TokenType.LEFT_PAREN,
    ')': TokenType.RIGHT_PAREN,
    '[': TokenType.LEFT_BRACKET,
    ']': TokenType.RIGHT_BRACKET,
    '{': TokenType.LEFT_BRACE,
    '}': TokenType.RIGHT_BRACE,
    ',': TokenType.COMMA,
    '#': TokenType.HASH,
}


def is_cjk(ch: str) -> bool:
    """True for CJK unified ideographs (including extension A/B and compatibility)."""
    cp = ord(ch)
    return (
        0x3400 <= cp <= 0x4DBF
        or 0x4E00 <= cp <= 0x9FFF
        or 0xF900 <= cp <= 0xFAFF
        or 0x20000 <= cp <= 0x2A6DF
    )


def is_identifier_start(ch: str) -> bool:
    return bool(ch) and (
        ch == '_' or 'a' <= ch <= 'z' or 'A' <= ch <= 'Z' or is_cjk(ch)
    )


def is_identifier_part(ch: str) -> bool:
    return is_identifier_start(ch) or (bool(ch) and '0' <= ch <= '9')


def is_identifier(text: str) -> bool:
    return bool(text) and is_identifier_start(text[0]) and all(
        is_identifier_part(ch) for ch in text[1:]
    )


class _Mode(Enum):
    """What the scanner expects at the current position."""
    LINE_START = auto()
    CODE = auto()
    TEXT = auto()
    CHOICE_TEXT = auto()
    INTERPOLATION = auto()
    TAGS = auto()
    DONE = auto()


@dataclass
class _ScanState:
    """Everything peek_token() must restore."""
    position: int = 0
    line: int = 1
    column: int = 1
    indents: list[int] = field(default_factory=lambda: [0])
    pending: list[Token] = field(default_factory=list)
    mode: _Mode = _Mode.LINE_START
    text_mode: _Mode = _Mode.TEXT
    text_start: bool = False

    def copy(self) -> _ScanState:
        return _ScanState(
            position=self.position,
            line=self.line,
            column=self.column,
            indents=list(self.indents),
            pending=list(self.pending),
            mode=self.mode,
            text_mode=self.text_mode,
            text_start=self.text_start,
        )


class Lexer:
    """
    Tokenizer for dialogue scripts.

    Usage:
        lexer = Lexer(source)
        token = lexer.next_token()
        upcoming = lexer.peek_token()   # does not consume

        tokens = Lexer(source).tokenize()
    """

    def __init__(self, source: str):
        self._source = source
        self._state = _ScanState()

    # Public API

    def next_token(self) -> Token:
        """Scan and consume the next token."""
        state = self._state
        while True:
            if state.pending:
                return state.pending.pop(0)

            mode = state.mode
            if mode is _Mode.LINE_START:
                self._start_line()
            elif mode is _Mode.DONE:
                return Token(TokenType.EOF, "", state.line, state.column)
            elif mode in (_Mode.CODE, _Mode.INTERPOLATION):
                return self._scan_code()
            elif mode in (_Mode.TEXT, _Mode.CHOICE_TEXT):
                token = self._scan_text()
                if token is not None:
                    return token
            else:
                return self._scan_tag()

    def peek_token(self) -> Token:
        """Return the next token without consuming it."""
        saved = self._state.copy()
        try:
            return self.next_token()
        finally:
            self._state = saved

    def tokenize(self) -> list[Token]:
        """Scan the whole source, EOF token included."""
        return list(self)

    def __iter__(self) -> Iterator[Token]:
        while True:
            token = self.next_token()
            yield token
            if token.type is TokenType.EOF:
                return

    # Character helpers

    def _char(self, offset: int = 0) -> str:
        pos = self._state.position + offset
        return self._source[pos] if pos < len(self._source) else ''

    def _advance(self, count: int = 1) -> None:
        self._state.position += count
        self._state.column += count

    def _skip_blanks(self) -> None:
        while self._char() in BLANKS:
            self._advance()

    def _skip_to_line_end(self) -> None:
        while self._char() not in LINE_ENDS:
            self._advance()

    def _line_end(self, start: int) -> int:
        end = start
        while end < len(self._source) and self._source[end] not in ('\n', '\r'):
            end += 1
        return end

    def _consume_newline(self) -> None:
        state = self._state
        ch = self._char()
        if ch == '\r' and self._char(1) == '\n':
            state.position += 2
        elif ch in ('\n', '\r'):
            state.position += 1
        else:
            return
        state.line += 1
        state.column = 1

    def _error(
        self,
        error_type: type[LexError],
        message: str,
        line: Optional[int] = None,
        column: Optional[int] = None,
    ) -> LexError:
        error = error_type(
            message,
            self._state.line if line is None else line,
            self._state.column if column is None else column,
        )
        logger.error(str(error))
        return error

    def _token(self, token_type: TokenType, value: str) -> Token:
        return Token(token_type, value, self._state.line, self._state.column)

    # Line handling

    def _start_line(self) -> None:
        state = self._state
        if state.position >= len(self._source):
            self._finish()
            return

        indent = 0
        while self._char(indent) in BLANKS:
            indent += 1

        first = self._char(indent)
        if first in LINE_ENDS:
            # Blank line
            self._advance(indent)
            self._consume_newline()
            return

        if first == '/' and self._char(indent + 1) == '/':
            # Comment line
            self._advance(indent)
            self._skip_to_line_end()
            self._consume_newline()
            return

        self._advance(indent)

        if first in COLONS and self._char(1) in COLONS:
            # Node header: close every open block, never opens one
            self._close_blocks()
            state.mode = _Mode.CODE
            return

        self._apply_indentation(indent)
        self._classify_line()

    def _close_blocks(self) -> None:
        state = self._state
        while len(state.indents) > 1:
            state.indents.pop()
            state.pending.append(self._token(TokenType.DEDENT, ""))

    def _apply_indentation(self, indent: int) -> None:
        state = self._state
        indents = state.indents

        if indent > indents[-1]:
            indents.append(indent)
            state.pending.append(self._token(TokenType.INDENT, ""))
        elif indent < indents[-1]:
            while indents[-1] > indent:
                indents.pop()
                state.pending.append(self._token(TokenType.DEDENT, ""))
            if indents[-1] != indent:
                raise self._error(InvalidIndentationError, "Invalid indentation")

    def _finish(self) -> None:
        self._close_blocks()
        self._state.mode = _Mode.DONE

    def _newline_token(self) -> Token:
        token = self._token(TokenType.NEWLINE, "\\n")
        self._consume_newline()
        self._state.mode = _Mode.LINE_START
        return token

    def _classify_line(self) -> None:
        state = self._state
        ch = self._char()

        if ch == '-' and self._char(1) in ARROW_HEADS:
            state.pending.append(self._token(TokenType.ARROW, "->"))
            self._advance(2)
            self._enter_text(_Mode.CHOICE_TEXT)
            return

        if ch == '=' and self._char(1) in ARROW_HEADS:
            state.mode = _Mode.CODE
            return

        word = self._peek_word()
        if word in STATEMENT_KEYWORDS and self._char(len(word)) in LINE_ENDS + BLANKS:
            state.mode = _Mode.CODE
            return

        self._queue_speaker()
        self._enter_text(_Mode.TEXT)

    def _enter_text(self, mode: _Mode) -> None:
        state = self._state
        state.mode = mode
        state.text_mode = mode
        state.text_start = True

    def _peek_word(self) -> str:
        if not is_identifier_start(self._char()):
            return ""
        length = 1
        while is_identifier_part(self._char(length)):
            length += 1
        return self._source[self._state.position:self._state.position + length]

    def _queue_speaker(self) -> bool:
        """Queue `speaker [ emotion ] :` tokens if the line opens with them."""
        state = self._state
        text = self._source
        start = state.position
        i = start
        chars: list[str] = []
        bracket_at = close_at = None

        while True:
            ch = text[i] if i < len(text) else ''
            if ch in LINE_ENDS or ch in ('#', '{'):
                return False
            if ch == '\\' and i + 1 < len(text) and text[i + 1] in TEXT_ESCAPES:
                chars.append(text[i + 1])
                i += 2
                continue
            if ch in COLONS:
                colon_at = i
                break
            if ch == '[':
                close_at = text.find(']', i + 1)
                if close_at == -1 or close_at > self._line_end(i):
                    return False
                j = close_at + 1
                while j < len(text) and text[j] in BLANKS:
                    j += 1
                if j >= len(text) or text[j] not in COLONS:
                    return False
                bracket_at = i
                colon_at = j
                break
            chars.append(ch)
            i += 1

        speaker = ''.join(chars).strip()
        if not speaker:
            return False

        def column_of(index: int) -> int:
            return state.column + (index - start)

        pending = state.pending
        pending.append(Token(self._word_type(speaker), speaker, state.line, state.column))
        if bracket_at is not None:
            emotion = text[bracket_at + 1:close_at].strip()
            pending.append(Token(TokenType.LEFT_BRACKET, "[", state.line, column_of(bracket_at)))
            pending.append(Token(self._word_type(emotion), emotion, state.line, column_of(bracket_at + 1)))
            pending.append(Token(TokenType.RIGHT_BRACKET, "]", state.line, column_of(close_at)))
        pending.append(Token(TokenType.COLON, ":", state.line, column_of(colon_at)))

        self._advance(colon_at + 1 - start)
        return True

    @staticmethod
    def _word_type(text: str) -> TokenType:
        return TokenType.IDENTIFIER if is_identifier(text) else TokenType.TEXT

    # Mode scanners

    def _scan_text(self) -> Optional[Token]:
        state = self._state
        if state.text_start:
            self._skip_blanks()
            state.text_start = False

        ch = self._char()
        if ch in LINE_ENDS:
            return self._newline_token()

        line, column = state.line, state.column
        in_choice = state.mode is _Mode.CHOICE_TEXT

        if ch == '#':
            self._advance()
            state.mode = _Mode.TAGS
            return Token(TokenType.HASH, "#", line, column)

        if ch == '{':
            self._advance()
            state.mode = _Mode.INTERPOLATION
            return Token(TokenType.LEFT_BRACE, "{", line, column)

        if ch == '[' and in_choice:
            # `[if expr]` guard: the rest of the line is code
            self._advance()
            state.mode = _Mode.CODE
            return Token(TokenType.LEFT_BRACKET, "[", line, column)

        stops = LINE_ENDS + ('#', '{', '[') if in_choice else LINE_ENDS + ('#', '{')
        chars: list[str] = []
        while True:
            ch = self._char()
            if ch in stops:
                break
            if ch == '\\' and self._char(1) in TEXT_ESCAPES:
                chars.append(self._char(1))
                self._advance(2)
                continue
            chars.append(ch)
            self._advance()

        value = ''.join(chars)
        if ch != '{':
            value = value.rstrip()
        if not value:
            return None
        return Token(TokenType.TEXT, value, line, column)

    def _scan_tag(self) -> Token:
        self._skip_blanks()
        ch = self._char()
        if ch in LINE_ENDS:
            return self._newline_token()

        line, column = self._state.line, self._state.column
        if ch == ',':
            self._advance()
            return Token(TokenType.COMMA, ",", line, column)
        if ch == '#':
            self._advance()
            return Token(TokenType.HASH, "#", line, column)

        chars: list[str] = []
        while ch not in LINE_ENDS + BLANKS + (',', '#'):
            chars.append(ch)
            self._advance()
            ch = self._char()
        value = ''.join(chars)
        return Token(self._word_type(value), value, line, column)

    def _scan_code(self) -> Token:
        state = self._state
        self._skip_blanks()
        ch = self._char()

        if ch in LINE_ENDS:
            return self._newline_token()

        if ch == '/' and self._char(1) == '/':
            self._skip_to_line_end()
            return self._newline_token()

        if is_identifier_start(ch):
            return self._scan_word()
        if '0' <= ch <= '9':
            return self._scan_number()
        if ch in ('"', "'"):
            return self._scan_string()
        if ch == '$':
            return self._scan_variable()

        line, column = state.line, state.column
        nxt = self._char(1)

        def make(token_type: TokenType, value: str) -> Token:
            self._advance(len(value))
            return Token(token_type, value, line, column)

        if ch in COLONS:
            if nxt in COLONS:
                self._advance(2)
                return Token(TokenType.DOUBLE_COLON, "::", line, column)
            self._advance()
            return Token(TokenType.COLON, ":", line, column)

        if ch == '-':
            if nxt in ARROW_HEADS:
                self._advance(2)
                return Token(TokenType.ARROW, "->", line, column)
            return make(TokenType.MINUS, "-")

        if ch == '=':
            if nxt in ARROW_HEADS:
                self._advance(2)
                return Token(TokenType.JUMP, "=>", line, column)
            if nxt == '=':
                return make(TokenType.EQUALS, "==")
            return make(TokenType.ASSIGN, "=")

        if ch == '!':
            if nxt == '=':
                return make(TokenType.NOT_EQUALS, "!=")
            return make(TokenType.NOT, "!")

        if ch == '>':
            if nxt == '=':
                return make(TokenType.GREATER_EQUALS, ">=")
            return make(TokenType.GREATER, ">")

        if ch == '<':
            if nxt == '=':
                return make(TokenType.LESS_EQUALS, "<=")
            return make(TokenType.LESS, "<")

        if ch == '&':
            if nxt == '&':
                return make(TokenType.AND, "&&")
            raise self._error(InvalidCharacterSequenceError, "Invalid character sequence '&'")

        if ch == '|':
            if nxt == '|':
                return make(TokenType.OR, "||")
            raise self._error(InvalidCharacterSequenceError, "Invalid character sequence '|'")

        if ch == '}' and state.mode is _Mode.INTERPOLATION:
            self._advance()
            state.mode = state.text_mode
            return Token(TokenType.RIGHT_BRACE, "}", line, column)

        single = SINGLE_CHAR_TOKENS.get(ch)
        if single is not None:
            return make(single, ch)

        # Unknown character: surfaces as a syntax error in the parser
        return make(TokenType.TEXT, ch)

    def _scan_word(self) -> Token:
        line, column = self._state.line, self._state.column
        word = self._peek_word()
        self._advance(len(word))
        return Token(KEYWORDS.get(word, TokenType.IDENTIFIER), word, line, column)

    def _scan_number(self) -> Token:
        line, column = self._state.line, self._state.column
        length = 0
        while '0' <= self._char(length) <= '9':
            length += 1
        if self._char(length) == '.' and '0' <= self._char(length + 1) <= '9':
            length += 1
            while '0' <= self._char(length) <= '9':
                length += 1
        start = self._state.position
        value = self._source[start:start + length]
        self._advance(length)
        return Token(TokenType.NUMBER, value, line, column)

    def _scan_string(self) -> Token:
        line, column = self._state.line, self._state.column
        quote = self._char()
        self._advance()

        chars: list[str] = []
        while True:
            ch = self._char()
            if ch in LINE_ENDS:
                raise self._error(UnterminatedStringError, "Unterminated string", line, column)
            if ch == '\\' and self._char(1) == quote:
                chars.append(quote)
                self._advance(2)
                continue
            self._advance()
            if ch == quote:
                break
            chars.append(ch)

        return Token(TokenType.STRING, ''.join(chars), line, column)

    def _scan_variable(self) -> Token:
        line, column = self._state.line, self._state.column
        self._advance()  # skip $
        if not is_identifier_start(self._char()):
            raise self._error(
                InvalidCharacterSequenceError,
                "Expected variable name after '$'",
                line,
                column,
            )
        name = self._peek_word()
        self._advance(len(name))
        return Token(TokenType.VARIABLE, name, line, column)
