"""
Error taxonomy for the dialogue engine.

Load-time errors (LexError, ScriptSyntaxError) are fatal for one script
unit. Runtime errors propagate out of Runner calls unchanged.
"""

from __future__ import annotations

from typing import Optional


class DialogueScriptError(Exception):
    """Base class for every error raised by the engine."""


class LexError(DialogueScriptError):
    """Raised when script text cannot be tokenized."""

    def __init__(self, message: str, line: int, column: int):
        super().__init__(f"{message} at line {line}, column {column}")
        self.line = line
        self.column = column


class InvalidIndentationError(LexError):
    """A dedent that does not return to any enclosing indent level."""


class UnterminatedStringError(LexError):
    """A string literal with no closing quote before end of input."""


class InvalidCharacterSequenceError(LexError):
    """A lone `&` or `|`, or a `$` with no variable name."""


class ScriptSyntaxError(DialogueScriptError):
    """
    First structural violation found by the parser.

    Attributes:
        line: Line of the offending token
        column: Column of the offending token
        expected: Human-readable description of what the grammar wanted
        found: Description of the token actually present
    """

    def __init__(self, line: int, column: int, expected: str, found: str):
        super().__init__(
            f"Expected {expected}, found {found} at line {line}, column {column}"
        )
        self.line = line
        self.column = column
        self.expected = expected
        self.found = found


class UndefinedNodeError(DialogueScriptError, KeyError):
    """No node is registered under the requested name."""

    def __init__(self, name: str):
        DialogueScriptError.__init__(self, f"Node '{name}' is not defined")
        self.name = name

    def __str__(self) -> str:
        return self.args[0]


class UndefinedVariableError(DialogueScriptError, KeyError):
    """A variable is read before it was set or registered."""

    def __init__(self, name: str):
        DialogueScriptError.__init__(self, f"Variable '{name}' is not defined")
        self.name = name

    def __str__(self) -> str:
        return self.args[0]


class UndefinedFunctionError(DialogueScriptError, KeyError):
    """A script calls a function the host never registered."""

    def __init__(self, name: str):
        DialogueScriptError.__init__(self, f"Function '{name}' is not defined")
        self.name = name

    def __str__(self) -> str:
        return self.args[0]


class ReadOnlyVariableError(DialogueScriptError):
    """A script or host tried to write a variable registered without a setter."""

    def __init__(self, name: str):
        super().__init__(f"Variable '{name}' is read-only")
        self.name = name


class DuplicateNodeError(DialogueScriptError):
    """A node name is registered twice while overrides are disabled."""

    def __init__(self, name: str):
        super().__init__(f"Node '{name}' is already defined")
        self.name = name


class ScriptTypeError(DialogueScriptError, TypeError):
    """Operand, command or function argument of the wrong runtime type."""


class DivideByZeroError(DialogueScriptError, ZeroDivisionError):
    """Right-hand side of `/`, `%`, `div` or `mod` is zero."""


class InvalidSessionStateError(DialogueScriptError):
    """A Runner call was made in a state that does not allow it."""


class ExecutionLimitError(DialogueScriptError):
    """A single Runner call took more internal steps than configured."""

    def __init__(self, limit: int, node: Optional[str] = None):
        where = f" (last node '{node}')" if node else ""
        super().__init__(f"Execution exceeded {limit} steps without yielding{where}")
        self.limit = limit
        self.node = node
