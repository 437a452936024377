"""
Abstract syntax tree for dialogue scripts.

Every node is a frozen dataclass and every sequence is a tuple, so a parsed
Script can be shared by any number of runners. Nodes carry the 1-based line
and column of the token that introduced them.

Expressions can render their own source form, which is what a dialogue line
shows in place of an interpolation that cannot be resolved:

    expr = BinaryOp("+", Variable("gold"), NumberLiteral(5))
    expr.to_source()    # '$gold + 5'
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union


def format_number(value: float) -> str:
    """Canonical text for a number: `3` for integral values, `2.5` otherwise."""
    if value != value:  # NaN
        return "NaN"
    if value in (float("inf"), float("-inf")):
        return "Infinity" if value > 0 else "-Infinity"
    if value == int(value):
        return str(int(value))
    return repr(value)


# Binding strength of binary operators, used to parenthesize to_source() output
PRECEDENCE: dict[str, int] = {
    "||": 1,
    "&&": 2,
    "==": 3, "!=": 3, ">": 3, "<": 3, ">=": 3, "<=": 3,
    "+": 4, "-": 4,
    "*": 5, "/": 5, "%": 5,
}


# =============================================================================
# Expressions
# =============================================================================

@dataclass(frozen=True)
class NumberLiteral:
    value: float
    line: int = 0
    column: int = 0

    def to_source(self) -> str:
        return format_number(self.value)


@dataclass(frozen=True)
class StringLiteral:
    value: str
    line: int = 0
    column: int = 0

    def to_source(self) -> str:
        escaped = self.value.replace('"', '\\"')
        return f'"{escaped}"'


@dataclass(frozen=True)
class BooleanLiteral:
    value: bool
    line: int = 0
    column: int = 0

    def to_source(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class Variable:
    """Reference to `$name`; the name is stored without the sigil."""
    name: str
    line: int = 0
    column: int = 0

    def to_source(self) -> str:
        return f"${self.name}"


@dataclass(frozen=True)
class UnaryOp:
    operator: str
    operand: Expression
    line: int = 0
    column: int = 0

    def to_source(self) -> str:
        inner = self.operand.to_source()
        if isinstance(self.operand, BinaryOp):
            inner = f"({inner})"
        return f"{self.operator}{inner}"


@dataclass(frozen=True)
class BinaryOp:
    operator: str
    left: Expression
    right: Expression
    line: int = 0
    column: int = 0

    def to_source(self) -> str:
        level = PRECEDENCE[self.operator]
        left = self.left.to_source()
        right = self.right.to_source()
        if isinstance(self.left, BinaryOp) and PRECEDENCE[self.left.operator] < level:
            left = f"({left})"
        # Operators are left-associative, so an equal-precedence right side needs parens too
        if isinstance(self.right, BinaryOp) and PRECEDENCE[self.right.operator] <= level:
            right = f"({right})"
        return f"{left} {self.operator} {right}"


@dataclass(frozen=True)
class FunctionCall:
    """
    Call of a host function.

    A bare identifier in an expression is a zero-argument call; `bare`
    remembers that form so to_source() can reproduce it.
    """
    name: str
    arguments: tuple[Expression, ...] = ()
    bare: bool = False
    line: int = 0
    column: int = 0

    def to_source(self) -> str:
        if self.bare:
            return self.name
        args = ", ".join(arg.to_source() for arg in self.arguments)
        return f"{self.name}({args})"


@dataclass(frozen=True)
class InterpolatedString:
    """String literal with `{$var}` segments expanded at evaluation time."""
    segments: tuple[TextSegment, ...]
    line: int = 0
    column: int = 0

    def to_source(self) -> str:
        parts = []
        for segment in self.segments:
            if isinstance(segment, TextLiteral):
                parts.append(segment.text.replace('"', '\\"'))
            else:
                parts.append(segment.to_source())
        return '"' + "".join(parts) + '"'


Expression = Union[
    NumberLiteral,
    StringLiteral,
    BooleanLiteral,
    Variable,
    UnaryOp,
    BinaryOp,
    FunctionCall,
    InterpolatedString,
]


# =============================================================================
# Text
# =============================================================================

@dataclass(frozen=True)
class TextLiteral:
    text: str
    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class Interpolation:
    """`{ expr }` embedded in dialogue, narration or choice text."""
    expression: Expression
    line: int = 0
    column: int = 0

    def to_source(self) -> str:
        return "{" + self.expression.to_source() + "}"


TextSegment = Union[TextLiteral, Interpolation]


def is_blank(segments: tuple[TextSegment, ...]) -> bool:
    """True if the text has no interpolation and only whitespace literals."""
    return all(
        isinstance(segment, TextLiteral) and not segment.text.strip()
        for segment in segments
    )


# =============================================================================
# Content
# =============================================================================

@dataclass(frozen=True)
class Dialogue:
    """`speaker[emotion]: text #tags`"""
    speaker: str
    emotion: Optional[str]
    text: tuple[TextSegment, ...]
    tags: tuple[str, ...] = ()
    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class Narration:
    text: tuple[TextSegment, ...]
    tags: tuple[str, ...] = ()
    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class Choice:
    """`-> text [if guard]` with an optional indented block."""
    text: tuple[TextSegment, ...]
    condition: Optional[Expression] = None
    content: tuple[Content, ...] = ()
    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class ElifBranch:
    test: Expression
    content: tuple[Content, ...] = ()
    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class Condition:
    """
    `if` / `elif` / `else` / `endif` block.

    `key` is `(node name, ordinal)`, unique within a loaded script set, and
    identifies the condition in a runner's branch memo.
    """
    test: Expression
    then_branch: tuple[Content, ...] = ()
    elif_branches: tuple[ElifBranch, ...] = ()
    else_branch: Optional[tuple[Content, ...]] = None
    key: tuple[str, int] = ("", 0)
    line: int = 0
    column: int = 0

    def is_empty(self) -> bool:
        return (
            not self.then_branch
            and all(not branch.content for branch in self.elif_branches)
            and not self.else_branch
        )


class VarOperation(Enum):
    SET = "set"
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    DIV = "div"
    MOD = "mod"


@dataclass(frozen=True)
class VarCommand:
    variable: str
    operation: VarOperation
    value: Expression
    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class CallCommand:
    function: str
    arguments: tuple[Expression, ...] = ()
    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class WaitCommand:
    duration: Expression
    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class JumpCommand:
    target: str
    line: int = 0
    column: int = 0


Command = Union[VarCommand, CallCommand, WaitCommand, JumpCommand]
Content = Union[Dialogue, Narration, Choice, Condition, VarCommand, CallCommand, WaitCommand, JumpCommand]

COMMAND_TYPES = (VarCommand, CallCommand, WaitCommand, JumpCommand)


# =============================================================================
# Script
# =============================================================================

@dataclass(frozen=True)
class NodeDefinition:
    """A named, jumpable section: `:: name` and the content below it."""
    name: str
    content: tuple[Content, ...] = ()
    line: int = 0
    column: int = 0


@dataclass(frozen=True)
class Script:
    nodes: tuple[NodeDefinition, ...] = ()

    @property
    def node_names(self) -> list[str]:
        return [node.name for node in self.nodes]

    def get_node(self, name: str) -> Optional[NodeDefinition]:
        for node in self.nodes:
            if node.name == name:
                return node
        return None
