"""
Interpreter - evaluates expressions and executes commands.

Holds no state of its own; everything it reads or writes goes through the
DialogueContext it is handed.

Type rules:
- unary `-`/`+` need a Number, `!` needs a Boolean
- arithmetic and relational operators need two Numbers
- `+` concatenates when either side is a String
- `&&`/`||` need two Booleans (both sides are always evaluated)
- `==`/`!=` never fail: Null equals only Null, mixed types are unequal
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from dialogscript.language.ast import (
    BinaryOp,
    BooleanLiteral,
    CallCommand,
    Command,
    Expression,
    FunctionCall,
    InterpolatedString,
    Interpolation,
    JumpCommand,
    NumberLiteral,
    StringLiteral,
    TextLiteral,
    TextSegment,
    UnaryOp,
    VarCommand,
    VarOperation,
    Variable,
    WaitCommand,
)
from dialogscript.runtime.context import DialogueContext
from dialogscript.runtime.errors import (
    DialogueScriptError,
    DivideByZeroError,
    ScriptTypeError,
    UndefinedFunctionError,
    UndefinedVariableError,
)
from dialogscript.runtime.values import RuntimeValue

logger = logging.getLogger(__name__)


def _fail(error: DialogueScriptError) -> DialogueScriptError:
    logger.error(str(error))
    return error


def _remainder(a: float, b: float) -> float:
    """IEEE remainder with the sign of the dividend."""
    if math.isinf(a) or math.isnan(a) or math.isnan(b):
        return math.nan
    return math.fmod(a, b)


RELATIONAL = {
    ">": lambda a, b: a > b,
    "<": lambda a, b: a < b,
    ">=": lambda a, b: a >= b,
    "<=": lambda a, b: a <= b,
}


class Interpreter:
    """
    Expression evaluator and command executor.

    Usage:
        interpreter = Interpreter()
        value = interpreter.evaluate(expr, context)
        target = interpreter.execute(command, context)   # node name for jumps
    """

    def evaluate(self, expr: Expression, context: DialogueContext) -> RuntimeValue:
        if isinstance(expr, NumberLiteral):
            return RuntimeValue.number(expr.value)
        if isinstance(expr, StringLiteral):
            return RuntimeValue.string(expr.value)
        if isinstance(expr, BooleanLiteral):
            return RuntimeValue.boolean(expr.value)
        if isinstance(expr, Variable):
            return context.get_variable(expr.name)
        if isinstance(expr, UnaryOp):
            return self._unary(expr, context)
        if isinstance(expr, BinaryOp):
            return self._binary(expr, context)
        if isinstance(expr, FunctionCall):
            arguments = [self.evaluate(arg, context) for arg in expr.arguments]
            return context.call_function(expr.name, arguments)
        if isinstance(expr, InterpolatedString):
            return RuntimeValue.string(self.build_text(expr.segments, context, strict=True))

        raise _fail(ScriptTypeError(f"Cannot evaluate {type(expr).__name__}"))

    def test(self, expr: Expression, context: DialogueContext, what: str = "condition") -> bool:
        """Evaluate a guard; anything but a Boolean is a type error."""
        value = self.evaluate(expr, context)
        if not value.is_boolean:
            raise _fail(ScriptTypeError(
                f"{what} '{expr.to_source()}' must be a Boolean, got {value.type_name} "
                f"at line {expr.line}"
            ))
        return value.value

    def _unary(self, expr: UnaryOp, context: DialogueContext) -> RuntimeValue:
        operand = self.evaluate(expr.operand, context)
        op = expr.operator

        if op == "!":
            if not operand.is_boolean:
                raise _fail(ScriptTypeError(
                    f"Operator '!' needs a Boolean, got {operand.type_name} at line {expr.line}"
                ))
            return RuntimeValue.boolean(not operand.value)

        if not operand.is_number:
            raise _fail(ScriptTypeError(
                f"Operator '{op}' needs a Number, got {operand.type_name} at line {expr.line}"
            ))
        return RuntimeValue.number(-operand.value if op == "-" else operand.value)

    def _binary(self, expr: BinaryOp, context: DialogueContext) -> RuntimeValue:
        left = self.evaluate(expr.left, context)
        right = self.evaluate(expr.right, context)
        op = expr.operator

        if op in ("&&", "||"):
            if not (left.is_boolean and right.is_boolean):
                raise self._operand_error(op, "Booleans", left, right, expr)
            if op == "&&":
                return RuntimeValue.boolean(left.value and right.value)
            return RuntimeValue.boolean(left.value or right.value)

        if op == "==":
            return RuntimeValue.boolean(left.script_equals(right))
        if op == "!=":
            return RuntimeValue.boolean(not left.script_equals(right))

        if op == "+" and (left.is_string or right.is_string):
            return RuntimeValue.string(str(left) + str(right))

        if not (left.is_number and right.is_number):
            raise self._operand_error(op, "Numbers", left, right, expr)

        a, b = left.value, right.value
        if op in RELATIONAL:
            return RuntimeValue.boolean(RELATIONAL[op](a, b))
        if op == "+":
            return RuntimeValue.number(a + b)
        if op == "-":
            return RuntimeValue.number(a - b)
        if op == "*":
            return RuntimeValue.number(a * b)
        if op == "/":
            if b == 0:
                raise _fail(DivideByZeroError(f"Division by zero at line {expr.line}"))
            return RuntimeValue.number(a / b)
        if op == "%":
            if b == 0:
                raise _fail(DivideByZeroError(f"Modulo by zero at line {expr.line}"))
            return RuntimeValue.number(_remainder(a, b))

        raise _fail(ScriptTypeError(f"Unknown operator '{op}'"))

    @staticmethod
    def _operand_error(
        op: str, needed: str, left: RuntimeValue, right: RuntimeValue, expr: BinaryOp
    ) -> DialogueScriptError:
        return _fail(ScriptTypeError(
            f"Operator '{op}' needs two {needed}, got {left.type_name} and "
            f"{right.type_name} at line {expr.line}"
        ))

    # Text

    def build_text(
        self,
        segments: tuple[TextSegment, ...],
        context: DialogueContext,
        strict: bool = False,
    ) -> str:
        """
        Render text segments.

        Args:
            segments: Literal runs and interpolations
            context: Names to resolve against
            strict: If False, an interpolation naming an undefined variable
                or function renders as its `{source}` form instead of raising

        Returns:
            The rendered string
        """
        parts: list[str] = []
        for segment in segments:
            if isinstance(segment, TextLiteral):
                parts.append(segment.text)
                continue

            try:
                parts.append(str(self.evaluate(segment.expression, context)))
            except (UndefinedVariableError, UndefinedFunctionError) as e:
                if strict:
                    raise
                logger.warning(f"Rendering {segment.to_source()} as written: {e}")
                parts.append(segment.to_source())
        return "".join(parts)

    # Commands

    def execute(self, command: Command, context: DialogueContext) -> Optional[str]:
        """
        Run a command.

        Returns:
            The target node name for a jump, otherwise None
        """
        if isinstance(command, VarCommand):
            self._execute_var(command, context)
            return None
        if isinstance(command, CallCommand):
            arguments = [self.evaluate(arg, context) for arg in command.arguments]
            context.call_function(command.function, arguments)
            return None
        if isinstance(command, WaitCommand):
            self.wait_duration(command, context)
            return None
        if isinstance(command, JumpCommand):
            return command.target

        raise _fail(ScriptTypeError(f"Cannot execute {type(command).__name__}"))

    def wait_duration(self, command: WaitCommand, context: DialogueContext) -> float:
        """Seconds the host should pause for a `wait` command."""
        value = self.evaluate(command.duration, context)
        if not value.is_number:
            raise _fail(ScriptTypeError(
                f"'wait' needs a Number, got {value.type_name} at line {command.line}"
            ))
        return value.value

    def _execute_var(self, command: VarCommand, context: DialogueContext) -> None:
        value = self.evaluate(command.value, context)
        operation = command.operation
        name = command.variable

        if operation is VarOperation.SET:
            context.set_variable(name, value)
            return

        current = context.get_variable(name)
        if not (current.is_number and value.is_number):
            raise _fail(ScriptTypeError(
                f"'{operation.value} ${name}' needs Numbers, got {current.type_name} "
                f"and {value.type_name} at line {command.line}"
            ))

        a, b = current.value, value.value
        if operation is VarOperation.ADD:
            result = a + b
        elif operation is VarOperation.SUB:
            result = a - b
        elif operation is VarOperation.MUL:
            result = a * b
        else:
            if b == 0:
                raise _fail(DivideByZeroError(
                    f"'{operation.value} ${name}' by zero at line {command.line}"
                ))
            result = a / b if operation is VarOperation.DIV else _remainder(a, b)

        context.set_variable(name, RuntimeValue.number(result))
