"""
Runtime values.

Every evaluated expression and every stored variable is a RuntimeValue:
a Number (float), String, Boolean or Null.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Union

from dialogscript.language.ast import format_number
from dialogscript.runtime.errors import ScriptTypeError


class ValueType(Enum):
    NUMBER = auto()
    STRING = auto()
    BOOLEAN = auto()
    NULL = auto()


Native = Union[int, float, str, bool, None]


@dataclass(frozen=True)
class RuntimeValue:
    """
    Tagged script value.

    Equality between values follows the script rules: Null equals only
    Null, values of different types are never equal.
    """
    type: ValueType
    value: Any = None

    @staticmethod
    def number(value: float) -> RuntimeValue:
        return RuntimeValue(ValueType.NUMBER, float(value))

    @staticmethod
    def string(value: str) -> RuntimeValue:
        return RuntimeValue(ValueType.STRING, value)

    @staticmethod
    def boolean(value: bool) -> RuntimeValue:
        return TRUE if value else FALSE

    @staticmethod
    def from_native(value: Native) -> RuntimeValue:
        """Convert a Python value returned by the host."""
        if value is None:
            return NULL
        if isinstance(value, RuntimeValue):
            return value
        # bool is a subclass of int, so it must be tested first
        if isinstance(value, bool):
            return RuntimeValue.boolean(value)
        if isinstance(value, (int, float)):
            return RuntimeValue.number(value)
        if isinstance(value, str):
            return RuntimeValue.string(value)
        raise ScriptTypeError(
            f"Cannot convert {type(value).__name__} to a script value"
        )

    def to_native(self) -> Native:
        if self.type is ValueType.NUMBER:
            number = self.value
            if number == number and number not in (float("inf"), float("-inf")) \
                    and number == int(number):
                return int(number)
            return number
        return self.value

    # Type tests

    @property
    def is_number(self) -> bool:
        return self.type is ValueType.NUMBER

    @property
    def is_string(self) -> bool:
        return self.type is ValueType.STRING

    @property
    def is_boolean(self) -> bool:
        return self.type is ValueType.BOOLEAN

    @property
    def is_null(self) -> bool:
        return self.type is ValueType.NULL

    @property
    def type_name(self) -> str:
        return self.type.name.capitalize()

    def script_equals(self, other: RuntimeValue) -> bool:
        """`==` semantics; never raises."""
        if self.type is not other.type:
            return False
        return self.type is ValueType.NULL or self.value == other.value

    def __str__(self) -> str:
        if self.type is ValueType.NUMBER:
            return format_number(self.value)
        if self.type is ValueType.BOOLEAN:
            return "true" if self.value else "false"
        if self.type is ValueType.NULL:
            return "null"
        return self.value

    def __repr__(self) -> str:
        if self.type is ValueType.STRING:
            return f"RuntimeValue.string({self.value!r})"
        return f"RuntimeValue({self.type_name}, {self})"


NULL = RuntimeValue(ValueType.NULL)
TRUE = RuntimeValue(ValueType.BOOLEAN, True)
FALSE = RuntimeValue(ValueType.BOOLEAN, False)
