"""
Function registry.

Scripts call host code by name, `call give_item("sword")` or
`{player_name}` inside text. Hosts register plain Python callables; their
arguments arrive as native values and are checked against the
`int`/`float`/`str`/`bool` annotations before the call.

Usage:
    functions = FunctionRegistry()
    functions.register_function("roll", lambda sides: random.randint(1, sides))

    def has_item(name: str) -> bool:
        return name in inventory
    functions.register_function("has_item", has_item, "True if the player owns the item")
"""

from __future__ import annotations

import inspect
import logging
import types
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence, Union, get_args, get_origin, get_type_hints

from dialogscript.runtime.errors import ScriptTypeError, UndefinedFunctionError
from dialogscript.runtime.values import NULL, RuntimeValue

logger = logging.getLogger(__name__)


# Callable over RuntimeValues, used by builtins and hosts that want raw values
ScriptFunction = Callable[..., Optional[RuntimeValue]]


@dataclass
class FunctionEntry:
    name: str
    invoke: Callable[[Sequence[RuntimeValue]], RuntimeValue]
    description: str = ""


def _accepts(value: Any, expected: Any) -> bool:
    """Check a native argument against an annotation."""
    if expected is Any or expected is inspect.Parameter.empty:
        return True
    if get_origin(expected) in (Union, types.UnionType):
        return any(_accepts(value, option) for option in get_args(expected))
    if expected is type(None):
        return value is None
    if expected is bool:
        return isinstance(value, bool)
    if expected is int:
        return isinstance(value, int) and not isinstance(value, bool)
    if expected is float:
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if expected is str:
        return isinstance(value, str)
    # Anything else is not checked
    return True


def _coerce(value: Any, expected: Any) -> Any:
    """Integral numbers come back from scripts as int; float parameters get floats."""
    if expected is float and isinstance(value, int) and not isinstance(value, bool):
        return float(value)
    return value


class FunctionRegistry:
    """Name -> callable dispatch for script function calls."""

    def __init__(self):
        self._functions: dict[str, FunctionEntry] = {}

    def register_function(
        self,
        name: str,
        fn: Callable[..., Any],
        description: str = "",
    ) -> None:
        """
        Register a native Python callable.

        Args:
            name: Name used in scripts
            fn: Callable taking and returning int/float/str/bool/None
            description: Free text shown by describe()
        """
        try:
            signature = inspect.signature(fn)
        except (ValueError, TypeError):
            # Some C builtins (max, min, ...) expose no signature
            logger.debug(f"Function '{name}' has no signature; arguments are not checked")
            self._add(FunctionEntry(
                name, self._unchecked(name, fn), description or (fn.__doc__ or "").strip()
            ))
            return

        try:
            hints = get_type_hints(fn)
        except (NameError, TypeError):
            hints = {}

        def invoke(arguments: Sequence[RuntimeValue]) -> RuntimeValue:
            natives = [argument.to_native() for argument in arguments]
            try:
                bound = signature.bind(*natives)
            except TypeError as e:
                logger.error(f"Bad call to '{name}': {e}")
                raise ScriptTypeError(f"Function '{name}': {e}") from None

            for param_name, value in list(bound.arguments.items()):
                param = signature.parameters[param_name]
                expected = hints.get(param_name, inspect.Parameter.empty)
                values = value if param.kind is inspect.Parameter.VAR_POSITIONAL else (value,)
                for item in values:
                    if not _accepts(item, expected):
                        message = (
                            f"Function '{name}' parameter '{param_name}' expects "
                            f"{getattr(expected, '__name__', expected)}, got {type(item).__name__}"
                        )
                        logger.error(message)
                        raise ScriptTypeError(message)
                if param.kind is inspect.Parameter.VAR_POSITIONAL:
                    bound.arguments[param_name] = tuple(_coerce(item, expected) for item in value)
                else:
                    bound.arguments[param_name] = _coerce(value, expected)

            return RuntimeValue.from_native(fn(*bound.args, **bound.kwargs))

        self._add(FunctionEntry(name, invoke, description or (fn.__doc__ or "").strip()))

    @staticmethod
    def _unchecked(name: str, fn: Callable[..., Any]) -> Callable[[Sequence[RuntimeValue]], RuntimeValue]:
        def invoke(arguments: Sequence[RuntimeValue]) -> RuntimeValue:
            natives = [argument.to_native() for argument in arguments]
            try:
                result = fn(*natives)
            except TypeError as e:
                logger.error(f"Bad call to '{name}': {e}")
                raise ScriptTypeError(f"Function '{name}': {e}") from None
            return RuntimeValue.from_native(result)
        return invoke

    def register_script_function(
        self,
        name: str,
        fn: ScriptFunction,
        description: str = "",
    ) -> None:
        """Register a callable that takes and returns RuntimeValues."""
        def invoke(arguments: Sequence[RuntimeValue]) -> RuntimeValue:
            result = fn(*arguments)
            if result is None:
                return NULL
            return RuntimeValue.from_native(result)

        self._add(FunctionEntry(name, invoke, description))

    def _add(self, entry: FunctionEntry) -> None:
        if entry.name in self._functions:
            logger.warning(f"Function '{entry.name}' registered twice; keeping the latest")
        self._functions[entry.name] = entry

    def unregister_function(self, name: str) -> None:
        self._functions.pop(name, None)

    def has(self, name: str) -> bool:
        return name in self._functions

    def __contains__(self, name: str) -> bool:
        return name in self._functions

    @property
    def names(self) -> list[str]:
        return sorted(self._functions)

    def describe(self) -> dict[str, str]:
        """Registered function names with their descriptions."""
        return {name: entry.description for name, entry in sorted(self._functions.items())}

    def call(self, name: str, arguments: Sequence[RuntimeValue] = ()) -> RuntimeValue:
        entry = self._functions.get(name)
        if entry is None:
            logger.error(f"Function '{name}' is not defined")
            raise UndefinedFunctionError(name)
        return entry.invoke(arguments)


# =============================================================================
# Builtins
# =============================================================================

script_logger = logging.getLogger("dialogscript.script")


def builtin_log(*arguments: RuntimeValue) -> RuntimeValue:
    """Write the arguments, space separated, to the dialogscript.script log."""
    script_logger.info(" ".join(str(argument) for argument in arguments))
    return NULL


def builtin_concat(*arguments: RuntimeValue) -> RuntimeValue:
    """Join the text form of every argument."""
    return RuntimeValue.string("".join(str(argument) for argument in arguments))


BUILTINS: dict[str, ScriptFunction] = {
    "log": builtin_log,
    "concat": builtin_concat,
}


def register_builtins(registry: FunctionRegistry) -> None:
    for name, fn in BUILTINS.items():
        registry.register_script_function(name, fn, (fn.__doc__ or "").strip())
