"""
Variable registry.

Two kinds of variables share one namespace:

- script variables, created by `var`/`set` and stored as RuntimeValues
- host variables, registered with a getter and an optional setter

Usage:
    variables = VariableRegistry()
    variables.register_variable("gold", lambda: player.gold, player.set_gold)
    variables.register_variable("day", lambda: clock.day)       # read-only

    saved = variables.export()       # {"met_guard": True, ...}
    variables.import_(saved)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

import jsonschema

from dialogscript.runtime.errors import ReadOnlyVariableError, UndefinedVariableError
from dialogscript.runtime.values import Native, RuntimeValue

logger = logging.getLogger(__name__)


# Flat map of JSON scalars; nested values have no script representation
SNAPSHOT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "additionalProperties": {
        "type": ["number", "string", "boolean", "null"],
    },
}


@dataclass
class HostVariable:
    """A variable whose value lives in the host application."""
    name: str
    getter: Callable[[], Any]
    setter: Optional[Callable[[Any], None]] = None
    description: str = ""

    @property
    def read_only(self) -> bool:
        return self.setter is None


class VariableRegistry:
    """Name -> RuntimeValue lookup with host bindings."""

    def __init__(self):
        self._values: dict[str, RuntimeValue] = {}
        self._host: dict[str, HostVariable] = {}

    def register_variable(
        self,
        name: str,
        getter: Callable[[], Any],
        setter: Optional[Callable[[Any], None]] = None,
        description: str = "",
    ) -> None:
        """
        Bind a script name to host state.

        Args:
            name: Variable name as written after `$`
            getter: Returns the current native value
            setter: Receives a native value; None makes the variable read-only
            description: Free text shown by describe()
        """
        if name in self._values:
            logger.warning(f"Host variable '{name}' shadows a script variable")
            del self._values[name]
        if name in self._host:
            logger.warning(f"Host variable '{name}' registered twice; keeping the latest")
        self._host[name] = HostVariable(name, getter, setter, description)

    def unregister_variable(self, name: str) -> None:
        self._host.pop(name, None)

    def has(self, name: str) -> bool:
        return name in self._host or name in self._values

    def __contains__(self, name: str) -> bool:
        return self.has(name)

    @property
    def names(self) -> list[str]:
        return sorted(set(self._values) | set(self._host))

    def get(self, name: str) -> RuntimeValue:
        host = self._host.get(name)
        if host is not None:
            return RuntimeValue.from_native(host.getter())

        value = self._values.get(name)
        if value is None:
            logger.error(f"Variable '{name}' is not defined")
            raise UndefinedVariableError(name)
        return value

    def set(self, name: str, value: RuntimeValue) -> None:
        host = self._host.get(name)
        if host is None:
            self._values[name] = value
            return

        if host.read_only:
            logger.error(f"Variable '{name}' is read-only")
            raise ReadOnlyVariableError(name)
        host.setter(value.to_native())

    def set_native(self, name: str, value: Native) -> None:
        self.set(name, RuntimeValue.from_native(value))

    def get_native(self, name: str) -> Native:
        return self.get(name).to_native()

    def describe(self) -> dict[str, str]:
        """Host variable names with their descriptions."""
        return {name: var.description for name, var in sorted(self._host.items())}

    # Snapshots

    def script_variables(self) -> dict[str, RuntimeValue]:
        """Copy of the script-owned variables."""
        return dict(self._values)

    def load_script_variables(self, values: Mapping[str, RuntimeValue]) -> None:
        """Replace every script-owned variable."""
        self._values = dict(values)

    def clear(self) -> None:
        """Forget script variables; host bindings stay."""
        self._values.clear()

    def export(self) -> dict[str, Native]:
        """Script variables as JSON-ready native values."""
        return {name: value.to_native() for name, value in sorted(self._values.items())}

    def import_(self, data: Mapping[str, Any]) -> None:
        """
        Restore variables saved by export().

        Names bound to host variables are written through their setter.
        The whole snapshot is checked before anything is written, so a
        rejected import leaves every variable as it was.

        Raises:
            jsonschema.ValidationError: If data is not a flat map of scalars
            ReadOnlyVariableError: If a name is bound to a read-only host variable
        """
        try:
            jsonschema.validate(instance=data, schema=SNAPSHOT_SCHEMA)
        except jsonschema.ValidationError as e:
            logger.error(f"Invalid variable snapshot: {e.message}")
            raise

        values = {name: RuntimeValue.from_native(value) for name, value in data.items()}
        for name in values:
            host = self._host.get(name)
            if host is not None and host.read_only:
                logger.error(f"Variable snapshot writes read-only variable '{name}'")
                raise ReadOnlyVariableError(name)

        for name, value in values.items():
            self.set(name, value)
        logger.debug(f"Imported {len(values)} variables")
