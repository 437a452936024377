"""
Dialogue context - everything a script can reach by name.

One context is shared by the loader, which fills the node table, and by
any number of runners.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

from dialogscript.core.config import EngineConfig
from dialogscript.language.ast import NodeDefinition, Script
from dialogscript.runtime.errors import DuplicateNodeError, UndefinedNodeError
from dialogscript.runtime.functions import FunctionRegistry, register_builtins
from dialogscript.runtime.values import RuntimeValue
from dialogscript.runtime.variables import VariableRegistry

logger = logging.getLogger(__name__)


class DialogueContext:
    """
    Variables, functions and the node table.

    Attributes:
        config: Engine settings
        variables: Script and host variables
        functions: Host and builtin functions
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.variables = VariableRegistry()
        self.functions = FunctionRegistry()
        self._nodes: dict[str, NodeDefinition] = {}

        if self.config.register_builtins:
            register_builtins(self.functions)

    # Nodes

    def register_script(self, script: Script) -> list[str]:
        """
        Merge a parsed script into the node table.

        Returns:
            Names of the registered nodes, in script order

        Raises:
            DuplicateNodeError: If overrides are disabled and a name is
                already taken. Nothing is registered in that case.
        """
        if not self.config.allow_node_overrides:
            seen = set(self._nodes)
            for node in script.nodes:
                if node.name in seen:
                    logger.error(f"Node '{node.name}' is already defined")
                    raise DuplicateNodeError(node.name)
                seen.add(node.name)

        for node in script.nodes:
            if node.name in self._nodes:
                logger.warning(f"Node '{node.name}' redefined; the later definition wins")
            self._nodes[node.name] = node

        return [node.name for node in script.nodes]

    def get_node(self, name: str) -> NodeDefinition:
        node = self._nodes.get(name)
        if node is None:
            logger.error(f"Node '{name}' is not defined")
            raise UndefinedNodeError(name)
        return node

    def has_node(self, name: str) -> bool:
        return name in self._nodes

    @property
    def node_names(self) -> list[str]:
        return list(self._nodes)

    def clear_nodes(self) -> None:
        self._nodes.clear()

    # Shortcuts used by the interpreter

    def get_variable(self, name: str) -> RuntimeValue:
        return self.variables.get(name)

    def set_variable(self, name: str, value: RuntimeValue) -> None:
        self.variables.set(name, value)

    def call_function(self, name: str, arguments: Sequence[RuntimeValue] = ()) -> RuntimeValue:
        return self.functions.call(name, arguments)
