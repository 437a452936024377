"""
Runtime module - executes parsed scripts.

Exports:
- Runner, RunnerState, NextContent: Execution state machine
- Interpreter: Expression evaluation and command execution
- DialogueContext: Variables, functions and node table
- VariableRegistry, FunctionRegistry: Host bindings
- RuntimeValue, ValueType: Script values
"""

from dialogscript.runtime.values import RuntimeValue, ValueType, NULL
from dialogscript.runtime.variables import VariableRegistry
from dialogscript.runtime.functions import FunctionRegistry
from dialogscript.runtime.context import DialogueContext
from dialogscript.runtime.interpreter import Interpreter
from dialogscript.runtime.runner import Runner, RunnerState, NextContent

__all__ = [
    "RuntimeValue",
    "ValueType",
    "NULL",
    "VariableRegistry",
    "FunctionRegistry",
    "DialogueContext",
    "Interpreter",
    "Runner",
    "RunnerState",
    "NextContent",
]
