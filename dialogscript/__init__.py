"""
dialogscript

A scripting language and runtime for branching game dialogue.

Quick Start:
    from dialogscript import DialogueContext, DialogueEvent, Runner, ScriptLoader

    context = DialogueContext()
    ScriptLoader(context).load_string('''
    :: start
    Guard: Halt! Who goes there?
    -> A friend
        Guard: Pass, friend.
    -> Nobody
        => arrest
    ''')

    runner = Runner(context)
    runner.events.subscribe(DialogueEvent.CONTENT_DISPLAYED, on_line)
    runner.start()
"""

__version__ = "0.1.0"

from dialogscript.core import EngineConfig, EventBus, Event, DialogueEvent
from dialogscript.language import Lexer, Parser, parse_script, Script
from dialogscript.runtime import (
    DialogueContext,
    Interpreter,
    Runner,
    RunnerState,
    NextContent,
    RuntimeValue,
)
from dialogscript.runtime.errors import (
    DialogueScriptError,
    LexError,
    ScriptSyntaxError,
    InvalidSessionStateError,
)
from dialogscript.loader import ScriptLoader, LoadReport

__all__ = [
    # Core
    "EngineConfig",
    "EventBus",
    "Event",
    "DialogueEvent",
    # Language
    "Lexer",
    "Parser",
    "parse_script",
    "Script",
    # Runtime
    "DialogueContext",
    "Interpreter",
    "Runner",
    "RunnerState",
    "NextContent",
    "RuntimeValue",
    # Errors
    "DialogueScriptError",
    "LexError",
    "ScriptSyntaxError",
    "InvalidSessionStateError",
    # Loading
    "ScriptLoader",
    "LoadReport",
]
