"""
Core module.

Exports:
- EngineConfig: Engine configuration model
- EventBus, Event, DialogueEvent: Event system
"""

from dialogscript.core.config import EngineConfig
from dialogscript.core.events import EventBus, Event, DialogueEvent, EventHandler

__all__ = [
    "EngineConfig",
    "EventBus",
    "Event",
    "DialogueEvent",
    "EventHandler",
]
