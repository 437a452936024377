import os
import sys

import pytest

# Ensure dialogscript can be imported without installation
sys.path.append(os.getcwd())

from dialogscript.core.config import EngineConfig
from dialogscript.core.events import DialogueEvent, EventBus
from dialogscript.language.parser import parse_script
from dialogscript.runtime.context import DialogueContext
from dialogscript.runtime.runner import Runner


class EventRecorder:
    """Collects every runner notification in publish order."""

    def __init__(self, bus: EventBus):
        self.events = []
        for event_type in DialogueEvent:
            bus.subscribe(event_type, self.record)

    def record(self, event):
        self.events.append(event)

    @property
    def types(self):
        return [event.type for event in self.events]

    def of(self, event_type):
        return [event for event in self.events if event.type == event_type]

    @property
    def lines(self):
        """Rendered text of every CONTENT_DISPLAYED event."""
        return [event["text"] for event in self.of(DialogueEvent.CONTENT_DISPLAYED)]

    def clear(self):
        self.events.clear()


@pytest.fixture
def config():
    """Default engine configuration."""
    return EngineConfig()


@pytest.fixture
def event_bus():
    """Fresh EventBus for each test."""
    return EventBus()


@pytest.fixture
def context(config):
    """Empty DialogueContext with builtins registered."""
    return DialogueContext(config)


@pytest.fixture
def runner(context, event_bus):
    """Runner wired to the context and event bus fixtures."""
    return Runner(context, event_bus=event_bus)


@pytest.fixture
def recorder(event_bus):
    """Records every event published on the event_bus fixture."""
    return EventRecorder(event_bus)


@pytest.fixture
def load(context):
    """Parse a script source and register it with the context fixture."""
    def _load(source):
        return context.register_script(parse_script(source))
    return _load
