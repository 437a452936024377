import gc

from dialogscript.core.events import DialogueEvent, Event, EventBus


def test_subscribe_publish(event_bus):
    received = []
    def handler(event):
        received.append(event)

    event_bus.subscribe(DialogueEvent.NODE_ENTERED, handler)
    event_bus.publish(DialogueEvent.NODE_ENTERED, node="start")

    assert len(received) == 1
    assert received[0].type == DialogueEvent.NODE_ENTERED
    assert received[0]["node"] == "start"
    assert received[0].get("missing", 42) == 42


def test_unsubscribe(event_bus):
    received = []
    def handler(event):
        received.append(event)

    event_bus.subscribe(DialogueEvent.NODE_ENTERED, handler)
    event_bus.unsubscribe(DialogueEvent.NODE_ENTERED, handler)
    event_bus.publish(DialogueEvent.NODE_ENTERED, node="start")

    assert received == []


def test_priority_order(event_bus):
    order = []

    event_bus.subscribe(DialogueEvent.CONTENT_DISPLAYED, lambda e: order.append("low"), priority=1, weak=False)
    event_bus.subscribe(DialogueEvent.CONTENT_DISPLAYED, lambda e: order.append("high"), priority=10, weak=False)
    event_bus.subscribe(DialogueEvent.CONTENT_DISPLAYED, lambda e: order.append("normal"), priority=5, weak=False)
    event_bus.subscribe(DialogueEvent.CONTENT_DISPLAYED, lambda e: order.append("normal-2"), priority=5, weak=False)

    event_bus.publish(DialogueEvent.CONTENT_DISPLAYED)

    assert order == ["high", "normal", "normal-2", "low"]


def test_consumption_stops_propagation(event_bus):
    received = []

    def consumer(event):
        received.append("consumer")
        event.consume()

    def later_handler(event):
        received.append("later")

    event_bus.subscribe(DialogueEvent.CHOICE_SELECTED, consumer, priority=10)
    event_bus.subscribe(DialogueEvent.CHOICE_SELECTED, later_handler, priority=5)

    event = event_bus.publish(DialogueEvent.CHOICE_SELECTED)

    assert received == ["consumer"]
    assert event.consumed


def test_one_shot_handler(event_bus):
    calls = []
    def handler(event):
        calls.append(event)

    event_bus.subscribe(DialogueEvent.WAIT_REQUESTED, handler, one_shot=True)
    event_bus.publish(DialogueEvent.WAIT_REQUESTED, duration=1.0)
    event_bus.publish(DialogueEvent.WAIT_REQUESTED, duration=2.0)

    assert len(calls) == 1
    assert event_bus.handler_count(DialogueEvent.WAIT_REQUESTED) == 0


def test_weak_handler_is_dropped():
    bus = EventBus()

    class Listener:
        def __init__(self):
            self.calls = 0

        def on_event(self, event):
            self.calls += 1

    listener = Listener()
    bus.subscribe(DialogueEvent.DIALOGUE_COMPLETED, listener.on_event)
    assert bus.handler_count(DialogueEvent.DIALOGUE_COMPLETED) == 1

    del listener
    gc.collect()

    assert bus.handler_count(DialogueEvent.DIALOGUE_COMPLETED) == 0
    bus.publish(DialogueEvent.DIALOGUE_COMPLETED)


def test_handler_exception_is_logged_not_raised(event_bus, caplog):
    received = []

    def broken(event):
        raise RuntimeError("boom")

    def healthy(event):
        received.append(event)

    event_bus.subscribe(DialogueEvent.DIALOGUE_STARTED, broken, priority=10)
    event_bus.subscribe(DialogueEvent.DIALOGUE_STARTED, healthy)

    event_bus.publish(DialogueEvent.DIALOGUE_STARTED, session_id="abc", node="start")

    assert len(received) == 1
    assert "Error in event handler" in caplog.text


def test_nested_publish_is_queued(event_bus):
    order = []

    def first(event):
        order.append("started")
        event_bus.publish(DialogueEvent.NODE_ENTERED, node="start")
        order.append("started-done")

    def second(event):
        order.append("entered")

    event_bus.subscribe(DialogueEvent.DIALOGUE_STARTED, first)
    event_bus.subscribe(DialogueEvent.NODE_ENTERED, second)

    event_bus.publish(DialogueEvent.DIALOGUE_STARTED)

    assert order == ["started", "started-done", "entered"]


def test_clear(event_bus):
    def handler(event):
        pass

    event_bus.subscribe(DialogueEvent.NODE_ENTERED, handler)
    event_bus.subscribe(DialogueEvent.CONTENT_DISPLAYED, handler)

    event_bus.clear(DialogueEvent.NODE_ENTERED)
    assert event_bus.handler_count(DialogueEvent.NODE_ENTERED) == 0
    assert event_bus.handler_count(DialogueEvent.CONTENT_DISPLAYED) == 1

    event_bus.clear()
    assert event_bus.handler_count(DialogueEvent.CONTENT_DISPLAYED) == 0


def test_event_defaults():
    event = Event(type=DialogueEvent.NODE_ENTERED)
    assert event.data == {}
    assert not event.consumed


def test_plain_functions_are_held_strongly():
    bus = EventBus()
    received = []

    bus.subscribe(DialogueEvent.NODE_ENTERED, lambda e: received.append(e["node"]))
    gc.collect()
    bus.publish(DialogueEvent.NODE_ENTERED, node="start")

    assert received == ["start"]
    assert bus.handler_count(DialogueEvent.NODE_ENTERED) == 1


def test_builtin_handler_can_be_subscribed(event_bus):
    event_bus.subscribe(DialogueEvent.WAIT_REQUESTED, print)
    assert event_bus.handler_count(DialogueEvent.WAIT_REQUESTED) == 1
