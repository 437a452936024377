"""
Runner - walks a node tree one host-visible step at a time.

The runner owns an explicit execution stack of (container, index) frames.
Every host call transforms the top frame in a loop until something the
host has to see happens: a line is displayed, a choice menu opens, a
`wait` is requested, or the dialogue completes.

Usage:
    runner = Runner(context)
    runner.events.subscribe(DialogueEvent.CONTENT_DISPLAYED, show_line)
    runner.events.subscribe(DialogueEvent.CHOICES_DISPLAYED, show_menu)
    runner.events.subscribe(DialogueEvent.DIALOGUE_COMPLETED, lambda e: close_box())

    # Bound methods are held weakly and dropped with their object;
    # pass weak=False to keep one alive through the bus.
    runner.events.subscribe(DialogueEvent.NODE_ENTERED, hud.on_node, weak=False)

    runner.start("start")
    ...
    runner.continue_dialogue()     # player pressed "next"
    runner.select_choice(1)        # player picked the second option
"""

from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Iterator, Mapping, Optional, Union

from dialogscript.core.config import EngineConfig
from dialogscript.core.events import DialogueEvent, EventBus
from dialogscript.language.ast import (
    COMMAND_TYPES,
    Choice,
    Condition,
    Content,
    Dialogue,
    JumpCommand,
    Narration,
    NodeDefinition,
    Script,
    WaitCommand,
)
from dialogscript.runtime.context import DialogueContext
from dialogscript.runtime.errors import (
    ExecutionLimitError,
    InvalidSessionStateError,
)
from dialogscript.runtime.interpreter import Interpreter
from dialogscript.runtime.values import Native

logger = logging.getLogger(__name__)


class RunnerState(Enum):
    IDLE = auto()
    ACTIVE = auto()
    AWAITING_CHOICE = auto()


class NextContent(Enum):
    """What stepping would reach next."""
    NONE = auto()
    CONTENT = auto()
    CHOICE = auto()
    JUMP = auto()
    COMMAND = auto()


class Branch(Enum):
    THEN = auto()
    ELIF = auto()
    ELSE = auto()
    NONE = auto()


@dataclass(frozen=True)
class BranchState:
    """Branch chosen for one visit of a condition."""
    branch: Branch
    elif_index: int = -1


Container = Union[NodeDefinition, Choice, Condition]


@dataclass
class Frame:
    """Position inside a container; `index` is the next item to run."""
    container: Container
    index: int = 0

    def copy(self) -> Frame:
        return Frame(self.container, self.index)


@dataclass
class Lookahead:
    """Result of scanning a copy of the stack."""
    kind: NextContent
    stack: list[Frame] = field(default_factory=list)
    choices: list[Choice] = field(default_factory=list)
    run_length: int = 0
    memo: dict[tuple[str, int], BranchState] = field(default_factory=dict)


class Runner:
    """
    Dialogue execution state machine.

    States:
        IDLE            no session
        ACTIVE          session running, nothing pending
        AWAITING_CHOICE a choice menu is open; only select_choice/jump/end work
    """

    def __init__(
        self,
        context: Optional[DialogueContext] = None,
        config: Optional[EngineConfig] = None,
        event_bus: Optional[EventBus] = None,
        interpreter: Optional[Interpreter] = None,
    ):
        if config is None:
            config = context.config if context is not None else EngineConfig()
        self.config = config
        self.context = context or DialogueContext(config)
        self.events = event_bus or EventBus()
        self.interpreter = interpreter or Interpreter()

        self._stack: list[Frame] = []
        self._memo: dict[tuple[str, int], BranchState] = {}
        self._choices: list[Choice] = []
        self._session_id: Optional[str] = None
        self._pending_wait: Optional[float] = None
        self._busy = False

    # Queries

    @property
    def state(self) -> RunnerState:
        if self._session_id is None:
            return RunnerState.IDLE
        if self._choices:
            return RunnerState.AWAITING_CHOICE
        return RunnerState.ACTIVE

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def is_in_dialogue(self) -> bool:
        return self._session_id is not None

    @property
    def is_busy(self) -> bool:
        return self._busy

    @property
    def has_choices(self) -> bool:
        return bool(self._choices)

    @property
    def current_choices(self) -> tuple[Choice, ...]:
        return tuple(self._choices)

    @property
    def pending_wait(self) -> Optional[float]:
        """Duration of the `wait` that ended the last step, if any."""
        return self._pending_wait

    @property
    def current_node_name(self) -> Optional[str]:
        if not self._stack:
            return None
        return self._stack[0].container.name

    # Host operations

    def start(
        self,
        node_name: Optional[str] = None,
        content_index: int = 0,
        force: bool = False,
    ) -> None:
        """
        Begin a dialogue session.

        Args:
            node_name: Node to start at (default: config.default_start_node)
            content_index: Item of the node to start from
            force: Replace a running session instead of failing

        Raises:
            InvalidSessionStateError: Busy, already running, or bad index
            UndefinedNodeError: No such node
        """
        self._require_not_busy("start")
        if self.is_in_dialogue and not force:
            raise self._state_error("A dialogue is already running")

        name = node_name or self.config.default_start_node
        node = self.context.get_node(name)
        if not 0 <= content_index < len(node.content):
            raise self._state_error(
                f"Content index {content_index} out of range for node '{name}' "
                f"({len(node.content)} items)"
            )

        if self.is_in_dialogue:
            logger.debug(f"Discarding session {self._session_id} for a forced start")
        self._reset()

        with self._busy_step():
            self._session_id = uuid.uuid4().hex
            self._stack.append(Frame(node, content_index))
            logger.debug(f"Session {self._session_id} started at '{name}'")
            self.events.publish(
                DialogueEvent.DIALOGUE_STARTED, session_id=self._session_id, node=name
            )
            self.events.publish(DialogueEvent.NODE_ENTERED, node=name)
            self._advance()

    def continue_dialogue(self) -> None:
        """Advance to the next host-visible step."""
        self._require_not_busy("continue")
        if not self.is_in_dialogue:
            raise self._state_error("No dialogue is running")
        if self._choices:
            raise self._state_error("Waiting for a choice to be selected")

        with self._busy_step():
            self._advance()

    def select_choice(self, index: int) -> None:
        """Pick one of current_choices by position."""
        self._require_not_busy("select a choice")
        if not self._choices:
            raise self._state_error("No choices are pending")
        if not 0 <= index < len(self._choices):
            raise self._state_error(
                f"Choice index {index} out of range (0-{len(self._choices) - 1})"
            )

        with self._busy_step():
            choice = self._choices[index]
            self.events.publish(DialogueEvent.CHOICE_SELECTED, choice=choice, index=index)
            if not self.is_in_dialogue:
                # A handler force-ended the session
                return
            self._choices = []
            if choice.content:
                self._stack.append(Frame(choice, 0))
            self._advance()

    def jump_to_node(self, name: str) -> None:
        """Abandon the current position and continue at another node."""
        self._require_not_busy("jump")
        if not self.is_in_dialogue:
            raise self._state_error("No dialogue is running")
        node = self.context.get_node(name)

        with self._busy_step():
            self._enter_node(node)
            self._advance()

    def end(self, force: bool = False) -> None:
        """
        Finish the session and publish DIALOGUE_COMPLETED.

        Does nothing when no dialogue is running.

        Args:
            force: Also end while a step is running (e.g. from an event handler)
        """
        if self._busy and not force:
            raise self._state_error("Cannot end the dialogue while a step is running")
        if not self.is_in_dialogue:
            logger.debug("end() called with no dialogue running")
            return
        self._complete()

    def has_next_content(self) -> NextContent:
        """What the next continue_dialogue() would reach, without running it."""
        if not self.is_in_dialogue or self._choices:
            return NextContent.NONE
        return self._scan().kind

    # Rendering

    def build_text(self, content: Union[Dialogue, Narration, Choice]) -> str:
        """Render the text of a line or choice with interpolations expanded."""
        return self.interpreter.build_text(
            content.text, self.context, strict=self.config.strict_interpolation
        )

    def build_choice_texts(self) -> list[str]:
        return [self.build_text(choice) for choice in self._choices]

    # Host convenience

    def register_script(self, script: Script) -> list[str]:
        return self.context.register_script(script)

    def register_variable(
        self,
        name: str,
        getter: Callable[[], Any],
        setter: Optional[Callable[[Any], None]] = None,
        description: str = "",
    ) -> None:
        self.context.variables.register_variable(name, getter, setter, description)

    def set_variable(self, name: str, value: Native) -> None:
        self.context.variables.set_native(name, value)

    def get_variable(self, name: str) -> Native:
        return self.context.variables.get_native(name)

    def register_function(
        self, name: str, fn: Callable[..., Any], description: str = ""
    ) -> None:
        self.context.functions.register_function(name, fn, description)

    def export_variables(self) -> dict[str, Native]:
        return self.context.variables.export()

    def import_variables(self, data: Mapping[str, Any]) -> None:
        self.context.variables.import_(data)

    # Guards

    def _state_error(self, message: str) -> InvalidSessionStateError:
        logger.error(message)
        return InvalidSessionStateError(message)

    def _require_not_busy(self, action: str) -> None:
        if self._busy:
            raise self._state_error(f"Cannot {action} while a step is running")

    @contextmanager
    def _busy_step(self) -> Iterator[None]:
        self._busy = True
        try:
            yield
        finally:
            self._busy = False

    # Session state

    def _reset(self) -> None:
        self._stack.clear()
        self._memo.clear()
        self._choices = []
        self._session_id = None
        self._pending_wait = None

    def _complete(self) -> None:
        session_id = self._session_id
        self._reset()
        logger.debug(f"Session {session_id} completed")
        self.events.publish(DialogueEvent.DIALOGUE_COMPLETED, session_id=session_id)

    def _enter_node(self, node: NodeDefinition) -> None:
        # A jump is a hard reset of control flow, not a call
        self._stack.clear()
        self._memo.clear()
        self._choices = []
        self._stack.append(Frame(node, 0))
        logger.debug(f"Entering node '{node.name}'")
        self.events.publish(DialogueEvent.NODE_ENTERED, node=node.name)

    def _pop(self) -> None:
        frame = self._stack.pop()
        if isinstance(frame.container, Condition):
            self._memo.pop(frame.container.key, None)

    # Stepping

    def _advance(self) -> None:
        """Step until control has to go back to the host."""
        self._pending_wait = None
        steps = 0
        while self._session_id is not None and not self._choices:
            steps += 1
            if steps > self.config.max_steps:
                error = ExecutionLimitError(self.config.max_steps, self.current_node_name)
                logger.error(str(error))
                raise error
            if self._step_once():
                return

    def _step_once(self) -> bool:
        """Transform the top frame once; True when the host has something to see."""
        if not self._stack:
            self._complete()
            return True

        frame = self._stack[-1]
        items = self._items(frame)

        if items is None or frame.index >= len(items):
            if len(self._stack) == 1:
                self._complete()
                return True
            self._pop()
            return False

        item = items[frame.index]

        if isinstance(item, Condition):
            frame.index += 1
            self._stack.append(Frame(item, 0))
            return False

        if isinstance(item, Choice):
            live, run_length = self._collect_choices(items, frame.index)
            frame.index += run_length
            if live:
                self._present_choices(live)
                return True
            logger.debug(f"No live choices at line {item.line}; skipping the menu")
            return False

        if isinstance(item, WaitCommand):
            duration = self.interpreter.wait_duration(item, self.context)
            frame.index += 1
            self._pending_wait = duration
            self.events.publish(DialogueEvent.WAIT_REQUESTED, duration=duration)
            return True

        if isinstance(item, COMMAND_TYPES):
            target = self.interpreter.execute(item, self.context)
            if target is not None:
                self._enter_node(self.context.get_node(target))
            else:
                frame.index += 1
            return False

        frame.index += 1
        self._display(item)
        if self.config.auto_advance_to_choices and self._session_id is not None:
            self._advance_to_choices()
        return True

    def _items(
        self,
        frame: Frame,
        memo: Optional[dict[tuple[str, int], BranchState]] = None,
    ) -> Optional[tuple[Content, ...]]:
        """Content of a frame; None for a condition with no branch taken."""
        container = frame.container
        if not isinstance(container, Condition):
            return container.content

        if memo is None:
            memo = self._memo
        state = memo.get(container.key)
        if state is None:
            state = self._select_branch(container)
            memo[container.key] = state

        if state.branch is Branch.THEN:
            return container.then_branch
        if state.branch is Branch.ELIF:
            return container.elif_branches[state.elif_index].content
        if state.branch is Branch.ELSE:
            return container.else_branch
        return None

    def _select_branch(self, condition: Condition) -> BranchState:
        if self.interpreter.test(condition.test, self.context, "if condition"):
            return BranchState(Branch.THEN)
        for i, branch in enumerate(condition.elif_branches):
            if self.interpreter.test(branch.test, self.context, "elif condition"):
                return BranchState(Branch.ELIF, i)
        if condition.else_branch is not None:
            return BranchState(Branch.ELSE)
        return BranchState(Branch.NONE)

    def _collect_choices(
        self, items: tuple[Content, ...], start: int
    ) -> tuple[list[Choice], int]:
        """Live choices among the run of sibling choices at `start`, and the run length."""
        live: list[Choice] = []
        index = start
        while index < len(items) and isinstance(items[index], Choice):
            choice = items[index]
            if choice.condition is None or self.interpreter.test(
                choice.condition, self.context, "choice condition"
            ):
                live.append(choice)
            index += 1
        return live, index - start

    def _present_choices(self, choices: list[Choice]) -> None:
        self._choices = list(choices)
        self.events.publish(
            DialogueEvent.CHOICES_DISPLAYED,
            choices=tuple(self._choices),
            texts=self.build_choice_texts(),
        )

    def _display(self, item: Union[Dialogue, Narration]) -> None:
        text = self.build_text(item)
        speaker = item.speaker if isinstance(item, Dialogue) else None
        emotion = item.emotion if isinstance(item, Dialogue) else None
        self.events.publish(
            DialogueEvent.CONTENT_DISPLAYED,
            content=item,
            text=text,
            speaker=speaker,
            emotion=emotion,
            tags=item.tags,
        )

    # Lookahead

    def _scan(self) -> Lookahead:
        """
        Walk a copy of the stack to the next item stepping would act on.

        Branch selections made on the way go into a private copy of the memo.
        They only become real when _advance_to_choices adopts the scanned
        stack; otherwise each guard is evaluated again when stepping reaches it.
        """
        stack = [frame.copy() for frame in self._stack]
        memo = dict(self._memo)
        steps = 0
        while stack:
            steps += 1
            if steps > self.config.max_steps:
                error = ExecutionLimitError(self.config.max_steps, self.current_node_name)
                logger.error(str(error))
                raise error

            frame = stack[-1]
            items = self._items(frame, memo)
            if items is None or frame.index >= len(items):
                if len(stack) == 1:
                    return Lookahead(NextContent.NONE, stack, memo=memo)
                stack.pop()
                continue

            item = items[frame.index]
            if isinstance(item, Condition):
                frame.index += 1
                stack.append(Frame(item, 0))
                continue
            if isinstance(item, Choice):
                live, run_length = self._collect_choices(items, frame.index)
                if live:
                    return Lookahead(NextContent.CHOICE, stack, live, run_length, memo)
                frame.index += run_length
                continue
            if isinstance(item, JumpCommand):
                return Lookahead(NextContent.JUMP, stack, memo=memo)
            if isinstance(item, COMMAND_TYPES):
                return Lookahead(NextContent.COMMAND, stack, memo=memo)
            return Lookahead(NextContent.CONTENT, stack, memo=memo)

        return Lookahead(NextContent.NONE, stack, memo=memo)

    def _advance_to_choices(self) -> None:
        """After a line, open the menu right away if one is next."""
        ahead = self._scan()
        if ahead.kind is not NextContent.CHOICE:
            return

        # Adopt the scanned stack and the branches chosen along it
        self._stack[:] = ahead.stack
        live_keys = {
            frame.container.key for frame in self._stack
            if isinstance(frame.container, Condition)
        }
        self._memo = {
            key: state for key, state in ahead.memo.items() if key in live_keys
        }

        self._stack[-1].index += ahead.run_length
        self._present_choices(ahead.choices)
