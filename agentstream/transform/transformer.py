"""Single-pass conversion of agent runtime events into UI chunks."""

import time
from typing import Any, Iterator, Mapping

from loguru import logger as default_logger

from agentstream.chunks import StartChunk, StartStepChunk, UIChunk
from agentstream.config import TransformerConfig
from agentstream.errors import SessionFinishedError
from agentstream.events import (
    AssistantMessage,
    BlockStopped,
    CompactionBoundary,
    CompactionStarted,
    InputEvent,
    ResultMessage,
    SessionInit,
    TextBlockStarted,
    TextContent,
    TextDelta,
    ThinkingBlockStarted,
    ThinkingContent,
    ThinkingDelta,
    ToolInputDelta,
    ToolUseBlockStarted,
    ToolUseContent,
    TurnStarted,
    UserMessage,
    classify,
    parent_marker,
)
from agentstream.interface import ILogger, ITimer, Unset, is_set
from agentstream.state import SessionState

from .result import ResultFinalizer
from .system import SystemStatusHandler
from .text import TextBlockManager
from .thinking import ThinkingBlockManager
from .tools import ToolInvocationTracker


class ChunkTransformer:
    """Stateful event -> chunk converter for one conversation stream.

    Each call to ``step`` consumes exactly one runtime event and returns the
    chunks it produces, in emission order. A transformer owns its
    SessionState and is finished once the terminal result is processed.
    """

    def __init__(
        self,
        config: TransformerConfig | None = None,
        *,
        logger: ILogger = default_logger,
        clock: ITimer = time.time,
        session_key: str | None = None,
    ):
        self._config = config or TransformerConfig()
        self._logger = logger
        self._clock = clock
        self._state = (
            SessionState(session_key=session_key) if session_key else SessionState()
        )
        self._text = TextBlockManager(self._state)
        self._tools = ToolInvocationTracker(
            self._state,
            clock=clock,
            logger=logger,
            parse_output=self._config.parse_tool_output,
        )
        self._thinking = ThinkingBlockManager(self._state)
        self._system = SystemStatusHandler(self._state)
        self._finalizer = ResultFinalizer(
            self._state, text=self._text, tools=self._tools, clock=clock
        )

    @property
    def config(self) -> TransformerConfig:
        return self._config

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def finished(self) -> bool:
        return self._state.finished

    def step(self, raw: InputEvent | Mapping[str, Any]) -> list[UIChunk]:
        """Consume one event and return the chunks it produced."""
        if self._state.finished:
            raise SessionFinishedError(
                f"Session {self._state.session_key} already processed its result"
            )
        event = classify(raw, self._logger)
        if event is None:
            # ignored events still move the parent scope
            if isinstance(raw, Mapping):
                self._apply_parent(parent_marker(raw))
            return []
        return list(self._dispatch(event))

    def flush(self) -> list[UIChunk]:
        """Close every open block without finishing the message.

        Used when the upstream stops before its terminal result and the
        caller wants the consumer to see no dangling blocks.
        """
        return [*self._text.close(), *self._tools.close(), *self._thinking.close()]

    def _apply_parent(self, marker: Unset[str | None]) -> None:
        if is_set(marker):
            self._state.parent_tool_id = marker

    def _lifecycle_start(self) -> Iterator[UIChunk]:
        if self._state.started:
            return
        self._state.started = True
        self._state.stream_started_at = self._clock()
        yield StartChunk()
        yield StartStepChunk()

    def _dispatch(self, event: InputEvent) -> Iterator[UIChunk]:
        self._apply_parent(event.parent_tool_use_id)
        yield from self._lifecycle_start()

        match event:
            case TurnStarted():
                self._state.start_turn()
            case TextBlockStarted():
                yield from self._text.close()
                yield from self._tools.close()
                yield from self._text.open()
            case TextDelta(text=delta):
                if not self._text.is_open:
                    yield from self._tools.close()
                yield from self._text.append(delta)
            case ToolUseBlockStarted(tool_use_id=tool_use_id, name=name):
                yield from self._text.close()
                yield from self._tools.close()
                yield from self._tools.open(tool_use_id, name)
            case ToolInputDelta(partial_json=fragment):
                yield from self._tools.append(fragment)
            case ThinkingBlockStarted():
                yield from self._thinking.open()
            case ThinkingDelta(thinking=text):
                yield from self._thinking.append(text)
            case BlockStopped():
                yield from self._text.close()
                yield from self._tools.close()
                yield from self._thinking.close()
            case AssistantMessage():
                yield from self._assistant_message(event)
            case UserMessage():
                yield from self._tools.resolve_results(event)
            case SessionInit():
                yield self._system.session_init(event)
            case CompactionStarted():
                yield from self._system.compaction_started()
            case CompactionBoundary():
                yield from self._system.compaction_boundary()
            case ResultMessage():
                yield from self._finalizer.finalize(event)

    def _assistant_message(self, message: AssistantMessage) -> Iterator[UIChunk]:
        if message.uuid:
            self._state.last_assistant_uuid = message.uuid
        for block in message.content:
            match block:
                case ThinkingContent():
                    yield from self._thinking.report(block)
                case TextContent(text=text):
                    yield from self._tools.close()
                    yield from self._text.emit_complete(text)
                case ToolUseContent():
                    yield from self._text.close()
                    yield from self._tools.close()
                    yield from self._tools.report(block)
