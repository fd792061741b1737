from typing import Iterator

from agentstream.chunks import (
    ToolInputAvailableChunk,
    ToolInputDeltaChunk,
    ToolInputStartChunk,
    ToolOutputAvailableChunk,
    UIChunk,
)
from agentstream.events import ThinkingContent
from agentstream.helpers.fragments import scrub_surrogates, thinking_fragment
from agentstream.state import OpenThinking, SessionState

THINKING_TOOL_NAME = "Thinking"


class ThinkingBlockManager:
    """Surfaces extended thinking as a synthetic ``Thinking`` tool call.

    Streamed thinking and the copy inside the complete assistant message
    describe the same block; only one of them is emitted per turn.
    """

    def __init__(self, state: SessionState):
        self._state = state

    @property
    def is_open(self) -> bool:
        return self._state.open_thinking is not None

    def open(self) -> Iterator[UIChunk]:
        yield from self.close()
        thinking_id = self._state.next_id("thinking")
        self._state.open_thinking = OpenThinking(id=thinking_id)
        yield ToolInputStartChunk(
            tool_call_id=thinking_id, tool_name=THINKING_TOOL_NAME
        )

    def append(self, text: str) -> Iterator[UIChunk]:
        thinking = self._state.open_thinking
        if thinking is None:
            return
        text = scrub_surrogates(text)
        thinking.text.append(text)
        fragment = thinking_fragment(text, envelope_started=thinking.envelope_started)
        thinking.envelope_started = True
        yield ToolInputDeltaChunk(
            tool_call_id=thinking.id, input_text_delta=fragment
        )

    def close(self) -> Iterator[UIChunk]:
        thinking = self._state.open_thinking
        if thinking is None:
            return
        self._state.open_thinking = None
        self._state.thinking_streamed_this_turn = True
        self._state.emitted_tool_ids.add(thinking.id)
        yield from self._complete(thinking.id, thinking.accumulated_text)

    def report(self, block: ThinkingContent) -> Iterator[UIChunk]:
        # the complete message can arrive before the streamed stop marker
        if not block.thinking:
            return
        if self._state.thinking_streamed_this_turn or self.is_open:
            return
        thinking_id = self._state.next_id("thinking")
        self._state.emitted_tool_ids.add(thinking_id)
        yield from self._complete(thinking_id, block.thinking)

    def _complete(self, thinking_id: str, text: str) -> Iterator[UIChunk]:
        yield ToolInputAvailableChunk(
            tool_call_id=thinking_id,
            tool_name=THINKING_TOOL_NAME,
            input={"text": text},
        )
        yield ToolOutputAvailableChunk(
            tool_call_id=thinking_id, output={"completed": True}
        )
