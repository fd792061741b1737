from typing import Generator, Iterator

from agentstream.chunks import TextDeltaChunk, TextEndChunk, TextStartChunk, UIChunk
from agentstream.state import OpenText, SessionState


class TextBlockManager:
    """Keeps at most one text segment open and assigns its identity."""

    def __init__(self, state: SessionState):
        self._state = state

    @property
    def is_open(self) -> bool:
        return self._state.open_text is not None

    def open(self) -> Generator[UIChunk, None, str]:
        text_id = self._state.next_id("text")
        self._state.open_text = OpenText(id=text_id)
        self._state.text_streamed_this_turn = True
        yield TextStartChunk(id=text_id)
        return text_id

    def append(self, delta: str) -> Iterator[UIChunk]:
        open_text = self._state.open_text
        if open_text is None:
            text_id = yield from self.open()
        else:
            text_id = open_text.id
        yield TextDeltaChunk(id=text_id, delta=delta)

    def close(self) -> Iterator[UIChunk]:
        open_text = self._state.open_text
        if open_text is None:
            return
        self._state.open_text = None
        self._state.last_closed_text_id = open_text.id
        yield TextEndChunk(id=open_text.id)

    def emit_complete(self, text: str) -> Iterator[UIChunk]:
        """Emit a whole text block reported by a complete assistant message.

        Skipped while a streamed block is open or once text was streamed in
        this turn, since the streamed copy already reached the consumer.
        """
        if not text or self.is_open or self._state.text_streamed_this_turn:
            return
        text_id = self._state.next_id("text")
        yield TextStartChunk(id=text_id)
        yield TextDeltaChunk(id=text_id, delta=text)
        yield TextEndChunk(id=text_id)
        self._state.last_closed_text_id = text_id
