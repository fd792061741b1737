from uuid import uuid4

from msgspec import Struct, field


def _default_session_key() -> str:
    return uuid4().hex[:8]


class OpenText(Struct, kw_only=True):
    id: str


class OpenTool(Struct, kw_only=True):
    composite_id: str
    name: str
    input_text: list[str] = field(default_factory=list[str])

    @property
    def accumulated_input(self) -> str:
        return "".join(self.input_text)


class OpenThinking(Struct, kw_only=True):
    id: str
    text: list[str] = field(default_factory=list[str])
    envelope_started: bool = False

    @property
    def accumulated_text(self) -> str:
        return "".join(self.text)


class SessionState(Struct, kw_only=True):
    """Mutable context for one streaming call; never shared across conversations."""

    session_key: str = field(default_factory=_default_session_key)
    counters: dict[str, int] = field(default_factory=dict[str, int])

    started: bool = False
    stream_started_at: float | None = None
    finished: bool = False

    open_text: OpenText | None = None
    last_closed_text_id: str | None = None
    text_streamed_this_turn: bool = False

    open_tool: OpenTool | None = None
    emitted_tool_ids: set[str] = field(default_factory=set[str])
    identity_map: dict[str, str] = field(default_factory=dict[str, str])
    parent_tool_id: str | None = None

    open_thinking: OpenThinking | None = None
    thinking_streamed_this_turn: bool = False

    pending_compaction_id: str | None = None
    last_assistant_uuid: str | None = None

    def next_id(self, prefix: str) -> str:
        count = self.counters.get(prefix, 0) + 1
        self.counters[prefix] = count
        return f"{prefix}-{self.session_key}-{count}"

    def composite_id(self, original_id: str) -> str:
        if self.parent_tool_id:
            return f"{self.parent_tool_id}:{original_id}"
        return original_id

    def is_tool_emitted(self, original_id: str) -> bool:
        if original_id in self.emitted_tool_ids:
            return True
        mapped = self.identity_map.get(original_id)
        return mapped is not None and mapped in self.emitted_tool_ids

    def start_turn(self) -> None:
        self.open_thinking = None
        self.thinking_streamed_this_turn = False
        self.text_streamed_this_turn = False

    @property
    def has_open_blocks(self) -> bool:
        return (
            self.open_text is not None
            or self.open_tool is not None
            or self.open_thinking is not None
        )
