"""UI chunk stream data models.

Chunks are the only thing the rendering layer ever sees. They serialize with a
``type`` tag and camelCase field names; optional fields left ``UNSET`` are
omitted from the wire form.
"""

from typing import Any, Literal

from msgspec import UNSET, field, to_builtins
from msgspec.json import encode

from agentstream.interface import Record, Unset

MCPServerStatus = Literal["connected", "failed", "pending", "needs-auth"]

MCP_SERVER_STATUSES: frozenset[str] = frozenset(
    ("connected", "failed", "pending", "needs-auth")
)


class MCPServerIcon(Record, rename="camel"):
    src: str
    mime_type: Unset[str] = UNSET
    sizes: Unset[list[str]] = UNSET
    theme: Unset[Literal["light", "dark"]] = UNSET


class MCPServerInfo(Record, rename="camel"):
    name: str
    version: str
    icons: Unset[list[MCPServerIcon]] = UNSET


class MCPServer(Record, rename="camel"):
    """Auxiliary server descriptor reported at session init."""

    name: str
    status: MCPServerStatus
    server_info: Unset[MCPServerInfo] = UNSET
    error: Unset[str] = UNSET


class PluginDescriptor(Record):
    name: str
    path: str


class ModelUsageEntry(Record, rename="camel"):
    """Per-model token and cost accounting."""

    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_input_tokens: int = 0
    cache_creation_input_tokens: int = 0
    cost_usd: float = field(default=0.0, name="costUSD")


class MessageMetadata(Record, rename="camel"):
    """Final accounting attached to the assistant message."""

    session_id: Unset[str] = UNSET
    sdk_message_uuid: Unset[str] = UNSET
    """Last assistant message uuid, used to resume a session at that message."""

    input_tokens: Unset[int] = UNSET
    output_tokens: Unset[int] = UNSET
    total_tokens: Unset[int] = UNSET
    """Only present when both input and output counts resolved."""

    total_cost_usd: Unset[float] = UNSET
    duration_ms: Unset[int] = UNSET
    result_subtype: str = "success"
    final_text_id: Unset[str] = UNSET
    """Identity of the last closed text block, lets the UI collapse tool chatter."""

    model_usage: Unset[dict[str, ModelUsageEntry]] = UNSET


class ChunkBase(Record, tag_field="type", rename="camel"):
    """Base class shared by all emitted UI chunks."""


# lifecycle


class StartChunk(ChunkBase, tag="start"):
    message_id: Unset[str] = UNSET


class StartStepChunk(ChunkBase, tag="start-step"):
    pass


class FinishStepChunk(ChunkBase, tag="finish-step"):
    pass


class FinishChunk(ChunkBase, tag="finish"):
    message_metadata: Unset[MessageMetadata] = UNSET


# text


class TextStartChunk(ChunkBase, tag="text-start"):
    id: str


class TextDeltaChunk(ChunkBase, tag="text-delta"):
    id: str
    delta: str


class TextEndChunk(ChunkBase, tag="text-end"):
    id: str


# tools


class ToolInputStartChunk(ChunkBase, tag="tool-input-start"):
    tool_call_id: str
    tool_name: str


class ToolInputDeltaChunk(ChunkBase, tag="tool-input-delta"):
    tool_call_id: str
    input_text_delta: str


class ToolInputAvailableChunk(ChunkBase, tag="tool-input-available"):
    tool_call_id: str
    tool_name: str
    input: Any
    provider_metadata: Unset[dict[str, Any]] = UNSET
    """Carries ``{"custom": {"startedAt": <epoch ms>}}`` for real tool calls."""


class ToolOutputAvailableChunk(ChunkBase, tag="tool-output-available"):
    tool_call_id: str
    output: Any


class ToolOutputErrorChunk(ChunkBase, tag="tool-output-error"):
    tool_call_id: str
    error_text: str


# metadata


class MessageMetadataChunk(ChunkBase, tag="message-metadata"):
    message_metadata: MessageMetadata


class SessionInitChunk(ChunkBase, tag="session-init"):
    tools: list[str] = field(default_factory=list[str])
    mcp_servers: list[MCPServer] = field(default_factory=list[MCPServer])
    plugins: list[PluginDescriptor] = field(default_factory=list[PluginDescriptor])
    skills: list[Any] = field(default_factory=list)


type UIChunk = (
    StartChunk
    | StartStepChunk
    | FinishStepChunk
    | FinishChunk
    | TextStartChunk
    | TextDeltaChunk
    | TextEndChunk
    | ToolInputStartChunk
    | ToolInputDeltaChunk
    | ToolInputAvailableChunk
    | ToolOutputAvailableChunk
    | ToolOutputErrorChunk
    | MessageMetadataChunk
    | SessionInitChunk
)

ChunkType = Literal[
    "start",
    "start-step",
    "finish-step",
    "finish",
    "text-start",
    "text-delta",
    "text-end",
    "tool-input-start",
    "tool-input-delta",
    "tool-input-available",
    "tool-output-available",
    "tool-output-error",
    "message-metadata",
    "session-init",
]


def chunk_type(chunk: ChunkBase) -> ChunkType:
    return chunk.__struct_config__.tag  # type: ignore[return-value]


def chunk_to_builtins(chunk: ChunkBase) -> dict[str, Any]:
    """Wire form of a chunk: tagged, camelCased, UNSET fields dropped."""
    return to_builtins(chunk)


def encode_chunk(chunk: ChunkBase) -> bytes:
    return encode(chunk)
