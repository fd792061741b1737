"""Agent runtime input events and the classifier that narrows raw payloads.

The agent runtime speaks a loosely typed stream-json dialect. Everything past
``classify`` works on the closed set of records defined here, so handlers never
have to second-guess the shape of a payload.
"""

from typing import Any, Mapping

from loguru import logger
from msgspec import UNSET, DecodeError, ValidationError, convert, field
from msgspec.json import decode

from agentstream.chunks import MCPServerInfo, PluginDescriptor
from agentstream.errors import AgentStreamValidationError
from agentstream.interface import ILogger, Record, Unset


class InputEventBase(Record, kw_only=True):
    """Base class shared by every classified input event."""

    parent_tool_use_id: Unset[str | None] = UNSET
    """UNSET leaves the parent scope alone, None clears it, a str sets it."""


# stream-delta events


class TurnStarted(InputEventBase):
    """``message_start``: a new assistant turn begins."""


class TextBlockStarted(InputEventBase):
    pass


class ToolUseBlockStarted(InputEventBase):
    tool_use_id: str | None = None
    name: str = "unknown"


class ThinkingBlockStarted(InputEventBase):
    pass


class TextDelta(InputEventBase):
    text: str


class ToolInputDelta(InputEventBase):
    partial_json: str


class ThinkingDelta(InputEventBase):
    thinking: str


class BlockStopped(InputEventBase):
    pass


# complete messages


class ContentBlock(Record, tag_field="type"):
    pass


class TextContent(ContentBlock, tag="text"):
    text: str = ""


class ThinkingContent(ContentBlock, tag="thinking"):
    thinking: str = ""


class ToolUseContent(ContentBlock, tag="tool_use"):
    id: str
    name: str = "unknown"
    input: Any = field(default_factory=dict)


class ToolResultContent(ContentBlock, tag="tool_result"):
    tool_use_id: str
    content: Any = None
    is_error: bool | None = None


AssistantContent = TextContent | ThinkingContent | ToolUseContent


class AssistantMessage(InputEventBase):
    """A complete assistant turn, possibly re-reporting streamed blocks."""

    content: list[AssistantContent] = field(default_factory=list[AssistantContent])
    uuid: str | None = None


class UserMessage(InputEventBase):
    """User turn carrying tool results."""

    results: list[ToolResultContent] = field(default_factory=list[ToolResultContent])
    tool_use_result: Any = UNSET
    """Structured result the runtime attaches next to the textual tool result."""


# system status


class MCPServerReport(Record, rename="camel"):
    name: str
    status: str | None = None
    server_info: MCPServerInfo | None = None
    error: str | None = None


class SessionInit(InputEventBase):
    tools: list[str] = field(default_factory=list[str])
    mcp_servers: list[MCPServerReport] = field(default_factory=list[MCPServerReport])
    plugins: list[PluginDescriptor] = field(default_factory=list[PluginDescriptor])
    skills: list[Any] = field(default_factory=list)


class CompactionStarted(InputEventBase):
    pass


class CompactionBoundary(InputEventBase):
    pass


# terminal result


class ResultUsage(Record):
    input_tokens: int | None = None
    output_tokens: int | None = None


class ModelUsageReport(Record, rename="camel"):
    input_tokens: int | None = None
    output_tokens: int | None = None
    cache_read_input_tokens: int | None = None
    cache_creation_input_tokens: int | None = None
    cost_usd: float | None = field(default=None, name="costUSD")


class ResultMessage(InputEventBase):
    subtype: str | None = None
    session_id: str | None = None
    usage: ResultUsage | None = None
    model_usage: dict[str, ModelUsageReport] | None = None
    total_cost_usd: float | None = None


type InputEvent = (
    TurnStarted
    | TextBlockStarted
    | ToolUseBlockStarted
    | ThinkingBlockStarted
    | TextDelta
    | ToolInputDelta
    | ThinkingDelta
    | BlockStopped
    | AssistantMessage
    | UserMessage
    | SessionInit
    | CompactionStarted
    | CompactionBoundary
    | ResultMessage
)


def parent_marker(raw: Mapping[str, Any]) -> Unset[str | None]:
    if "parent_tool_use_id" not in raw:
        return UNSET
    parent = raw["parent_tool_use_id"]
    if parent is None or isinstance(parent, str):
        return parent
    return UNSET


def _as_mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


def _type_label(type_: Any) -> str:
    return getattr(type_, "__name__", None) or repr(type_)


def _convert_each(items: Any, type_: Any, log: ILogger) -> list[Any]:
    if not isinstance(items, list):
        return []
    converted: list[Any] = []
    for item in items:
        try:
            converted.append(convert(item, type=type_))
        except ValidationError as exc:
            log.debug(f"Skipping unrecognized {_type_label(type_)} entry: {exc}")
    return converted


def _convert_or_none(value: Any, type_: Any, log: ILogger) -> Any:
    if value is None:
        return None
    try:
        return convert(value, type=type_)
    except ValidationError as exc:
        log.debug(f"Ignoring malformed {_type_label(type_)}: {exc}")
        return None


def _mcp_server_reports(items: Any, log: ILogger) -> list[MCPServerReport]:
    # a bad status or serverInfo must not cost the whole server entry
    if not isinstance(items, list):
        return []
    reports: list[MCPServerReport] = []
    for item in items:
        entry = _as_mapping(item)
        name = entry.get("name")
        if not isinstance(name, str):
            log.debug(f"Skipping MCP server report without a name: {item!r}")
            continue
        status = entry.get("status")
        error = entry.get("error")
        reports.append(
            MCPServerReport(
                name=name,
                status=status if isinstance(status, str) else None,
                server_info=_convert_or_none(
                    entry.get("serverInfo"), MCPServerInfo, log
                ),
                error=error if isinstance(error, str) else None,
            )
        )
    return reports


def _classify_stream_event(
    event: Mapping[str, Any], parent: Unset[str | None]
) -> InputEvent | None:
    match event.get("type"):
        case "message_start":
            return TurnStarted(parent_tool_use_id=parent)
        case "content_block_start":
            block = _as_mapping(event.get("content_block"))
            match block.get("type"):
                case "text":
                    return TextBlockStarted(parent_tool_use_id=parent)
                case "tool_use":
                    tool_use_id = block.get("id")
                    return ToolUseBlockStarted(
                        parent_tool_use_id=parent,
                        tool_use_id=(
                            tool_use_id if isinstance(tool_use_id, str) else None
                        ),
                        name=str(block.get("name") or "unknown"),
                    )
                case "thinking":
                    return ThinkingBlockStarted(parent_tool_use_id=parent)
                case _:
                    return None
        case "content_block_delta":
            delta = _as_mapping(event.get("delta"))
            match delta.get("type"):
                case "text_delta":
                    return TextDelta(
                        parent_tool_use_id=parent, text=str(delta.get("text") or "")
                    )
                case "input_json_delta":
                    return ToolInputDelta(
                        parent_tool_use_id=parent,
                        partial_json=str(delta.get("partial_json") or ""),
                    )
                case "thinking_delta":
                    return ThinkingDelta(
                        parent_tool_use_id=parent,
                        thinking=str(delta.get("thinking") or ""),
                    )
                case _:
                    return None
        case "content_block_stop":
            return BlockStopped(parent_tool_use_id=parent)
        case _:
            return None


def _classify_system(
    raw: Mapping[str, Any], parent: Unset[str | None], log: ILogger
) -> InputEvent | None:
    match raw.get("subtype"):
        case "init":
            tools = raw.get("tools")
            skills = raw.get("skills")
            return SessionInit(
                parent_tool_use_id=parent,
                tools=[t for t in tools if isinstance(t, str)]
                if isinstance(tools, list)
                else [],
                mcp_servers=_mcp_server_reports(raw.get("mcp_servers"), log),
                plugins=_convert_each(raw.get("plugins"), PluginDescriptor, log),
                skills=list(skills) if isinstance(skills, list) else [],
            )
        case "status" if raw.get("status") == "compacting":
            return CompactionStarted(parent_tool_use_id=parent)
        case "compact_boundary":
            return CompactionBoundary(parent_tool_use_id=parent)
        case _:
            return None


def _classify_result(
    raw: Mapping[str, Any], parent: Unset[str | None], log: ILogger
) -> ResultMessage:
    subtype = raw.get("subtype")
    session_id = raw.get("session_id")
    cost = raw.get("total_cost_usd")
    return ResultMessage(
        parent_tool_use_id=parent,
        subtype=subtype if isinstance(subtype, str) else None,
        session_id=session_id if isinstance(session_id, str) else None,
        usage=_convert_or_none(raw.get("usage"), ResultUsage, log),
        model_usage=_convert_or_none(
            raw.get("modelUsage"), dict[str, ModelUsageReport], log
        ),
        total_cost_usd=cost
        if isinstance(cost, (int, float)) and not isinstance(cost, bool)
        else None,
    )


def classify(
    raw: InputEvent | Mapping[str, Any], log: ILogger = logger
) -> InputEvent | None:
    """Narrow one raw runtime message to an InputEvent.

    Returns None for anything unrecognized or incomplete; upstream schemas
    evolve, so unknown payloads are dropped rather than treated as errors.
    """
    if isinstance(raw, InputEventBase):
        return raw
    if not isinstance(raw, Mapping):
        log.debug(f"Ignoring non-mapping event of type {type(raw).__name__}")
        return None

    parent = parent_marker(raw)
    message = _as_mapping(raw.get("message"))

    match raw.get("type"):
        case "stream_event":
            event = raw.get("event")
            if not isinstance(event, Mapping):
                return None
            return _classify_stream_event(event, parent)
        case "assistant":
            uuid = raw.get("uuid")
            return AssistantMessage(
                parent_tool_use_id=parent,
                content=_convert_each(message.get("content"), AssistantContent, log),
                uuid=uuid if isinstance(uuid, str) else None,
            )
        case "user":
            return UserMessage(
                parent_tool_use_id=parent,
                results=_convert_each(message.get("content"), ToolResultContent, log),
                tool_use_result=raw.get("tool_use_result", UNSET),
            )
        case "system":
            return _classify_system(raw, parent, log)
        case "result":
            return _classify_result(raw, parent, log)
        case other:
            log.debug(f"Ignoring unrecognized event type {other!r}")
            return None


def decode_event(line: bytes | str, log: ILogger = logger) -> InputEvent | None:
    """Decode one NDJSON line from the runtime and classify it."""
    try:
        raw = decode(line)
    except DecodeError as exc:
        raise AgentStreamValidationError(f"Invalid event payload: {exc}") from exc
    return classify(raw, log)
