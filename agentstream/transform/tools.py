from typing import Any, Iterator

from agentstream.chunks import (
    ToolInputAvailableChunk,
    ToolInputDeltaChunk,
    ToolInputStartChunk,
    ToolOutputAvailableChunk,
    ToolOutputErrorChunk,
    UIChunk,
)
from agentstream.events import ToolResultContent, ToolUseContent, UserMessage
from agentstream.helpers.fragments import (
    parse_json_container,
    resolve_tool_input,
    stringify_payload,
)
from agentstream.interface import ILogger, ITimer, epoch_ms, is_set
from agentstream.state import OpenTool, SessionState


class ToolInvocationTracker:
    """Collapses streamed and monolithic tool reports into one logical call.

    A tool call may be reported twice by the runtime: incrementally (start,
    input fragments, stop) and again, complete, inside the assistant message.
    Identities are namespaced by the enclosing parent tool, and the
    upstream id -> composite id mapping is kept so tool results can find the
    identity that was actually emitted.
    """

    def __init__(
        self,
        state: SessionState,
        *,
        clock: ITimer,
        logger: ILogger,
        parse_output: bool = True,
    ):
        self._state = state
        self._clock = clock
        self._logger = logger
        self._parse_output = parse_output

    @property
    def is_open(self) -> bool:
        return self._state.open_tool is not None

    def _provider_metadata(self) -> dict[str, Any]:
        return {"custom": {"startedAt": epoch_ms(self._clock)}}

    def _register(self, original_id: str) -> str:
        composite_id = self._state.composite_id(original_id)
        self._state.identity_map[original_id] = composite_id
        return composite_id

    def open(self, tool_use_id: str | None, name: str) -> Iterator[UIChunk]:
        original_id = tool_use_id or self._state.next_id("tool")
        composite_id = self._register(original_id)
        self._state.open_tool = OpenTool(composite_id=composite_id, name=name)
        yield ToolInputStartChunk(tool_call_id=composite_id, tool_name=name)

    def append(self, fragment: str) -> Iterator[UIChunk]:
        open_tool = self._state.open_tool
        if open_tool is None:
            return
        open_tool.input_text.append(fragment)
        yield ToolInputDeltaChunk(
            tool_call_id=open_tool.composite_id, input_text_delta=fragment
        )

    def close(self) -> Iterator[UIChunk]:
        open_tool = self._state.open_tool
        if open_tool is None:
            return
        self._state.open_tool = None
        composite_id = open_tool.composite_id
        if composite_id in self._state.emitted_tool_ids:
            self._logger.debug(f"Tool {composite_id} already emitted, skipping")
            return

        raw_input = open_tool.accumulated_input
        tool_input, parsed = resolve_tool_input(raw_input)
        if not parsed:
            self._logger.warning(
                f"Failed to parse {open_tool.name} input for {composite_id}, "
                f"partial: {raw_input[:120]!r}"
            )
        self._state.emitted_tool_ids.add(composite_id)
        yield ToolInputAvailableChunk(
            tool_call_id=composite_id,
            tool_name=open_tool.name,
            input=tool_input,
            provider_metadata=self._provider_metadata(),
        )

    def report(self, block: ToolUseContent) -> Iterator[UIChunk]:
        """Emit a tool call reported complete by an assistant message."""
        if self._state.is_tool_emitted(block.id):
            return
        composite_id = self._register(block.id)
        self._state.emitted_tool_ids.update((block.id, composite_id))
        yield ToolInputAvailableChunk(
            tool_call_id=composite_id,
            tool_name=block.name,
            input=block.input,
            provider_metadata=self._provider_metadata(),
        )

    def _resolve_output(self, result: ToolResultContent, message: UserMessage) -> Any:
        structured = message.tool_use_result
        if is_set(structured) and structured is not None:
            return structured
        if self._parse_output and isinstance(result.content, str):
            parsed = parse_json_container(result.content)
            if parsed is not None:
                return parsed
        return result.content

    def resolve_results(self, message: UserMessage) -> Iterator[UIChunk]:
        for result in message.results:
            composite_id = self._state.identity_map.get(result.tool_use_id)
            if composite_id is None:
                self._logger.debug(
                    f"Tool result for unknown id {result.tool_use_id}, using it as-is"
                )
                composite_id = result.tool_use_id

            if result.is_error:
                yield ToolOutputErrorChunk(
                    tool_call_id=composite_id,
                    error_text=stringify_payload(result.content),
                )
            else:
                yield ToolOutputAvailableChunk(
                    tool_call_id=composite_id,
                    output=self._resolve_output(result, message),
                )
