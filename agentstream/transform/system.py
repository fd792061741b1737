from typing import Iterator

from msgspec import UNSET

from agentstream.chunks import (
    MCP_SERVER_STATUSES,
    MCPServer,
    SessionInitChunk,
    ToolInputAvailableChunk,
    ToolOutputAvailableChunk,
    UIChunk,
)
from agentstream.events import MCPServerReport, SessionInit
from agentstream.state import SessionState

COMPACT_TOOL_NAME = "Compact"


def normalize_mcp_server(report: MCPServerReport) -> MCPServer:
    """Pin a reported server status to the known set; anything else is pending."""
    status = report.status if report.status in MCP_SERVER_STATUSES else "pending"
    return MCPServer(
        name=report.name,
        status=status,  # type: ignore[arg-type]
        server_info=report.server_info if report.server_info is not None else UNSET,
        error=report.error if report.error else UNSET,
    )


class SystemStatusHandler:
    def __init__(self, state: SessionState):
        self._state = state

    def session_init(self, event: SessionInit) -> SessionInitChunk:
        return SessionInitChunk(
            tools=list(event.tools),
            mcp_servers=[normalize_mcp_server(server) for server in event.mcp_servers],
            plugins=list(event.plugins),
            skills=list(event.skills),
        )

    def _open_compaction(self) -> tuple[str, UIChunk]:
        compact_id = self._state.next_id("compact")
        return compact_id, ToolInputAvailableChunk(
            tool_call_id=compact_id,
            tool_name=COMPACT_TOOL_NAME,
            input={"status": "compacting"},
        )

    def compaction_started(self) -> Iterator[UIChunk]:
        compact_id, chunk = self._open_compaction()
        self._state.pending_compaction_id = compact_id
        yield chunk

    def compaction_boundary(self) -> Iterator[UIChunk]:
        compact_id = self._state.pending_compaction_id
        if compact_id is None:
            # start status never arrived, completion must still be visible
            compact_id, chunk = self._open_compaction()
            yield chunk
        self._state.pending_compaction_id = None
        yield ToolOutputAvailableChunk(
            tool_call_id=compact_id, output={"status": "compacted"}
        )
