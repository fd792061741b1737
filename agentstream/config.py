from typing import Literal, get_args

from agentstream.errors import AgentStreamConfigurationError
from agentstream.interface import Record

ProviderMode = Literal["anthropic", "ollama"]
CancelPolicy = Literal["leave-open", "flush"]


class TransformerConfig(Record, kw_only=True):
    """Construction-time options for a ChunkTransformer."""

    provider: ProviderMode = "anthropic"
    """Runtime provider mode. Only affects labeling, never the chunk schema."""

    cancel_policy: CancelPolicy = "leave-open"
    """What drivers do when the upstream ends without a terminal result."""

    parse_tool_output: bool = True
    """Parse string tool results that hold a JSON object or array."""

    def __post_init__(self) -> None:
        if self.provider not in get_args(ProviderMode):
            raise AgentStreamConfigurationError(
                f"Unsupported provider mode: {self.provider!r}"
            )
        if self.cancel_policy not in get_args(CancelPolicy):
            raise AgentStreamConfigurationError(
                f"Unsupported cancel policy: {self.cancel_policy!r}"
            )

    @property
    def flush_on_cancel(self) -> bool:
        return self.cancel_policy == "flush"
