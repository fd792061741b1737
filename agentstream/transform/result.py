from typing import Iterator

from msgspec import UNSET

from agentstream.chunks import (
    FinishChunk,
    FinishStepChunk,
    MessageMetadata,
    MessageMetadataChunk,
    ModelUsageEntry,
    UIChunk,
)
from agentstream.events import ModelUsageReport, ResultMessage
from agentstream.interface import ITimer, Unset
from agentstream.state import SessionState

from .text import TextBlockManager
from .tools import ToolInvocationTracker


def normalize_model_usage(
    model_usage: dict[str, ModelUsageReport],
) -> dict[str, ModelUsageEntry]:
    return {
        model: ModelUsageEntry(
            input_tokens=usage.input_tokens or 0,
            output_tokens=usage.output_tokens or 0,
            cache_read_input_tokens=usage.cache_read_input_tokens or 0,
            cache_creation_input_tokens=usage.cache_creation_input_tokens or 0,
            cost_usd=usage.cost_usd or 0.0,
        )
        for model, usage in model_usage.items()
    }


def _unset_if_none[T](value: T | None) -> Unset[T]:
    return UNSET if value is None else value


def _resolve_count(primary: int | None, fallback: int | None) -> int | None:
    # a zero top-level count means "not populated" when per-model data disagrees
    if primary is None or (primary == 0 and (fallback or 0) > 0):
        return fallback
    return primary


def resolve_token_counts(event: ResultMessage) -> tuple[int | None, int | None]:
    """Resolve (input, output) tokens, falling back to per-model sums."""
    usage = event.usage
    primary_in = usage.input_tokens if usage is not None else None
    primary_out = usage.output_tokens if usage is not None else None

    fallback_in: int | None = None
    fallback_out: int | None = None
    if event.model_usage is not None:
        reports = event.model_usage.values()
        fallback_in = sum(report.input_tokens or 0 for report in reports)
        fallback_out = sum(report.output_tokens or 0 for report in reports)

    return _resolve_count(primary_in, fallback_in), _resolve_count(
        primary_out, fallback_out
    )


class ResultFinalizer:
    """Closes the session on the terminal result and emits final accounting."""

    def __init__(
        self,
        state: SessionState,
        *,
        text: TextBlockManager,
        tools: ToolInvocationTracker,
        clock: ITimer,
    ):
        self._state = state
        self._text = text
        self._tools = tools
        self._clock = clock

    def build_metadata(self, event: ResultMessage) -> MessageMetadata:
        input_tokens, output_tokens = resolve_token_counts(event)
        total_tokens = (
            input_tokens + output_tokens
            if input_tokens is not None and output_tokens is not None
            else None
        )
        started_at = self._state.stream_started_at
        duration_ms = (
            int((self._clock() - started_at) * 1000)
            if started_at is not None
            else None
        )

        return MessageMetadata(
            session_id=_unset_if_none(event.session_id),
            sdk_message_uuid=_unset_if_none(self._state.last_assistant_uuid),
            input_tokens=_unset_if_none(input_tokens),
            output_tokens=_unset_if_none(output_tokens),
            total_tokens=_unset_if_none(total_tokens),
            total_cost_usd=_unset_if_none(event.total_cost_usd),
            duration_ms=_unset_if_none(duration_ms),
            result_subtype=event.subtype or "success",
            final_text_id=_unset_if_none(self._state.last_closed_text_id),
            model_usage=(
                normalize_model_usage(event.model_usage)
                if event.model_usage is not None
                else UNSET
            ),
        )

    def finalize(self, event: ResultMessage) -> Iterator[UIChunk]:
        yield from self._text.close()
        yield from self._tools.close()
        metadata = self.build_metadata(event)
        self._state.finished = True
        yield MessageMetadataChunk(message_metadata=metadata)
        yield FinishStepChunk()
        yield FinishChunk(message_metadata=metadata)
