from msgspec import UNSET

from agentstream.chunks import MessageMetadataChunk, ModelUsageEntry
from agentstream.events import ModelUsageReport, ResultMessage, ResultUsage
from agentstream.transform import resolve_token_counts

from runtime_messages import (
    FakeClock,
    assistant,
    block_stop,
    make_transformer,
    result,
    run,
    text_block,
    text_delta,
    tool_start,
    types_of,
)


def _metadata(chunks):
    chunk = next(c for c in chunks if isinstance(c, MessageMetadataChunk))
    return chunk.message_metadata


def test_zero_input_tokens_fall_back_to_model_usage() -> None:
    event = ResultMessage(
        usage=ResultUsage(input_tokens=0, output_tokens=7),
        model_usage={
            "claude-sonnet": ModelUsageReport(input_tokens=100, output_tokens=5),
            "claude-haiku": ModelUsageReport(input_tokens=20, output_tokens=2),
        },
    )

    assert resolve_token_counts(event) == (120, 7)


def test_missing_usage_falls_back_to_model_usage() -> None:
    event = ResultMessage(
        model_usage={"claude-sonnet": ModelUsageReport(input_tokens=3)},
    )

    assert resolve_token_counts(event) == (3, 0)


def test_genuine_zero_is_kept_when_model_usage_agrees() -> None:
    event = ResultMessage(
        usage=ResultUsage(input_tokens=0, output_tokens=0),
        model_usage={"claude-sonnet": ModelUsageReport()},
    )

    assert resolve_token_counts(event) == (0, 0)


def test_no_usage_anywhere_leaves_counts_unresolved() -> None:
    transformer = make_transformer()

    metadata = _metadata(run(transformer, result()))

    assert metadata.input_tokens is UNSET
    assert metadata.output_tokens is UNSET
    assert metadata.total_tokens is UNSET


def test_total_tokens_requires_both_counts() -> None:
    transformer = make_transformer()

    metadata = _metadata(run(transformer, result(usage={"input_tokens": 4})))

    assert metadata.input_tokens == 4
    assert metadata.total_tokens is UNSET


def test_metadata_from_raw_result() -> None:
    clock = FakeClock()
    transformer = make_transformer(clock)
    run(transformer, assistant(text_block("Answer"), uuid="msg-uuid-1"))
    clock.advance(1.25)

    metadata = _metadata(
        run(
            transformer,
            result(
                subtype="error_max_turns",
                total_cost_usd=0.0123,
                usage={"input_tokens": 0, "output_tokens": 0},
                modelUsage={
                    "claude-sonnet": {
                        "inputTokens": 120,
                        "outputTokens": 30,
                        "cacheReadInputTokens": 50,
                        "costUSD": 0.0123,
                    }
                },
            ),
        )
    )

    assert metadata.session_id == "sess-1"
    assert metadata.sdk_message_uuid == "msg-uuid-1"
    assert metadata.input_tokens == 120
    assert metadata.output_tokens == 30
    assert metadata.total_tokens == 150
    assert metadata.total_cost_usd == 0.0123
    assert metadata.duration_ms == 1250
    assert metadata.result_subtype == "error_max_turns"
    assert metadata.final_text_id == "text-s-1"
    assert metadata.model_usage == {
        "claude-sonnet": ModelUsageEntry(
            input_tokens=120,
            output_tokens=30,
            cache_read_input_tokens=50,
            cache_creation_input_tokens=0,
            cost_usd=0.0123,
        )
    }


def test_result_subtype_defaults_to_success() -> None:
    transformer = make_transformer()

    metadata = _metadata(run(transformer, {"type": "result"}))

    assert metadata.result_subtype == "success"
    assert metadata.session_id is UNSET


def test_malformed_usage_does_not_drop_the_result() -> None:
    transformer = make_transformer()

    chunks = run(transformer, result(usage={"input_tokens": "lots"}))

    assert types_of(chunks)[-3:] == ["message-metadata", "finish-step", "finish"]
    assert _metadata(chunks).input_tokens is UNSET


def test_result_closes_open_text_and_tool_in_order() -> None:
    transformer = make_transformer()
    run(transformer, text_delta("thinking out loud"), tool_start("toolu_1", "Read"))

    chunks = run(transformer, result(usage={"input_tokens": 1, "output_tokens": 1}))

    assert types_of(chunks) == [
        "tool-input-available",
        "message-metadata",
        "finish-step",
        "finish",
    ]


def test_final_text_id_tracks_last_closed_text() -> None:
    transformer = make_transformer()

    chunks = run(
        transformer,
        text_delta("first"),
        block_stop(),
        tool_start("toolu_1", "Read"),
        block_stop(),
        text_delta("final answer"),
        result(),
    )

    assert _metadata(chunks).final_text_id == "text-s-2"
