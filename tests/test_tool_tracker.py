from agentstream.chunks import (
    ToolInputAvailableChunk,
    ToolInputDeltaChunk,
    ToolInputStartChunk,
    ToolOutputAvailableChunk,
    ToolOutputErrorChunk,
)
from agentstream.config import TransformerConfig

from runtime_messages import (
    assistant,
    block_stop,
    input_delta,
    make_transformer,
    result,
    run,
    text_block,
    tool_result,
    tool_start,
    tool_use_block,
    types_of,
)


def _available(chunks) -> list[ToolInputAvailableChunk]:
    return [chunk for chunk in chunks if isinstance(chunk, ToolInputAvailableChunk)]


def test_input_deltas_carry_only_their_fragment() -> None:
    transformer = make_transformer()

    chunks = run(
        transformer,
        tool_start("toolu_1", "Edit"),
        input_delta('{"old": '),
        input_delta('"a"}'),
    )

    deltas = [c for c in chunks if isinstance(c, ToolInputDeltaChunk)]
    assert [d.input_text_delta for d in deltas] == ['{"old": ', '"a"}']
    assert transformer.state.open_tool is not None
    assert transformer.state.open_tool.accumulated_input == '{"old": "a"}'


def test_streamed_then_monolithic_report_emits_input_once() -> None:
    transformer = make_transformer()

    chunks = run(
        transformer,
        tool_start("toolu_1", "Read"),
        input_delta('{"file_path": "a.py"}'),
        block_stop(),
        assistant(tool_use_block("toolu_1", "Read", {"file_path": "a.py"})),
    )

    available = _available(chunks)
    assert len(available) == 1
    assert available[0].input == {"file_path": "a.py"}


def test_monolithic_report_before_stop_closes_stream_and_dedupes() -> None:
    transformer = make_transformer()

    chunks = run(
        transformer,
        tool_start("toolu_1", "Read"),
        input_delta('{"file_path": "a.py"}'),
        assistant(tool_use_block("toolu_1", "Read", {"file_path": "a.py"})),
        block_stop(),
    )

    assert len(_available(chunks)) == 1


def test_monolithic_only_tool_is_emitted_directly() -> None:
    transformer = make_transformer()

    chunks = run(
        transformer,
        assistant(
            text_block("Checking"),
            tool_use_block("toolu_9", "Bash", {"command": "ls"}),
        ),
    )

    assert types_of(chunks) == [
        "start",
        "start-step",
        "text-start",
        "text-delta",
        "text-end",
        "tool-input-available",
    ]
    tool = chunks[-1]
    assert tool.tool_call_id == "toolu_9"
    assert tool.input == {"command": "ls"}
    assert tool.provider_metadata == {"custom": {"startedAt": 1_000_000}}


def test_nested_tools_use_composite_identity() -> None:
    transformer = make_transformer()

    chunks = run(
        transformer,
        tool_start("task_1", "Task"),
        block_stop(),
        tool_start("child_1", "Glob", parent_tool_use_id="task_1"),
        block_stop(),
        tool_result("child_1", "found", parent_tool_use_id="task_1"),
    )

    starts = [c for c in chunks if isinstance(c, ToolInputStartChunk)]
    assert [s.tool_call_id for s in starts] == ["task_1", "task_1:child_1"]
    output = chunks[-1]
    assert isinstance(output, ToolOutputAvailableChunk)
    assert output.tool_call_id == "task_1:child_1"
    assert transformer.state.identity_map == {
        "task_1": "task_1",
        "child_1": "task_1:child_1",
    }


def test_parent_scope_persists_until_explicitly_changed() -> None:
    transformer = make_transformer()

    chunks = run(
        transformer,
        tool_start("a", "Read", parent_tool_use_id="task_1"),
        block_stop(),
        tool_start("b", "Read"),
        block_stop(),
        tool_start("c", "Read", parent_tool_use_id=None),
        block_stop(),
    )

    starts = [c for c in chunks if isinstance(c, ToolInputStartChunk)]
    assert [s.tool_call_id for s in starts] == ["task_1:a", "task_1:b", "c"]


def test_nested_monolithic_rereport_is_deduplicated() -> None:
    transformer = make_transformer()

    chunks = run(
        transformer,
        tool_start("child_1", "Glob", parent_tool_use_id="task_1"),
        input_delta('{"pattern": "*.py"}'),
        block_stop(),
        assistant(
            tool_use_block("child_1", "Glob", {"pattern": "*.py"}),
            parent_tool_use_id="task_1",
        ),
    )

    available = _available(chunks)
    assert [a.tool_call_id for a in available] == ["task_1:child_1"]


def test_truncated_input_resolves_to_parse_error_fallback() -> None:
    transformer = make_transformer()

    chunks = run(
        transformer,
        tool_start("toolu_1", "Task"),
        input_delta('{"prompt":"write co'),
        result(),
    )

    available = _available(chunks)
    assert available[0].input == {"_raw": '{"prompt":"write co', "_parseError": True}
    assert types_of(chunks)[-3:] == ["message-metadata", "finish-step", "finish"]


def test_empty_input_resolves_to_empty_object() -> None:
    transformer = make_transformer()

    chunks = run(transformer, tool_start("toolu_1", "TodoRead"), block_stop())

    assert _available(chunks)[0].input == {}


def test_missing_tool_id_and_name_get_fallbacks() -> None:
    transformer = make_transformer()

    chunks = run(transformer, tool_start(None, None))

    start = chunks[-1]
    assert isinstance(start, ToolInputStartChunk)
    assert start.tool_call_id == "tool-s-1"
    assert start.tool_name == "unknown"


def test_input_delta_without_open_tool_is_ignored() -> None:
    transformer = make_transformer()

    chunks = run(transformer, input_delta('{"a": 1}'))

    assert types_of(chunks) == ["start", "start-step"]


def test_error_result_is_stringified() -> None:
    transformer = make_transformer()

    chunks = run(
        transformer,
        tool_start("toolu_1", "Bash"),
        block_stop(),
        tool_result("toolu_1", "exit code 1", is_error=True),
        tool_result("toolu_1", [{"type": "text", "text": "boom"}], is_error=True),
    )

    errors = [c for c in chunks if isinstance(c, ToolOutputErrorChunk)]
    assert errors[0].error_text == "exit code 1"
    assert errors[1].error_text == '[{"type":"text","text":"boom"}]'


def test_error_result_with_lone_surrogate_is_stringified() -> None:
    transformer = make_transformer()

    chunks = run(
        transformer,
        tool_result("toolu_1", [{"type": "text", "text": "bad \ud83d"}], is_error=True),
        tool_result("toolu_2", "bad \ud83d", is_error=True),
    )

    errors = [c.error_text for c in chunks if isinstance(c, ToolOutputErrorChunk)]
    assert errors == ['[{"type":"text","text":"bad \ufffd"}]', "bad \ufffd"]


def test_unknown_result_id_falls_back_to_raw_id() -> None:
    transformer = make_transformer()

    chunks = run(transformer, tool_result("never_opened", "ok"))

    output = chunks[-1]
    assert isinstance(output, ToolOutputAvailableChunk)
    assert output.tool_call_id == "never_opened"


def test_structured_tool_use_result_takes_precedence() -> None:
    transformer = make_transformer()

    chunks = run(
        transformer,
        tool_result(
            "toolu_1",
            "3 files",
            tool_use_result={"filenames": ["a", "b", "c"]},
        ),
    )

    assert chunks[-1].output == {"filenames": ["a", "b", "c"]}


def test_json_string_result_is_parsed_into_structure() -> None:
    transformer = make_transformer()

    chunks = run(
        transformer,
        tool_result("toolu_1", '{"count": 3}'),
        tool_result("toolu_2", '"just a string"'),
        tool_result("toolu_3", "plain text"),
    )

    outputs = [c.output for c in chunks if isinstance(c, ToolOutputAvailableChunk)]
    assert outputs == [{"count": 3}, '"just a string"', "plain text"]


def test_json_string_result_parsing_can_be_disabled() -> None:
    transformer = make_transformer(config=TransformerConfig(parse_tool_output=False))

    chunks = run(transformer, tool_result("toolu_1", '{"count": 3}'))

    assert chunks[-1].output == '{"count": 3}'


def test_non_result_user_content_is_skipped() -> None:
    transformer = make_transformer()

    chunks = run(
        transformer,
        {"type": "user", "message": {"role": "user", "content": "hi there"}},
        {
            "type": "user",
            "message": {"content": [{"type": "text", "text": "note"}]},
        },
    )

    assert types_of(chunks) == ["start", "start-step"]
