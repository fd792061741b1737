from typing import Any

from msgspec import DecodeError
from msgspec.json import decode, encode

THINKING_ENVELOPE_PREFIX = '{"text":"'

PARSE_ERROR_KEY = "_parseError"
RAW_INPUT_KEY = "_raw"


def scrub_surrogates(value: Any) -> Any:
    """Replace lone UTF-16 surrogates, which msgspec refuses to encode.

    Paired surrogates are joined back into their code point. Lists and dicts
    are scrubbed recursively.
    """
    if isinstance(value, str):
        return value.encode("utf-16", "surrogatepass").decode("utf-16", "replace")
    if isinstance(value, list):
        return [scrub_surrogates(item) for item in value]
    if isinstance(value, dict):
        return {
            scrub_surrogates(key): scrub_surrogates(item)
            for key, item in value.items()
        }
    return value


def escape_json_fragment(text: str) -> str:
    """JSON-escape ``text`` without the surrounding quotes."""
    try:
        return encode(text).decode()[1:-1]
    except UnicodeEncodeError:
        return encode(scrub_surrogates(text)).decode()[1:-1]


def thinking_fragment(text: str, *, envelope_started: bool) -> str:
    """Slice of a growing ``{"text": ...}`` envelope for one thinking delta.

    The envelope is never closed here; incremental JSON repair on the consumer
    side completes it.
    """
    escaped = escape_json_fragment(text)
    if envelope_started:
        return escaped
    return THINKING_ENVELOPE_PREFIX + escaped


def resolve_tool_input(raw: str) -> tuple[Any, bool]:
    """Parse accumulated tool input JSON.

    Returns ``(input, ok)``. An empty buffer resolves to ``{}``; a truncated or
    invalid buffer resolves to a fallback carrying the raw text and a
    parse-error marker so the call stays renderable.
    """
    if not raw:
        return {}, True
    raw = scrub_surrogates(raw)
    try:
        return decode(raw), True
    except DecodeError:
        return {RAW_INPUT_KEY: raw, PARSE_ERROR_KEY: True}, False


def parse_json_container(text: str) -> dict[str, Any] | list[Any] | None:
    """Decode ``text`` only when it holds a JSON object or array."""
    try:
        parsed = decode(scrub_surrogates(text))
    except DecodeError:
        return None
    if isinstance(parsed, (dict, list)):
        return parsed
    return None


def stringify_payload(payload: Any) -> str:
    if isinstance(payload, str):
        return scrub_surrogates(payload)
    try:
        return encode(payload).decode()
    except UnicodeEncodeError:
        return encode(scrub_surrogates(payload)).decode()
