from time import perf_counter
from typing import Any, AsyncGenerator, AsyncIterable, Iterable, Iterator

from loguru import logger as default_logger
from opentelemetry import trace
from opentelemetry.trace import SpanKind, Status, StatusCode

from agentstream.chunks import UIChunk
from agentstream.config import TransformerConfig
from agentstream.interface import ILogger, ITimer
from agentstream.tracing import get_trace_ctx
from agentstream.transform import ChunkTransformer


def _resolve_transformer(
    transformer: ChunkTransformer | None,
    config: TransformerConfig | None,
    logger: ILogger,
) -> ChunkTransformer:
    if transformer is not None:
        return transformer
    return ChunkTransformer(config, logger=logger)


def _log_dropped_tail(logger: ILogger, transformer: ChunkTransformer) -> None:
    logger.warning(
        f"Agent stream {transformer.state.session_key} kept sending events "
        "after its result, dropping the rest"
    )


def iter_chunks(
    events: Iterable[Any],
    *,
    transformer: ChunkTransformer | None = None,
    config: TransformerConfig | None = None,
    logger: ILogger = default_logger,
) -> Iterator[UIChunk]:
    """Synchronously transform an event iterable into UI chunks."""
    transformer = _resolve_transformer(transformer, config, logger)
    for event in events:
        if transformer.finished:
            _log_dropped_tail(logger, transformer)
            break
        yield from transformer.step(event)
    if not transformer.finished and transformer.config.flush_on_cancel:
        yield from transformer.flush()


async def transform_stream(
    events: AsyncIterable[Any],
    *,
    transformer: ChunkTransformer | None = None,
    config: TransformerConfig | None = None,
    logger: ILogger = default_logger,
    tracer: trace.Tracer | None = None,
    timer: ITimer = perf_counter,
) -> AsyncGenerator[UIChunk, None]:
    """Yield UI chunks as runtime events arrive.

    The transformer runs between awaits only, so each event's chunks are
    yielded before the next event is pulled from the source. When the source
    ends without a terminal result the config's cancel policy decides whether
    open blocks are flushed.
    """
    transformer = _resolve_transformer(transformer, config, logger)
    tracer = tracer or trace.get_tracer("agentstream.stream")
    provider = transformer.config.provider
    session_key = transformer.state.session_key

    span = tracer.start_span(
        "agentstream.transform",
        kind=SpanKind.INTERNAL,
        context=get_trace_ctx(),
        attributes={
            "agentstream.provider": provider,
            "agentstream.session_key": session_key,
            "agentstream.cancel_policy": transformer.config.cancel_policy,
        },
    )
    event_count = 0
    chunk_count = 0
    start = timer()
    logger.info(f"Transforming {provider} agent stream (session={session_key})")
    try:
        async for event in events:
            if transformer.finished:
                _log_dropped_tail(logger, transformer)
                break
            event_count += 1
            for chunk in transformer.step(event):
                chunk_count += 1
                yield chunk

        if not transformer.finished:
            logger.warning(
                f"Agent stream {session_key} ended without a result event "
                f"(open blocks: {transformer.state.has_open_blocks})"
            )
            if transformer.config.flush_on_cancel:
                for chunk in transformer.flush():
                    chunk_count += 1
                    yield chunk

        duration = timer() - start
        logger.success(
            f"Agent stream {session_key} finished in {duration:.2f}s, "
            f"{event_count} events -> {chunk_count} chunks",
        )
    except Exception as exc:
        duration = timer() - start
        logger.exception(f"Agent stream {session_key} failed after {duration:.2f}s")
        span.record_exception(exc)
        span.set_status(Status(StatusCode.ERROR, str(exc)))
        raise
    finally:
        span.set_attribute("agentstream.events", event_count)
        span.set_attribute("agentstream.chunks", chunk_count)
        span.set_attribute("agentstream.finished", transformer.finished)
        if span.is_recording():
            span.end()
        aclose = getattr(events, "aclose", None)
        if aclose is not None:
            await aclose()
