"""
agentstream - turn coding-agent runtime events into an ordered UI chunk stream.
"""

__version__ = "0.1.0"

from .chunks import UIChunk as UIChunk
from .chunks import chunk_to_builtins as chunk_to_builtins
from .chunks import encode_chunk as encode_chunk
from .config import TransformerConfig as TransformerConfig
from .events import InputEvent as InputEvent
from .events import classify as classify
from .events import decode_event as decode_event
from .stream import iter_chunks as iter_chunks
from .stream import transform_stream as transform_stream
from .transform import ChunkTransformer as ChunkTransformer
