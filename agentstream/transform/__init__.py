from .result import ResultFinalizer as ResultFinalizer
from .result import resolve_token_counts as resolve_token_counts
from .system import COMPACT_TOOL_NAME as COMPACT_TOOL_NAME
from .system import SystemStatusHandler as SystemStatusHandler
from .text import TextBlockManager as TextBlockManager
from .thinking import THINKING_TOOL_NAME as THINKING_TOOL_NAME
from .thinking import ThinkingBlockManager as ThinkingBlockManager
from .tools import ToolInvocationTracker as ToolInvocationTracker
from .transformer import ChunkTransformer as ChunkTransformer
