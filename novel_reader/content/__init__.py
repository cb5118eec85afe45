"""
Chapter content engine exports.
"""

from .canonical import build_blocks
from .detection import MarkupDocument, ParsedContent, PlainText, StructuredTree, detect_format
from .engine import ContentEngine, EngineConfig
from .highlight import (
    HighlightSynchronizer,
    HighlightUpdate,
    ScrollRequest,
    apply_highlight,
    clear_highlight,
)
from .models import (
    Alignment,
    Block,
    BlockKind,
    ChapterContent,
    ChapterRecord,
    ContentFormat,
    HighlightCursor,
    InlineSpan,
    Mark,
    NarrationSignal,
    NarrationState,
    NO_CONTENT_MESSAGE,
    Page,
    RenderedChapter,
)
from .pagination import DEFAULT_PAGE_WORD_BUDGET, Paginator, paginate
from .render import READER_STYLESHEET, element_id, extract_block_texts, render_blocks, resolve_activation
from .repository import ChapterRepository, InMemoryChapterRepository, SqlAlchemyChapterRepository
from .session import LoadTicket, ReaderSession

__all__ = [
    "Alignment",
    "Block",
    "BlockKind",
    "ChapterContent",
    "ChapterRecord",
    "ChapterRepository",
    "ContentEngine",
    "ContentFormat",
    "DEFAULT_PAGE_WORD_BUDGET",
    "EngineConfig",
    "HighlightCursor",
    "HighlightSynchronizer",
    "HighlightUpdate",
    "InMemoryChapterRepository",
    "InlineSpan",
    "LoadTicket",
    "Mark",
    "MarkupDocument",
    "NarrationSignal",
    "NarrationState",
    "NO_CONTENT_MESSAGE",
    "Page",
    "Paginator",
    "ParsedContent",
    "PlainText",
    "READER_STYLESHEET",
    "ReaderSession",
    "RenderedChapter",
    "ScrollRequest",
    "SqlAlchemyChapterRepository",
    "StructuredTree",
    "apply_highlight",
    "build_blocks",
    "clear_highlight",
    "detect_format",
    "element_id",
    "extract_block_texts",
    "paginate",
    "render_blocks",
    "resolve_activation",
]
