from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

WORD_PATTERN = re.compile(r"\S+")

NO_CONTENT_MESSAGE = "No content available"


class ContentFormat(str, Enum):
    STRUCTURED = "structured"
    MARKUP = "markup"
    PLAIN_TEXT = "plain_text"


class BlockKind(str, Enum):
    PARAGRAPH = "paragraph"
    HEADING_1 = "heading-1"
    HEADING_2 = "heading-2"
    LIST_ITEM = "list-item"
    QUOTE = "quote"
    TABLE_CELL = "table-cell"
    TABLE_HEADER = "table-header"

    @classmethod
    def heading(cls, level: Any) -> "BlockKind":
        # The chapter editor only produces two heading levels.
        try:
            level = int(level)
        except (TypeError, ValueError):
            return cls.HEADING_1
        return cls.HEADING_2 if level >= 2 else cls.HEADING_1

    @property
    def is_table(self) -> bool:
        return self in (BlockKind.TABLE_CELL, BlockKind.TABLE_HEADER)


class Mark(str, Enum):
    BOLD = "bold"
    ITALIC = "italic"
    CODE = "code"


class Alignment(str, Enum):
    LEFT = "left"
    CENTER = "center"
    RIGHT = "right"
    JUSTIFY = "justify"

    @classmethod
    def parse(cls, value: Optional[str]) -> Optional["Alignment"]:
        if not value:
            return None
        try:
            return cls(value.strip().lower())
        except ValueError:
            return None


class NarrationSignal(str, Enum):
    PLAY = "play"
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"


class NarrationState(str, Enum):
    IDLE = "idle"
    PLAYING = "playing"
    PAUSED = "paused"
    STOPPED = "stopped"


@dataclass(frozen=True)
class InlineSpan:
    mark: Mark
    start: int
    end: int


def word_offsets(text: str) -> List[Tuple[int, int]]:
    """Character ranges of the whitespace-delimited words in *text*."""
    return [(m.start(), m.end()) for m in WORD_PATTERN.finditer(text)]


def count_words(text: str) -> int:
    return len(text.split())


@dataclass
class Block:
    index: int
    kind: BlockKind
    text: str
    spans: List[InlineSpan] = field(default_factory=list)
    alignment: Optional[Alignment] = None
    ordered: bool = False
    group: Optional[int] = None
    row: Optional[int] = None
    word_offset: int = 0

    @property
    def word_count(self) -> int:
        return count_words(self.text)

    def word_offsets(self) -> List[Tuple[int, int]]:
        return word_offsets(self.text)

    def slice_words(self, start: int, end: int) -> "Block":
        """
        Return a fragment holding words ``start..end`` (end exclusive). The
        fragment keeps the block index so it stays addressable; spans are
        clipped and shifted to the fragment text.
        """
        offsets = self.word_offsets()
        if start < 0 or end > len(offsets) or start >= end:
            raise ValueError(f"Invalid word range {start}..{end} for block {self.index}")
        char_start = offsets[start][0]
        char_end = offsets[end - 1][1]
        spans = [
            InlineSpan(span.mark, max(span.start, char_start) - char_start, min(span.end, char_end) - char_start)
            for span in self.spans
            if span.start < char_end and span.end > char_start
        ]
        return replace(
            self,
            text=self.text[char_start:char_end],
            spans=spans,
            word_offset=self.word_offset + start,
        )


@dataclass(frozen=True)
class HighlightCursor:
    block_index: int
    word_start: int
    word_end: int


@dataclass
class RenderedChapter:
    markup: str
    element_ids: Dict[int, str] = field(default_factory=dict)


@dataclass
class Page:
    number: int
    fragments: List[Block]
    markup: str

    @property
    def word_count(self) -> int:
        return sum(fragment.word_count for fragment in self.fragments)

    @property
    def block_indices(self) -> List[int]:
        indices: List[int] = []
        for fragment in self.fragments:
            if not indices or indices[-1] != fragment.index:
                indices.append(fragment.index)
        return indices


@dataclass
class ChapterContent:
    format: ContentFormat
    blocks: List[Block]
    rendered: RenderedChapter

    @property
    def is_empty(self) -> bool:
        return not self.blocks

    @property
    def message(self) -> Optional[str]:
        return NO_CONTENT_MESSAGE if self.is_empty else None


@dataclass
class ChapterRecord:
    id: str
    book_id: str
    number: int
    title: str
    content: str
    created_at: datetime = field(default_factory=datetime.utcnow)
    updated_at: datetime = field(default_factory=datetime.utcnow)
