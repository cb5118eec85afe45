from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .canonical import build_blocks
from .detection import detect_format
from .models import Block, ChapterContent, Page
from .pagination import DEFAULT_PAGE_WORD_BUDGET, Paginator, validate_word_budget
from .render import render_blocks

logger = logging.getLogger(__name__)


@dataclass
class EngineConfig:
    page_word_budget: int = DEFAULT_PAGE_WORD_BUDGET
    engine_version: str = "content-engine-1"

    def __post_init__(self) -> None:
        validate_word_budget(self.page_word_budget)


class ContentEngine:
    """
    Turns a stored chapter body into the canonical block model and its
    display forms. Stateless and reusable across chapters; per-view state
    lives in ``ReaderSession``.
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    @property
    def engine_version(self) -> str:
        return self.config.engine_version

    def load(self, raw: Optional[str]) -> ChapterContent:
        parsed = detect_format(raw)
        blocks = build_blocks(parsed)
        if not blocks:
            logger.warning("Chapter content produced no blocks (format=%s)", parsed.format.value)
        return ChapterContent(format=parsed.format, blocks=blocks, rendered=render_blocks(blocks))

    def canonicalize(self, raw: Optional[str]) -> List[Block]:
        return build_blocks(detect_format(raw))

    def paginate(self, blocks: Sequence[Block], word_budget: Optional[int] = None) -> List[Page]:
        budget = word_budget if word_budget is not None else self.config.page_word_budget
        return Paginator(budget).paginate(blocks)
