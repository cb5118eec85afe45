from __future__ import annotations

import logging
from typing import List, Sequence

from .models import Block, Page
from .render import render_blocks

logger = logging.getLogger(__name__)

DEFAULT_PAGE_WORD_BUDGET = 250
RECOMMENDED_BUDGET_RANGE = (200, 300)


def validate_word_budget(word_budget: int) -> int:
    if isinstance(word_budget, bool) or not isinstance(word_budget, int) or word_budget < 1:
        raise ValueError(f"Page word budget must be a positive integer, got {word_budget!r}")
    low, high = RECOMMENDED_BUDGET_RANGE
    if not low <= word_budget <= high:
        logger.debug("Page word budget %d is outside the usual %d-%d range", word_budget, low, high)
    return word_budget


class Paginator:
    """
    Groups blocks into pages of at most ``word_budget`` words for the
    page-flip reader. Whole blocks are never split unless a single block is
    larger than the budget; such a block is cut into word chunks that each get
    a page of their own. A block that exactly fills the remaining budget stays
    on the current page.
    """

    def __init__(self, word_budget: int = DEFAULT_PAGE_WORD_BUDGET):
        self.word_budget = validate_word_budget(word_budget)

    def paginate(self, blocks: Sequence[Block]) -> List[Page]:
        groups: List[List[Block]] = []
        current: List[Block] = []
        current_words = 0

        for block in blocks:
            words = block.word_count
            if words > self.word_budget:
                if current:
                    groups.append(current)
                    current, current_words = [], 0
                groups.extend([chunk] for chunk in self.split_block(block))
                continue
            if current and current_words + words > self.word_budget:
                groups.append(current)
                current, current_words = [], 0
            current.append(block)
            current_words += words

        if current:
            groups.append(current)

        pages = [
            Page(number=number, fragments=fragments, markup=render_blocks(fragments).markup)
            for number, fragments in enumerate(groups, start=1)
        ]
        logger.debug("Paginated %d blocks into %d pages (budget=%d)", len(blocks), len(pages), self.word_budget)
        return pages

    def split_block(self, block: Block) -> List[Block]:
        total = block.word_count
        return [
            block.slice_words(start, min(start + self.word_budget, total))
            for start in range(0, total, self.word_budget)
        ]


def paginate(blocks: Sequence[Block], word_budget: int = DEFAULT_PAGE_WORD_BUDGET) -> List[Page]:
    return Paginator(word_budget).paginate(blocks)
