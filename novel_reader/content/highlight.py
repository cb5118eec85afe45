"""
Narration highlighting over rendered chapter markup.

``apply_highlight`` is a pure function: it always removes every existing
marker first and then wraps the cursor's word range inside the addressed
block, so applying the same cursor repeatedly yields the same markup and no
marker from an earlier cursor can survive. ``HighlightSynchronizer`` keeps the
current markup between narration ticks and decides when the display should
scroll.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from bs4 import BeautifulSoup
from bs4.element import NavigableString

from .models import HighlightCursor, word_offsets
from .render import HIGHLIGHT_CLASS, HIGHLIGHT_TAG, WORD_OFFSET_ATTR, element_id, iter_text_nodes, serialize_markup

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScrollRequest:
    element_id: str
    behavior: str = "smooth"


@dataclass
class HighlightUpdate:
    markup: str
    applied: bool
    scroll: Optional[ScrollRequest] = None


def clear_highlight(markup: str) -> str:
    soup = BeautifulSoup(markup, "html.parser")
    _remove_markers(soup)
    return serialize_markup(soup)


def apply_highlight(markup: str, cursor: HighlightCursor) -> str:
    markup, _ = highlight_markup(markup, cursor)
    return markup


def highlight_markup(markup: str, cursor: HighlightCursor) -> Tuple[str, bool]:
    """Returns the new markup and whether a marker was placed."""
    soup = BeautifulSoup(markup, "html.parser")
    _remove_markers(soup)
    applied = _wrap_cursor(soup, cursor)
    return serialize_markup(soup), applied


def _remove_markers(soup: BeautifulSoup) -> int:
    markers = soup.find_all(HIGHLIGHT_TAG, class_=HIGHLIGHT_CLASS)
    for marker in markers:
        marker.unwrap()
    if markers:
        soup.smooth()
    return len(markers)


def _wrap_cursor(soup: BeautifulSoup, cursor: HighlightCursor) -> bool:
    if cursor.word_start < 0 or cursor.word_start >= cursor.word_end:
        logger.warning("Ignoring malformed highlight cursor %s", cursor)
        return False
    element = soup.find(id=element_id(cursor.block_index))
    if element is None:
        logger.debug("No rendered element for block %d; highlight cleared only", cursor.block_index)
        return False

    try:
        offset = int(element.get(WORD_OFFSET_ATTR) or 0)
    except ValueError:
        offset = 0
    nodes = list(iter_text_nodes(element))
    words = word_offsets("".join(text for _, text in nodes))
    first = max(cursor.word_start - offset, 0)
    last = min(cursor.word_end - offset, len(words))
    if first >= last:
        logger.debug("Cursor %s falls outside the words rendered for block %d", cursor, cursor.block_index)
        return False

    char_start, char_end = words[first][0], words[last - 1][1]
    position = 0
    for node, text in nodes:
        node_start, position = position, position + len(text)
        if node is None:
            continue
        start = max(char_start, node_start) - node_start
        end = min(char_end, position) - node_start
        if start >= end:
            continue
        marker = soup.new_tag(HIGHLIGHT_TAG, attrs={"class": HIGHLIGHT_CLASS})
        marker.string = text[start:end]
        replacement = [marker]
        if start:
            replacement.insert(0, NavigableString(text[:start]))
        if end < len(text):
            replacement.append(NavigableString(text[end:]))
        node.replace_with(*replacement)
    return True


class HighlightSynchronizer:
    """
    Holds the rendered markup of one chapter view and applies narration
    cursors to it. Only this object mutates the markup after rendering.
    """

    def __init__(self, markup: str = ""):
        self.markup = markup
        self.active: Optional[HighlightCursor] = None
        self.last_scrolled: Optional[int] = None

    def reset(self, markup: str) -> None:
        self.markup = markup
        self.active = None
        self.last_scrolled = None

    def update(self, cursor: HighlightCursor) -> HighlightUpdate:
        self.markup, applied = highlight_markup(self.markup, cursor)
        self.active = cursor if applied else None
        scroll = None
        if applied and cursor.block_index != self.last_scrolled:
            scroll = ScrollRequest(element_id(cursor.block_index))
            self.last_scrolled = cursor.block_index
        return HighlightUpdate(markup=self.markup, applied=applied, scroll=scroll)

    def clear(self) -> str:
        self.markup = clear_highlight(self.markup)
        self.active = None
        self.last_scrolled = None
        return self.markup
