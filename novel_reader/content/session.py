from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Union

from .engine import ContentEngine
from .highlight import HighlightSynchronizer, HighlightUpdate
from .models import Block, ChapterContent, HighlightCursor, NarrationSignal, NarrationState, Page
from .render import resolve_activation

logger = logging.getLogger(__name__)

NarrationEvent = Union[HighlightCursor, NarrationSignal, str]


@dataclass(frozen=True)
class LoadTicket:
    chapter_id: str
    generation: int


class ReaderSession:
    """
    State of one chapter view: the loaded content, its page cache, the
    narration state and the highlighted markup.

    Every load is tagged with a generation number. A load that finishes after
    a newer one has started is discarded, so paragraph indices from one
    chapter are never applied to another chapter's text.
    """

    def __init__(
        self,
        engine: Optional[ContentEngine] = None,
        on_activate: Optional[Callable[[int], None]] = None,
    ):
        self.engine = engine or ContentEngine()
        self.on_activate = on_activate
        self.generation = 0
        self.chapter_id: Optional[str] = None
        self.content: Optional[ChapterContent] = None
        self.narration = NarrationState.IDLE
        self.highlighter = HighlightSynchronizer()
        self._pages: Dict[int, List[Page]] = {}

    # region loading
    def begin_load(self, chapter_id: str) -> LoadTicket:
        self.generation += 1
        return LoadTicket(chapter_id=chapter_id, generation=self.generation)

    def is_current(self, ticket: LoadTicket) -> bool:
        return ticket.generation == self.generation

    def complete_load(self, ticket: LoadTicket, raw: Optional[str]) -> Optional[ChapterContent]:
        if not self.is_current(ticket):
            logger.info("Discarding stale load of chapter %s (generation %d)", ticket.chapter_id, ticket.generation)
            return None
        return self._apply(ticket, self.engine.load(raw))

    def load(self, chapter_id: str, raw: Optional[str]) -> ChapterContent:
        ticket = self.begin_load(chapter_id)
        content = self.engine.load(raw)
        self._apply(ticket, content)
        return content

    async def load_async(self, chapter_id: str, raw: Optional[str]) -> Optional[ChapterContent]:
        ticket = self.begin_load(chapter_id)
        content = await asyncio.to_thread(self.engine.load, raw)
        return self._apply(ticket, content)

    def _apply(self, ticket: LoadTicket, content: ChapterContent) -> Optional[ChapterContent]:
        if not self.is_current(ticket):
            logger.info("Discarding stale load of chapter %s (generation %d)", ticket.chapter_id, ticket.generation)
            return None
        self.chapter_id = ticket.chapter_id
        self.content = content
        self._pages = {}
        self.narration = NarrationState.IDLE
        self.highlighter.reset(content.rendered.markup)
        logger.debug("Loaded chapter %s with %d blocks", ticket.chapter_id, len(content.blocks))
        return content

    # endregion

    @property
    def blocks(self) -> List[Block]:
        return self.content.blocks if self.content else []

    @property
    def markup(self) -> str:
        return self.highlighter.markup

    def pages(self, word_budget: Optional[int] = None) -> List[Page]:
        budget = word_budget if word_budget is not None else self.engine.config.page_word_budget
        if budget not in self._pages:
            self._pages[budget] = self.engine.paginate(self.blocks, budget)
        return self._pages[budget]

    # region narration
    def handle_signal(self, signal: Union[NarrationSignal, str]) -> NarrationState:
        signal = NarrationSignal(signal)
        if signal == NarrationSignal.STOP:
            self.highlighter.clear()
            self.narration = NarrationState.STOPPED
        elif signal == NarrationSignal.PLAY:
            self.narration = NarrationState.PLAYING
        elif signal == NarrationSignal.PAUSE:
            if self.narration == NarrationState.PLAYING:
                self.narration = NarrationState.PAUSED
        elif signal == NarrationSignal.RESUME:
            if self.narration == NarrationState.PAUSED:
                self.narration = NarrationState.PLAYING
        logger.debug("Narration %s -> %s", signal.value, self.narration.value)
        return self.narration

    def handle_cursor(self, cursor: HighlightCursor) -> Optional[HighlightUpdate]:
        if self.content is None:
            return None
        if self.narration in (NarrationState.PAUSED, NarrationState.STOPPED):
            logger.debug("Ignoring cursor %s while narration is %s", cursor, self.narration.value)
            return None
        return self.highlighter.update(cursor)

    def consume(self, events: Iterable[NarrationEvent]) -> Optional[HighlightUpdate]:
        """Feed a narration stream; returns the last highlight update applied."""
        last = None
        for event in events:
            if isinstance(event, HighlightCursor):
                update = self.handle_cursor(event)
                last = update or last
            else:
                self.handle_signal(event)
        return last

    # endregion

    def activate(self, target_id: str) -> Optional[int]:
        index = resolve_activation(self.markup, target_id)
        if index is not None and self.on_activate:
            self.on_activate(index)
        return index
