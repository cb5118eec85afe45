"""
Canonical model builder.

Every parsed variant is flattened into one ordered list of ``Block`` records.
Containers (lists, quotes, tables) never become blocks themselves: their
items, paragraphs and cells do. Inline emphasis is recorded as character
ranges over the block text instead of nested markup.
"""

from __future__ import annotations

import itertools
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from bs4.element import NavigableString, PreformattedString, Tag

from .detection import MarkupDocument, ParsedContent, PlainText, StructuredTree, split_paragraphs
from .models import Alignment, Block, BlockKind, InlineSpan, Mark

logger = logging.getLogger(__name__)

HTML_WHITESPACE = re.compile(r"[ \t\n\r\f]+")
TEXT_ALIGN_STYLE = re.compile(r"text-align\s*:\s*([a-z]+)", re.IGNORECASE)

MARK_ORDER = {Mark.BOLD: 0, Mark.ITALIC: 1, Mark.CODE: 2}
MARK_TYPES = {mark.value for mark in Mark}

INLINE_MARK_TAGS = {
    "strong": Mark.BOLD,
    "b": Mark.BOLD,
    "em": Mark.ITALIC,
    "i": Mark.ITALIC,
    "code": Mark.CODE,
}
HEADING_TAGS = {"h1", "h2", "h3", "h4", "h5", "h6"}
LIST_TAGS = {"ul", "ol"}
TABLE_PART_TAGS = {"table", "thead", "tbody", "tfoot", "tr", "td", "th"}
TABLE_SECTION_TAGS = {"thead", "tbody", "tfoot"}
CONTAINER_TAGS = {
    "html", "body", "div", "section", "article", "main", "header", "footer",
    "aside", "nav", "figure", "figcaption", "center",
}
SKIPPED_TAGS = {"script", "style", "head", "title", "meta", "link", "template", "noscript"}
BLOCK_TAGS = {"p", "pre", "li", "blockquote"} | HEADING_TAGS | LIST_TAGS | TABLE_PART_TAGS | CONTAINER_TAGS


class InlineBuffer:
    """
    Accumulates block text and the emphasis ranges laid over it. With
    ``collapse_whitespace`` the text follows HTML whitespace rules.
    """

    def __init__(self, collapse_whitespace: bool = False):
        self.collapse_whitespace = collapse_whitespace
        self.parts: List[str] = []
        self.length = 0
        self.spans: List[InlineSpan] = []

    def add_text(self, text: str, marks: Iterable[Mark] = ()) -> None:
        if self.collapse_whitespace:
            text = HTML_WHITESPACE.sub(" ", text)
        if not text:
            return
        start = self.length
        self.parts.append(text)
        self.length += len(text)
        for mark in marks:
            self.spans.append(InlineSpan(mark, start, self.length))

    def add_break(self) -> None:
        self.parts.append("\n")
        self.length += 1

    def has_text(self) -> bool:
        return any(part.strip() for part in self.parts)

    def finalize(self) -> Tuple[str, List[InlineSpan]]:
        raw = "".join(self.parts)
        chars: List[str] = []
        mapping = [0] * (len(raw) + 1)
        for i, ch in enumerate(raw):
            mapping[i] = len(chars)
            if not chars and ch.isspace():
                continue
            if self.collapse_whitespace:
                if ch == " " and chars[-1] in " \n":
                    continue
                if ch == "\n" and chars[-1] == " ":
                    chars.pop()
                    mapping[i] = len(chars)
            chars.append(ch)
        mapping[len(raw)] = len(chars)
        while chars and chars[-1].isspace():
            chars.pop()
        text = "".join(chars)
        limit = len(text)
        spans = []
        for span in self.spans:
            start = min(mapping[span.start], limit)
            end = min(mapping[span.end], limit)
            if end > start:
                spans.append(InlineSpan(span.mark, start, end))
        return text, merge_spans(spans)


def merge_spans(spans: Sequence[InlineSpan]) -> List[InlineSpan]:
    merged: List[InlineSpan] = []
    for span in sorted(spans, key=lambda s: (MARK_ORDER[s.mark], s.start)):
        previous = merged[-1] if merged else None
        if previous and previous.mark == span.mark and span.start <= previous.end:
            merged[-1] = InlineSpan(span.mark, previous.start, max(previous.end, span.end))
        else:
            merged.append(span)
    return sorted(merged, key=lambda s: (s.start, MARK_ORDER[s.mark]))


@dataclass
class _Draft:
    kind: BlockKind
    buffer: InlineBuffer
    alignment: Optional[Alignment] = None
    ordered: bool = False
    group: Optional[int] = None
    row: Optional[int] = None


@dataclass
class _Collector:
    collapse_whitespace: bool = False
    drafts: List[_Draft] = field(default_factory=list)
    groups: Iterator[int] = field(default_factory=itertools.count)

    def next_group(self) -> int:
        return next(self.groups)

    def open(self, kind: BlockKind, **attrs: Any) -> InlineBuffer:
        draft = _Draft(kind=kind, buffer=InlineBuffer(self.collapse_whitespace), **attrs)
        self.drafts.append(draft)
        return draft.buffer

    def blocks(self) -> List[Block]:
        blocks: List[Block] = []
        dropped = 0
        for draft in self.drafts:
            text, spans = draft.buffer.finalize()
            if not text.strip():
                dropped += 1
                continue
            blocks.append(
                Block(
                    index=len(blocks),
                    kind=draft.kind,
                    text=text,
                    spans=spans,
                    alignment=draft.alignment,
                    ordered=draft.ordered,
                    group=draft.group,
                    row=draft.row,
                )
            )
        if dropped:
            logger.debug("Dropped %d empty blocks during canonicalization", dropped)
        return blocks


def build_blocks(parsed: ParsedContent) -> List[Block]:
    try:
        collector = _collect(parsed)
    except RecursionError:
        logger.warning("%s content is nested too deeply to walk; reading it as plain text", parsed.format.value)
        collector = _collect(PlainText(paragraphs=split_paragraphs(_source_text(parsed))))
    blocks = collector.blocks()
    logger.debug("Built %d blocks from %s content", len(blocks), parsed.format.value)
    return blocks


def _collect(parsed: ParsedContent) -> _Collector:
    if isinstance(parsed, StructuredTree):
        collector = _Collector()
        _StructuredWalker(collector).walk(parsed.document.get("content") or [])
    elif isinstance(parsed, MarkupDocument):
        collector = _Collector(collapse_whitespace=True)
        _MarkupWalker(collector).walk_children(parsed.soup)
    elif isinstance(parsed, PlainText):
        collector = _Collector()
        for paragraph in parsed.paragraphs:
            collector.open(BlockKind.PARAGRAPH).add_text(paragraph)
    else:
        raise TypeError(f"Unsupported parsed content: {type(parsed).__name__}")
    return collector


def _source_text(parsed: ParsedContent) -> str:
    if isinstance(parsed, MarkupDocument):
        return parsed.soup.get_text()
    if isinstance(parsed, StructuredTree):
        return parsed.raw
    return "\n\n".join(parsed.paragraphs)


# region structured tree

def _node_children(node: Dict[str, Any]) -> List[Dict[str, Any]]:
    content = node.get("content")
    if not isinstance(content, list):
        return []
    return [child for child in content if isinstance(child, dict)]


def _node_attrs(node: Dict[str, Any]) -> Dict[str, Any]:
    attrs = node.get("attrs")
    return attrs if isinstance(attrs, dict) else {}


def _node_text(node: Dict[str, Any]) -> str:
    text = node.get("text")
    return text if isinstance(text, str) else ""


def _node_alignment(node: Dict[str, Any]) -> Optional[Alignment]:
    align = _node_attrs(node).get("textAlign")
    return Alignment.parse(align) if isinstance(align, str) else None


class _StructuredWalker:
    def __init__(self, collector: _Collector):
        self.collector = collector

    def walk(self, nodes: Iterable[Dict[str, Any]]) -> None:
        for node in nodes:
            if isinstance(node, dict):
                self.block(node)

    def block(self, node: Dict[str, Any], quote_group: Optional[int] = None, inherited: Optional[Alignment] = None) -> None:
        node_type = node.get("type")
        if node_type in ("paragraph", "heading"):
            if quote_group is not None:
                kind, group = BlockKind.QUOTE, quote_group
            elif node_type == "heading":
                kind, group = BlockKind.heading(_node_attrs(node).get("level")), None
            else:
                kind, group = BlockKind.PARAGRAPH, None
            buffer = self.collector.open(kind, alignment=_node_alignment(node) or inherited, group=group)
            self.inline_children(node, buffer)
        elif node_type in ("bulletList", "orderedList"):
            self.list(node, ordered=node_type == "orderedList")
        elif node_type == "listItem":
            self.list_item(node, ordered=False, group=self.collector.next_group())
        elif node_type == "blockquote":
            group = self.collector.next_group()
            for child in _node_children(node):
                self.block(child, quote_group=group, inherited=_node_alignment(node))
        elif node_type == "table":
            self.table(_node_children(node))
        elif node_type == "tableRow":
            self.table([node])
        elif node_type in ("tableCell", "tableHeader"):
            self.table([{"type": "tableRow", "content": [node]}])
        elif node_type == "text":
            self.collector.open(BlockKind.PARAGRAPH).add_text(_node_text(node), _text_marks(node))
        else:
            self.walk(_node_children(node))

    def list(self, node: Dict[str, Any], ordered: bool) -> None:
        group = self.collector.next_group()
        for child in _node_children(node):
            if child.get("type") == "listItem":
                self.list_item(child, ordered=ordered, group=group)
            else:
                self.block(child)

    def list_item(self, node: Dict[str, Any], ordered: bool, group: int) -> None:
        buffer = self.collector.open(BlockKind.LIST_ITEM, ordered=ordered, group=group)
        for child in _node_children(node):
            child_type = child.get("type")
            if child_type in ("paragraph", "heading"):
                if buffer.has_text():
                    buffer.add_break()
                self.inline_children(child, buffer)
            elif child_type in ("text", "hardBreak"):
                self.inline(child, buffer)
            else:
                # nested lists and other containers continue as sibling blocks
                self.block(child)

    def table(self, rows: List[Dict[str, Any]]) -> None:
        group = self.collector.next_group()
        for row_number, row in enumerate(rows):
            for cell in _node_children(row):
                kind = BlockKind.TABLE_HEADER if cell.get("type") == "tableHeader" else BlockKind.TABLE_CELL
                buffer = self.collector.open(kind, alignment=_node_alignment(cell), group=group, row=row_number)
                for part in _node_children(cell):
                    if part.get("type") in ("text", "hardBreak"):
                        self.inline(part, buffer)
                        continue
                    if buffer.has_text():
                        buffer.add_break()
                    self.inline_children(part, buffer)

    def inline_children(self, node: Dict[str, Any], buffer: InlineBuffer) -> None:
        for child in _node_children(node):
            self.inline(child, buffer)

    def inline(self, node: Dict[str, Any], buffer: InlineBuffer) -> None:
        node_type = node.get("type")
        if node_type == "text":
            buffer.add_text(_node_text(node), _text_marks(node))
        elif node_type == "hardBreak":
            buffer.add_break()
        else:
            self.inline_children(node, buffer)


def _text_marks(node: Dict[str, Any]) -> List[Mark]:
    marks = []
    marks_field = node.get("marks")
    for mark in marks_field if isinstance(marks_field, list) else []:
        mark_type = mark.get("type") if isinstance(mark, dict) else None
        if mark_type in MARK_TYPES:
            marks.append(Mark(mark_type))
    return marks

# endregion


# region markup

def _tag_alignment(tag: Tag) -> Optional[Alignment]:
    match = TEXT_ALIGN_STYLE.search(tag.get("style") or "")
    if match:
        return Alignment.parse(match.group(1))
    return Alignment.parse(tag.get("align"))


def _is_block_tag(node: Any) -> bool:
    return isinstance(node, Tag) and node.name in BLOCK_TAGS


def _own_rows(tag: Tag) -> List[Tag]:
    """Rows of this table only; rows of tables nested in its cells are left out."""
    if tag.name == "tr":
        return [tag]
    rows = []
    for child in tag.find_all(True, recursive=False):
        if child.name == "tr":
            rows.append(child)
        elif tag.name == "table" and child.name in TABLE_SECTION_TAGS:
            rows.extend(child.find_all("tr", recursive=False))
    return rows


class _MarkupWalker:
    def __init__(self, collector: _Collector):
        self.collector = collector
        # Tables found inside the cells of the table being walked.
        self.nested_tables: Optional[List[Tag]] = None

    def walk_children(self, parent: Tag, quote_group: Optional[int] = None) -> None:
        """
        Walk the children of a container. Runs of inline content between
        block elements are gathered into one paragraph (or quote) block.
        """
        run: Optional[InlineBuffer] = None
        for child in parent.children:
            if isinstance(child, PreformattedString):
                continue
            if isinstance(child, Tag) and child.name in SKIPPED_TAGS:
                continue
            if _is_block_tag(child):
                run = None
                self.block(child, quote_group=quote_group)
                continue
            if isinstance(child, NavigableString) and not child.strip() and run is None:
                continue
            if run is None:
                kind = BlockKind.QUOTE if quote_group is not None else BlockKind.PARAGRAPH
                run = self.collector.open(kind, group=quote_group)
            self.inline(child, run, ())

    def block(self, tag: Tag, quote_group: Optional[int] = None) -> None:
        name = tag.name
        if name in ("p", "pre") or name in HEADING_TAGS:
            if quote_group is not None:
                kind = BlockKind.QUOTE
            elif name in HEADING_TAGS:
                kind = BlockKind.heading(int(name[1]))
            else:
                kind = BlockKind.PARAGRAPH
            buffer = self.collector.open(kind, alignment=_tag_alignment(tag), group=quote_group)
            self.inline_children(tag, buffer, ())
        elif name in LIST_TAGS:
            self.list(tag, ordered=name == "ol")
        elif name == "li":
            self.list_item(tag, ordered=False, group=self.collector.next_group())
        elif name == "blockquote":
            self.walk_children(tag, quote_group=self.collector.next_group())
        elif name in TABLE_PART_TAGS:
            self.table(tag)
        else:
            self.walk_children(tag, quote_group=quote_group)

    def list(self, tag: Tag, ordered: bool) -> None:
        group = self.collector.next_group()
        for child in tag.children:
            if isinstance(child, Tag) and child.name == "li":
                self.list_item(child, ordered=ordered, group=group)
            elif _is_block_tag(child):
                self.block(child)

    def list_item(self, tag: Tag, ordered: bool, group: int) -> None:
        buffer = self.collector.open(BlockKind.LIST_ITEM, ordered=ordered, group=group, alignment=_tag_alignment(tag))
        nested: List[Tag] = []
        for child in tag.children:
            if isinstance(child, PreformattedString):
                continue
            if isinstance(child, Tag) and (child.name in LIST_TAGS or child.name in TABLE_PART_TAGS or child.name == "blockquote"):
                nested.append(child)
                continue
            self.inline(child, buffer, ())
        for child in nested:
            self.block(child)

    def table(self, tag: Tag) -> None:
        group = self.collector.next_group()
        if tag.name in ("td", "th"):
            rows: List[List[Tag]] = [[tag]]
        else:
            rows = [row.find_all(["td", "th"], recursive=False) for row in _own_rows(tag)]
        outer, self.nested_tables = self.nested_tables, []
        for row_number, cells in enumerate(rows):
            for cell in cells:
                kind = BlockKind.TABLE_HEADER if cell.name == "th" else BlockKind.TABLE_CELL
                buffer = self.collector.open(kind, alignment=_tag_alignment(cell), group=group, row=row_number)
                self.inline_children(cell, buffer, ())
        nested, self.nested_tables = self.nested_tables, outer
        for child in nested:
            self.table(child)

    def inline_children(self, tag: Tag, buffer: InlineBuffer, marks: Tuple[Mark, ...]) -> None:
        for child in tag.children:
            self.inline(child, buffer, marks)

    def inline(self, node: Any, buffer: InlineBuffer, marks: Tuple[Mark, ...]) -> None:
        if isinstance(node, PreformattedString):
            return
        if isinstance(node, NavigableString):
            buffer.add_text(str(node), marks)
            return
        if not isinstance(node, Tag) or node.name in SKIPPED_TAGS:
            return
        if node.name == "br":
            buffer.add_break()
            return
        if node.name == "table" and self.nested_tables is not None:
            self.nested_tables.append(node)
            return
        if _is_block_tag(node) and buffer.has_text():
            buffer.add_break()
        mark = INLINE_MARK_TAGS.get(node.name)
        child_marks = marks + (mark,) if mark and mark not in marks else marks
        self.inline_children(node, buffer, child_marks)

# endregion
