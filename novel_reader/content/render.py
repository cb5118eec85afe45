"""
Markup renderer.

Blocks render as one addressable element each (``id="para-{index}"`` plus
``data-paragraph-index``). List items and table cells are grouped under
synthesized wrappers per contiguous run; the wrappers themselves are never
addressable. The highlighter and the activation callback rely on this
addressing scheme, so identifiers only ever derive from ``Block.index``.
"""

from __future__ import annotations

import html
import itertools
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from bs4 import BeautifulSoup
from bs4.dammit import EntitySubstitution
from bs4.element import NavigableString, PreformattedString, Tag
from bs4.formatter import HTMLFormatter

from .models import Alignment, Block, BlockKind, InlineSpan, Mark, RenderedChapter

ELEMENT_ID_PREFIX = "para-"
PARAGRAPH_INDEX_ATTR = "data-paragraph-index"
WORD_OFFSET_ATTR = "data-word-offset"
HIGHLIGHT_TAG = "mark"
HIGHLIGHT_CLASS = "tts-highlight"

READER_STYLESHEET = f"""
.reader-content .block {{ scroll-margin-top: 4rem; cursor: pointer; }}
.reader-content .table-wrapper {{ overflow-x: auto; }}
.reader-content table.reader-table {{ border-collapse: collapse; width: 100%; }}
.reader-content table.reader-table td,
.reader-content table.reader-table th {{ border: 1px solid #d4d4d8; padding: 0.25rem 0.5rem; }}
{HIGHLIGHT_TAG}.{HIGHLIGHT_CLASS} {{ background-color: #fde68a; color: inherit; border-radius: 2px; }}
""".strip()

BLOCK_TAGS = {
    BlockKind.PARAGRAPH: "p",
    BlockKind.HEADING_1: "h1",
    BlockKind.HEADING_2: "h2",
    BlockKind.LIST_ITEM: "li",
    BlockKind.QUOTE: "blockquote",
    BlockKind.TABLE_CELL: "td",
    BlockKind.TABLE_HEADER: "th",
}

# Outermost first.
MARK_TAGS = {
    Mark.BOLD: "strong",
    Mark.ITALIC: "em",
    Mark.CODE: "code",
}


def element_id(index: int) -> str:
    return f"{ELEMENT_ID_PREFIX}{index}"


class RenderOrderFormatter(HTMLFormatter):
    """Minimal entity escaping that keeps attributes in the order they were written."""

    def attributes(self, tag: Tag):
        return list((tag.attrs or {}).items())


RENDER_FORMATTER = RenderOrderFormatter(entity_substitution=EntitySubstitution.substitute_xml)


def serialize_markup(soup: BeautifulSoup) -> str:
    return soup.decode(formatter=RENDER_FORMATTER)


def render_blocks(blocks: Sequence[Block]) -> RenderedChapter:
    parts: List[str] = []
    element_ids: Dict[int, str] = {}
    for key, run in itertools.groupby(blocks, key=_wrapper_key):
        run = list(run)
        for block in run:
            element_ids[block.index] = element_id(block.index)
        if key[0] == "list":
            tag = "ol" if key[2] else "ul"
            parts.append(f"<{tag}>{''.join(render_element(block) for block in run)}</{tag}>")
        elif key[0] == "table":
            rows = "".join(
                f"<tr>{''.join(render_element(cell) for cell in cells)}</tr>"
                for _, cells in itertools.groupby(run, key=lambda cell: cell.row)
            )
            parts.append(f'<div class="table-wrapper"><table class="reader-table">{rows}</table></div>')
        else:
            parts.extend(render_element(block) for block in run)
    return RenderedChapter(markup="".join(parts), element_ids=element_ids)


def _wrapper_key(block: Block) -> Tuple:
    if block.kind == BlockKind.LIST_ITEM:
        return ("list", block.group, block.ordered)
    if block.kind.is_table:
        return ("table", block.group)
    return ("block", block.index, block.word_offset)


def render_element(block: Block) -> str:
    tag = BLOCK_TAGS[block.kind]
    attrs = [
        ("id", element_id(block.index)),
        ("class", f"block block-{block.kind.value}"),
        (PARAGRAPH_INDEX_ATTR, str(block.index)),
    ]
    if block.word_offset:
        attrs.append((WORD_OFFSET_ATTR, str(block.word_offset)))
    if block.alignment and block.alignment != Alignment.LEFT:
        attrs.append(("style", f"text-align: {block.alignment.value};"))
    rendered_attrs = "".join(f' {name}="{html.escape(value)}"' for name, value in attrs)
    return f"<{tag}{rendered_attrs}>{render_inline(block.text, block.spans)}</{tag}>"


def render_inline(text: str, spans: Sequence[InlineSpan]) -> str:
    """Serialize text with its emphasis ranges as nested inline tags."""
    points = sorted({0, len(text)} | {span.start for span in spans} | {span.end for span in spans})
    out: List[str] = []
    for start, end in zip(points, points[1:]):
        segment = _escape_text(text[start:end])
        active = {span.mark for span in spans if span.start <= start and span.end >= end}
        tags = [tag for mark, tag in MARK_TAGS.items() if mark in active]
        opening = "".join(f"<{tag}>" for tag in tags)
        closing = "".join(f"</{tag}>" for tag in reversed(tags))
        out.append(f"{opening}{segment}{closing}")
    return "".join(out)


def _escape_text(text: str) -> str:
    return html.escape(text, quote=False).replace("\n", "<br/>")


def iter_text_nodes(element: Tag) -> Iterator[Tuple[Optional[NavigableString], str]]:
    """
    Yield the text of an element in document order. Line breaks yield
    ``(None, "\\n")`` so positions line up with ``Block.text``.
    """
    for node in element.descendants:
        if isinstance(node, PreformattedString):
            continue
        if isinstance(node, NavigableString):
            yield node, str(node)
        elif isinstance(node, Tag) and node.name == "br":
            yield None, "\n"


def element_text(element: Tag) -> str:
    return "".join(text for _, text in iter_text_nodes(element))


def extract_block_texts(markup: str) -> Dict[int, str]:
    soup = BeautifulSoup(markup, "html.parser")
    texts: Dict[int, str] = {}
    for element in soup.find_all(attrs={PARAGRAPH_INDEX_ATTR: True}):
        index = _paragraph_index(element)
        if index is not None:
            texts[index] = element_text(element)
    return texts


def resolve_activation(markup: str, target_id: str) -> Optional[int]:
    """
    Paragraph index of the activated element, looking through enclosing
    elements when the target is nested inside a block (e.g. an emphasis tag).
    """
    soup = BeautifulSoup(markup, "html.parser")
    element = soup.find(id=target_id)
    while isinstance(element, Tag):
        index = _paragraph_index(element)
        if index is not None:
            return index
        element = element.parent
    return None


def _paragraph_index(element: Tag) -> Optional[int]:
    value = element.get(PARAGRAPH_INDEX_ATTR)
    try:
        return int(value) if value is not None else None
    except ValueError:
        return None
