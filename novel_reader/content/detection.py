"""
Format detection for stored chapter bodies.

A chapter body is one of three things: the editor's JSON document tree, an
HTML fragment, or plain text with blank lines between paragraphs. Detection
tries them in that order and the first match wins; a body that matches
nothing is plain text, so detection never fails.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from bs4 import BeautifulSoup

from .models import ContentFormat

logger = logging.getLogger(__name__)

CLOSING_BLOCK_TAG = re.compile(r"</\s*(p|h[1-6]|ul|ol|li|blockquote|table)\s*>", re.IGNORECASE)
PARAGRAPH_BREAK = re.compile(r"\n\s*\n")


@dataclass
class StructuredTree:
    document: Dict[str, Any]
    raw: str = ""
    format: ContentFormat = ContentFormat.STRUCTURED


@dataclass
class MarkupDocument:
    soup: BeautifulSoup
    raw: str = ""
    format: ContentFormat = ContentFormat.MARKUP


@dataclass
class PlainText:
    paragraphs: List[str]
    format: ContentFormat = ContentFormat.PLAIN_TEXT


ParsedContent = Union[StructuredTree, MarkupDocument, PlainText]


def detect_format(raw: Optional[str]) -> ParsedContent:
    raw = raw or ""
    tree = _as_structured_tree(raw)
    if tree is not None:
        logger.debug("Classified content as structured tree (%d top-level nodes)", len(tree.document["content"]))
        return tree
    if looks_like_markup(raw):
        logger.debug("Classified content as markup (%d chars)", len(raw))
        return MarkupDocument(soup=BeautifulSoup(raw, "html.parser"), raw=raw)
    paragraphs = split_paragraphs(raw)
    logger.debug("Classified content as plain text (%d paragraphs)", len(paragraphs))
    return PlainText(paragraphs=paragraphs)


def _as_structured_tree(raw: str) -> Optional[StructuredTree]:
    stripped = raw.strip()
    if not stripped.startswith("{"):
        return None
    try:
        document = json.loads(stripped)
    except (ValueError, RecursionError):
        logger.debug("Content looks like JSON but does not decode; trying other formats")
        return None
    if not isinstance(document, dict):
        return None
    if document.get("type") != "doc" or not isinstance(document.get("content"), list):
        return None
    return StructuredTree(document=document, raw=raw)


def looks_like_markup(raw: str) -> bool:
    return raw.strip().startswith("<") and CLOSING_BLOCK_TAG.search(raw) is not None


def split_paragraphs(raw: str) -> List[str]:
    """
    Split plain text on blank lines. Single newlines stay inside the paragraph
    as soft breaks; trailing spaces on each line are dropped.
    """
    text = raw.replace("\r\n", "\n").replace("\r", "\n")
    paragraphs = []
    for chunk in PARAGRAPH_BREAK.split(text):
        lines = [line.rstrip() for line in chunk.strip("\n").split("\n")]
        paragraph = "\n".join(lines).strip()
        paragraphs.append(paragraph)
    return paragraphs
