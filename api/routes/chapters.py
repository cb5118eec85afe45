from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from novel_reader.content import (
    READER_STYLESHEET,
    ChapterRecord,
    ChapterRepository,
    ContentEngine,
)

from api.dependencies import get_engine, get_repo

router = APIRouter(prefix="/chapters", tags=["chapters"])


class ChapterIn(BaseModel):
    id: str
    book_id: str
    number: int = 0
    title: str = ""
    content: str = ""


def _get_chapter(repo: ChapterRepository, chapter_id: str) -> ChapterRecord:
    chapter = repo.get_chapter(chapter_id)
    if not chapter:
        raise HTTPException(status_code=404, detail=f"Chapter not found: {chapter_id}")
    return chapter


def _chapter_summary(chapter: ChapterRecord) -> dict:
    return {
        "id": chapter.id,
        "book_id": chapter.book_id,
        "number": chapter.number,
        "title": chapter.title,
    }


@router.post("")
def create_chapter(payload: ChapterIn, repo: ChapterRepository = Depends(get_repo)):
    if repo.get_chapter(payload.id):
        raise HTTPException(status_code=409, detail=f"Chapter already exists: {payload.id}")
    chapter = ChapterRecord(
        id=payload.id,
        book_id=payload.book_id,
        number=payload.number,
        title=payload.title,
        content=payload.content,
    )
    repo.save_chapter(chapter)
    return _chapter_summary(chapter)


@router.get("/{chapter_id}")
def get_chapter(chapter_id: str, repo: ChapterRepository = Depends(get_repo)):
    return _chapter_summary(_get_chapter(repo, chapter_id))


@router.get("/{chapter_id}/content")
def get_chapter_content(
    chapter_id: str,
    repo: ChapterRepository = Depends(get_repo),
    engine: ContentEngine = Depends(get_engine),
):
    chapter = _get_chapter(repo, chapter_id)
    content = engine.load(chapter.content)
    return {
        "chapter_id": chapter.id,
        "format": content.format,
        "empty": content.is_empty,
        "message": content.message,
        "blocks": [
            {
                "index": block.index,
                "kind": block.kind,
                "text": block.text,
                "alignment": block.alignment,
                "spans": [{"mark": s.mark, "start": s.start, "end": s.end} for s in block.spans],
            }
            for block in content.blocks
        ],
        "markup": content.rendered.markup,
        "element_ids": content.rendered.element_ids,
        "stylesheet": READER_STYLESHEET,
    }


@router.get("/{chapter_id}/pages")
def get_chapter_pages(
    chapter_id: str,
    budget: Optional[int] = None,
    repo: ChapterRepository = Depends(get_repo),
    engine: ContentEngine = Depends(get_engine),
):
    chapter = _get_chapter(repo, chapter_id)
    blocks = engine.canonicalize(chapter.content)
    pages = engine.paginate(blocks, budget)
    return {
        "chapter_id": chapter.id,
        "word_budget": budget if budget is not None else engine.config.page_word_budget,
        "pages": [
            {
                "number": page.number,
                "markup": page.markup,
                "word_count": page.word_count,
                "block_indices": page.block_indices,
            }
            for page in pages
        ],
    }
