"""
Example: run a stored chapter body through the content engine and simulate a
narration pass over it.

Usage:
    python3 reader_demo.py --file chapter.html --chapter-id ch-1 --budget 250
"""

import argparse
import logging
from pathlib import Path

from novel_reader.content import (
    ChapterRecord,
    ContentEngine,
    EngineConfig,
    HighlightCursor,
    NarrationSignal,
    ReaderSession,
    SqlAlchemyChapterRepository,
)


def setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--file", required=True, type=Path, help="Chapter body (JSON tree, HTML or plain text)")
    parser.add_argument("--chapter-id", default="chapter-demo", help="Chapter id (for DB)")
    parser.add_argument("--book-id", default="book-demo", help="Book id the chapter belongs to")
    parser.add_argument("--title", default="Demo chapter", help="Chapter title")
    parser.add_argument("--db", default=Path("./data/novel_reader.db"), type=Path, help="SQLite DB path")
    parser.add_argument("--budget", default=250, type=int, help="Words per page in page-flip mode")
    parser.add_argument("--words-per-tick", default=3, type=int, help="Words highlighted per narration tick")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    args = parser.parse_args()
    setup_logging(args.verbose)

    if not args.file.exists():
        raise FileNotFoundError(f"Chapter file not found: {args.file}")

    args.db.parent.mkdir(parents=True, exist_ok=True)
    repo = SqlAlchemyChapterRepository(f"sqlite+pysqlite:///{args.db}")
    repo.save_chapter(
        ChapterRecord(
            id=args.chapter_id,
            book_id=args.book_id,
            number=1,
            title=args.title,
            content=args.file.read_text(encoding="utf-8"),
        )
    )

    engine = ContentEngine(EngineConfig(page_word_budget=args.budget))
    session = ReaderSession(engine=engine, on_activate=lambda index: print(f"Seek narration to paragraph {index}"))
    content = session.load(args.chapter_id, repo.get_chapter_content(args.chapter_id))

    print(f"Detected format={content.format.value}, blocks={len(content.blocks)}")
    if content.is_empty:
        print(content.message)
        return
    for block in content.blocks:
        print(f"  [{block.index}] {block.kind.value}: {block.text[:60]!r}")

    pages = session.pages()
    print(f"Paginated into {len(pages)} pages (budget={args.budget})")
    for page in pages:
        print(f"  page {page.number}: {page.word_count} words, blocks {page.block_indices}")

    session.handle_signal(NarrationSignal.PLAY)
    first = content.blocks[0]
    for start in range(0, first.word_count, args.words_per_tick):
        cursor = HighlightCursor(first.index, start, min(start + args.words_per_tick, first.word_count))
        update = session.handle_cursor(cursor)
        if update and update.scroll:
            print(f"Scroll to #{update.scroll.element_id}")
    session.handle_signal(NarrationSignal.STOP)
    session.activate(f"para-{content.blocks[-1].index}")
    print(f"Narration finished with state={session.narration.value}")


if __name__ == "__main__":
    main()
