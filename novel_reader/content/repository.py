from __future__ import annotations

from copy import deepcopy
from typing import Dict, List, Optional

from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine, delete, select
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from .models import ChapterRecord

Base = declarative_base()


class ChapterModel(Base):
    __tablename__ = "chapters"
    id = Column(String, primary_key=True)
    book_id = Column(String, index=True)
    number = Column(Integer)
    title = Column(String)
    content = Column(Text)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)


class ChapterRepository:
    """
    Persistence boundary for stored chapters. The content engine only ever
    reads the raw ``content`` column; writing it is the editor's job.
    """

    def get_chapter(self, chapter_id: str) -> Optional[ChapterRecord]:
        raise NotImplementedError

    def save_chapter(self, chapter: ChapterRecord) -> None:
        raise NotImplementedError

    def list_chapters(self, book_id: str) -> List[ChapterRecord]:
        raise NotImplementedError

    def delete_chapter(self, chapter_id: str) -> bool:
        raise NotImplementedError

    def get_chapter_content(self, chapter_id: str) -> Optional[str]:
        chapter = self.get_chapter(chapter_id)
        return chapter.content if chapter else None


class InMemoryChapterRepository(ChapterRepository):
    """
    In-memory store for local runs and tests. Keeps copies of records to
    avoid cross-mutation between calls.
    """

    def __init__(self):
        self.chapters: Dict[str, ChapterRecord] = {}

    def _clone(self, obj):
        return deepcopy(obj)

    def get_chapter(self, chapter_id: str) -> Optional[ChapterRecord]:
        chapter = self.chapters.get(chapter_id)
        return self._clone(chapter) if chapter else None

    def save_chapter(self, chapter: ChapterRecord) -> None:
        self.chapters[chapter.id] = self._clone(chapter)

    def list_chapters(self, book_id: str) -> List[ChapterRecord]:
        chapters = [c for c in self.chapters.values() if c.book_id == book_id]
        return [self._clone(c) for c in sorted(chapters, key=lambda c: (c.number, c.id))]

    def delete_chapter(self, chapter_id: str) -> bool:
        return self.chapters.pop(chapter_id, None) is not None


class SqlAlchemyChapterRepository(ChapterRepository):
    """
    SQL-backed repository using SQLAlchemy. Works with SQLite/Postgres URLs.
    """

    def __init__(self, database_url: str):
        self.engine = create_engine(database_url, future=True)
        Base.metadata.create_all(self.engine)
        self.SessionLocal = sessionmaker(bind=self.engine, expire_on_commit=False, future=True)

    def _session(self) -> Session:
        return self.SessionLocal()

    @staticmethod
    def _to_record(model: ChapterModel) -> ChapterRecord:
        return ChapterRecord(
            id=model.id,
            book_id=model.book_id,
            number=int(model.number or 0),
            title=model.title or "",
            content=model.content or "",
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def get_chapter(self, chapter_id: str) -> Optional[ChapterRecord]:
        with self._session() as session:
            model = session.get(ChapterModel, chapter_id)
            if not model:
                return None
            return self._to_record(model)

    def save_chapter(self, chapter: ChapterRecord) -> None:
        with self._session() as session:
            model = ChapterModel(
                id=chapter.id,
                book_id=chapter.book_id,
                number=chapter.number,
                title=chapter.title,
                content=chapter.content,
                created_at=chapter.created_at,
                updated_at=chapter.updated_at,
            )
            session.merge(model)
            session.commit()

    def list_chapters(self, book_id: str) -> List[ChapterRecord]:
        with self._session() as session:
            stmt = (
                select(ChapterModel)
                .where(ChapterModel.book_id == book_id)
                .order_by(ChapterModel.number, ChapterModel.id)
            )
            models = session.execute(stmt).scalars().all()
            return [self._to_record(m) for m in models]

    def delete_chapter(self, chapter_id: str) -> bool:
        with self._session() as session:
            result = session.execute(delete(ChapterModel).where(ChapterModel.id == chapter_id))
            session.commit()
            return bool(result.rowcount)
