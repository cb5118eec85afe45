from __future__ import annotations

import os
import uuid
from functools import lru_cache
from typing import Dict, List, Optional

from novel_reader.content import (
    ChapterRepository,
    ContentEngine,
    EngineConfig,
    ReaderSession,
    SqlAlchemyChapterRepository,
)


class SessionRegistry:
    """Open reader sessions, keyed by an opaque id."""

    def __init__(self):
        self.sessions: Dict[str, ReaderSession] = {}

    def open(self, session: ReaderSession) -> str:
        session_id = uuid.uuid4().hex
        self.sessions[session_id] = session
        return session_id

    def get(self, session_id: str) -> Optional[ReaderSession]:
        return self.sessions.get(session_id)

    def close(self, session_id: str) -> bool:
        return self.sessions.pop(session_id, None) is not None


def get_allowed_origins() -> List[str]:
    raw = os.getenv("CORS_ALLOW_ORIGINS", "*")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]


@lru_cache(maxsize=1)
def get_repo() -> ChapterRepository:
    db_url = os.getenv("DATABASE_URL", "sqlite+pysqlite:///./data/novel_reader.db")
    return SqlAlchemyChapterRepository(db_url)


@lru_cache(maxsize=1)
def get_engine() -> ContentEngine:
    budget = int(os.getenv("PAGE_WORD_BUDGET", "250"))
    engine_version = os.getenv("ENGINE_VERSION", "content-engine-1")
    return ContentEngine(EngineConfig(page_word_budget=budget, engine_version=engine_version))


@lru_cache(maxsize=1)
def get_sessions() -> SessionRegistry:
    return SessionRegistry()
