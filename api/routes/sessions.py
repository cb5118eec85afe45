from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from novel_reader.content import (
    ChapterRepository,
    ContentEngine,
    HighlightCursor,
    NarrationSignal,
    ReaderSession,
)

from api.dependencies import SessionRegistry, get_engine, get_repo, get_sessions

router = APIRouter(prefix="/sessions", tags=["sessions"])


class SessionIn(BaseModel):
    chapter_id: str


class CursorIn(BaseModel):
    block_index: int
    word_start: int
    word_end: int


class SignalIn(BaseModel):
    signal: NarrationSignal


class ActivateIn(BaseModel):
    element_id: str


def _get_session(sessions: SessionRegistry, session_id: str) -> ReaderSession:
    session = sessions.get(session_id)
    if not session:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return session


def _session_state(session_id: str, session: ReaderSession) -> dict:
    return {
        "id": session_id,
        "chapter_id": session.chapter_id,
        "generation": session.generation,
        "narration": session.narration,
        "markup": session.markup,
    }


@router.post("")
def open_session(
    payload: SessionIn,
    repo: ChapterRepository = Depends(get_repo),
    engine: ContentEngine = Depends(get_engine),
    sessions: SessionRegistry = Depends(get_sessions),
):
    raw = repo.get_chapter_content(payload.chapter_id)
    if raw is None:
        raise HTTPException(status_code=404, detail=f"Chapter not found: {payload.chapter_id}")
    session = ReaderSession(engine=engine)
    session.load(payload.chapter_id, raw)
    session_id = sessions.open(session)
    return _session_state(session_id, session)


@router.get("/{session_id}")
def get_session(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    return _session_state(session_id, _get_session(sessions, session_id))


@router.post("/{session_id}/cursor")
def apply_cursor(session_id: str, payload: CursorIn, sessions: SessionRegistry = Depends(get_sessions)):
    session = _get_session(sessions, session_id)
    cursor = HighlightCursor(payload.block_index, payload.word_start, payload.word_end)
    update = session.handle_cursor(cursor)
    if update is None:
        return {"applied": False, "markup": session.markup, "scroll": None, "narration": session.narration}
    scroll = None
    if update.scroll:
        scroll = {"element_id": update.scroll.element_id, "behavior": update.scroll.behavior}
    return {"applied": update.applied, "markup": update.markup, "scroll": scroll, "narration": session.narration}


@router.post("/{session_id}/signal")
def send_signal(session_id: str, payload: SignalIn, sessions: SessionRegistry = Depends(get_sessions)):
    session = _get_session(sessions, session_id)
    state = session.handle_signal(payload.signal)
    return {"narration": state, "markup": session.markup}


@router.post("/{session_id}/activate")
def activate(session_id: str, payload: ActivateIn, sessions: SessionRegistry = Depends(get_sessions)):
    session = _get_session(sessions, session_id)
    return {"paragraph_index": session.activate(payload.element_id)}


@router.delete("/{session_id}")
def close_session(session_id: str, sessions: SessionRegistry = Depends(get_sessions)):
    if not sessions.close(session_id):
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return {"status": "closed", "id": session_id}
