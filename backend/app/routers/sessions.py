"""
Sessions Router
Start/pause/resume/stop focus sessions, receive browser-extension reports,
and read the persisted history.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models.schemas import (
    BrowserStateResponse,
    BrowserUpdate,
    LiveSessionResponse,
    SessionStart,
    StopResponse,
    StudySessionDetail,
    StudySessionResponse,
)
from app.services import session_store
from app.services.session_manager import (
    FocusSession,
    SessionManager,
    SessionStateError,
    get_session_manager,
)

router = APIRouter(prefix="/api/sessions", tags=["Sessions"])


# Handlers touching a live session are async so they run on the event loop,
# the same thread as the sampler task.
def _live_session(session_id: str, manager: SessionManager) -> FocusSession:
    try:
        return manager.get(session_id)
    except KeyError:
        raise HTTPException(404, "Session not found")


@router.post("", response_model=LiveSessionResponse, status_code=201)
async def start_session(
    data: SessionStart,
    manager: SessionManager = Depends(get_session_manager),
):
    """Start recording a focus session"""
    session = manager.start_session(
        subject=data.subject,
        topic=data.topic,
        planned_minutes=data.planned_minutes,
        user_id=data.user_id,
    )
    return session.to_live_dict()


@router.get("/{session_id}/live", response_model=LiveSessionResponse)
async def get_live_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
):
    """Current tracking, browser context and verdict"""
    return _live_session(session_id, manager).to_live_dict()


@router.post("/{session_id}/pause", response_model=LiveSessionResponse)
async def pause_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
):
    session = _live_session(session_id, manager)
    try:
        session.pause()
    except SessionStateError as e:
        raise HTTPException(status.HTTP_409_CONFLICT, str(e))
    return session.to_live_dict()


@router.post("/{session_id}/resume", response_model=LiveSessionResponse)
async def resume_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
):
    session = _live_session(session_id, manager)
    try:
        session.resume()
    except SessionStateError as e:
        raise HTTPException(status.HTTP_409_CONFLICT, str(e))
    return session.to_live_dict()


@router.post("/{session_id}/stop", response_model=StopResponse)
async def stop_session(
    session_id: str,
    manager: SessionManager = Depends(get_session_manager),
):
    """Stop the session, persist it and return the report"""
    _live_session(session_id, manager)
    session = await manager.stop_session(session_id)
    return {
        "session_id": session.session_id,
        "start_time": session.data.start_time,
        "end_time": session.data.end_time,
        "persisted": session.persisted,
        "report": session.report,
    }


@router.post("/{session_id}/browser", response_model=BrowserStateResponse)
async def update_browser(
    session_id: str,
    data: BrowserUpdate,
    manager: SessionManager = Depends(get_session_manager),
):
    """Browser extension report of the active tab"""
    session = _live_session(session_id, manager)
    try:
        browser = session.update_browser(data.url, data.title)
    except ValueError as e:
        raise HTTPException(400, str(e))
    return browser.to_dict()


@router.get("", response_model=List[StudySessionResponse])
def list_sessions(
    user_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 20,
    db: Session = Depends(get_db),
):
    """Persisted session history, newest first"""
    return session_store.list_sessions(db, user_id=user_id, skip=skip, limit=limit)


@router.get("/{session_id}", response_model=StudySessionDetail)
def get_session(session_id: str, db: Session = Depends(get_db)):
    row = session_store.get_session(db, session_id)
    if not row:
        raise HTTPException(404, "Session not found")
    return row
