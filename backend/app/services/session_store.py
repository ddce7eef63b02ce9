"""
IntelliStudy Session Store
Persistence collaborator: writes finished sessions and reads the history.
"""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session as SASession

from focus_model import SessionData
from app.core.database import SessionLocal
from app.models.study_session import StudySession

logger = logging.getLogger("intellistudy.sessions.store")


def save_session(
    session_id: str,
    user_id: Optional[str],
    data: SessionData,
    report: Dict[str, Any],
) -> bool:
    """
    Write a finished session with its cached report. Returns False (after
    logging and rolling back) when the write fails.
    """
    db: SASession = SessionLocal()
    try:
        row = StudySession(
            id=session_id,
            user_id=user_id,
            subject=data.subject,
            topic=data.topic,
            planned_minutes=data.planned_minutes,
            start_time=data.start_time,
            end_time=data.end_time,
            focus_score=report.get("focus_score", 0),
            metrics=report,
            slices=[s.to_dict() for s in data.slices],
        )
        db.add(row)
        db.commit()
        logger.info(
            "StudySession %s saved: %d slices, focus_score=%s",
            session_id, len(data.slices), row.focus_score,
        )
        return True
    except Exception as exc:
        logger.error("Failed to save StudySession %s: %s", session_id, exc)
        db.rollback()
        return False
    finally:
        db.close()


def list_sessions(
    db: SASession,
    user_id: Optional[str] = None,
    skip: int = 0,
    limit: int = 20,
) -> List[StudySession]:
    query = db.query(StudySession)
    if user_id is not None:
        query = query.filter(StudySession.user_id == user_id)
    return (
        query.order_by(StudySession.created_at.desc())
        .offset(skip)
        .limit(limit)
        .all()
    )


def get_session(db: SASession, session_id: str) -> Optional[StudySession]:
    return db.query(StudySession).filter(StudySession.id == session_id).first()
