"""
Study Session Model
One row per finished focus session: the raw slices plus the cached report.
"""

from sqlalchemy import Column, Integer, String, DateTime, JSON, BigInteger
from datetime import datetime
from app.core.database import Base


class StudySession(Base):
    __tablename__ = "study_sessions"

    id = Column(String(32), primary_key=True, index=True)
    user_id = Column(String(64), nullable=True, index=True)
    subject = Column(String(200), nullable=False)
    topic = Column(String(200), default="")
    planned_minutes = Column(Integer, default=0)
    start_time = Column(BigInteger, nullable=True)   # ms epoch
    end_time = Column(BigInteger, nullable=True)     # ms epoch
    focus_score = Column(Integer, default=0)
    metrics = Column(JSON, nullable=True)
    slices = Column(JSON, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
