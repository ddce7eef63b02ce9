"""
Pydantic Schemas for API request/response validation
"""

from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional
from datetime import datetime


# ── Session lifecycle ────────────────────────────────────
class SessionStart(BaseModel):
    subject: str = Field(min_length=1)
    topic: str = ""
    planned_minutes: int = Field(default=25, ge=0)
    user_id: Optional[str] = None


class BrowserUpdate(BaseModel):
    url: str
    title: Optional[str] = None


# ── Live state ───────────────────────────────────────────
class TrackingStateResponse(BaseModel):
    is_face_present: bool
    is_head_down: bool
    is_looking_at_screen: bool
    is_phone_detected: bool


class BrowserStateResponse(BaseModel):
    url: str
    domain: str
    title: str
    category: str


class ClassificationResponse(BaseModel):
    status: str
    distraction_type: str


class LiveSessionResponse(BaseModel):
    session_id: str
    state: str                      # running, paused, stopped
    subject: str
    topic: str
    planned_minutes: int
    elapsed_seconds: int
    slice_count: int
    tracking: Optional[TrackingStateResponse] = None
    browser: BrowserStateResponse
    classification: ClassificationResponse


# ── Reports ──────────────────────────────────────────────
class WebsiteVisitResponse(BaseModel):
    domain: str
    category: str
    duration: int


class SessionReport(BaseModel):
    total_duration: int
    focused_time: int
    outside_time: int
    phone_time: int
    web_time: int
    absent_time: int
    focus_score: int
    distraction_ratio: float
    top_sites: List[WebsiteVisitResponse]
    breakdown: List[Dict[str, Any]]
    timeline: List[Dict[str, Any]]


class StopResponse(BaseModel):
    session_id: str
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    persisted: bool
    report: SessionReport


class StudySessionResponse(BaseModel):
    id: str
    user_id: Optional[str] = None
    subject: str
    topic: str
    planned_minutes: int
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    focus_score: int
    metrics: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True


class StudySessionDetail(StudySessionResponse):
    slices: Optional[List[Dict[str, Any]]] = None
