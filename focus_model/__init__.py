"""
IntelliStudy Focus Model Package
Per-second study focus classification from head pose, phone presence and
browser context.

Usage (feeding raw results from any vision stack):
    from focus_model import FocusTracker, TimeSliceSampler, SessionData
    from focus_model.classifier import DEFAULT_BROWSER_STATE

    tracker = FocusTracker()
    session = SessionData(subject="Calculus", topic="Limits", planned_minutes=25)
    sampler = TimeSliceSampler(session, lambda: (tracker.last_state, DEFAULT_BROWSER_STATE))
    sampler.start()

    state = tracker.update(face_landmarks, lambda: phone_detections)
    sampler.tick()

Usage (MediaPipe + YOLO on BGR frames):
    from focus_model.vision_backend import VisionBackend
    backend = VisionBackend()
    state = backend.process_frame(frame, tracker)
    backend.cleanup()
"""

from .states import (
    BrowserState,
    DistractionType,
    DomainCategory,
    FocusStatus,
    SessionData,
    SliceMetadata,
    TimeSlice,
    TrackingState,
    WebsiteVisit,
)
from .focus_core import Detection, FocusTracker, PhonePresenceDetector, PoseEstimator
from .classifier import browser_state_from_url, classify_domain, classify_moment
from .session_sampler import TimeSliceSampler
from .session_metrics import SessionMetrics, SessionMetricsAggregator, build_report

__all__ = [
    "BrowserState",
    "DistractionType",
    "DomainCategory",
    "FocusStatus",
    "SessionData",
    "SliceMetadata",
    "TimeSlice",
    "TrackingState",
    "WebsiteVisit",
    "Detection",
    "FocusTracker",
    "PhonePresenceDetector",
    "PoseEstimator",
    "browser_state_from_url",
    "classify_domain",
    "classify_moment",
    "TimeSliceSampler",
    "SessionMetrics",
    "SessionMetricsAggregator",
    "build_report",
]
