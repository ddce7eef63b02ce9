"""
Focus Engine Data Model
Enums, per-frame/per-second records and the session container shared by the
tracker, the classifier, the sampler and the metrics reducer.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# ============================================================================
# CONSTANTS
# ============================================================================

# Relaxed thresholds to allow for reading notes on the desk
HEAD_DOWN_PITCH_THRESHOLD = 25.0
LOOKING_AWAY_YAW_THRESHOLD = 25.0

# Temporal smoothing
POSE_BUFFER_SIZE = 15
PHONE_DETECTION_CONFIDENCE = 3
PHONE_COUNTER_MAX = 10
PHONE_FRAME_SKIP = 5
PHONE_MIN_SCORE = 0.5
PHONE_LABELS = frozenset({"cell phone", "mobile phone"})

# Landmark geometry -> pose-angle-like units
YAW_SCALE = 200.0
PITCH_SCALE = 150.0
PITCH_NEUTRAL_RATIO = 0.6

SLICE_MS = 1000


def round_half_up(value: float) -> int:
    """Round halves towards +inf (2.5 -> 3), unlike the builtin round()"""
    return int(math.floor(value + 0.5))


class FocusStatus(str, Enum):
    FOCUSED = "FOCUSED"
    PARTIAL = "PARTIAL"
    DISTRACTED = "DISTRACTED"


class DistractionType(str, Enum):
    NONE = "NONE"
    PHONE = "PHONE"
    WEB_DISTRACTION = "WEB_DISTRACTION"
    TAB_SWITCH = "TAB_SWITCH"
    LOOKING_AWAY = "LOOKING_AWAY"
    ABSENT = "ABSENT"


class DomainCategory(str, Enum):
    STUDY = "STUDY"
    NON_STUDY = "NON_STUDY"
    NEUTRAL = "NEUTRAL"


@dataclass(frozen=True)
class TrackingState:
    """Vision verdict for one inference tick"""
    is_face_present: bool = False
    is_head_down: bool = False
    is_looking_at_screen: bool = False
    is_phone_detected: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return {
            "is_face_present": self.is_face_present,
            "is_head_down": self.is_head_down,
            "is_looking_at_screen": self.is_looking_at_screen,
            "is_phone_detected": self.is_phone_detected,
        }


@dataclass(frozen=True)
class BrowserState:
    """Last page reported by the browser extension"""
    url: str
    domain: str
    title: str
    category: DomainCategory = DomainCategory.NEUTRAL

    def to_dict(self) -> Dict[str, str]:
        return {
            "url": self.url,
            "domain": self.domain,
            "title": self.title,
            "category": self.category.value,
        }


@dataclass(frozen=True)
class SliceMetadata:
    url: Optional[str] = None
    domain: Optional[str] = None


@dataclass(frozen=True)
class TimeSlice:
    """One second of classified session time"""
    timestamp: int
    status: FocusStatus
    distraction_type: DistractionType = DistractionType.NONE
    metadata: SliceMetadata = field(default_factory=SliceMetadata)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "status": self.status.value,
            "distraction_type": self.distraction_type.value,
            "metadata": {
                "url": self.metadata.url,
                "domain": self.metadata.domain,
            },
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeSlice":
        meta = data.get("metadata") or {}
        return cls(
            timestamp=int(data["timestamp"]),
            status=FocusStatus(data["status"]),
            distraction_type=DistractionType(data.get("distraction_type", "NONE")),
            metadata=SliceMetadata(url=meta.get("url"), domain=meta.get("domain")),
        )


@dataclass
class WebsiteVisit:
    domain: str
    category: DomainCategory
    duration: int = 0  # seconds

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domain": self.domain,
            "category": self.category.value,
            "duration": self.duration,
        }


@dataclass
class SessionData:
    """
    A study session being recorded.

    Slices are only ever appended; once ``end_time`` is set the session is
    read-only.
    """
    subject: str
    topic: str = ""
    planned_minutes: int = 0
    start_time: Optional[int] = None
    end_time: Optional[int] = None
    slices: List[TimeSlice] = field(default_factory=list)

    @property
    def is_finished(self) -> bool:
        return self.end_time is not None

    def append_slices(self, new_slices: List[TimeSlice]) -> None:
        if self.is_finished:
            raise RuntimeError("Cannot append slices to a finished session")
        self.slices.extend(new_slices)

    def finish(self, end_time: int) -> None:
        if self.end_time is None:
            self.end_time = end_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            "subject": self.subject,
            "topic": self.topic,
            "planned_minutes": self.planned_minutes,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "slices": [s.to_dict() for s in self.slices],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionData":
        return cls(
            subject=data.get("subject", ""),
            topic=data.get("topic", ""),
            planned_minutes=int(data.get("planned_minutes", 0)),
            start_time=data.get("start_time"),
            end_time=data.get("end_time"),
            slices=[TimeSlice.from_dict(s) for s in data.get("slices", [])],
        )
