"""
Session Metrics
Reduces a finished session's slices into totals, a 0-100 focus score, the
site visit table and the report timeline.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Sequence

from .states import (
    DistractionType,
    DomainCategory,
    FocusStatus,
    TimeSlice,
    WebsiteVisit,
    round_half_up,
)

TIMELINE_CHUNK_SIZE = 10

TIMELINE_VALUES = {
    FocusStatus.FOCUSED: 1.0,
    FocusStatus.PARTIAL: 0.5,
    FocusStatus.DISTRACTED: 0.0,
}


def format_duration(seconds: int) -> str:
    m, s = divmod(int(seconds), 60)
    return f"{m}m {s}s"


@dataclass
class SessionMetrics:
    """Per-session summary (durations are slice counts, i.e. seconds)"""
    total_duration: int = 0
    focused_time: int = 0
    partial_time: int = 0
    raw_outside_time: int = 0
    phone_time: int = 0
    web_time: int = 0
    absent_time: int = 0
    focus_score: int = 0
    distraction_ratio: float = 0.0
    top_sites: List[WebsiteVisit] = field(default_factory=list)

    @property
    def outside_time(self) -> int:
        # Partial time is reported as "outside" in the summary view
        return self.raw_outside_time + self.partial_time

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_duration": self.total_duration,
            "focused_time": self.focused_time,
            "outside_time": self.outside_time,
            "phone_time": self.phone_time,
            "web_time": self.web_time,
            "absent_time": self.absent_time,
            "focus_score": self.focus_score,
            "distraction_ratio": round(self.distraction_ratio, 4),
            "top_sites": [s.to_dict() for s in self.top_sites],
        }


class SessionMetricsAggregator:
    """Pure reducer over an ordered slice sequence"""

    @staticmethod
    def aggregate(slices: Sequence[TimeSlice]) -> SessionMetrics:
        metrics = SessionMetrics()
        if not slices:
            return metrics

        sites: Dict[str, WebsiteVisit] = {}

        for s in slices:
            if s.status == FocusStatus.FOCUSED:
                metrics.focused_time += 1
            elif s.status == FocusStatus.PARTIAL:
                metrics.partial_time += 1
            else:
                metrics.raw_outside_time += 1

            if s.distraction_type == DistractionType.PHONE:
                metrics.phone_time += 1
            elif s.distraction_type == DistractionType.WEB_DISTRACTION:
                metrics.web_time += 1
            elif s.distraction_type in (DistractionType.ABSENT, DistractionType.LOOKING_AWAY):
                metrics.absent_time += 1

            domain = s.metadata.domain
            if domain:
                visit = sites.setdefault(domain, WebsiteVisit(domain=domain, category=DomainCategory.NEUTRAL))
                visit.duration += 1
                # Last slice touching the domain decides its category
                visit.category = (
                    DomainCategory.NON_STUDY
                    if s.distraction_type == DistractionType.WEB_DISTRACTION
                    else DomainCategory.STUDY
                )

        total = len(slices)
        metrics.total_duration = total

        weighted = (metrics.focused_time * 1.0 + metrics.partial_time * 0.5) / total
        metrics.focus_score = min(100, max(0, round_half_up(weighted * 100)))
        metrics.distraction_ratio = metrics.raw_outside_time / total
        metrics.top_sites = sorted(sites.values(), key=lambda v: v.duration, reverse=True)
        return metrics


def build_timeline(slices: Sequence[TimeSlice],
                   chunk_size: int = TIMELINE_CHUNK_SIZE) -> List[Dict[str, Any]]:
    """Compress slices into chunks tagged with their dominant status."""
    timeline = []
    for start in range(0, len(slices), chunk_size):
        chunk = slices[start:start + chunk_size]
        counts: Dict[FocusStatus, int] = {}
        for s in chunk:
            counts[s.status] = counts.get(s.status, 0) + 1

        # Ties go to the status that first appeared later in the chunk
        dominant = None
        for status in counts:
            if dominant is None or counts[status] >= counts[dominant]:
                dominant = status

        timeline.append({
            "time": format_duration(start),
            "status": TIMELINE_VALUES[dominant],
        })
    return timeline


def time_breakdown(metrics: SessionMetrics) -> List[Dict[str, Any]]:
    rows = [
        ("Focused Study", metrics.focused_time),
        ("Phone Usage", metrics.phone_time),
        ("Bad Websites", metrics.web_time),
        ("Away/Idle", metrics.absent_time),
    ]
    return [{"name": name, "value": value} for name, value in rows if value > 0]


def build_report(slices: Iterable[TimeSlice]) -> Dict[str, Any]:
    slices = list(slices)
    metrics = SessionMetricsAggregator.aggregate(slices)
    return {
        **metrics.to_dict(),
        "breakdown": time_breakdown(metrics),
        "timeline": build_timeline(slices),
    }
