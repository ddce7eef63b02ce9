"""
Focus classification rules.
Maps a domain to a coarse category and fuses vision + browser context into a
(status, distraction) verdict.
"""

from typing import Optional, Tuple
from urllib.parse import urlparse

from .states import (
    BrowserState,
    DistractionType,
    DomainCategory,
    FocusStatus,
    TrackingState,
)

STUDY_KEYWORDS = ("canvas", "wikipedia", "github", "stackoverflow", ".edu")
NON_STUDY_KEYWORDS = ("youtube", "instagram", "twitter", "facebook", "tiktok", "reddit")

DEFAULT_BROWSER_STATE = BrowserState(
    url="https://canvas.school.edu/courses/101",
    domain="canvas.school.edu",
    title="LMS - Calculus 101",
    category=DomainCategory.STUDY,
)


def classify_domain(domain: Optional[str]) -> DomainCategory:
    d = (domain or "").lower()
    if any(k in d for k in STUDY_KEYWORDS):
        return DomainCategory.STUDY
    if any(k in d for k in NON_STUDY_KEYWORDS):
        return DomainCategory.NON_STUDY
    return DomainCategory.NEUTRAL


def browser_state_from_url(url: str, title: Optional[str] = None) -> BrowserState:
    """Build a BrowserState from an extension report. Raises ValueError on a URL without host."""
    domain = urlparse(url or "").hostname
    if not domain:
        raise ValueError(f"Cannot extract a domain from URL: {url!r}")
    return BrowserState(
        url=url,
        domain=domain,
        title=title or domain,
        category=classify_domain(domain),
    )


def classify_moment(tracking: Optional[TrackingState],
                    browser: BrowserState) -> Tuple[FocusStatus, DistractionType]:
    """
    First matching rule wins. Order is by severity: a phone in view beats a
    distracting site, which beats absence, posture and gaze.
    """
    if tracking is not None and tracking.is_phone_detected:
        return FocusStatus.DISTRACTED, DistractionType.PHONE
    if browser.category == DomainCategory.NON_STUDY:
        return FocusStatus.DISTRACTED, DistractionType.WEB_DISTRACTION
    if tracking is None or not tracking.is_face_present:
        return FocusStatus.DISTRACTED, DistractionType.ABSENT
    # Head-down posture is tagged PHONE as well
    if tracking.is_head_down:
        return FocusStatus.DISTRACTED, DistractionType.PHONE
    if not tracking.is_looking_at_screen:
        return FocusStatus.PARTIAL, DistractionType.LOOKING_AWAY
    if browser.category == DomainCategory.STUDY:
        return FocusStatus.FOCUSED, DistractionType.NONE
    return FocusStatus.PARTIAL, DistractionType.NONE
