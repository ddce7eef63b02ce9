"""
IntelliStudy Session Manager
Owns every live focus session: its tracker (inference-side state), its
browser context, its sampler task and, at the end, the hand-off to the
session store.
"""

import asyncio
import logging
import uuid
from collections import OrderedDict
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from focus_model import (
    BrowserState,
    FocusTracker,
    SessionData,
    TimeSliceSampler,
    TrackingState,
    browser_state_from_url,
    build_report,
    classify_moment,
)
from focus_model.classifier import DEFAULT_BROWSER_STATE
from focus_model.session_sampler import now_ms
from app.core.config import settings
from app.services import session_store
from app.services.websocket_manager import ws_manager

logger = logging.getLogger("intellistudy.sessions")


class SessionStatus(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    STOPPED = "stopped"


class SessionStateError(Exception):
    """Action not allowed in the session's current state"""


def default_browser_state() -> BrowserState:
    try:
        return browser_state_from_url(settings.DEFAULT_BROWSER_URL, settings.DEFAULT_BROWSER_TITLE)
    except ValueError:
        logger.warning(f"Invalid DEFAULT_BROWSER_URL {settings.DEFAULT_BROWSER_URL!r}, using built-in default")
        return DEFAULT_BROWSER_STATE


class FocusSession:
    """
    One running session. Frames go through ``track_frame``, which holds
    ``frame_lock`` so the tracker has one writer however many sockets feed
    it; the sampler is the only writer of the slices.
    """

    def __init__(self, session_id: str, data: SessionData, user_id: Optional[str] = None,
                 clock=now_ms, config: Optional[Dict[str, Any]] = None):
        self.session_id = session_id
        self.user_id = user_id
        self.data = data
        self.status = SessionStatus.RUNNING

        config = config if config is not None else settings.focus_config()
        timing = config.get("timing", {})

        self.tracker = FocusTracker(config)
        self.frame_lock = asyncio.Lock()
        self.tracking: Optional[TrackingState] = None
        self.browser: BrowserState = default_browser_state()

        self.sampler = TimeSliceSampler(
            data,
            self.current_state,
            clock=clock,
            interval=timing.get("SAMPLE_INTERVAL_SECONDS", 1.0),
        )
        self._stop_event: Optional[asyncio.Event] = None
        self._task: Optional[asyncio.Task] = None

        self.report: Optional[Dict[str, Any]] = None
        self.persisted = False

    # ──────────────────────────────────────────────────────
    # Inputs
    # ──────────────────────────────────────────────────────

    def current_state(self) -> Tuple[Optional[TrackingState], BrowserState]:
        return self.tracking, self.browser

    @property
    def accepts_frames(self) -> bool:
        return self.status != SessionStatus.STOPPED

    def update_tracking(self, state: Optional[TrackingState]):
        if self.accepts_frames and state is not None:
            self.tracking = state

    async def track_frame(self, service, frame) -> Optional[TrackingState]:
        """
        Run one inference tick on this session's tracker. Returns None
        without touching the tracker once the session has stopped.
        """
        async with self.frame_lock:
            if not self.accepts_frames:
                return None
            state = await service.process_frame(frame, self.tracker)
            self.update_tracking(state)
            return state

    def update_browser(self, url: str, title: Optional[str] = None) -> BrowserState:
        """Raises ValueError for a URL without host; the previous state stays in effect."""
        self.browser = browser_state_from_url(url, title)
        return self.browser

    def classification(self):
        return classify_moment(self.tracking, self.browser)

    # ──────────────────────────────────────────────────────
    # Sampler task
    # ──────────────────────────────────────────────────────

    def start(self, run_sampler: bool = True):
        self.data.start_time = self.sampler.clock()
        self.sampler.start(self.data.start_time)
        if run_sampler:
            self._stop_event = asyncio.Event()
            self._task = asyncio.create_task(
                self.sampler.run(self._stop_event, on_slices=self._publish_slices),
                name=f"sampler-{self.session_id}",
            )

    async def _publish_slices(self, slices):
        await ws_manager.send_slices(self.session_id, slices)

    def pause(self):
        if self.status == SessionStatus.STOPPED:
            raise SessionStateError("Session already stopped")
        self.status = SessionStatus.PAUSED
        self.sampler.pause()

    def resume(self):
        if self.status == SessionStatus.STOPPED:
            raise SessionStateError("Session already stopped")
        self.status = SessionStatus.RUNNING
        self.sampler.resume()

    async def shutdown(self):
        """
        Halt inference, then the sampler, then release tracker state. Every
        step runs even if an earlier one failed, and repeating is harmless.
        """
        self.status = SessionStatus.STOPPED

        try:
            if self._stop_event is not None:
                self._stop_event.set()
            if self._task is not None and not self._task.done():
                self._task.cancel()
                try:
                    await self._task
                except asyncio.CancelledError:
                    pass
            self.sampler.stop()
        except Exception as e:
            logger.error(f"Sampler shutdown failed for {self.session_id}: {e}")

        try:
            # Waits for an in-flight frame so nothing refills the buffers
            async with self.frame_lock:
                self.tracker.reset()
        except Exception as e:
            logger.error(f"Tracker release failed for {self.session_id}: {e}")

    def to_live_dict(self) -> Dict[str, Any]:
        status, distraction = self.classification()
        return {
            "session_id": self.session_id,
            "state": self.status.value,
            "subject": self.data.subject,
            "topic": self.data.topic,
            "planned_minutes": self.data.planned_minutes,
            "elapsed_seconds": self.sampler.elapsed_seconds,
            "slice_count": len(self.data.slices),
            "tracking": self.tracking.to_dict() if self.tracking else None,
            "browser": self.browser.to_dict(),
            "classification": {
                "status": status.value,
                "distraction_type": distraction.value,
            },
        }


class SessionManager:
    """Registry of live sessions; keeps the last few stopped ones for repeat stop calls."""

    MAX_STOPPED = 100

    def __init__(self, clock=now_ms):
        self.clock = clock
        self.sessions: "OrderedDict[str, FocusSession]" = OrderedDict()

    def start_session(self, subject: str, topic: str = "", planned_minutes: int = 0,
                      user_id: Optional[str] = None, run_sampler: bool = True) -> FocusSession:
        session_id = uuid.uuid4().hex
        data = SessionData(subject=subject, topic=topic, planned_minutes=planned_minutes)
        session = FocusSession(session_id, data, user_id=user_id, clock=self.clock)
        session.start(run_sampler=run_sampler)
        self.sessions[session_id] = session
        logger.info(f"Session {session_id} started (subject={subject!r}, user_id={user_id})")
        return session

    def get(self, session_id: str) -> FocusSession:
        session = self.sessions.get(session_id)
        if session is None:
            raise KeyError(session_id)
        return session

    async def stop_session(self, session_id: str) -> FocusSession:
        session = self.get(session_id)
        if session.report is not None:
            return session

        await session.shutdown()
        session.data.finish(self.clock())
        session.report = build_report(session.data.slices)
        loop = asyncio.get_running_loop()
        session.persisted = await loop.run_in_executor(
            None, session_store.save_session,
            session_id, session.user_id, session.data, session.report,
        )
        logger.info(
            f"Session {session_id} stopped: {len(session.data.slices)} slices, "
            f"focus_score={session.report['focus_score']}"
        )

        try:
            await ws_manager.send_session_ended(session_id, session.report)
        except Exception as e:
            logger.warning(f"Session end broadcast failed: {e}")

        self._evict_stopped()
        return session

    async def shutdown_all(self):
        for session_id in list(self.sessions):
            if self.sessions[session_id].report is None:
                await self.stop_session(session_id)

    def _evict_stopped(self):
        stopped = [sid for sid, s in self.sessions.items() if s.report is not None]
        for sid in stopped[:-self.MAX_STOPPED]:
            del self.sessions[sid]


# Global instance
session_manager = SessionManager()


def get_session_manager() -> SessionManager:
    return session_manager
