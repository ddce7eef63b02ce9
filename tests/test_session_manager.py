import asyncio
import threading

import pytest

from focus_model.states import DistractionType, DomainCategory, FocusStatus, SessionData, TrackingState
from app.core.database import SessionLocal
from app.services import session_store
from app.services.session_manager import (
    FocusSession,
    SessionManager,
    SessionStateError,
    SessionStatus,
)

ATTENTIVE = TrackingState(
    is_face_present=True,
    is_head_down=False,
    is_looking_at_screen=True,
    is_phone_detected=False,
)


class SlowVisionService:
    """Async inference stand-in that records overlapping calls"""

    def __init__(self, delay=0.05):
        self.delay = delay
        self.active = 0
        self.max_active = 0
        self.events = []

    async def process_frame(self, frame, tracker):
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        await asyncio.sleep(self.delay)
        self.active -= 1
        self.events.append("frame")
        return ATTENTIVE


@pytest.fixture
def manager(clock):
    return SessionManager(clock=clock)


@pytest.fixture
def session(manager):
    return manager.start_session("Calculus", topic="Limits", planned_minutes=30,
                                 user_id="student-1", run_sampler=False)


def tick_seconds(session, clock, seconds):
    for _ in range(seconds):
        clock.advance(1000)
        session.sampler.tick()


def test_start_session(session, clock):
    assert session.status == SessionStatus.RUNNING
    assert session.data.start_time == clock.now
    assert len(session.session_id) == 32
    # default browser context is the configured LMS page
    assert session.browser.category == DomainCategory.STUDY


def test_get_unknown_session(manager):
    with pytest.raises(KeyError):
        manager.get("nope")


def test_sessions_are_isolated(manager):
    a = manager.start_session("A", run_sampler=False)
    b = manager.start_session("B", run_sampler=False)
    a.update_tracking(ATTENTIVE)
    assert b.tracking is None
    assert a.tracker is not b.tracker


def test_no_frames_records_absent(session, clock):
    tick_seconds(session, clock, 3)
    assert [s.distraction_type for s in session.data.slices] == [DistractionType.ABSENT] * 3


def test_tracking_and_browser_feed_slices(session, clock):
    session.update_tracking(ATTENTIVE)
    tick_seconds(session, clock, 2)
    session.update_browser("https://www.youtube.com/watch?v=1", "Video")
    tick_seconds(session, clock, 2)

    statuses = [(s.status, s.distraction_type) for s in session.data.slices]
    assert statuses == [
        (FocusStatus.FOCUSED, DistractionType.NONE),
        (FocusStatus.FOCUSED, DistractionType.NONE),
        (FocusStatus.DISTRACTED, DistractionType.WEB_DISTRACTION),
        (FocusStatus.DISTRACTED, DistractionType.WEB_DISTRACTION),
    ]
    assert session.data.slices[-1].metadata.domain == "www.youtube.com"


def test_bad_browser_url_keeps_previous_state(session):
    before = session.browser
    with pytest.raises(ValueError):
        session.update_browser("not a url")
    assert session.browser is before


def test_none_tracking_keeps_last_state(session):
    session.update_tracking(ATTENTIVE)
    session.update_tracking(None)
    assert session.tracking is ATTENTIVE


def test_pause_and_resume(session, clock):
    tick_seconds(session, clock, 2)
    session.pause()
    assert session.status == SessionStatus.PAUSED
    tick_seconds(session, clock, 30)
    session.resume()
    tick_seconds(session, clock, 2)
    # paused seconds are skipped, running ones all recorded
    assert len(session.data.slices) == 4
    assert session.sampler.elapsed_seconds == 4


def test_stop_persists_and_reports(manager, session, clock):
    session.update_tracking(ATTENTIVE)
    tick_seconds(session, clock, 4)

    stopped = asyncio.run(manager.stop_session(session.session_id))

    assert stopped.status == SessionStatus.STOPPED
    assert stopped.persisted is True
    assert stopped.data.end_time == clock.now
    assert stopped.report["focus_score"] == 100
    assert stopped.report["total_duration"] == 4

    db = SessionLocal()
    try:
        row = session_store.get_session(db, session.session_id)
        assert row is not None
        assert row.user_id == "student-1"
        assert row.focus_score == 100
        assert len(row.slices) == 4
        assert row.slices[0]["status"] == "FOCUSED"
    finally:
        db.close()


def test_stop_is_idempotent(manager, session, clock):
    tick_seconds(session, clock, 2)
    first = asyncio.run(manager.stop_session(session.session_id))
    report = first.report
    clock.advance(5000)
    second = asyncio.run(manager.stop_session(session.session_id))
    assert second.report is report
    assert second.data.end_time == first.data.end_time


def test_no_slices_after_stop(manager, session, clock):
    asyncio.run(manager.stop_session(session.session_id))
    tick_seconds(session, clock, 3)
    assert session.data.slices == []
    session.update_tracking(ATTENTIVE)
    assert session.tracking is None


def test_pause_after_stop_is_rejected(manager, session):
    asyncio.run(manager.stop_session(session.session_id))
    with pytest.raises(SessionStateError):
        session.pause()
    with pytest.raises(SessionStateError):
        session.resume()


def test_stop_survives_persistence_failure(manager, session, monkeypatch):
    monkeypatch.setattr(session_store, "save_session", lambda *args, **kwargs: False)
    stopped = asyncio.run(manager.stop_session(session.session_id))
    assert stopped.persisted is False
    assert stopped.report is not None


def test_stop_cancels_sampler_task(manager, clock):
    async def main():
        session = manager.start_session("Physics")
        assert session._task is not None
        await asyncio.sleep(0)
        await manager.stop_session(session.session_id)
        return session

    session = asyncio.run(main())
    assert session._task.done()
    assert not session.sampler.running


def test_shutdown_all_stops_everything(manager):
    manager.start_session("A", run_sampler=False)
    manager.start_session("B", run_sampler=False)
    asyncio.run(manager.shutdown_all())
    assert all(s.report is not None for s in manager.sessions.values())


def test_stopped_sessions_are_evicted(manager, monkeypatch):
    monkeypatch.setattr(SessionManager, "MAX_STOPPED", 2)
    monkeypatch.setattr(session_store, "save_session", lambda *args, **kwargs: True)
    ids = []
    for i in range(4):
        ids.append(manager.start_session(f"S{i}", run_sampler=False).session_id)
        asyncio.run(manager.stop_session(ids[-1]))
    assert list(manager.sessions) == ids[-2:]


def test_frames_on_one_session_are_serialised(session):
    service = SlowVisionService()

    async def main():
        return await asyncio.gather(
            session.track_frame(service, object()),
            session.track_frame(service, object()),
            session.track_frame(service, object()),
        )

    states = asyncio.run(main())
    assert states == [ATTENTIVE] * 3
    assert service.max_active == 1
    assert session.tracking is ATTENTIVE


def test_shutdown_waits_for_in_flight_frame(session, monkeypatch):
    service = SlowVisionService()
    monkeypatch.setattr(session.tracker, "reset", lambda: service.events.append("reset"))

    async def main():
        in_flight = asyncio.create_task(session.track_frame(service, object()))
        await asyncio.sleep(0.01)
        await session.shutdown()
        late = await session.track_frame(service, object())
        return await in_flight, late

    first, late = asyncio.run(main())
    assert first is ATTENTIVE
    assert late is None
    assert service.events == ["frame", "reset"]


def test_sampler_interval_comes_from_config(clock):
    config = {
        "detection": {"HEAD_DOWN_PITCH_THRESHOLD": 30.0},
        "timing": {"SAMPLE_INTERVAL_SECONDS": 0.25},
    }
    session = FocusSession("abc", SessionData(subject="Chemistry"), clock=clock, config=config)
    assert session.sampler.interval == 0.25
    assert session.tracker.pose_estimator.head_down_threshold == 30.0


def test_session_is_saved_off_the_event_loop(manager, session, monkeypatch):
    threads = {}

    def save(*args, **kwargs):
        threads["save"] = threading.get_ident()
        return True

    monkeypatch.setattr(session_store, "save_session", save)

    async def main():
        threads["loop"] = threading.get_ident()
        return await manager.stop_session(session.session_id)

    stopped = asyncio.run(main())
    assert stopped.persisted is True
    assert threads["save"] != threads["loop"]
