"""
1 Hz time-slice sampler.

Driven by wall-clock deltas rather than trusting the timer period: each wakeup
emits one slice per elapsed second, so a 10 s scheduler gap still records 10
slices (all carrying the verdict computed at that wakeup).
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable, List, Optional, Tuple

from .classifier import classify_moment
from .states import (
    SLICE_MS,
    BrowserState,
    DistractionType,
    FocusStatus,
    SessionData,
    SliceMetadata,
    TimeSlice,
    TrackingState,
    round_half_up,
)

logger = logging.getLogger("intellistudy.focus.sampler")

StateSource = Callable[[], Tuple[Optional[TrackingState], BrowserState]]
Classifier = Callable[[Optional[TrackingState], BrowserState], Tuple[FocusStatus, DistractionType]]


def now_ms() -> int:
    return int(time.time() * 1000)


class TimeSliceSampler:
    """
    Appends TimeSlices to ``session`` while running.

    ``state_source`` returns the latest (tracking, browser) pair; the sampler
    never writes to either. ``last_tick == 0`` means unarmed. Pause disarms and
    resume re-arms at the resume time, so paused time never comes back as a
    catch-up burst while the first wakeup after resume still records its
    second.
    """

    def __init__(self, session: SessionData, state_source: StateSource,
                 classify: Classifier = classify_moment,
                 clock: Callable[[], int] = now_ms,
                 interval: float = 1.0):
        self.session = session
        self.state_source = state_source
        self.classify = classify
        self.clock = clock
        self.interval = interval

        self.last_tick = 0
        self.elapsed_seconds = 0
        self.running = False

    # ──────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────

    def start(self, now: Optional[int] = None):
        self.last_tick = now if now is not None else self.clock()
        self.running = True

    def pause(self):
        self.running = False
        self.last_tick = 0

    def resume(self, now: Optional[int] = None):
        if self.last_tick == 0:
            self.last_tick = now if now is not None else self.clock()
        self.running = True

    def stop(self):
        self.running = False
        self.last_tick = 0

    # ──────────────────────────────────────────────────────
    # Sampling
    # ──────────────────────────────────────────────────────

    def tick(self, now: Optional[int] = None) -> List[TimeSlice]:
        if not self.running:
            return []

        now = now if now is not None else self.clock()
        if self.last_tick == 0:
            self.last_tick = now
            return []

        delta = now - self.last_tick
        if delta < SLICE_MS:
            return []

        seconds_passed = round_half_up(delta / SLICE_MS)
        if seconds_passed > 1:
            logger.debug(f"Catching up {seconds_passed} slices after {delta} ms gap")

        tracking, browser = self.state_source()
        status, distraction = self.classify(tracking, browser)
        metadata = SliceMetadata(url=browser.url, domain=browser.domain)

        new_slices = [
            TimeSlice(
                timestamp=now - (seconds_passed - 1 - i) * SLICE_MS,
                status=status,
                distraction_type=distraction,
                metadata=metadata,
            )
            for i in range(seconds_passed)
        ]
        self.session.append_slices(new_slices)
        self.elapsed_seconds += seconds_passed
        self.last_tick = now
        return new_slices

    async def run(self, stop_event: Optional[asyncio.Event] = None,
                  on_slices: Optional[Callable[[List[TimeSlice]], Awaitable[None]]] = None):
        """Cooperative loop: wake every ``interval`` seconds until stopped or cancelled."""
        stop_event = stop_event or asyncio.Event()
        try:
            while not stop_event.is_set():
                try:
                    await asyncio.wait_for(stop_event.wait(), timeout=self.interval)
                except asyncio.TimeoutError:
                    pass
                if stop_event.is_set():
                    break
                new_slices = self.tick()
                if new_slices and on_slices is not None:
                    await on_slices(new_slices)
        finally:
            self.stop()
