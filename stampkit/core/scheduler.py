from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

TimerFactory = Callable[[float, Callable[[], None]], Any]


class DebounceTimer:
    """Runs `callback` once `delay_s` has passed without a new trigger.

    Every `trigger` cancels the pending timer and arms a fresh one, so only
    the last request in a burst fires. A superseded timer that fires anyway
    (cancel raced with expiry) is recognised by its generation and dropped.
    The timer factory must return an object with `start()` and `cancel()`;
    it defaults to `threading.Timer`.
    """

    def __init__(
        self,
        delay_s: float,
        callback: Callable[[], None],
        timer_factory: Optional[TimerFactory] = None,
    ) -> None:
        self.delay_s = max(0.0, float(delay_s))
        self._callback = callback
        self._timer_factory = timer_factory or threading.Timer
        self._lock = threading.Lock()
        self._timer: Any = None
        self._generation = 0

    @property
    def pending(self) -> bool:
        with self._lock:
            return self._timer is not None

    def trigger(self) -> None:
        with self._lock:
            previous = self._timer
            self._generation += 1
            generation = self._generation
            timer = self._timer_factory(self.delay_s, lambda: self._fire(generation))
            if hasattr(timer, "daemon"):
                timer.daemon = True
            self._timer = timer
        if previous is not None:
            previous.cancel()
        timer.start()

    def cancel(self) -> None:
        with self._lock:
            timer = self._timer
            self._timer = None
            self._generation += 1
        if timer is not None:
            timer.cancel()

    def flush(self) -> bool:
        """Run a pending callback immediately. Returns False if none was pending."""
        with self._lock:
            timer = self._timer
            if timer is None:
                return False
            self._timer = None
            self._generation += 1
        timer.cancel()
        self._run()
        return True

    def _fire(self, generation: int) -> None:
        with self._lock:
            if generation != self._generation:
                return
            self._timer = None
        self._run()

    def _run(self) -> None:
        try:
            self._callback()
        except Exception:
            logger.exception("Scheduled callback failed")


class FrameScheduler:
    """Single-slot "latest pending repaint".

    `request(paint)` replaces whatever repaint is waiting for the next frame
    tick, so a burst of requests collapses into one call of the newest one.
    The tick is armed by the first request of a burst and is never pushed
    back by later ones, so a steady stream of requests still paints once
    per interval.
    """

    def __init__(self, interval_s: float = 0.016, timer_factory: Optional[TimerFactory] = None) -> None:
        self._slot: Optional[Callable[[], None]] = None
        self._slot_lock = threading.Lock()
        self._timer = DebounceTimer(interval_s, self._paint, timer_factory)

    @property
    def pending(self) -> bool:
        return self._timer.pending

    def request(self, paint: Callable[[], None]) -> None:
        with self._slot_lock:
            self._slot = paint
            if not self._timer.pending:
                self._timer.trigger()

    def cancel(self) -> None:
        self._timer.cancel()
        with self._slot_lock:
            self._slot = None

    def flush(self) -> bool:
        return self._timer.flush()

    def _paint(self) -> None:
        with self._slot_lock:
            paint = self._slot
            self._slot = None
        if paint is not None:
            paint()
