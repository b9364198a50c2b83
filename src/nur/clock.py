from __future__ import annotations

from datetime import date, datetime, tzinfo
import logging
from threading import Event, Lock, Thread
from typing import Callable

from .timeutils import day_of, local_now

logger = logging.getLogger(__name__)

TickListener = Callable[[datetime], None]
RolloverHandler = Callable[[date], None]


class ScheduleClock:
    """Minute tick that refreshes listeners and reports calendar-day rollover.

    The clock never holds a schedule. It asks ``loaded_day`` which day the
    owner currently has loaded and calls ``on_rollover`` with the new day
    when that is no longer today.
    """

    def __init__(
        self,
        loaded_day: Callable[[], date | None],
        on_rollover: RolloverHandler,
        *,
        interval: float = 60.0,
        tz: tzinfo | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.loaded_day = loaded_day
        self.on_rollover = on_rollover
        self.interval = interval
        self.tz = tz
        self._now = now or (lambda: local_now(tz))
        self._listeners: list[TickListener] = []
        self._listeners_lock = Lock()
        self._stop = Event()
        self._thread: Thread | None = None

    def subscribe(self, listener: TickListener) -> Callable[[], None]:
        with self._listeners_lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._listeners_lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def tick(self, now: datetime | None = None) -> bool:
        """Run one tick. Returns True when a rollover was triggered."""
        moment = now or self._now()
        rolled = False
        loaded = self.loaded_day()
        today = day_of(moment, self.tz)
        if loaded is not None and loaded != today:
            logger.info("Day rolled over from %s to %s", loaded, today)
            rolled = True
            try:
                self.on_rollover(today)
            except Exception:
                logger.exception("Refresh after day rollover failed")
        with self._listeners_lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(moment)
            except Exception:
                logger.exception("Clock listener %r failed", listener)
        return rolled

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = Thread(target=self._run, name="nur-clock", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 1.0) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None:
            thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self._seconds_to_next_tick()):
            self.tick()

    def _seconds_to_next_tick(self) -> float:
        # Align minute ticks to the wall-clock minute boundary.
        if self.interval != 60.0:
            return self.interval
        moment = self._now()
        return max(0.5, 60.0 - moment.second - moment.microsecond / 1_000_000)
