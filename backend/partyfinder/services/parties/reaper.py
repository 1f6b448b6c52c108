import logging
import threading
import time
from typing import Optional

from partyfinder.services.debounce import spawn_thread


class IdleReaper:
    """Fixed-interval sweep over the party store and the session registry.

    Evictions go through ``PartyStore.cleanup`` so party state is only ever
    touched by store operations. A sweep that changed anything schedules one
    list broadcast.
    """

    def __init__(self, store, notifier, sessions=None, interval_sec: float = 60.0,
                 spawn=None, sleep=None, logger: Optional[logging.Logger] = None):
        self._store = store
        self._notifier = notifier
        self._sessions = sessions
        self.interval_sec = float(interval_sec)
        self._spawn = spawn or spawn_thread
        self._sleep = sleep or time.sleep
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._generation = 0
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def sweep(self) -> bool:
        changed = self._store.cleanup()
        expired_sessions = self._sessions.cleanup() if self._sessions is not None else 0
        if changed:
            self._notifier.schedule_list_broadcast()
        if changed or expired_sessions:
            self._logger.info(f"[reaper] sweep changed_parties={changed} expired_sessions={expired_sessions}")
        return changed

    def start(self) -> bool:
        with self._lock:
            if self._running:
                return False
            self._running = True
            self._generation += 1
            generation = self._generation
        self._spawn(self._loop, generation)
        self._logger.info(f"[reaper] started interval={self.interval_sec}s")
        return True

    def stop(self) -> None:
        with self._lock:
            self._running = False
            self._generation += 1

    def _loop(self, generation: int) -> None:
        while True:
            self._sleep(self.interval_sec)
            if not self._running or self._generation != generation:
                return
            try:
                self.sweep()
            except Exception as exc:
                # next tick retries
                self._logger.error(f"[reaper] sweep failed: {exc}")
