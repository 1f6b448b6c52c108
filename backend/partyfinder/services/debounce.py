"""One-shot debounced background task.

A ``DebouncedTask`` is ``idle`` until armed, ``armed`` while its timer is
sleeping and ``firing`` while the action runs. Arming an armed task does
nothing, so any burst of triggers inside one window runs the action once.
Arming during ``firing`` queues exactly one follow-up run, which keeps
changes made while a snapshot is being written from being lost.

The timer is a background task started through ``spawn(fn, *args)`` and
paced with ``sleep(seconds)``; the app passes Flask-SocketIO's
``start_background_task`` and ``sleep`` so the timer cooperates with
whatever async mode the server runs in.
"""
import logging
import threading
import time

IDLE = 'idle'
ARMED = 'armed'
FIRING = 'firing'


def spawn_thread(fn, *args):
    worker = threading.Thread(target=fn, args=args, daemon=True)
    worker.start()
    return worker


class DebouncedTask:
    def __init__(self, action, delay_sec: float, spawn=None, sleep=None, name: str = 'task', logger=None):
        self._action = action
        self._delay = max(0.0, float(delay_sec))
        self._spawn = spawn or spawn_thread
        self._sleep = sleep or time.sleep
        self._name = name
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._state = IDLE
        self._token = 0
        self._rearm = False

    @property
    def state(self) -> str:
        return self._state

    @property
    def pending(self) -> bool:
        return self._state == ARMED

    def arm(self) -> bool:
        """Start the timer unless one is already pending. Returns True if armed."""
        with self._lock:
            if self._state == FIRING:
                self._rearm = True
                return False
            if self._state == ARMED:
                return False
            self._state = ARMED
            self._token += 1
            token = self._token
        self._spawn(self._runner, token)
        return True

    def cancel(self) -> bool:
        with self._lock:
            if self._state != ARMED:
                return False
            # a sleeping runner sees the stale token and exits
            self._token += 1
            self._state = IDLE
            return True

    def flush(self) -> bool:
        """Run a pending action now instead of waiting for the timer."""
        with self._lock:
            if self._state != ARMED:
                return False
            self._token += 1
            self._state = FIRING
        self._run_action()
        return True

    def _runner(self, token: int) -> None:
        if self._delay:
            self._sleep(self._delay)
        with self._lock:
            if self._state != ARMED or self._token != token:
                return
            self._state = FIRING
        self._run_action()

    def _run_action(self) -> None:
        try:
            self._action()
        except Exception as exc:
            self._logger.error(f"[debounce] {self._name} failed: {exc}")
        finally:
            with self._lock:
                self._state = IDLE
                rearm = self._rearm
                self._rearm = False
        if rearm:
            self.arm()
