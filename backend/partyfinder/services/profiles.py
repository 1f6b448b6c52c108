import logging
import threading
from typing import Callable, Dict, Optional

from partyfinder.models import Profile
from partyfinder.limits import now_ms
from partyfinder.services.persistence import SnapshotFile


class ProfileStore:
    """Saved name/job/power templates keyed by external identity."""

    def __init__(self, persist_file: str, debounce_ms: int = 250, spawn=None, sleep=None,
                 clock: Callable[[], int] = now_ms, logger: Optional[logging.Logger] = None,
                 autoload: bool = True):
        self._logger = logger or logging.getLogger(__name__)
        self._lock = threading.RLock()
        self._profiles: Dict[str, Profile] = {}
        self._snapshot = SnapshotFile(
            persist_file,
            'profiles',
            self._collect,
            container=dict,
            debounce_ms=debounce_ms,
            spawn=spawn,
            sleep=sleep,
            clock=clock,
            logger=self._logger,
            label='profiles',
        )
        if autoload:
            self.load()

    @property
    def snapshot(self) -> SnapshotFile:
        return self._snapshot

    def _collect(self):
        with self._lock:
            return {identity: p.to_dict() for identity, p in self._profiles.items()}

    def load(self) -> int:
        body = self._snapshot.load()
        if body is None:
            return 0
        loaded = {}
        for identity, raw in body.items():
            try:
                loaded[str(identity)] = Profile.from_dict(raw)
            except (AttributeError, TypeError, ValueError) as exc:
                self._logger.warning(f"[profiles] dropping profile for {identity}: {exc}")
        with self._lock:
            self._profiles.update(loaded)
        self._logger.info(f"[profiles] loaded {len(loaded)} profiles from disk")
        return len(loaded)

    def get(self, identity: str) -> Optional[Profile]:
        with self._lock:
            profile = self._profiles.get(identity)
            return Profile(profile.name, profile.job, profile.power) if profile else None

    def set(self, identity: str, profile: Profile) -> Profile:
        saved = Profile.from_dict(profile.to_dict())
        with self._lock:
            self._profiles[identity] = saved
            self._snapshot.schedule_save()
        return Profile(saved.name, saved.job, saved.power)

    def flush(self) -> bool:
        return self._snapshot.flush()
