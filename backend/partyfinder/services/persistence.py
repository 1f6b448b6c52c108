import json
import logging
import os
import tempfile
from typing import Any, Callable, Optional

from partyfinder.limits import now_ms
from partyfinder.services.debounce import DebouncedTask

SNAPSHOT_VERSION = 1


class SnapshotFile:
    """Debounced full-snapshot writer and validating loader for one store.

    The file holds ``{"version": 1, "savedAt": <ms>, <key>: <data>}``.
    Writes go to a temporary file in the same directory which is then
    renamed over the target, so readers never see a partial file. Nothing
    here raises: failures are logged and the in-memory state stays the
    source of truth.
    """

    def __init__(
        self,
        path: str,
        key: str,
        collect: Callable[[], Any],
        container: type = list,
        debounce_ms: int = 250,
        spawn=None,
        sleep=None,
        clock: Callable[[], int] = now_ms,
        logger: Optional[logging.Logger] = None,
        label: str = 'persist',
    ):
        self.path = os.path.abspath(path)
        self.key = key
        self._collect = collect
        self._container = container
        self._clock = clock
        self._logger = logger or logging.getLogger(__name__)
        self._label = label
        self._task = DebouncedTask(
            self.save,
            debounce_ms / 1000.0,
            spawn=spawn,
            sleep=sleep,
            name=f"{label}-save",
            logger=self._logger,
        )

    @property
    def pending(self) -> bool:
        return self._task.pending

    def schedule_save(self) -> bool:
        return self._task.arm()

    def flush(self) -> bool:
        return self._task.flush()

    def cancel(self) -> bool:
        return self._task.cancel()

    def save(self) -> bool:
        tmp_path = None
        try:
            payload = {
                'version': SNAPSHOT_VERSION,
                'savedAt': self._clock(),
                self.key: self._collect(),
            }
            directory = os.path.dirname(self.path)
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix='.tmp-', suffix='.json', dir=directory)
            with os.fdopen(fd, 'w', encoding='utf-8') as fh:
                json.dump(payload, fh, ensure_ascii=False)
            os.replace(tmp_path, self.path)
            tmp_path = None
            return True
        except (OSError, TypeError, ValueError) as exc:
            self._logger.error(f"[{self._label}] persist failed: {exc}")
            return False
        finally:
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.remove(tmp_path)
                except OSError as exc:
                    self._logger.warning(f"[{self._label}] could not remove {tmp_path}: {exc}")

    def load(self):
        """Return the stored body, or None when there is no usable snapshot."""
        if not os.path.exists(self.path):
            return None
        try:
            with open(self.path, 'r', encoding='utf-8') as fh:
                parsed = json.load(fh)
        except (OSError, ValueError) as exc:
            self._logger.warning(f"[{self._label}] ignoring unreadable snapshot {self.path}: {exc}")
            return None
        if not isinstance(parsed, dict) or parsed.get('version') != SNAPSHOT_VERSION:
            self._logger.info(f"[{self._label}] ignoring snapshot with unknown version at {self.path}")
            return None
        body = parsed.get(self.key)
        if not isinstance(body, self._container):
            return None
        return body
