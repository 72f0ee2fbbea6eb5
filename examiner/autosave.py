"""
Autosave of in-progress attempts to local recovery storage.

Snapshots are written atomically, one file per (exam, student), and the
last write wins. With a recovery key the snapshot is Fernet-encrypted so the
recorded start time cannot be edited to buy extra time. Autosave is
best-effort: failures are logged and retried on the next tick.
"""

import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Callable, Optional, Tuple, Union

from cryptography.fernet import Fernet, InvalidToken

from .errors import CorruptSnapshotError, ExaminerError
from .event_log import null_log


def _safe_component(value: str) -> str:
    return "".join(c if c.isalnum() else '_' for c in str(value))


class RecoveryStorage:
    """Durable client-side store for autosave snapshots."""

    def __init__(self, directory: Union[str, Path], key: Optional[Union[str, bytes]] = None):
        self.directory = Path(directory)
        self._fernet = None
        if key:
            self._fernet = Fernet(key.encode('utf-8') if isinstance(key, str) else key)

    def path_for(self, exam_id: str, student_id: str) -> Path:
        suffix = ".autosave.enc" if self._fernet else ".autosave.json"
        return self.directory / f"{_safe_component(exam_id)}__{_safe_component(student_id)}{suffix}"

    def write(self, exam_id: str, student_id: str, data: dict):
        """Replace the snapshot for this attempt. Raises OSError on failure."""
        payload = json.dumps(data, ensure_ascii=False, separators=(",", ":")).encode('utf-8')
        if self._fernet:
            payload = self._fernet.encrypt(payload)

        self.directory.mkdir(parents=True, exist_ok=True)
        target = self.path_for(exam_id, student_id)

        # Write to a sibling temp file then swap, so a crash never leaves half a snapshot
        fd, temp_name = tempfile.mkstemp(dir=self.directory, prefix=".autosave-")
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(payload)
            os.replace(temp_name, target)
        except BaseException:
            if os.path.exists(temp_name):
                os.unlink(temp_name)
            raise

    def read(self, exam_id: str, student_id: str) -> Optional[dict]:
        """
        Load the snapshot for this attempt.

        Returns:
            The snapshot dict, or None if no snapshot exists

        Raises:
            CorruptSnapshotError: If the file cannot be decrypted or parsed
        """
        path = self.path_for(exam_id, student_id)
        if not path.exists():
            return None

        try:
            with open(path, 'rb') as f:
                payload = f.read()
        except OSError as e:
            raise CorruptSnapshotError(f"Cannot read snapshot {path.name}: {e}")

        if self._fernet:
            try:
                payload = self._fernet.decrypt(payload)
            except InvalidToken:
                raise CorruptSnapshotError(f"Snapshot {path.name} failed integrity check")

        try:
            data = json.loads(payload.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise CorruptSnapshotError(f"Snapshot {path.name} is not valid JSON: {e}")

        if not isinstance(data, dict):
            raise CorruptSnapshotError(f"Snapshot {path.name} has an unexpected shape")
        return data

    def delete(self, exam_id: str, student_id: str):
        path = self.path_for(exam_id, student_id)
        if path.exists():
            path.unlink()


class Autosaver:
    """
    Periodically persists a session snapshot whenever it has changed.

    Args:
        storage: Where snapshots are written
        exam_id: Exam half of the snapshot key
        student_id: Student half of the snapshot key
        snapshot_fn: Returns (version, snapshot) or None when nothing should be saved
        interval: Seconds between ticks
        log: Event logger callable
    """

    def __init__(
        self,
        storage: RecoveryStorage,
        exam_id: str,
        student_id: str,
        snapshot_fn: Callable[[], Optional[Tuple[int, dict]]],
        interval: float = 3.0,
        log=None
    ):
        self.storage = storage
        self.exam_id = exam_id
        self.student_id = student_id
        self.snapshot_fn = snapshot_fn
        self.interval = interval
        self.log = log or null_log

        self.saved_version = -1
        self.failures = 0
        self.cancelled = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def dirty(self) -> bool:
        state = self.snapshot_fn()
        return state is not None and state[0] > self.saved_version

    def flush(self) -> bool:
        """
        Write the snapshot if it changed since the last successful write.

        Returns:
            True if a snapshot was written
        """
        if self.cancelled:
            return False

        state = self.snapshot_fn()
        if state is None:
            return False
        version, data = state
        if version <= self.saved_version:
            return False

        try:
            self.storage.write(self.exam_id, self.student_id, data)
        except Exception as e:
            # Stays dirty; the next tick retries
            self.failures += 1
            self.log("AUTOSAVE_FAILED", f"Attempt {self.failures}: {e}")
            return False

        self.saved_version = version
        return True

    def start(self):
        """Start ticking on a daemon thread."""
        if self._thread is not None or self.cancelled:
            return
        self._thread = threading.Thread(
            target=self._run_background,
            name="exam-autosave",
            daemon=True
        )
        self._thread.start()

    def _run_background(self):
        while not self._stop_event.wait(self.interval):
            self.flush()

    def cancel(self, wait: bool = True):
        """Stop autosaving for good. No write starts after this returns."""
        self.cancelled = True
        self._stop_event.set()
        if wait:
            self.join()

    def join(self):
        thread = self._thread
        if thread and thread.is_alive() and thread is not threading.current_thread():
            thread.join(timeout=self.interval + 5.0)


class PlatformMirror:
    """
    Recovery storage that also pushes each snapshot's answers to the platform.

    The local write decides success. The platform copy is best-effort: a
    failure is logged and the next autosave tick sends a fresh copy.

    Args:
        local: The RecoveryStorage that owns the snapshot
        api: Object with save_progress(exam_id, session_id, answers)
        log: Event logger callable
    """

    def __init__(self, local: RecoveryStorage, api, log=None):
        self.local = local
        self.api = api
        self.log = log or null_log

    def path_for(self, exam_id: str, student_id: str) -> Path:
        return self.local.path_for(exam_id, student_id)

    def read(self, exam_id: str, student_id: str) -> Optional[dict]:
        return self.local.read(exam_id, student_id)

    def delete(self, exam_id: str, student_id: str):
        self.local.delete(exam_id, student_id)

    def write(self, exam_id: str, student_id: str, data: dict):
        self.local.write(exam_id, student_id, data)
        try:
            self.api.save_progress(exam_id, data.get("session_id"), data.get("answers") or {})
        except ExaminerError as e:
            self.log("REMOTE_SAVE_FAILED", str(e))
