"""
Tests for recovery storage and the autosaver.
"""

import json
from unittest.mock import Mock

import pytest
from cryptography.fernet import Fernet

from examiner.autosave import Autosaver, PlatformMirror, RecoveryStorage
from examiner.errors import ApiError, CorruptSnapshotError


SNAPSHOT = {
    "exam_id": "py-101-midterm",
    "student_id": "s-42",
    "started_at": "2026-03-02T09:00:00+00:00",
    "answers": {"q1": {"value": "def", "flagged": True}},
}


class TestRecoveryStorage:
    """Snapshot files on disk."""

    def test_missing_snapshot(self, tmp_path):
        """No file means no snapshot, not an error."""
        storage = RecoveryStorage(tmp_path)

        assert storage.read("py-101-midterm", "s-42") is None

    def test_plain_round_trip(self, tmp_path):
        """Without a key the snapshot is plain JSON."""
        storage = RecoveryStorage(tmp_path / "recovery")

        storage.write("py-101-midterm", "s-42", SNAPSHOT)

        path = storage.path_for("py-101-midterm", "s-42")
        assert path.suffix == ".json"
        assert json.loads(path.read_text(encoding='utf-8')) == SNAPSHOT
        assert storage.read("py-101-midterm", "s-42") == SNAPSHOT

    def test_encrypted_round_trip(self, tmp_path):
        """With a key the file on disk is not readable JSON."""
        storage = RecoveryStorage(tmp_path, key=Fernet.generate_key())

        storage.write("py-101-midterm", "s-42", SNAPSHOT)

        raw = storage.path_for("py-101-midterm", "s-42").read_bytes()
        assert b"started_at" not in raw
        assert storage.read("py-101-midterm", "s-42") == SNAPSHOT

    def test_tampered_snapshot_is_corrupt(self, tmp_path):
        """Editing an encrypted snapshot breaks its integrity check."""
        storage = RecoveryStorage(tmp_path, key=Fernet.generate_key())
        storage.write("py-101-midterm", "s-42", SNAPSHOT)
        path = storage.path_for("py-101-midterm", "s-42")
        path.write_bytes(path.read_bytes()[:-4] + b"AAAA")

        with pytest.raises(CorruptSnapshotError):
            storage.read("py-101-midterm", "s-42")

    def test_wrong_key_is_corrupt(self, tmp_path):
        """A snapshot written with another key cannot be trusted."""
        RecoveryStorage(tmp_path, key=Fernet.generate_key()).write("py-101-midterm", "s-42", SNAPSHOT)
        storage = RecoveryStorage(tmp_path, key=Fernet.generate_key().decode())

        with pytest.raises(CorruptSnapshotError):
            storage.read("py-101-midterm", "s-42")

    def test_garbage_json_is_corrupt(self, tmp_path):
        """A half-written plain snapshot is reported as corrupt."""
        storage = RecoveryStorage(tmp_path)
        storage.path_for("py-101-midterm", "s-42").write_text('{"exam_id": ', encoding='utf-8')

        with pytest.raises(CorruptSnapshotError):
            storage.read("py-101-midterm", "s-42")

    def test_non_object_is_corrupt(self, tmp_path):
        """A snapshot must be a JSON object."""
        storage = RecoveryStorage(tmp_path)
        storage.path_for("py-101-midterm", "s-42").write_text('[1, 2]', encoding='utf-8')

        with pytest.raises(CorruptSnapshotError):
            storage.read("py-101-midterm", "s-42")

    def test_keys_are_per_attempt(self, tmp_path):
        """Different students never share a snapshot file."""
        storage = RecoveryStorage(tmp_path)
        storage.write("py-101-midterm", "s-42", SNAPSHOT)

        assert storage.read("py-101-midterm", "s-43") is None
        assert storage.path_for("exam/1", "a b") != storage.path_for("exam_1", "a_c")

    def test_delete(self, tmp_path):
        """Deleting removes the file; deleting again is harmless."""
        storage = RecoveryStorage(tmp_path)
        storage.write("py-101-midterm", "s-42", SNAPSHOT)

        storage.delete("py-101-midterm", "s-42")
        storage.delete("py-101-midterm", "s-42")

        assert storage.read("py-101-midterm", "s-42") is None


class TestAutosaver:
    """Autosave writes only when the state changed, and retries failures."""

    def _saver(self, storage, state, log=None):
        return Autosaver(storage, "py-101-midterm", "s-42", snapshot_fn=lambda: state["value"], log=log)

    def test_writes_only_newer_versions(self):
        """An unchanged version is not written twice."""
        storage = Mock()
        state = {"value": (1, SNAPSHOT)}
        saver = self._saver(storage, state)

        assert saver.dirty is True
        assert saver.flush() is True
        assert saver.dirty is False
        assert saver.flush() is False

        state["value"] = (2, SNAPSHOT)
        assert saver.flush() is True
        assert storage.write.call_count == 2

    def test_failure_stays_dirty_and_retries(self, event_log):
        """A failed write is logged and retried on the next flush."""
        storage = Mock()
        storage.write.side_effect = [OSError("disk full"), None]
        saver = self._saver(storage, {"value": (1, SNAPSHOT)}, log=event_log)

        assert saver.flush() is False
        assert saver.dirty is True
        assert saver.failures == 1
        assert "AUTOSAVE_FAILED" in event_log.events()

        assert saver.flush() is True
        assert saver.dirty is False

    def test_nothing_to_save(self):
        """A snapshot function returning None skips the write."""
        storage = Mock()
        saver = self._saver(storage, {"value": None})

        assert saver.dirty is False
        assert saver.flush() is False
        storage.write.assert_not_called()

    def test_no_write_after_cancel(self):
        """Once cancelled, the autosaver never writes again."""
        storage = Mock()
        saver = self._saver(storage, {"value": (5, SNAPSHOT)})

        saver.cancel()

        assert saver.flush() is False
        storage.write.assert_not_called()


class TestPlatformMirror:
    """Snapshots copied to the platform on a best-effort basis."""

    def test_writes_locally_then_remotely(self, tmp_path):
        """The answers reach the platform under the snapshot's session id."""
        api = Mock()
        storage = PlatformMirror(RecoveryStorage(tmp_path), api)
        data = dict(SNAPSHOT, session_id="sess-1")

        storage.write("py-101-midterm", "s-42", data)

        assert storage.read("py-101-midterm", "s-42") == data
        api.save_progress.assert_called_once_with("py-101-midterm", "sess-1", SNAPSHOT["answers"])

    def test_platform_failure_is_logged(self, tmp_path, event_log):
        """A platform outage never fails the local autosave."""
        api = Mock()
        api.save_progress.side_effect = ApiError("POST /save returned 503", 503)
        storage = PlatformMirror(RecoveryStorage(tmp_path), api, log=event_log)

        storage.write("py-101-midterm", "s-42", SNAPSHOT)

        assert storage.read("py-101-midterm", "s-42") == SNAPSHOT
        assert event_log.events() == ["REMOTE_SAVE_FAILED"]

    def test_local_failure_skips_platform(self):
        """If the local write fails the autosave is retried as a whole."""
        local = Mock()
        local.write.side_effect = OSError("read-only file system")
        api = Mock()
        saver = Autosaver(PlatformMirror(local, api), "py-101-midterm", "s-42", snapshot_fn=lambda: (1, SNAPSHOT))

        assert saver.flush() is False
        api.save_progress.assert_not_called()
