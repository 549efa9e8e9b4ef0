"""
Tests for file locking utilities.

flock locks belong to an open file description, so two `file_lock`
blocks in one process still exclude each other. That is enough to test
the timeout path without spawning processes.
"""

import os
import tempfile
from pathlib import Path

import pytest

from decision_core.domain.agent.weights import AgentWeights
from decision_core.domain.utils.file_lock import file_lock, read_json_locked, write_json_atomic


class TestFileLock:
    """Test the file_lock context manager."""

    def test_lock_creates_lock_file(self):
        """Lock file should be created next to the target file."""
        with tempfile.TemporaryDirectory() as tmpdir:
            target = os.path.join(tmpdir, "session_s1.json")
            lock_path = target + ".lock"
            assert not os.path.exists(lock_path)

            with file_lock(target):
                assert os.path.exists(lock_path)

    def test_lock_creates_parent_directories(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            target = os.path.join(tmpdir, "traces", "nested", "session.json")
            with file_lock(target):
                assert os.path.exists(os.path.dirname(target))

    def test_lock_released_on_exception(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            target = os.path.join(tmpdir, "test.json")
            with pytest.raises(ValueError):
                with file_lock(target):
                    raise ValueError("boom")
            with file_lock(target, timeout=0.1):
                pass

    def test_timeout_while_held(self):
        """A second writer gives up after its timeout."""
        with tempfile.TemporaryDirectory() as tmpdir:
            target = os.path.join(tmpdir, "agent_weights.json")
            with file_lock(target, exclusive=True):
                with pytest.raises(TimeoutError):
                    with file_lock(target, exclusive=True, timeout=0.05):
                        pass

    def test_shared_locks_coexist(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            target = os.path.join(tmpdir, "agent_weights.json")
            with file_lock(target, exclusive=False):
                with file_lock(target, exclusive=False, timeout=0.05):
                    pass


class TestAtomicJson:
    """Writers replace files whole; readers take the shared lock."""

    def test_write_then_read(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "traces" / "session_s1.json"
            written = write_json_atomic(path, {"decisions": [1, 2]})

            assert written == path
            assert read_json_locked(path) == {"decisions": [1, 2]}
            assert not Path(str(path) + ".tmp").exists()
            assert Path(str(path) + ".lock").exists()

    def test_overwrite_replaces_content(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "agent_weights.json"
            write_json_atomic(path, {"weights": {"a": 1.0}})
            write_json_atomic(path, {"weights": {"b": 1.0}})
            assert read_json_locked(path) == {"weights": {"b": 1.0}}

    def test_weights_save_then_load(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "weights" / "agent_weights.json"
            AgentWeights({"a": 3.0, "b": 1.0}).save(path)

            loaded = AgentWeights.load(path)
            assert loaded.get("a") == pytest.approx(0.75)
            assert loaded.get("b") == pytest.approx(0.25)
