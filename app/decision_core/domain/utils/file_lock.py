"""
Advisory file locks for the shared data directory.

Several decision processes may share one data directory. The agent weight
table and the session trace files are only written through
`write_json_atomic` (exclusive lock, temp file, rename) and only read
through `read_json_locked` (shared lock), so a reader never sees a
half-written file.
"""

import fcntl
import json
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Generator

from decision_core.logging_config import get_logger

logger = get_logger(__name__)

# Poll interval while waiting on a lock with a timeout
LOCK_POLL_S = 0.01


@contextmanager
def file_lock(
    file_path: str | Path,
    exclusive: bool = True,
    timeout: float | None = None,
) -> Generator[None, None, None]:
    """
    Hold an fcntl lock on `<file_path>.lock` for the duration of the block.

    The lock lives in a sibling file, so the target can be replaced by a
    rename while the lock is held.

    Args:
        file_path: File being protected
        exclusive: Writer lock if True, shared reader lock otherwise
        timeout: Seconds to wait for the lock; None blocks until acquired

    Raises:
        TimeoutError: the lock was not acquired within `timeout`
    """
    path = Path(file_path)
    lock_path = path.with_name(path.name + ".lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    mode = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH

    with open(lock_path, "w") as handle:
        if timeout is None:
            fcntl.flock(handle.fileno(), mode)
        else:
            deadline = time.monotonic() + timeout
            while True:
                try:
                    fcntl.flock(handle.fileno(), mode | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() >= deadline:
                        raise TimeoutError(f"Could not lock {path} within {timeout}s") from None
                    time.sleep(LOCK_POLL_S)
        try:
            yield
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)


def write_json_atomic(path: str | Path, payload: Any) -> Path:
    """Write `payload` to a temp sibling and rename it over `path`, under an exclusive lock."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(path.name + ".tmp")
    with file_lock(path, exclusive=True):
        with open(tmp_path, "w") as f:
            json.dump(payload, f, indent=2, default=str)
        tmp_path.replace(path)
    logger.debug(f"Wrote {path}")
    return path


def read_json_locked(path: str | Path) -> Any:
    with file_lock(path, exclusive=False):
        with open(path) as f:
            return json.load(f)
