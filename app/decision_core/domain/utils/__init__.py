"""Utility modules for the decision core."""
from decision_core.domain.utils.file_lock import file_lock, read_json_locked, write_json_atomic

__all__ = ["file_lock", "read_json_locked", "write_json_atomic"]
