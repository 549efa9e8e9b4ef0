"""
Deterministic seeding for action selection.

seed = first 8 bytes (big-endian) of
    sha256("v{version}|{session_id}|{hand_id}|{decision_index}|{nonce}")

The format is versioned so replay tooling can reproduce old decisions
after the derivation changes. `nonce` is only non-zero when the same
(session, hand, decision index) is decided more than once live.
"""
import hashlib
import random

SEED_VERSION = 1


def derive_seed(
    session_id: str,
    hand_id: str,
    decision_index: int,
    nonce: int = 0,
    version: int = SEED_VERSION,
) -> int:
    if version != 1:
        raise ValueError(f"Unsupported seed version: {version}")
    payload = f"v{version}|{session_id}|{hand_id}|{decision_index}|{nonce}".encode("utf-8")
    return int.from_bytes(hashlib.sha256(payload).digest()[:8], "big")


def make_rng(seed: int, stream: str = "select") -> random.Random:
    """Independent generator per purpose, so equity sampling never shifts the action draw."""
    return random.Random(f"{seed}/{stream}")
