"""
Canonical RNG seeding: deterministic seeds from a key plus a component salt.
Never use Python's built-in hash() (not stable across processes).
"""

from __future__ import annotations

import hashlib
from typing import Optional

import numpy as np

SALT_SYNTHETIC_HISTORY = "synthetic_history"


def seed_for(key: str, *, salt: str) -> int:
    """Stable 63-bit seed from key and salt (SHA-256)."""
    payload = f"{key}|{salt}".encode("utf-8")
    digest = hashlib.sha256(payload).digest()
    return int.from_bytes(digest[:8], byteorder="big") % (2**63)


def rng_for(key: str, salt: str) -> np.random.Generator:
    """Return a numpy Generator seeded from seed_for(key, salt=salt)."""
    return np.random.default_rng(seed_for(key, salt=salt))


def rng_from_seed(seed: Optional[int]) -> np.random.Generator:
    """Generator from an explicit seed; None gives a non-deterministic generator."""
    return np.random.default_rng(seed)
