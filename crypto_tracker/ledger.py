"""
Ledger persistence: the transaction list and the favorites set in one JSON file.

Every mutation rewrites the whole document (write-through). Writes go to a
temporary file in the same directory and are moved into place with
os.replace, so a crash mid-write leaves the previous ledger intact.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol, Union, runtime_checkable

from .core.errors import PersistenceError
from .models import Ledger

logger = logging.getLogger(__name__)

LEDGER_VERSION = 1


@runtime_checkable
class LedgerStore(Protocol):
    def load(self) -> Ledger:
        """Return the persisted ledger; empty when nothing is stored."""
        ...

    def save(self, ledger: Ledger) -> None:
        """Persist the whole ledger. Raises PersistenceError on failure."""
        ...


class JsonLedgerStore:
    """LedgerStore backed by a JSON file."""

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path).expanduser()

    def load(self) -> Ledger:
        if not self.path.exists():
            logger.info("No ledger at %s, starting empty", self.path)
            return Ledger()
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("ledger root is not an object")
            return Ledger.from_dict(data)
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.error("Failed to load ledger from %s: %s", self.path, exc)
            return Ledger()

    def save(self, ledger: Ledger) -> None:
        payload = {"version": LEDGER_VERSION, **ledger.to_dict()}
        tmp_name = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=str(self.path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(payload, f, indent=2, sort_keys=True)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Failed to save ledger to {self.path}: {exc}") from exc
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)
