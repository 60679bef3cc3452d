"""Fake providers and ledger store for engine tests (no live network)."""

from .providers import (
    FAKE_UPDATED_AT,
    FakeProvider,
    FakeProviderAlwaysFail,
    FakeProviderFailNThenSucceed,
    InMemoryLedgerStore,
    make_asset,
)

__all__ = [
    "FAKE_UPDATED_AT",
    "FakeProvider",
    "FakeProviderAlwaysFail",
    "FakeProviderFailNThenSucceed",
    "InMemoryLedgerStore",
    "make_asset",
]
