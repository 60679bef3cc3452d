"""Allow python -m crypto_tracker to print help."""
from __future__ import annotations

from . import __version__

_HELP = f"""\
crypto-tracker {__version__}

Commands (crypto-tracker <command> --help for options):
  assets        Top listings from the active provider
  asset ID      One asset (placeholder when no provider knows it)
  history ID    Price history (--days N)
  convert       Convert AMOUNT FROM TO between fiat currencies
  fiat          Known fiat currencies and rates
  portfolio     Holdings valued at current prices
  tx-add        Record a Buy/Sell/Transfer
  tx-list       List ledger transactions
  tx-delete ID  Remove a transaction
  favorite ID   Toggle a favorite
  providers     Active provider and health
  ping          Connectivity test of the active provider

Config: config.yaml at repo root or CRYPTO_TRACKER_CONFIG.
"""


def main() -> int:
    print(_HELP)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
