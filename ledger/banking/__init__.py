"""Banking package: account registry, ledger mutator and history."""

from ledger.banking.history import HistoryProjector
from ledger.banking.mutator import LedgerMutator
from ledger.banking.registry import AccountRegistry

__all__ = ["AccountRegistry", "HistoryProjector", "LedgerMutator"]
