"""groupme_sync.storage - Persisted row ledger."""

from groupme_sync.storage.ledger import LedgerError, ProcessedRow, RowLedger

__all__ = ["LedgerError", "ProcessedRow", "RowLedger"]
